"""
Router pour les programmations de déclenchement des sirènes.
"""

import uuid
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from sirene_api.database import get_db
from sirene_api.exceptions import NotFoundError
from sirene_api.schemas.calendrier import (
    ProgrammationCreate,
    ProgrammationEffective,
    ProgrammationResponse,
    ProgrammationUpdate,
)
from sirene_api.schemas.common import ApiResponse, ok
from sirene_api.services import programmation_service

router = APIRouter(prefix="/api/v1", tags=["Programmations"])


@router.post("/programmations", response_model=ApiResponse[ProgrammationResponse], status_code=201,
             summary="Créer une programmation")
def creer_programmation(data: ProgrammationCreate, db: Session = Depends(get_db)):
    return ok(programmation_service.creer_programmation(db, data), "Programmation créée.")


@router.get("/programmations/{programmation_id}", response_model=ApiResponse[ProgrammationResponse],
            summary="Détail d'une programmation")
def get_programmation(programmation_id: uuid.UUID, db: Session = Depends(get_db)):
    programmation = programmation_service.get_programmation(db, programmation_id)
    if programmation is None:
        raise NotFoundError("Programmation introuvable.")
    return ok(programmation)


@router.put("/programmations/{programmation_id}", response_model=ApiResponse[ProgrammationResponse],
            summary="Modifier une programmation")
def mettre_a_jour(programmation_id: uuid.UUID, data: ProgrammationUpdate, db: Session = Depends(get_db)):
    return ok(programmation_service.mettre_a_jour(db, programmation_id, data), "Programmation mise à jour.")


@router.delete("/programmations/{programmation_id}", status_code=204, summary="Supprimer une programmation")
def supprimer_programmation(programmation_id: uuid.UUID, db: Session = Depends(get_db)):
    programmation_service.supprimer_programmation(db, programmation_id)


@router.get("/sirenes/{sirene_id}/programmations", response_model=ApiResponse[List[ProgrammationResponse]],
            summary="Programmations d'une sirène")
def lister_par_sirene(sirene_id: uuid.UUID, db: Session = Depends(get_db)):
    return ok(programmation_service.lister_par_sirene(db, sirene_id))


@router.get("/sirenes/{sirene_id}/programmations/effectives",
            response_model=ApiResponse[List[ProgrammationEffective]],
            summary="Programmations effectives à une date")
def programmations_effectives(
    sirene_id: uuid.UUID,
    jour: Optional[date] = None,
    db: Session = Depends(get_db),
):
    """
    Heures de sonnerie de la sirène à la date donnée (aujourd'hui par défaut),
    après application des jours fériés, des exceptions et des vacances.
    """
    return ok(programmation_service.programmations_effectives(db, sirene_id, jour or date.today()))
