"""
Router pour les pannes : déclaration sur une sirène, validation, clôture.
"""

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from sirene_api.database import get_db
from sirene_api.exceptions import NotFoundError
from sirene_api.routers.deps import get_admin_recipients
from sirene_api.schemas.common import ApiResponse, ok
from sirene_api.schemas.panne import AdminAction, PanneCreate, PanneResponse
from sirene_api.services import panne_service

router = APIRouter(prefix="/api/v1", tags=["Pannes"])


@router.post(
    "/sirenes/{sirene_id}/pannes",
    response_model=ApiResponse[PanneResponse],
    status_code=201,
    summary="Déclarer une panne",
)
def declarer_panne(
    sirene_id: uuid.UUID,
    data: PanneCreate,
    db: Session = Depends(get_db),
    admin_ids: List[uuid.UUID] = Depends(get_admin_recipients),
):
    """
    Déclare une panne sur une sirène installée.
    La panne est rattachée au site de la sirène ; les admins sont notifiés.
    """
    panne = panne_service.declarer_panne(db, sirene_id, data, admin_ids)
    return ok(panne, "Panne déclarée avec succès.")


@router.get("/pannes", response_model=ApiResponse[List[PanneResponse]], summary="Lister les pannes")
def lister_pannes(
    statut: Optional[str] = None,
    sirene_id: Optional[uuid.UUID] = None,
    db: Session = Depends(get_db),
):
    return ok(panne_service.lister_pannes(db, statut=statut, sirene_id=sirene_id))


@router.get("/pannes/{panne_id}", response_model=ApiResponse[PanneResponse], summary="Détail d'une panne")
def get_panne(panne_id: uuid.UUID, db: Session = Depends(get_db)):
    panne = panne_service.get_panne(db, panne_id)
    if panne is None:
        raise NotFoundError("Panne introuvable.")
    return ok(panne)


@router.put("/pannes/{panne_id}/valider", response_model=ApiResponse[PanneResponse], summary="Valider une panne")
def valider_panne(panne_id: uuid.UUID, data: AdminAction, db: Session = Depends(get_db)):
    """
    Valide une panne en attente.
    Génère dans la même transaction l'ordre de mission, diffusé aux techniciens de la ville du site.
    """
    panne = panne_service.valider_panne(db, panne_id, data.admin_id)
    return ok(panne, "Panne validée et ordre de mission généré.")


@router.put("/pannes/{panne_id}/cloturer", response_model=ApiResponse[PanneResponse], summary="Clôturer une panne")
def cloturer_panne(panne_id: uuid.UUID, db: Session = Depends(get_db)):
    """Clôture la panne et l'éventuel ordre de mission encore ouvert."""
    panne = panne_service.cloturer_panne(db, panne_id)
    return ok(panne, "Panne clôturée.")
