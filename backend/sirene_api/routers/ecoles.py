"""
Router pour l'inscription et la gestion des écoles.
"""

import uuid
from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from sirene_api.database import get_db
from sirene_api.exceptions import NotFoundError
from sirene_api.schemas.common import ApiResponse, ok
from sirene_api.schemas.ecole import EcoleInscription, EcoleResponse, InscriptionResponse
from sirene_api.services import ecole_service, qr_code_service

router = APIRouter(prefix="/api/v1/ecoles", tags=["Écoles"])


@router.post("/inscription", response_model=ApiResponse[InscriptionResponse], status_code=201,
             summary="Inscrire une école")
def inscrire_ecole(data: EcoleInscription, background_tasks: BackgroundTasks, db: Session = Depends(get_db)):
    """
    Inscrit une école avec son site principal et ses sites annexes.

    Chaque site déclarant un numéro de série reçoit la sirène correspondante
    (qui doit être disponible) et un abonnement en attente de paiement.
    """
    inscription = ecole_service.inscrire_ecole(db, data)
    for abonnement in inscription.abonnements:
        background_tasks.add_task(qr_code_service.regenerer_qr_code, abonnement.id)
    return ok(inscription, "École inscrite avec succès.")


@router.get("", response_model=ApiResponse[List[EcoleResponse]], summary="Lister les écoles")
def lister_ecoles(db: Session = Depends(get_db)):
    return ok(ecole_service.lister_ecoles(db))


@router.get("/{ecole_id}", response_model=ApiResponse[EcoleResponse], summary="Détail d'une école")
def get_ecole(ecole_id: uuid.UUID, db: Session = Depends(get_db)):
    ecole = ecole_service.get_ecole(db, ecole_id)
    if ecole is None:
        raise NotFoundError("École introuvable.")
    return ok(ecole)


@router.delete("/{ecole_id}", status_code=204, summary="Supprimer une école")
def supprimer_ecole(ecole_id: uuid.UUID, db: Session = Depends(get_db)):
    """Refusée tant que l'école a un abonnement actif."""
    ecole_service.supprimer_ecole(db, ecole_id)
