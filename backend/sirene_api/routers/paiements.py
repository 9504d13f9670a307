"""
Router pour les paiements d'abonnement.
"""

import uuid
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from sirene_api.database import get_db
from sirene_api.exceptions import NotFoundError
from sirene_api.routers.deps import get_admin_recipients
from sirene_api.schemas.abonnement import PaiementCreate, PaiementResponse
from sirene_api.schemas.common import ApiResponse, ok
from sirene_api.services import paiement_service, qr_code_service

router = APIRouter(prefix="/api/v1", tags=["Paiements"])


@router.post("/abonnements/{abonnement_id}/paiements", response_model=ApiResponse[PaiementResponse],
             status_code=201, summary="Enregistrer un paiement")
def traiter_paiement(abonnement_id: uuid.UUID, data: PaiementCreate, db: Session = Depends(get_db)):
    """
    Enregistre un paiement en attente pour un abonnement en attente.
    L'abonnement n'est activé qu'à la validation du paiement.
    """
    paiement = paiement_service.traiter_paiement(db, abonnement_id, data)
    return ok(paiement, "Paiement enregistré, en attente de validation.")


@router.get("/abonnements/{abonnement_id}/paiements", response_model=ApiResponse[List[PaiementResponse]],
            summary="Paiements d'un abonnement")
def lister_paiements_abonnement(abonnement_id: uuid.UUID, db: Session = Depends(get_db)):
    return ok(paiement_service.lister_paiements(db, abonnement_id=abonnement_id))


@router.get("/paiements", response_model=ApiResponse[List[PaiementResponse]], summary="Lister les paiements")
def lister_paiements(statut: Optional[str] = None, db: Session = Depends(get_db)):
    return ok(paiement_service.lister_paiements(db, statut=statut))


@router.get("/paiements/{paiement_id}", response_model=ApiResponse[PaiementResponse], summary="Détail d'un paiement")
def get_paiement(paiement_id: uuid.UUID, db: Session = Depends(get_db)):
    paiement = paiement_service.get_paiement(db, paiement_id)
    if paiement is None:
        raise NotFoundError("Paiement introuvable.")
    return ok(paiement)


@router.put("/paiements/{paiement_id}/valider", response_model=ApiResponse[PaiementResponse],
            summary="Valider un paiement")
def valider_paiement(
    paiement_id: uuid.UUID,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    admin_ids: List[uuid.UUID] = Depends(get_admin_recipients),
):
    """Active l'abonnement et émet son token ; le QR code pointe ensuite vers la page de détails."""
    paiement = paiement_service.valider_paiement(db, paiement_id, admin_ids)
    background_tasks.add_task(qr_code_service.regenerer_qr_code, paiement.abonnement_id)
    return ok(paiement, "Paiement validé, abonnement activé.")
