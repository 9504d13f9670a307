"""
Router pour le cycle de vie des candidatures et des interventions :
acceptation, refus, retrait, démarrage, rapport et notations.
"""

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from sirene_api.database import get_db
from sirene_api.exceptions import NotFoundError
from sirene_api.schemas.common import ApiResponse, ok
from sirene_api.schemas.intervention import (
    InterventionResponse,
    NoteIntervention,
    NoteRapport,
    RapportCreate,
    RapportResponse,
)
from sirene_api.schemas.ordre_mission import CandidatureResponse, CandidatureRetrait
from sirene_api.schemas.panne import AdminAction
from sirene_api.services import intervention_service

router = APIRouter(prefix="/api/v1", tags=["Interventions"])


# ----------------------------------------------------------------
# Candidatures
# ----------------------------------------------------------------

@router.put("/candidatures/{candidature_id}/accepter", response_model=ApiResponse[InterventionResponse],
            summary="Accepter une candidature")
def accepter_candidature(candidature_id: uuid.UUID, data: AdminAction, db: Session = Depends(get_db)):
    """
    Retient le technicien : l'ordre passe en cours et une intervention lui est assignée.
    Un ordre n'accepte qu'une seule candidature.
    """
    intervention = intervention_service.accepter_candidature(db, candidature_id, data.admin_id)
    return ok(intervention, "Candidature acceptée, intervention créée.")


@router.put("/candidatures/{candidature_id}/refuser", response_model=ApiResponse[CandidatureResponse],
            summary="Refuser une candidature")
def refuser_candidature(candidature_id: uuid.UUID, data: AdminAction, db: Session = Depends(get_db)):
    return ok(intervention_service.refuser_candidature(db, candidature_id, data.admin_id), "Candidature refusée.")


@router.put("/candidatures/{candidature_id}/retirer", response_model=ApiResponse[CandidatureResponse],
            summary="Retirer une candidature")
def retirer_candidature(candidature_id: uuid.UUID, data: CandidatureRetrait, db: Session = Depends(get_db)):
    candidature = intervention_service.retirer_candidature(db, candidature_id, data.motif_retrait)
    return ok(candidature, "Candidature retirée.")


# ----------------------------------------------------------------
# Interventions
# ----------------------------------------------------------------

@router.get("/interventions", response_model=ApiResponse[List[InterventionResponse]],
            summary="Lister les interventions")
def lister_interventions(
    statut: Optional[str] = None,
    technicien_id: Optional[uuid.UUID] = None,
    db: Session = Depends(get_db),
):
    return ok(intervention_service.lister_interventions(db, statut=statut, technicien_id=technicien_id))


@router.get("/interventions/{intervention_id}", response_model=ApiResponse[InterventionResponse],
            summary="Détail d'une intervention")
def get_intervention(intervention_id: uuid.UUID, db: Session = Depends(get_db)):
    intervention = intervention_service.get_intervention(db, intervention_id)
    if intervention is None:
        raise NotFoundError("Intervention introuvable.")
    return ok(intervention)


@router.put("/interventions/{intervention_id}/demarrer", response_model=ApiResponse[InterventionResponse],
            summary="Démarrer une intervention")
def demarrer_intervention(intervention_id: uuid.UUID, db: Session = Depends(get_db)):
    return ok(intervention_service.demarrer_intervention(db, intervention_id), "Intervention démarrée.")


@router.post("/interventions/{intervention_id}/rapport", response_model=ApiResponse[RapportResponse],
             status_code=201, summary="Rédiger le rapport d'intervention")
def rediger_rapport(intervention_id: uuid.UUID, data: RapportCreate, db: Session = Depends(get_db)):
    """
    Termine l'intervention et l'ordre de mission associé.
    L'école est notifiée de la fin de mission.
    """
    rapport = intervention_service.rediger_rapport(db, intervention_id, data)
    return ok(rapport, "Rapport enregistré, intervention terminée.")


@router.get("/interventions/{intervention_id}/rapport", response_model=ApiResponse[RapportResponse],
            summary="Rapport d'une intervention")
def get_rapport(intervention_id: uuid.UUID, db: Session = Depends(get_db)):
    rapport = intervention_service.get_rapport(db, intervention_id)
    if rapport is None:
        raise NotFoundError("Rapport introuvable.")
    return ok(rapport)


@router.put("/interventions/{intervention_id}/noter", response_model=ApiResponse[InterventionResponse],
            summary="Noter une intervention")
def noter_intervention(intervention_id: uuid.UUID, data: NoteIntervention, db: Session = Depends(get_db)):
    return ok(intervention_service.noter_intervention(db, intervention_id, data), "Intervention notée.")


@router.put("/rapports/{rapport_id}/noter", response_model=ApiResponse[RapportResponse],
            summary="Noter un rapport")
def noter_rapport(rapport_id: uuid.UUID, data: NoteRapport, db: Session = Depends(get_db)):
    return ok(intervention_service.noter_rapport(db, rapport_id, data), "Rapport validé.")
