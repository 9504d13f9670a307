"""
Router pour les ordres de mission et les candidatures qui s'y rattachent.
"""

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from sirene_api.database import get_db
from sirene_api.exceptions import NotFoundError
from sirene_api.routers.deps import get_admin_recipients
from sirene_api.schemas.common import ApiResponse, ok
from sirene_api.schemas.ordre_mission import (
    CandidatureCreate,
    CandidatureResponse,
    OrdreMissionCreate,
    OrdreMissionResponse,
    OrdreMissionUpdate,
)
from sirene_api.schemas.panne import AdminAction
from sirene_api.services import intervention_service, ordre_mission_service

router = APIRouter(prefix="/api/v1/ordres-mission", tags=["Ordres de mission"])


@router.post("", response_model=ApiResponse[OrdreMissionResponse], status_code=201,
             summary="Créer un ordre de mission")
def creer_ordre_mission(data: OrdreMissionCreate, db: Session = Depends(get_db)):
    """Création manuelle pour une panne (un seul ordre par panne)."""
    ordre = ordre_mission_service.creer_ordre_mission(db, data)
    return ok(ordre, "Ordre de mission créé avec succès.")


@router.get("", response_model=ApiResponse[List[OrdreMissionResponse]], summary="Lister les ordres de mission")
def lister_ordres_mission(
    statut: Optional[str] = None,
    ville_id: Optional[uuid.UUID] = None,
    db: Session = Depends(get_db),
):
    return ok(ordre_mission_service.lister_ordres_mission(db, statut=statut, ville_id=ville_id))


@router.get("/ville/{ville_id}", response_model=ApiResponse[List[OrdreMissionResponse]],
            summary="Ordres ouverts d'une ville")
def lister_par_ville(ville_id: uuid.UUID, db: Session = Depends(get_db)):
    return ok(ordre_mission_service.lister_par_ville(db, ville_id))


@router.get("/{ordre_id}", response_model=ApiResponse[OrdreMissionResponse], summary="Détail d'un ordre de mission")
def get_ordre_mission(ordre_id: uuid.UUID, db: Session = Depends(get_db)):
    ordre = ordre_mission_service.get_ordre_mission(db, ordre_id)
    if ordre is None:
        raise NotFoundError("Ordre de mission introuvable.")
    return ok(ordre)


@router.put("/{ordre_id}", response_model=ApiResponse[OrdreMissionResponse], summary="Modifier un ordre de mission")
def mettre_a_jour(ordre_id: uuid.UUID, data: OrdreMissionUpdate, db: Session = Depends(get_db)):
    return ok(ordre_mission_service.mettre_a_jour(db, ordre_id, data), "Ordre de mission mis à jour.")


@router.delete("/{ordre_id}", status_code=204, summary="Supprimer un ordre de mission")
def supprimer_ordre(ordre_id: uuid.UUID, db: Session = Depends(get_db)):
    """Suppression logique, uniquement tant que l'ordre est en attente sans technicien retenu."""
    ordre_mission_service.supprimer_ordre(db, ordre_id)


@router.get("/{ordre_id}/candidatures", response_model=ApiResponse[List[CandidatureResponse]],
            summary="Candidatures d'un ordre de mission")
def lister_candidatures(ordre_id: uuid.UUID, db: Session = Depends(get_db)):
    return ok(ordre_mission_service.lister_candidatures(db, ordre_id))


@router.post("/{ordre_id}/candidatures", response_model=ApiResponse[CandidatureResponse], status_code=201,
             summary="Candidater sur un ordre de mission")
def soumettre_candidature(
    ordre_id: uuid.UUID,
    data: CandidatureCreate,
    db: Session = Depends(get_db),
    admin_ids: List[uuid.UUID] = Depends(get_admin_recipients),
):
    """
    Un technicien candidate sur un ordre ouvert.
    Une seule candidature active par technicien et par ordre.
    """
    candidature = intervention_service.soumettre_candidature(db, ordre_id, data.technicien_id, admin_ids)
    return ok(candidature, "Candidature soumise avec succès.")


@router.put("/{ordre_id}/cloturer-candidatures", response_model=ApiResponse[OrdreMissionResponse],
            summary="Clôturer les candidatures")
def cloturer_candidatures(ordre_id: uuid.UUID, data: AdminAction, db: Session = Depends(get_db)):
    return ok(ordre_mission_service.cloturer_candidatures(db, ordre_id, data.admin_id), "Candidatures clôturées.")


@router.put("/{ordre_id}/rouvrir-candidatures", response_model=ApiResponse[OrdreMissionResponse],
            summary="Rouvrir les candidatures")
def rouvrir_candidatures(ordre_id: uuid.UUID, data: AdminAction, db: Session = Depends(get_db)):
    return ok(ordre_mission_service.rouvrir_candidatures(db, ordre_id, data.admin_id), "Candidatures réouvertes.")


@router.put("/{ordre_id}/cloturer", response_model=ApiResponse[OrdreMissionResponse],
            summary="Clôturer un ordre de mission")
def cloturer_ordre(ordre_id: uuid.UUID, db: Session = Depends(get_db)):
    return ok(ordre_mission_service.cloturer_ordre(db, ordre_id), "Ordre de mission clôturé.")
