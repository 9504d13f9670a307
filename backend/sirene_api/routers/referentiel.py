"""
Router pour le référentiel : villes, parc de sirènes et techniciens.
"""

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from sirene_api.database import get_db
from sirene_api.exceptions import NotFoundError
from sirene_api.schemas.common import ApiResponse, ok
from sirene_api.schemas.ecole import (
    SireneCreate,
    SireneResponse,
    TechnicienCreate,
    TechnicienResponse,
    VilleCreate,
    VilleResponse,
)
from sirene_api.services import referentiel_service

router = APIRouter(prefix="/api/v1", tags=["Référentiel"])


# ----------------------------------------------------------------
# Villes
# ----------------------------------------------------------------

@router.post("/villes", response_model=ApiResponse[VilleResponse], status_code=201, summary="Créer une ville")
def creer_ville(data: VilleCreate, db: Session = Depends(get_db)):
    return ok(referentiel_service.creer_ville(db, data), "Ville créée.")


@router.get("/villes", response_model=ApiResponse[List[VilleResponse]], summary="Lister les villes")
def lister_villes(db: Session = Depends(get_db)):
    return ok(referentiel_service.lister_villes(db))


# ----------------------------------------------------------------
# Sirènes
# ----------------------------------------------------------------

@router.post("/sirenes", response_model=ApiResponse[SireneResponse], status_code=201,
             summary="Enregistrer une sirène")
def creer_sirene(data: SireneCreate, db: Session = Depends(get_db)):
    """Ajoute une sirène au parc, disponible pour une installation."""
    return ok(referentiel_service.creer_sirene(db, data), "Sirène enregistrée.")


@router.get("/sirenes", response_model=ApiResponse[List[SireneResponse]], summary="Lister les sirènes")
def lister_sirenes(statut: Optional[str] = None, db: Session = Depends(get_db)):
    return ok(referentiel_service.lister_sirenes(db, statut=statut))


@router.get("/sirenes/disponibles", response_model=ApiResponse[List[SireneResponse]],
            summary="Sirènes disponibles")
def lister_sirenes_disponibles(db: Session = Depends(get_db)):
    return ok(referentiel_service.lister_sirenes_disponibles(db))


@router.get("/sirenes/numero-serie/{numero_serie}", response_model=ApiResponse[SireneResponse],
            summary="Rechercher une sirène par numéro de série")
def get_sirene_par_numero_serie(numero_serie: str, db: Session = Depends(get_db)):
    sirene = referentiel_service.get_sirene_par_numero_serie(db, numero_serie)
    if sirene is None:
        raise NotFoundError("Sirène introuvable.")
    return ok(sirene)


@router.delete("/sirenes/{sirene_id}", status_code=204, summary="Supprimer une sirène")
def supprimer_sirene(sirene_id: uuid.UUID, db: Session = Depends(get_db)):
    """Refusée tant que la sirène est installée sur un site."""
    referentiel_service.supprimer_sirene(db, sirene_id)


# ----------------------------------------------------------------
# Techniciens
# ----------------------------------------------------------------

@router.post("/techniciens", response_model=ApiResponse[TechnicienResponse], status_code=201,
             summary="Créer un technicien")
def creer_technicien(data: TechnicienCreate, db: Session = Depends(get_db)):
    return ok(referentiel_service.creer_technicien(db, data), "Technicien créé.")


@router.get("/techniciens", response_model=ApiResponse[List[TechnicienResponse]], summary="Lister les techniciens")
def lister_techniciens(ville_id: Optional[uuid.UUID] = None, db: Session = Depends(get_db)):
    return ok(referentiel_service.lister_techniciens(db, ville_id=ville_id))


@router.get("/techniciens/{technicien_id}", response_model=ApiResponse[TechnicienResponse],
            summary="Détail d'un technicien")
def get_technicien(technicien_id: uuid.UUID, db: Session = Depends(get_db)):
    technicien = referentiel_service.get_technicien(db, technicien_id)
    if technicien is None:
        raise NotFoundError("Technicien introuvable.")
    return ok(technicien)
