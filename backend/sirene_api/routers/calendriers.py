"""
Router pour les calendriers scolaires et les jours fériés.
"""

import uuid
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from sirene_api.database import get_db
from sirene_api.exceptions import NotFoundError
from sirene_api.schemas.calendrier import (
    CalendrierCreate,
    CalendrierResponse,
    CalendrierUpdate,
    JourFerieCreate,
    JourFerieResponse,
    JourFerieUpdate,
    JoursScolaires,
)
from sirene_api.schemas.common import ApiResponse, ok
from sirene_api.services import calendrier_service, jour_ferie_service

router = APIRouter(prefix="/api/v1", tags=["Calendriers scolaires"])


# ----------------------------------------------------------------
# Calendriers
# ----------------------------------------------------------------

@router.post("/calendriers", response_model=ApiResponse[CalendrierResponse], status_code=201,
             summary="Créer un calendrier scolaire")
def creer_calendrier(data: CalendrierCreate, db: Session = Depends(get_db)):
    return ok(calendrier_service.creer_calendrier(db, data), "Calendrier scolaire créé.")


@router.get("/calendriers", response_model=ApiResponse[List[CalendrierResponse]],
            summary="Lister les calendriers scolaires")
def lister_calendriers(actif: Optional[bool] = None, db: Session = Depends(get_db)):
    return ok(calendrier_service.lister_calendriers(db, actif=actif))


@router.get("/calendriers/{calendrier_id}", response_model=ApiResponse[CalendrierResponse],
            summary="Détail d'un calendrier scolaire")
def get_calendrier(calendrier_id: uuid.UUID, db: Session = Depends(get_db)):
    calendrier = calendrier_service.get_calendrier(db, calendrier_id)
    if calendrier is None:
        raise NotFoundError("Calendrier scolaire introuvable.")
    return ok(calendrier)


@router.put("/calendriers/{calendrier_id}", response_model=ApiResponse[CalendrierResponse],
            summary="Modifier un calendrier scolaire")
def mettre_a_jour_calendrier(calendrier_id: uuid.UUID, data: CalendrierUpdate, db: Session = Depends(get_db)):
    return ok(calendrier_service.mettre_a_jour(db, calendrier_id, data), "Calendrier scolaire mis à jour.")


@router.delete("/calendriers/{calendrier_id}", status_code=204, summary="Supprimer un calendrier scolaire")
def supprimer_calendrier(calendrier_id: uuid.UUID, db: Session = Depends(get_db)):
    calendrier_service.supprimer_calendrier(db, calendrier_id)


@router.get("/calendriers/{calendrier_id}/jours-feries", response_model=ApiResponse[List[JourFerieResponse]],
            summary="Jours fériés de l'année scolaire")
def jours_feries_calendrier(calendrier_id: uuid.UUID, db: Session = Depends(get_db)):
    return ok(calendrier_service.jours_feries(db, calendrier_id))


@router.get("/calendriers/{calendrier_id}/jours-scolaires", response_model=ApiResponse[JoursScolaires],
            summary="Nombre de jours de classe")
def calculer_jours_scolaires(
    calendrier_id: uuid.UUID,
    ecole_id: Optional[uuid.UUID] = None,
    db: Session = Depends(get_db),
):
    """Jours ouvrés de l'année scolaire, hors jours fériés et vacances."""
    return ok(calendrier_service.calculer_jours_scolaires(db, calendrier_id, ecole_id=ecole_id))


# ----------------------------------------------------------------
# Jours fériés
# ----------------------------------------------------------------

@router.post("/jours-feries", response_model=ApiResponse[JourFerieResponse], status_code=201,
             summary="Créer un jour férié")
def creer_jour_ferie(data: JourFerieCreate, db: Session = Depends(get_db)):
    return ok(jour_ferie_service.creer_jour_ferie(db, data), "Jour férié créé.")


@router.get("/jours-feries", response_model=ApiResponse[List[JourFerieResponse]], summary="Lister les jours fériés")
def lister_jours_feries(
    ecole_id: Optional[uuid.UUID] = None,
    calendrier_id: Optional[uuid.UUID] = None,
    db: Session = Depends(get_db),
):
    return ok(jour_ferie_service.lister_jours_feries(db, ecole_id=ecole_id, calendrier_id=calendrier_id))


@router.get("/jours-feries/est-ferie", response_model=ApiResponse[dict], summary="La date est-elle fériée ?")
def est_jour_ferie(
    jour: date,
    ecole_id: Optional[uuid.UUID] = None,
    calendrier_id: Optional[uuid.UUID] = None,
    db: Session = Depends(get_db),
):
    ferie = jour_ferie_service.est_jour_ferie(db, jour, ecole_id=ecole_id, calendrier_id=calendrier_id)
    return ok({"date": jour.isoformat(), "est_ferie": ferie})


@router.get("/jours-feries/{jour_ferie_id}", response_model=ApiResponse[JourFerieResponse],
            summary="Détail d'un jour férié")
def get_jour_ferie(jour_ferie_id: uuid.UUID, db: Session = Depends(get_db)):
    jour_ferie = jour_ferie_service.get_jour_ferie(db, jour_ferie_id)
    if jour_ferie is None:
        raise NotFoundError("Jour férié introuvable.")
    return ok(jour_ferie)


@router.put("/jours-feries/{jour_ferie_id}", response_model=ApiResponse[JourFerieResponse],
            summary="Modifier un jour férié")
def mettre_a_jour_jour_ferie(jour_ferie_id: uuid.UUID, data: JourFerieUpdate, db: Session = Depends(get_db)):
    return ok(jour_ferie_service.mettre_a_jour(db, jour_ferie_id, data), "Jour férié mis à jour.")


@router.delete("/jours-feries/{jour_ferie_id}", status_code=204, summary="Supprimer un jour férié")
def supprimer_jour_ferie(jour_ferie_id: uuid.UUID, db: Session = Depends(get_db)):
    jour_ferie_service.supprimer_jour_ferie(db, jour_ferie_id)
