"""
Service métier pour les programmations de déclenchement des sirènes.

Programmation effective d'une sirène pour une date :
1. Programmation active dont la période [date_debut, date_fin] couvre la date
2. Au moins un horaire le jour de la semaine concerné
3. Jour férié : une exception explicite l'emporte (include → sonne, exclude → muette),
   sinon la programmation ne sonne que si jours_feries_inclus
4. Muette pendant les vacances du calendrier scolaire associé
"""

import logging
import uuid
from datetime import date
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from sirene_api.database import atomic, soft_delete
from sirene_api.exceptions import BusinessRuleError, NotFoundError
from sirene_api.models.calendrier import CalendrierScolaire, Programmation
from sirene_api.models.sirene import Sirene
from sirene_api.schemas.calendrier import (
    JOURS_SEMAINE,
    ProgrammationCreate,
    ProgrammationEffective,
    ProgrammationResponse,
    ProgrammationUpdate,
)
from sirene_api.services import calendrier_service, jour_ferie_service

logger = logging.getLogger(__name__)

JSON_FIELDS = ("horaire_json", "jours_feries_exceptions")


def _colonnes(data, **kwargs) -> dict:
    """Horaires et exceptions stockés en JSON, les autres champs tels quels."""
    values = data.model_dump(**kwargs)
    json_values = data.model_dump(mode="json", include=set(JSON_FIELDS), **kwargs)
    values.update(json_values)
    return values


def _get_sirene_or_404(db: Session, sirene_id: uuid.UUID) -> Sirene:
    sirene = db.execute(
        select(Sirene).where(Sirene.id == sirene_id, Sirene.deleted_at.is_(None))
    ).scalar()
    if sirene is None:
        raise NotFoundError("Sirène introuvable.")
    return sirene


def _get_or_404(db: Session, programmation_id: uuid.UUID) -> Programmation:
    programmation = db.execute(
        select(Programmation).where(
            Programmation.id == programmation_id,
            Programmation.deleted_at.is_(None),
        )
    ).scalar()
    if programmation is None:
        raise NotFoundError("Programmation introuvable.")
    return programmation


def creer_programmation(db: Session, data: ProgrammationCreate) -> ProgrammationResponse:
    with atomic(db, "creer_programmation"):
        _get_sirene_or_404(db, data.sirene_id)
        if data.calendrier_id:
            calendrier_service.get_calendrier_or_404(db, data.calendrier_id)
        programmation = Programmation(**_colonnes(data))
        db.add(programmation)

    logger.info("Programmation '%s' créée pour la sirène %s", programmation.nom_programmation, data.sirene_id)
    db.refresh(programmation)
    return ProgrammationResponse.model_validate(programmation)


def lister_par_sirene(db: Session, sirene_id: uuid.UUID) -> List[ProgrammationResponse]:
    programmations = db.execute(
        select(Programmation)
        .where(Programmation.sirene_id == sirene_id, Programmation.deleted_at.is_(None))
        .order_by(Programmation.date_debut)
    ).scalars().all()
    return [ProgrammationResponse.model_validate(p) for p in programmations]


def get_programmation(db: Session, programmation_id: uuid.UUID) -> Optional[ProgrammationResponse]:
    programmation = db.execute(
        select(Programmation).where(
            Programmation.id == programmation_id,
            Programmation.deleted_at.is_(None),
        )
    ).scalar()
    if programmation is None:
        return None
    return ProgrammationResponse.model_validate(programmation)


def mettre_a_jour(db: Session, programmation_id: uuid.UUID, data: ProgrammationUpdate) -> ProgrammationResponse:
    with atomic(db, "mettre_a_jour_programmation"):
        programmation = _get_or_404(db, programmation_id)
        if data.calendrier_id:
            calendrier_service.get_calendrier_or_404(db, data.calendrier_id)
        for field, value in _colonnes(data, exclude_unset=True).items():
            setattr(programmation, field, value)
        if programmation.date_fin < programmation.date_debut:
            raise BusinessRuleError("La date de fin doit être postérieure ou égale à la date de début.")
        if not programmation.horaire_json:
            raise BusinessRuleError("Au moins un horaire est requis.")

    db.refresh(programmation)
    return ProgrammationResponse.model_validate(programmation)


def supprimer_programmation(db: Session, programmation_id: uuid.UUID) -> None:
    with atomic(db, "supprimer_programmation"):
        soft_delete(db, _get_or_404(db, programmation_id))
    logger.info("Programmation %s supprimée", programmation_id)


def _exception_pour(programmation: Programmation, jour: date) -> Optional[str]:
    for exception in programmation.jours_feries_exceptions or []:
        if exception.get("date") == jour.isoformat():
            return exception.get("action")
    return None


def sonne_ce_jour(
    programmation: Programmation,
    jour: date,
    est_ferie: bool,
    calendrier: Optional[CalendrierScolaire] = None,
) -> bool:
    """Applique les règles de jour férié et de vacances à une programmation déjà dans sa période."""
    exception = _exception_pour(programmation, jour)
    if exception == "exclude":
        return False
    if est_ferie and exception != "include" and not programmation.jours_feries_inclus:
        return False
    if calendrier is not None and calendrier_service.en_vacances(calendrier, jour):
        return False
    return True


def programmations_effectives(db: Session, sirene_id: uuid.UUID, jour: date) -> List[ProgrammationEffective]:
    """Programmations qui font sonner la sirène à la date donnée, avec les heures du jour triées."""
    sirene = _get_sirene_or_404(db, sirene_id)
    ecole_id = sirene.site.ecole_id if sirene.site is not None else None
    nom_jour = JOURS_SEMAINE[jour.weekday()]

    programmations = db.execute(
        select(Programmation).where(
            Programmation.sirene_id == sirene.id,
            Programmation.deleted_at.is_(None),
            Programmation.actif.is_(True),
            Programmation.date_debut <= jour,
            Programmation.date_fin >= jour,
        ).order_by(Programmation.date_debut)
    ).scalars().all()

    effectives = []
    for programmation in programmations:
        heures = sorted(h["heure"] for h in programmation.horaire_json or [] if h.get("jour") == nom_jour)
        if not heures:
            continue
        calendrier = (
            db.get(CalendrierScolaire, programmation.calendrier_id)
            if programmation.calendrier_id else None
        )
        est_ferie = jour_ferie_service.est_jour_ferie(
            db, jour, ecole_id=ecole_id, calendrier_id=programmation.calendrier_id,
        )
        if sonne_ce_jour(programmation, jour, est_ferie, calendrier):
            effectives.append(ProgrammationEffective(
                programmation=ProgrammationResponse.model_validate(programmation),
                heures=heures,
            ))

    logger.info("%d programmation(s) effective(s) pour la sirène %s le %s", len(effectives), sirene_id, jour)
    return effectives
