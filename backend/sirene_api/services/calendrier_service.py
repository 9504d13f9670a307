"""
Service métier pour les calendriers scolaires (année, rentrée, vacances)
et le calcul du nombre de jours de classe.
"""

import logging
import uuid
from datetime import date, timedelta
from typing import Iterator, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from sirene_api.database import atomic, soft_delete
from sirene_api.exceptions import BusinessRuleError, NotFoundError
from sirene_api.models.calendrier import CalendrierScolaire
from sirene_api.schemas.calendrier import (
    CalendrierCreate, CalendrierResponse, CalendrierUpdate, JourFerieResponse, JoursScolaires,
)
from sirene_api.services import jour_ferie_service

logger = logging.getLogger(__name__)


def _jours(debut: date, fin: date) -> Iterator[date]:
    jour = debut
    while jour <= fin:
        yield jour
        jour += timedelta(days=1)


def en_vacances(calendrier: CalendrierScolaire, jour: date) -> bool:
    """Indique si la date tombe dans une période de vacances du calendrier."""
    for periode in calendrier.periodes_vacances or []:
        if date.fromisoformat(periode["date_debut"]) <= jour <= date.fromisoformat(periode["date_fin"]):
            return True
    return False


def _colonnes(data, **kwargs) -> dict:
    """Valeurs à écrire en base : les périodes de vacances sont stockées en JSON."""
    values = data.model_dump(**kwargs)
    if values.get("periodes_vacances") is not None:
        values["periodes_vacances"] = [p.model_dump(mode="json") for p in data.periodes_vacances]
    return values


def get_calendrier_or_404(db: Session, calendrier_id: uuid.UUID) -> CalendrierScolaire:
    calendrier = db.execute(
        select(CalendrierScolaire).where(
            CalendrierScolaire.id == calendrier_id,
            CalendrierScolaire.deleted_at.is_(None),
        )
    ).scalar()
    if calendrier is None:
        raise NotFoundError("Calendrier scolaire introuvable.")
    return calendrier


def creer_calendrier(db: Session, data: CalendrierCreate) -> CalendrierResponse:
    with atomic(db, "creer_calendrier"):
        calendrier = CalendrierScolaire(**_colonnes(data))
        db.add(calendrier)

    logger.info("Calendrier scolaire %s créé", calendrier.annee_scolaire)
    db.refresh(calendrier)
    return CalendrierResponse.model_validate(calendrier)


def lister_calendriers(db: Session, actif: Optional[bool] = None) -> List[CalendrierResponse]:
    query = select(CalendrierScolaire).where(CalendrierScolaire.deleted_at.is_(None))
    if actif is not None:
        query = query.where(CalendrierScolaire.actif.is_(actif))
    calendriers = db.execute(query.order_by(CalendrierScolaire.date_rentree.desc())).scalars().all()
    return [CalendrierResponse.model_validate(c) for c in calendriers]


def get_calendrier(db: Session, calendrier_id: uuid.UUID) -> Optional[CalendrierResponse]:
    calendrier = db.execute(
        select(CalendrierScolaire).where(
            CalendrierScolaire.id == calendrier_id,
            CalendrierScolaire.deleted_at.is_(None),
        )
    ).scalar()
    if calendrier is None:
        return None
    return CalendrierResponse.model_validate(calendrier)


def mettre_a_jour(db: Session, calendrier_id: uuid.UUID, data: CalendrierUpdate) -> CalendrierResponse:
    with atomic(db, "mettre_a_jour_calendrier"):
        calendrier = get_calendrier_or_404(db, calendrier_id)
        for field, value in _colonnes(data, exclude_unset=True).items():
            setattr(calendrier, field, value)
        if calendrier.date_fin_annee <= calendrier.date_rentree:
            raise BusinessRuleError("La date de fin d'année doit être postérieure à la rentrée.")

    db.refresh(calendrier)
    return CalendrierResponse.model_validate(calendrier)


def supprimer_calendrier(db: Session, calendrier_id: uuid.UUID) -> None:
    with atomic(db, "supprimer_calendrier"):
        soft_delete(db, get_calendrier_or_404(db, calendrier_id))
    logger.info("Calendrier scolaire %s supprimé", calendrier_id)


def jours_feries(db: Session, calendrier_id: uuid.UUID) -> List[JourFerieResponse]:
    """Jours fériés applicables au calendrier et tombant pendant l'année scolaire."""
    calendrier = get_calendrier_or_404(db, calendrier_id)
    annee = list(_jours(calendrier.date_rentree, calendrier.date_fin_annee))
    return [
        JourFerieResponse.model_validate(jf)
        for jf in jour_ferie_service.jours_feries_applicables(db, calendrier_id=calendrier.id)
        if any(jour_ferie_service.couvre(jf, jour) for jour in annee)
    ]


def calculer_jours_scolaires(
    db: Session,
    calendrier_id: uuid.UUID,
    ecole_id: Optional[uuid.UUID] = None,
) -> JoursScolaires:
    """
    Jours de classe = jours ouvrés (lundi à vendredi) entre la rentrée et la fin d'année,
    moins les jours fériés, moins les jours de vacances.
    """
    calendrier = get_calendrier_or_404(db, calendrier_id)
    feries = jour_ferie_service.jours_feries_applicables(db, ecole_id=ecole_id, calendrier_id=calendrier.id)

    ouvres = nb_feries = nb_vacances = 0
    for jour in _jours(calendrier.date_rentree, calendrier.date_fin_annee):
        if jour.weekday() >= 5:
            continue
        ouvres += 1
        if any(jour_ferie_service.couvre(jf, jour) for jf in feries):
            nb_feries += 1
        elif en_vacances(calendrier, jour):
            nb_vacances += 1

    return JoursScolaires(
        calendrier_id=calendrier.id,
        jours_ouvres=ouvres,
        jours_feries=nb_feries,
        jours_vacances=nb_vacances,
        jours_scolaires=ouvres - nb_feries - nb_vacances,
    )
