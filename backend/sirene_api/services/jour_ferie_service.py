"""
Service métier pour les jours fériés.

Un jour férié s'applique à une date s'il est actif, qu'il couvre la date
(de date_debut à date_fin, ou le seul date_debut) et qu'il est :
  - national, ou
  - compatible avec la portée demandée : école et calendrier absents ou identiques.
Un jour férié récurrent revient chaque année aux mêmes jour et mois.
"""

import logging
import uuid
from datetime import date
from typing import List, Optional

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session

from sirene_api.database import atomic, soft_delete
from sirene_api.exceptions import BusinessRuleError, NotFoundError
from sirene_api.models.calendrier import JourFerie
from sirene_api.schemas.calendrier import JourFerieCreate, JourFerieResponse, JourFerieUpdate

logger = logging.getLogger(__name__)


def _meme_jour(debut: date, annee: int) -> date:
    try:
        return debut.replace(year=annee)
    except ValueError:
        # 29 février d'une année non bissextile
        return date(annee, 2, 28)


def couvre(jour_ferie: JourFerie, jour: date) -> bool:
    """Indique si le jour férié couvre la date donnée."""
    debut = jour_ferie.date_debut
    fin = jour_ferie.date_fin or debut
    if not jour_ferie.recurrent:
        return debut <= jour <= fin

    duree = fin - debut
    # Une période récurrente peut chevaucher le 1er janvier
    for annee in (jour.year - 1, jour.year):
        occurrence = _meme_jour(debut, annee)
        if occurrence <= jour <= occurrence + duree:
            return True
    return False


def jours_feries_applicables(
    db: Session,
    ecole_id: Optional[uuid.UUID] = None,
    calendrier_id: Optional[uuid.UUID] = None,
) -> List[JourFerie]:
    """Jours fériés actifs qui s'appliquent à une école et/ou un calendrier."""
    portee_ecole = JourFerie.ecole_id.is_(None)
    if ecole_id:
        portee_ecole = or_(portee_ecole, JourFerie.ecole_id == ecole_id)
    portee_calendrier = JourFerie.calendrier_id.is_(None)
    if calendrier_id:
        portee_calendrier = or_(portee_calendrier, JourFerie.calendrier_id == calendrier_id)

    return list(db.execute(
        select(JourFerie).where(
            JourFerie.deleted_at.is_(None),
            JourFerie.actif.is_(True),
            or_(JourFerie.est_national.is_(True), and_(portee_ecole, portee_calendrier)),
        ).order_by(JourFerie.date_debut)
    ).scalars().all())


def est_jour_ferie(
    db: Session,
    jour: date,
    ecole_id: Optional[uuid.UUID] = None,
    calendrier_id: Optional[uuid.UUID] = None,
) -> bool:
    return any(couvre(jf, jour) for jf in jours_feries_applicables(db, ecole_id, calendrier_id))


def _get_or_404(db: Session, jour_ferie_id: uuid.UUID) -> JourFerie:
    jour_ferie = db.execute(
        select(JourFerie).where(JourFerie.id == jour_ferie_id, JourFerie.deleted_at.is_(None))
    ).scalar()
    if jour_ferie is None:
        raise NotFoundError("Jour férié introuvable.")
    return jour_ferie


def creer_jour_ferie(db: Session, data: JourFerieCreate) -> JourFerieResponse:
    with atomic(db, "creer_jour_ferie"):
        jour_ferie = JourFerie(**data.model_dump())
        db.add(jour_ferie)

    logger.info("Jour férié créé : %s (%s)", jour_ferie.intitule_journee, jour_ferie.date_debut)
    db.refresh(jour_ferie)
    return JourFerieResponse.model_validate(jour_ferie)


def lister_jours_feries(
    db: Session,
    ecole_id: Optional[uuid.UUID] = None,
    calendrier_id: Optional[uuid.UUID] = None,
) -> List[JourFerieResponse]:
    query = select(JourFerie).where(JourFerie.deleted_at.is_(None))
    if ecole_id:
        query = query.where(JourFerie.ecole_id == ecole_id)
    if calendrier_id:
        query = query.where(JourFerie.calendrier_id == calendrier_id)
    jours = db.execute(query.order_by(JourFerie.date_debut)).scalars().all()
    return [JourFerieResponse.model_validate(j) for j in jours]


def get_jour_ferie(db: Session, jour_ferie_id: uuid.UUID) -> Optional[JourFerieResponse]:
    jour_ferie = db.execute(
        select(JourFerie).where(JourFerie.id == jour_ferie_id, JourFerie.deleted_at.is_(None))
    ).scalar()
    if jour_ferie is None:
        return None
    return JourFerieResponse.model_validate(jour_ferie)


def mettre_a_jour(db: Session, jour_ferie_id: uuid.UUID, data: JourFerieUpdate) -> JourFerieResponse:
    with atomic(db, "mettre_a_jour_jour_ferie"):
        jour_ferie = _get_or_404(db, jour_ferie_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(jour_ferie, field, value)
        if jour_ferie.date_fin is not None and jour_ferie.date_fin < jour_ferie.date_debut:
            raise BusinessRuleError("La date de fin doit être postérieure ou égale à la date de début.")

    db.refresh(jour_ferie)
    return JourFerieResponse.model_validate(jour_ferie)


def supprimer_jour_ferie(db: Session, jour_ferie_id: uuid.UUID) -> None:
    with atomic(db, "supprimer_jour_ferie"):
        soft_delete(db, _get_or_404(db, jour_ferie_id))
    logger.info("Jour férié %s supprimé", jour_ferie_id)
