"""
Service métier pour les pannes.
Déclaration par l'école, validation par un admin (génère l'ordre de mission), clôture.
"""

import logging
import uuid
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from sirene_api.database import atomic
from sirene_api.exceptions import ConflictError, NotFoundError
from sirene_api.models.reparation import Intervention, OrdreMission, Panne
from sirene_api.models.sirene import Sirene
from sirene_api.schemas.panne import PanneCreate, PanneResponse
from sirene_api.services import notification_service, ordre_mission_service
from sirene_api.state_machines import StatutIntervention, StatutOrdreMission, StatutPanne, transition

logger = logging.getLogger(__name__)


def _get_panne_or_404(db: Session, panne_id: uuid.UUID) -> Panne:
    panne = db.get(Panne, panne_id)
    if panne is None:
        raise NotFoundError("Panne introuvable.")
    return panne


def declarer_panne(
    db: Session,
    sirene_id: uuid.UUID,
    data: PanneCreate,
    admin_ids: Iterable[uuid.UUID] = (),
) -> PanneResponse:
    """
    Déclare une panne sur une sirène installée.
    La panne est rattachée au site de la sirène et part en attente de validation.
    """
    with atomic(db, "declarer_panne"):
        sirene = db.execute(
            select(Sirene).where(Sirene.id == sirene_id, Sirene.deleted_at.is_(None))
        ).scalar()
        if sirene is None:
            raise NotFoundError("Sirène introuvable.")
        if sirene.site_id is None:
            raise ConflictError("La sirène n'est installée sur aucun site.")

        panne = Panne(
            sirene_id=sirene.id,
            site_id=sirene.site_id,
            description=data.description,
            priorite=data.priorite.value,
            statut=StatutPanne.EN_ATTENTE.value,
            date_declaration=datetime.now(),
        )
        db.add(panne)
        db.flush()
        notification_service.notifier_nouvelle_panne(db, list(admin_ids), panne)

    logger.info("Panne %s déclarée sur la sirène %s (priorité %s)", panne.id, sirene_id, panne.priorite)
    db.refresh(panne)
    return PanneResponse.model_validate(panne)


def valider_panne(db: Session, panne_id: uuid.UUID, admin_id: uuid.UUID) -> PanneResponse:
    """
    Valide une panne en attente et génère, dans la même transaction,
    l'unique ordre de mission de cette panne.
    """
    with atomic(db, "valider_panne"):
        panne = _get_panne_or_404(db, panne_id)
        transition("panne", panne, StatutPanne.VALIDEE)
        panne.date_validation = datetime.now()
        panne.valide_par = admin_id
        ordre = ordre_mission_service.creer_ordre_pour_panne(db, panne, valide_par=admin_id)

    logger.info("Panne %s validée par %s, ordre %s généré", panne.id, admin_id, ordre.numero_ordre)
    db.refresh(panne)
    return PanneResponse.model_validate(panne)


def cloturer_panne(db: Session, panne_id: uuid.UUID) -> PanneResponse:
    """
    Clôture la panne ; son ordre de mission, ouvert ou terminé, est clôturé avec elle.
    Refusé tant qu'une intervention sur cette panne n'est pas terminée.
    """
    with atomic(db, "cloturer_panne"):
        panne = _get_panne_or_404(db, panne_id)
        en_cours = db.execute(
            select(Intervention.id).where(
                Intervention.panne_id == panne.id,
                Intervention.statut != StatutIntervention.TERMINEE.value,
            )
        ).first()
        if en_cours is not None:
            raise ConflictError("Une intervention est en cours sur cette panne : rédigez d'abord le rapport.")

        transition("panne", panne, StatutPanne.CLOTUREE)
        panne.date_cloture = datetime.now()

        ordre = db.execute(
            select(OrdreMission).where(
                OrdreMission.panne_id == panne.id,
                OrdreMission.deleted_at.is_(None),
            )
        ).scalar()
        if ordre is not None and ordre.statut in (
            StatutOrdreMission.EN_ATTENTE.value,
            StatutOrdreMission.EN_COURS.value,
            StatutOrdreMission.TERMINE.value,
        ):
            transition("ordre_mission", ordre, StatutOrdreMission.CLOTURE)

    logger.info("Panne %s clôturée", panne.id)
    db.refresh(panne)
    return PanneResponse.model_validate(panne)


def get_panne(db: Session, panne_id: uuid.UUID) -> Optional[PanneResponse]:
    panne = db.get(Panne, panne_id)
    if panne is None:
        return None
    return PanneResponse.model_validate(panne)


def lister_pannes(
    db: Session,
    statut: Optional[str] = None,
    sirene_id: Optional[uuid.UUID] = None,
) -> List[PanneResponse]:
    """Retourne les pannes, les plus récentes d'abord."""
    query = select(Panne)
    if statut:
        query = query.where(Panne.statut == statut)
    if sirene_id:
        query = query.where(Panne.sirene_id == sirene_id)
    pannes = db.execute(query.order_by(Panne.date_declaration.desc())).scalars().all()
    return [PanneResponse.model_validate(p) for p in pannes]
