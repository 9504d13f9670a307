"""
Service métier pour les candidatures des techniciens, les interventions et les rapports.

Flux :
1. Le technicien candidate sur un ordre de mission ouvert
2. L'admin accepte une candidature → l'ordre passe en cours, une intervention est créée
3. Le technicien démarre l'intervention puis rédige son rapport → l'ordre est terminé
4. L'école note l'intervention, l'admin note (et valide) le rapport
"""

import logging
import uuid
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from sirene_api.database import atomic
from sirene_api.exceptions import BusinessRuleError, ConflictError, NotFoundError
from sirene_api.models.reparation import (
    Intervention, MissionTechnicien, RapportIntervention,
)
from sirene_api.models.sirene import Technicien
from sirene_api.schemas.intervention import (
    InterventionResponse, NoteIntervention, NoteRapport, RapportCreate, RapportResponse,
)
from sirene_api.schemas.ordre_mission import CandidatureResponse
from sirene_api.services import notification_service
from sirene_api.services.ordre_mission_service import get_ordre_or_404
from sirene_api.state_machines import (
    StatutCandidature,
    StatutIntervention,
    StatutOrdreMission,
    StatutRapport,
    transition,
)

logger = logging.getLogger(__name__)


def _get_candidature_or_404(db: Session, candidature_id: uuid.UUID) -> MissionTechnicien:
    candidature = db.get(MissionTechnicien, candidature_id)
    if candidature is None:
        raise NotFoundError("Candidature introuvable.")
    return candidature


def _get_intervention_or_404(db: Session, intervention_id: uuid.UUID) -> Intervention:
    intervention = db.get(Intervention, intervention_id)
    if intervention is None:
        raise NotFoundError("Intervention introuvable.")
    return intervention


# ----------------------------------------------------------------
# Candidatures
# ----------------------------------------------------------------

def soumettre_candidature(
    db: Session,
    ordre_id: uuid.UUID,
    technicien_id: uuid.UUID,
    admin_ids: Iterable[uuid.UUID] = (),
) -> CandidatureResponse:
    """
    Enregistre la candidature d'un technicien sur un ordre de mission.
    L'ordre doit être en attente avec les candidatures ouvertes ;
    un technicien ne peut avoir qu'une candidature active par ordre.
    """
    with atomic(db, "soumettre_candidature"):
        ordre = get_ordre_or_404(db, ordre_id)
        if ordre.statut != StatutOrdreMission.EN_ATTENTE.value:
            raise ConflictError("Cet ordre de mission n'accepte plus de candidatures.")
        if ordre.candidature_cloturee:
            raise ConflictError("Les candidatures sont clôturées pour cet ordre de mission.")

        technicien = db.execute(
            select(Technicien).where(Technicien.id == technicien_id, Technicien.deleted_at.is_(None))
        ).scalar()
        if technicien is None:
            raise NotFoundError("Technicien introuvable.")

        doublon = db.execute(
            select(MissionTechnicien.id).where(
                MissionTechnicien.ordre_mission_id == ordre.id,
                MissionTechnicien.technicien_id == technicien_id,
                MissionTechnicien.statut.in_([
                    StatutCandidature.EN_ATTENTE.value,
                    StatutCandidature.ACCEPTEE.value,
                ]),
            )
        ).scalar()
        if doublon:
            raise ConflictError("Vous avez déjà une candidature en cours sur cet ordre de mission.")

        candidature = MissionTechnicien(
            ordre_mission_id=ordre.id,
            technicien_id=technicien_id,
            statut=StatutCandidature.EN_ATTENTE.value,
            date_candidature=datetime.now(),
        )
        db.add(candidature)
        db.flush()
        notification_service.notifier_nouvelle_candidature(db, list(admin_ids), candidature, ordre.numero_ordre)

    logger.info("Candidature %s du technicien %s sur l'ordre %s", candidature.id, technicien_id, ordre.numero_ordre)
    db.refresh(candidature)
    return CandidatureResponse.model_validate(candidature)


def accepter_candidature(db: Session, candidature_id: uuid.UUID, admin_id: uuid.UUID) -> InterventionResponse:
    """
    Accepte une candidature en une seule transaction, ordre de mission verrouillé :
    candidature acceptée, ordre en cours avec son technicien, intervention assignée.
    Une deuxième acceptation sur le même ordre est un conflit.
    """
    with atomic(db, "accepter_candidature"):
        candidature = _get_candidature_or_404(db, candidature_id)
        ordre = get_ordre_or_404(db, candidature.ordre_mission_id, for_update=True)

        deja_acceptee = db.execute(
            select(MissionTechnicien.id).where(
                MissionTechnicien.ordre_mission_id == ordre.id,
                MissionTechnicien.statut == StatutCandidature.ACCEPTEE.value,
            )
        ).scalar()
        if deja_acceptee:
            raise ConflictError("Une candidature a déjà été acceptée pour cet ordre de mission.")

        now = datetime.now()
        transition("candidature", candidature, StatutCandidature.ACCEPTEE)
        candidature.date_acceptation = now
        candidature.traite_par = admin_id

        transition("ordre_mission", ordre, StatutOrdreMission.EN_COURS)
        ordre.technicien_id = candidature.technicien_id
        ordre.date_acceptation = now
        ordre.valide_par = admin_id

        intervention = Intervention(
            panne_id=ordre.panne_id,
            technicien_id=candidature.technicien_id,
            ordre_mission_id=ordre.id,
            statut=StatutIntervention.ASSIGNEE.value,
            date_assignation=now,
        )
        db.add(intervention)
        db.flush()
        notification_service.notifier_candidature_acceptee(db, candidature, ordre.numero_ordre)

    logger.info(
        "Candidature %s acceptée par %s : intervention %s créée (ordre %s)",
        candidature.id, admin_id, intervention.id, ordre.numero_ordre,
    )
    db.refresh(intervention)
    return InterventionResponse.model_validate(intervention)


def refuser_candidature(db: Session, candidature_id: uuid.UUID, admin_id: uuid.UUID) -> CandidatureResponse:
    with atomic(db, "refuser_candidature"):
        candidature = _get_candidature_or_404(db, candidature_id)
        transition("candidature", candidature, StatutCandidature.REFUSEE)
        candidature.date_cloture = datetime.now()
        candidature.traite_par = admin_id

    logger.info("Candidature %s refusée par %s", candidature.id, admin_id)
    db.refresh(candidature)
    return CandidatureResponse.model_validate(candidature)


def retirer_candidature(db: Session, candidature_id: uuid.UUID, motif: str) -> CandidatureResponse:
    """Retrait par le technicien lui-même, motif obligatoire."""
    if not motif or not motif.strip():
        raise BusinessRuleError("Un motif est obligatoire pour retirer une candidature.")

    with atomic(db, "retirer_candidature"):
        candidature = _get_candidature_or_404(db, candidature_id)
        transition("candidature", candidature, StatutCandidature.RETIREE)
        candidature.date_retrait = datetime.now()
        candidature.motif_retrait = motif.strip()

    logger.info("Candidature %s retirée par le technicien", candidature.id)
    db.refresh(candidature)
    return CandidatureResponse.model_validate(candidature)


# ----------------------------------------------------------------
# Interventions
# ----------------------------------------------------------------

def demarrer_intervention(db: Session, intervention_id: uuid.UUID) -> InterventionResponse:
    with atomic(db, "demarrer_intervention"):
        intervention = _get_intervention_or_404(db, intervention_id)
        transition("intervention", intervention, StatutIntervention.EN_COURS)
        intervention.date_debut = datetime.now()

    logger.info("Intervention %s démarrée", intervention.id)
    db.refresh(intervention)
    return InterventionResponse.model_validate(intervention)


def rediger_rapport(db: Session, intervention_id: uuid.UUID, data: RapportCreate) -> RapportResponse:
    """
    Enregistre le rapport et termine l'intervention et son ordre de mission,
    dans la même transaction. L'école est invitée à noter le travail.
    """
    with atomic(db, "rediger_rapport"):
        intervention = _get_intervention_or_404(db, intervention_id)
        if intervention.rapport is not None:
            raise ConflictError("Un rapport existe déjà pour cette intervention.")

        now = datetime.now()
        transition("intervention", intervention, StatutIntervention.TERMINEE)
        intervention.date_fin = now

        rapport = RapportIntervention(
            intervention_id=intervention.id,
            rapport=data.rapport,
            diagnostic=data.diagnostic,
            travaux_effectues=data.travaux_effectues,
            pieces_utilisees=data.pieces_utilisees,
            recommandations=data.recommandations,
            photos=data.photos,
            resultat=data.resultat.value,
            statut=StatutRapport.BROUILLON.value,
            date_rapport=now,
        )
        db.add(rapport)

        ordre = intervention.ordre_mission
        transition("ordre_mission", ordre, StatutOrdreMission.TERMINE)
        db.flush()

        ecole_id = intervention.panne.site.ecole_id
        notification_service.notifier_mission_terminee(db, ecole_id, intervention, ordre.numero_ordre)

    logger.info("Rapport %s rédigé : intervention %s terminée, ordre %s terminé", rapport.id, intervention.id, ordre.numero_ordre)
    db.refresh(rapport)
    return RapportResponse.model_validate(rapport)


def noter_intervention(db: Session, intervention_id: uuid.UUID, data: NoteIntervention) -> InterventionResponse:
    """Note de l'école, possible uniquement sur une intervention terminée."""
    with atomic(db, "noter_intervention"):
        intervention = _get_intervention_or_404(db, intervention_id)
        if intervention.statut != StatutIntervention.TERMINEE.value:
            raise ConflictError("Seule une intervention terminée peut être notée.")
        intervention.note_ecole = data.note
        intervention.commentaire_ecole = data.commentaire

    logger.info("Intervention %s notée %d/5 par l'école", intervention.id, data.note)
    db.refresh(intervention)
    return InterventionResponse.model_validate(intervention)


def noter_rapport(db: Session, rapport_id: uuid.UUID, data: NoteRapport) -> RapportResponse:
    """Revue de l'admin : le rapport passe de brouillon à validé."""
    with atomic(db, "noter_rapport"):
        rapport = db.get(RapportIntervention, rapport_id)
        if rapport is None:
            raise NotFoundError("Rapport introuvable.")
        transition("rapport", rapport, StatutRapport.VALIDE)
        rapport.review_note = data.note
        rapport.review_admin = data.review
        rapport.date_validation = datetime.now()

    logger.info("Rapport %s validé (%d/5)", rapport.id, data.note)
    db.refresh(rapport)
    return RapportResponse.model_validate(rapport)


def get_intervention(db: Session, intervention_id: uuid.UUID) -> Optional[InterventionResponse]:
    intervention = db.get(Intervention, intervention_id)
    if intervention is None:
        return None
    return InterventionResponse.model_validate(intervention)


def get_rapport(db: Session, intervention_id: uuid.UUID) -> Optional[RapportResponse]:
    rapport = db.execute(
        select(RapportIntervention).where(RapportIntervention.intervention_id == intervention_id)
    ).scalar()
    if rapport is None:
        return None
    return RapportResponse.model_validate(rapport)


def lister_interventions(
    db: Session,
    statut: Optional[str] = None,
    technicien_id: Optional[uuid.UUID] = None,
) -> List[InterventionResponse]:
    query = select(Intervention)
    if statut:
        query = query.where(Intervention.statut == statut)
    if technicien_id:
        query = query.where(Intervention.technicien_id == technicien_id)
    interventions = db.execute(query.order_by(Intervention.date_assignation.desc())).scalars().all()
    return [InterventionResponse.model_validate(i) for i in interventions]
