"""
Service métier pour les ordres de mission.

Un ordre de mission est généré à partir d'une panne validée (un seul par panne)
et diffusé aux techniciens de la ville du site. Les candidatures peuvent être
clôturées / réouvertes indépendamment du statut de l'ordre.
"""

import logging
import secrets
import string
import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from sirene_api.database import atomic, soft_delete
from sirene_api.exceptions import ConflictError, NotFoundError
from sirene_api.models.ecole import Ville
from sirene_api.models.reparation import MissionTechnicien, OrdreMission, Panne
from sirene_api.schemas.ordre_mission import (
    CandidatureResponse,
    OrdreMissionCreate,
    OrdreMissionResponse,
    OrdreMissionUpdate,
)
from sirene_api.services import notification_service
from sirene_api.state_machines import (
    StatutCandidature,
    StatutOrdreMission,
    StatutPanne,
    transition,
)

logger = logging.getLogger(__name__)


def _generate_numero_ordre(db: Session) -> str:
    """Numéro lisible et unique : OM-AAAAMMJJ-XXXXXX."""
    alphabet = string.ascii_uppercase + string.digits
    while True:
        numero = "OM-" + datetime.now().strftime("%Y%m%d") + "-" + "".join(
            secrets.choice(alphabet) for _ in range(6)
        )
        exists = db.execute(
            select(OrdreMission.id).where(OrdreMission.numero_ordre == numero)
        ).scalar()
        if not exists:
            return numero


def get_ordre_or_404(db: Session, ordre_id: uuid.UUID, for_update: bool = False) -> OrdreMission:
    query = select(OrdreMission).where(
        OrdreMission.id == ordre_id,
        OrdreMission.deleted_at.is_(None),
    )
    if for_update:
        query = query.with_for_update()
    ordre = db.execute(query).scalar()
    if ordre is None:
        raise NotFoundError("Ordre de mission introuvable.")
    return ordre


def creer_ordre_pour_panne(
    db: Session,
    panne: Panne,
    valide_par: Optional[uuid.UUID] = None,
    nombre_techniciens_requis: int = 1,
    commentaire: Optional[str] = None,
) -> OrdreMission:
    """
    Crée l'ordre de mission d'une panne, lié à la ville de son site.
    Ne commit pas : appelé à l'intérieur de la transaction de l'appelant.
    Lève ConflictError si la panne a déjà un ordre de mission.
    """
    existing = db.execute(
        select(OrdreMission.id).where(OrdreMission.panne_id == panne.id)
    ).scalar()
    if existing:
        raise ConflictError("Un ordre de mission existe déjà pour cette panne.")

    ordre = OrdreMission(
        panne_id=panne.id,
        ville_id=panne.site.ville_id,
        numero_ordre=_generate_numero_ordre(db),
        date_generation=datetime.now(),
        nombre_techniciens_requis=nombre_techniciens_requis,
        candidature_cloturee=False,
        valide_par=valide_par,
        statut=StatutOrdreMission.EN_ATTENTE.value,
        commentaire=commentaire,
    )
    db.add(ordre)
    db.flush()

    ville = db.get(Ville, ordre.ville_id)
    notification_service.notifier_nouvel_ordre_mission(db, ordre, ville.nom if ville else None)
    logger.info("Ordre de mission %s créé pour la panne %s", ordre.numero_ordre, panne.id)
    return ordre


def creer_ordre_mission(db: Session, data: OrdreMissionCreate) -> OrdreMissionResponse:
    """
    Création manuelle d'un ordre de mission par un admin.
    Une panne encore en attente est validée au passage.
    """
    with atomic(db, "creer_ordre_mission"):
        panne = db.get(Panne, data.panne_id)
        if panne is None:
            raise NotFoundError("Panne introuvable.")
        if panne.statut == StatutPanne.EN_ATTENTE.value:
            transition("panne", panne, StatutPanne.VALIDEE)
            panne.date_validation = datetime.now()
            panne.valide_par = data.valide_par
        elif panne.statut != StatutPanne.VALIDEE.value:
            raise ConflictError(f"Impossible de créer un ordre de mission : la panne est {panne.statut}.")

        ordre = creer_ordre_pour_panne(
            db,
            panne,
            valide_par=data.valide_par,
            nombre_techniciens_requis=data.nombre_techniciens_requis,
            commentaire=data.commentaire,
        )

    db.refresh(ordre)
    return OrdreMissionResponse.model_validate(ordre)


def get_ordre_mission(db: Session, ordre_id: uuid.UUID) -> Optional[OrdreMissionResponse]:
    ordre = db.execute(
        select(OrdreMission).where(
            OrdreMission.id == ordre_id,
            OrdreMission.deleted_at.is_(None),
        )
    ).scalar()
    if ordre is None:
        return None
    return OrdreMissionResponse.model_validate(ordre)


def lister_ordres_mission(
    db: Session,
    statut: Optional[str] = None,
    ville_id: Optional[uuid.UUID] = None,
) -> List[OrdreMissionResponse]:
    """Ordres de mission non supprimés, du plus récent au plus ancien."""
    query = select(OrdreMission).where(OrdreMission.deleted_at.is_(None))
    if statut:
        query = query.where(OrdreMission.statut == statut)
    if ville_id:
        query = query.where(OrdreMission.ville_id == ville_id)
    ordres = db.execute(query.order_by(OrdreMission.date_generation.desc())).scalars().all()
    return [OrdreMissionResponse.model_validate(o) for o in ordres]


def lister_par_ville(db: Session, ville_id: uuid.UUID) -> List[OrdreMissionResponse]:
    """Ordres ouverts d'une ville : ce que voit un technicien de cette ville."""
    return lister_ordres_mission(db, statut=StatutOrdreMission.EN_ATTENTE.value, ville_id=ville_id)


def lister_candidatures(db: Session, ordre_id: uuid.UUID) -> List[CandidatureResponse]:
    get_ordre_or_404(db, ordre_id)
    candidatures = db.execute(
        select(MissionTechnicien)
        .where(MissionTechnicien.ordre_mission_id == ordre_id)
        .order_by(MissionTechnicien.date_candidature)
    ).scalars().all()
    return [CandidatureResponse.model_validate(c) for c in candidatures]


def mettre_a_jour(db: Session, ordre_id: uuid.UUID, data: OrdreMissionUpdate) -> OrdreMissionResponse:
    """Met à jour les champs libres de l'ordre. Le statut ne change que par les transitions."""
    with atomic(db, "mettre_a_jour_ordre_mission"):
        ordre = get_ordre_or_404(db, ordre_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(ordre, field, value)

    db.refresh(ordre)
    return OrdreMissionResponse.model_validate(ordre)


def cloturer_candidatures(db: Session, ordre_id: uuid.UUID, admin_id: uuid.UUID) -> OrdreMissionResponse:
    with atomic(db, "cloturer_candidatures"):
        ordre = get_ordre_or_404(db, ordre_id)
        if ordre.candidature_cloturee:
            raise ConflictError("Les candidatures sont déjà clôturées.")
        ordre.candidature_cloturee = True
        ordre.date_cloture_candidature = datetime.now()
        ordre.cloture_par = admin_id

    logger.info("Candidatures clôturées sur l'ordre %s par %s", ordre.numero_ordre, admin_id)
    db.refresh(ordre)
    return OrdreMissionResponse.model_validate(ordre)


def rouvrir_candidatures(db: Session, ordre_id: uuid.UUID, admin_id: uuid.UUID) -> OrdreMissionResponse:
    with atomic(db, "rouvrir_candidatures"):
        ordre = get_ordre_or_404(db, ordre_id)
        if not ordre.candidature_cloturee:
            raise ConflictError("Les candidatures ne sont pas clôturées.")
        ordre.candidature_cloturee = False
        ordre.date_cloture_candidature = None
        ordre.cloture_par = None

    logger.info("Candidatures réouvertes sur l'ordre %s par %s", ordre.numero_ordre, admin_id)
    db.refresh(ordre)
    return OrdreMissionResponse.model_validate(ordre)


def cloturer_ordre(db: Session, ordre_id: uuid.UUID) -> OrdreMissionResponse:
    with atomic(db, "cloturer_ordre"):
        ordre = get_ordre_or_404(db, ordre_id)
        transition("ordre_mission", ordre, StatutOrdreMission.CLOTURE)

    logger.info("Ordre de mission %s clôturé", ordre.numero_ordre)
    db.refresh(ordre)
    return OrdreMissionResponse.model_validate(ordre)


def supprimer_ordre(db: Session, ordre_id: uuid.UUID) -> None:
    """Suppression logique, uniquement tant qu'aucun technicien n'a été retenu."""
    with atomic(db, "supprimer_ordre"):
        ordre = get_ordre_or_404(db, ordre_id)
        accepted = db.execute(
            select(MissionTechnicien.id).where(
                MissionTechnicien.ordre_mission_id == ordre.id,
                MissionTechnicien.statut == StatutCandidature.ACCEPTEE.value,
            )
        ).scalar()
        if ordre.statut != StatutOrdreMission.EN_ATTENTE.value or accepted:
            raise ConflictError("Seul un ordre de mission en attente sans technicien retenu peut être supprimé.")
        soft_delete(db, ordre)
