"""
Service de notifications in-app.

Fire-and-forget : les notifications sont ajoutées à la session de l'appelant
et partent avec son commit. Une erreur est journalisée, jamais propagée.
Les destinataires admins sont résolus par l'appelant (dépendance HTTP ou tâche),
ce service ne recherche jamais d'utilisateurs par rôle.
"""

import logging
import uuid
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from sirene_api.models.notification import Notification
from sirene_api.models.sirene import Technicien

logger = logging.getLogger(__name__)

DESTINATAIRE_USER = "user"
DESTINATAIRE_TECHNICIEN = "technicien"
DESTINATAIRE_ECOLE = "ecole"


def _notifier(
    db: Session,
    destinataires: Iterable[uuid.UUID],
    destinataire_type: str,
    titre: str,
    message: str,
    data: Optional[dict] = None,
) -> int:
    count = 0
    try:
        for destinataire_id in destinataires:
            db.add(Notification(
                destinataire_id=destinataire_id,
                destinataire_type=destinataire_type,
                titre=titre,
                message=message,
                data=data,
                lu=False,
            ))
            count += 1
    except Exception as exc:
        logger.error("Échec de la notification '%s' : %s", titre, exc)
    return count


def notifier_nouvelle_panne(db: Session, admin_ids: List[uuid.UUID], panne) -> int:
    return _notifier(
        db, admin_ids, DESTINATAIRE_USER,
        "Nouvelle panne déclarée",
        f"Une panne de priorité {panne.priorite} a été déclarée sur la sirène {panne.sirene_id}.",
        {"panne_id": str(panne.id), "site_id": str(panne.site_id)},
    )


def notifier_nouvel_ordre_mission(db: Session, ordre, ville_nom: Optional[str] = None) -> int:
    """Prévient tous les techniciens de la ville qu'un ordre de mission est ouvert."""
    try:
        technicien_ids = db.execute(
            select(Technicien.id).where(
                Technicien.ville_id == ordre.ville_id,
                Technicien.deleted_at.is_(None),
            )
        ).scalars().all()
    except Exception as exc:
        logger.error("Impossible de lister les techniciens de la ville %s : %s", ordre.ville_id, exc)
        return 0

    return _notifier(
        db, technicien_ids, DESTINATAIRE_TECHNICIEN,
        "Nouvel ordre de mission disponible",
        f"Un nouvel ordre de mission ({ordre.numero_ordre}) a été généré dans votre ville"
        f" ({ville_nom or 'ville inconnue'}).",
        {"ordre_mission_id": str(ordre.id), "numero_ordre": ordre.numero_ordre},
    )


def notifier_nouvelle_candidature(db: Session, admin_ids: List[uuid.UUID], candidature, numero_ordre: str) -> int:
    return _notifier(
        db, admin_ids, DESTINATAIRE_USER,
        "Nouvelle candidature soumise",
        f"Le technicien {candidature.technicien_id} a candidaté pour l'ordre de mission {numero_ordre}.",
        {"candidature_id": str(candidature.id), "numero_ordre": numero_ordre},
    )


def notifier_candidature_acceptee(db: Session, candidature, numero_ordre: str) -> int:
    return _notifier(
        db, [candidature.technicien_id], DESTINATAIRE_TECHNICIEN,
        "Candidature validée",
        f"Votre candidature pour l'ordre de mission {numero_ordre} a été validée.",
        {"candidature_id": str(candidature.id), "numero_ordre": numero_ordre},
    )


def notifier_mission_terminee(db: Session, ecole_id: uuid.UUID, intervention, numero_ordre: str) -> int:
    return _notifier(
        db, [ecole_id], DESTINATAIRE_ECOLE,
        "Mission terminée - votre avis",
        f"La mission {numero_ordre} est terminée. Veuillez laisser votre avis.",
        {"intervention_id": str(intervention.id), "numero_ordre": numero_ordre},
    )


def notifier_paiement_valide(db: Session, admin_ids: List[uuid.UUID], paiement) -> int:
    return _notifier(
        db, admin_ids, DESTINATAIRE_USER,
        "Nouveau paiement validé",
        f"Un paiement de {paiement.montant} a été validé pour l'abonnement {paiement.abonnement_id}.",
        {"paiement_id": str(paiement.id), "abonnement_id": str(paiement.abonnement_id)},
    )


def notifier_expiration_abonnement(db: Session, abonnement, jours_restants: int) -> int:
    return _notifier(
        db, [abonnement.ecole_id], DESTINATAIRE_ECOLE,
        "Abonnement bientôt expiré",
        f"Votre abonnement {abonnement.numero_abonnement} expire dans {jours_restants} jour(s)"
        f" (le {abonnement.date_fin.strftime('%d/%m/%Y')}).",
        {"abonnement_id": str(abonnement.id), "jours_restants": jours_restants},
    )


def lister_notifications(db: Session, destinataire_id: uuid.UUID, non_lues: bool = False) -> List[Notification]:
    """Notifications d'un destinataire, les plus récentes d'abord."""
    query = select(Notification).where(Notification.destinataire_id == destinataire_id)
    if non_lues:
        query = query.where(Notification.lu.is_(False))
    return list(db.execute(query.order_by(Notification.date_envoi.desc())).scalars().all())


def marquer_lue(db: Session, notification_id: uuid.UUID) -> Optional[Notification]:
    notification = db.get(Notification, notification_id)
    if notification is None:
        return None
    if not notification.lu:
        notification.lu = True
        notification.date_lecture = datetime.now()
        db.commit()
        db.refresh(notification)
    return notification
