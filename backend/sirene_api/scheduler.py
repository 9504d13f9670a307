"""
Planificateur APScheduler des tâches récurrentes sur les abonnements et les OTP.

Chaque job ouvre sa propre session et journalise ses erreurs sans les propager :
un job en échec est simplement retenté à la prochaine exécution.
Les mêmes tâches sont exposées sous /api/v1/abonnements/taches pour un cron externe.
"""

import logging

from apscheduler.schedulers.background import BackgroundScheduler

from sirene_api.config import settings
from sirene_api.database import SessionLocal

logger = logging.getLogger(__name__)

scheduler = BackgroundScheduler()


def _marquer_expires_scheduled() -> None:
    """Passe à expire les abonnements échus puis régénère leur QR code."""
    from sirene_api.services import abonnement_service, qr_code_service

    db = SessionLocal()
    try:
        ids = abonnement_service.marquer_expires(db)
    except Exception as exc:
        logger.error("Erreur lors du marquage des abonnements expirés : %s", exc)
        return
    finally:
        db.close()
    for abonnement_id in ids:
        qr_code_service.regenerer_qr_code(abonnement_id)


def _notifications_expiration_scheduled() -> None:
    from sirene_api.services import abonnement_service

    db = SessionLocal()
    try:
        envoyes = abonnement_service.envoyer_notifications_expiration(db, settings.EXPIRATION_REMINDER_DAYS)
        logger.info("Rappels d'expiration : %d envoyé(s)", envoyes)
    except Exception as exc:
        logger.error("Erreur lors de l'envoi des rappels d'expiration : %s", exc)
    finally:
        db.close()


def _auto_renouveler_scheduled() -> None:
    from sirene_api.services import abonnement_service, qr_code_service

    db = SessionLocal()
    try:
        ids = abonnement_service.auto_renouveler(db)
    except Exception as exc:
        logger.error("Erreur lors du renouvellement automatique : %s", exc)
        return
    finally:
        db.close()
    for abonnement_id in ids:
        qr_code_service.regenerer_qr_code(abonnement_id)


def _nettoyer_otp_scheduled() -> None:
    from sirene_api.services import otp_service

    db = SessionLocal()
    try:
        otp_service.nettoyer_otp_expires(db)
    except Exception as exc:
        logger.error("Erreur lors du nettoyage des OTP expirés : %s", exc)
    finally:
        db.close()


def start_scheduler() -> None:
    """Démarre le planificateur en arrière-plan (appelé au démarrage de l'API)."""
    scheduler.add_job(_marquer_expires_scheduled, trigger="cron", hour=0, minute=5,
                      id="abonnements_expires", replace_existing=True)
    scheduler.add_job(_auto_renouveler_scheduled, trigger="cron", hour=0, minute=30,
                      id="abonnements_auto_renouvellement", replace_existing=True)
    scheduler.add_job(_notifications_expiration_scheduled, trigger="cron", hour=8, minute=0,
                      id="abonnements_rappels_expiration", replace_existing=True)
    scheduler.add_job(_nettoyer_otp_scheduled, trigger="interval", hours=1,
                      id="otp_nettoyage", replace_existing=True)
    scheduler.start()
    logger.info("Scheduler démarré : expirations, renouvellements, rappels et nettoyage OTP.")


def stop_scheduler() -> None:
    """Arrête le planificateur proprement (appelé à l'arrêt de l'API)."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler arrêté.")
