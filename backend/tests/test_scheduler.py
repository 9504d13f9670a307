"""
Tests des jobs planifiés : aucune exception ne remonte au planificateur.
"""

import uuid
from unittest.mock import MagicMock, patch

from sirene_api import scheduler


def test_marquer_expires_regenere_les_qr_codes():
    ids = [uuid.uuid4(), uuid.uuid4()]
    session = MagicMock()
    with patch("sirene_api.scheduler.SessionLocal", return_value=session), \
         patch("sirene_api.services.abonnement_service.marquer_expires", return_value=ids), \
         patch("sirene_api.services.qr_code_service.regenerer_qr_code") as mock_qr:
        scheduler._marquer_expires_scheduled()

    assert [c.args[0] for c in mock_qr.call_args_list] == ids
    session.close.assert_called_once()


def test_erreur_de_job_journalisee(caplog):
    session = MagicMock()
    with patch("sirene_api.scheduler.SessionLocal", return_value=session), \
         patch("sirene_api.services.abonnement_service.auto_renouveler", side_effect=RuntimeError("BDD perdue")), \
         patch("sirene_api.services.qr_code_service.regenerer_qr_code") as mock_qr:
        scheduler._auto_renouveler_scheduled()

    mock_qr.assert_not_called()
    session.close.assert_called_once()
    assert "BDD perdue" in caplog.text


def test_rappels_utilisent_le_delai_configure():
    with patch("sirene_api.scheduler.SessionLocal", return_value=MagicMock()), \
         patch("sirene_api.services.abonnement_service.envoyer_notifications_expiration",
               return_value=0) as mock_rappel:
        scheduler._notifications_expiration_scheduled()

    assert mock_rappel.call_args.args[1] == scheduler.settings.EXPIRATION_REMINDER_DAYS


def test_start_scheduler_enregistre_les_jobs():
    with patch.object(scheduler.scheduler, "start"):
        scheduler.start_scheduler()

    ids = {job.id for job in scheduler.scheduler.get_jobs()}
    assert ids == {
        "abonnements_expires",
        "abonnements_auto_renouvellement",
        "abonnements_rappels_expiration",
        "otp_nettoyage",
    }
    for job_id in ids:
        scheduler.scheduler.remove_job(job_id)
