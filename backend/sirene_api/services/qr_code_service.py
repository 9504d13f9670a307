"""
Service de génération des QR codes d'abonnement.

Le QR code encode l'URL frontend de l'abonnement :
  - abonnement actif  → page de détails  ({FRONTEND_URL}/abonnements/{id})
  - sinon             → page de paiement ({FRONTEND_URL}/paiement/{id})

La régénération est lancée après le commit (BackgroundTasks FastAPI) avec sa
propre session : elle ne bloque jamais la transition de statut, une erreur est
seulement journalisée.
"""

import io
import logging
import uuid
from pathlib import Path
from typing import Optional

import qrcode
from qrcode.constants import ERROR_CORRECT_H

from sirene_api.config import settings
from sirene_api.database import SessionLocal
from sirene_api.models.abonnement import Abonnement
from sirene_api.state_machines import StatutAbonnement

logger = logging.getLogger(__name__)


def generate_qr_image(content: str) -> bytes:
    """Génère une image PNG du QR code encodant le contenu donné."""
    qr = qrcode.QRCode(version=None, error_correction=ERROR_CORRECT_H, box_size=10, border=4)
    qr.add_data(content)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def url_abonnement(abonnement: Abonnement) -> str:
    base = settings.FRONTEND_URL.rstrip("/")
    if abonnement.statut == StatutAbonnement.ACTIF.value:
        return f"{base}/abonnements/{abonnement.id}"
    return f"{base}/paiement/{abonnement.id}"


def chemin_qr_code(abonnement: Abonnement) -> str:
    """Chemin relatif au stockage : ecoles/{ecole}/qrcodes/{sirene}/abonnement_{id}.png"""
    return f"ecoles/{abonnement.ecole_id}/qrcodes/{abonnement.sirene_id}/abonnement_{abonnement.id}.png"


def generer_qr_code(abonnement: Abonnement) -> str:
    """Écrit le PNG de l'abonnement sur le disque et retourne son chemin relatif."""
    relative_path = chemin_qr_code(abonnement)
    target = Path(settings.QR_STORAGE_DIR) / relative_path
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(generate_qr_image(url_abonnement(abonnement)))
    return relative_path


def regenerer_qr_code(abonnement_id: uuid.UUID) -> Optional[str]:
    """
    Tâche d'arrière-plan : régénère le QR code d'un abonnement et enregistre son chemin.
    Ouvre sa propre session, la requête d'origine étant déjà terminée.
    """
    db = SessionLocal()
    try:
        abonnement = db.get(Abonnement, abonnement_id)
        if abonnement is None:
            logger.warning("QR code non généré : abonnement %s introuvable", abonnement_id)
            return None
        path = generer_qr_code(abonnement)
        abonnement.qr_code_path = path
        db.commit()
        logger.info("QR code de l'abonnement %s régénéré (%s)", abonnement_id, abonnement.statut)
        return path
    except Exception as exc:
        db.rollback()
        logger.error("Échec de la génération du QR code de l'abonnement %s : %s", abonnement_id, exc)
        return None
    finally:
        db.close()
