"""
Service des codes OTP envoyés par SMS.

Règles :
- un nouveau code supprime les codes non vérifiés du même numéro
- 6 chiffres, valable OTP_EXPIRATION_MINUTES minutes, à usage unique
- chaque vérification compte une tentative ; au-delà de OTP_MAX_ATTEMPTS le code
  est supprimé et la vérification échoue, même avec le bon code
"""

import logging
import secrets
from datetime import datetime, timedelta

from sqlalchemy import delete, or_, and_, select
from sqlalchemy.orm import Session

from sirene_api.config import settings
from sirene_api.models.otp import OtpCode
from sirene_api.schemas.auth import OtpResult
from sirene_api.services import sms_service

logger = logging.getLogger(__name__)


def _generate_code() -> str:
    return f"{secrets.randbelow(900000) + 100000:06d}"


def generer_otp(db: Session, telephone: str, type: str = "login") -> OtpResult:
    """
    Génère un code, le persiste puis l'envoie par SMS.
    Si l'envoi échoue, le code est supprimé et un résultat en échec est retourné.
    """
    db.execute(
        delete(OtpCode).where(OtpCode.telephone == telephone, OtpCode.verifie.is_(False))
    )
    code = _generate_code()
    otp = OtpCode(
        telephone=telephone,
        code=code,
        type=type,
        verifie=False,
        tentatives=0,
        date_expiration=datetime.now() + timedelta(minutes=settings.OTP_EXPIRATION_MINUTES),
    )
    db.add(otp)
    db.commit()

    message = (
        f"Votre code de vérification Sirène d'École est : {code}. "
        f"Valide pendant {settings.OTP_EXPIRATION_MINUTES} minutes."
    )
    try:
        sms_service.envoyer_sms(telephone, message)
    except Exception as exc:
        logger.error("Échec de l'envoi de l'OTP à %s : %s", telephone, exc)
        db.delete(otp)
        db.commit()
        return OtpResult(success=False, message="Échec de l'envoi du code OTP.")

    logger.info("OTP (%s) envoyé à %s", type, telephone)
    return OtpResult(
        success=True,
        message="Code OTP envoyé avec succès.",
        expires_in=settings.OTP_EXPIRATION_MINUTES,
    )


def verifier_otp(db: Session, telephone: str, code: str) -> OtpResult:
    """Vérifie le dernier code non vérifié du numéro."""
    otp = db.execute(
        select(OtpCode)
        .where(OtpCode.telephone == telephone, OtpCode.verifie.is_(False))
        .order_by(OtpCode.date_expiration.desc())
    ).scalars().first()

    if otp is None:
        return OtpResult(success=False, message="Code OTP invalide.")

    if datetime.now() > otp.date_expiration:
        db.delete(otp)
        db.commit()
        return OtpResult(success=False, message="Code OTP expiré.")

    otp.tentatives = (otp.tentatives or 0) + 1
    if otp.tentatives > settings.OTP_MAX_ATTEMPTS:
        db.delete(otp)
        db.commit()
        logger.warning("OTP de %s supprimé : nombre maximum de tentatives atteint", telephone)
        return OtpResult(success=False, message="Nombre maximum de tentatives atteint.")

    if not secrets.compare_digest(otp.code, code):
        db.commit()
        return OtpResult(success=False, message="Code OTP invalide.")

    otp.verifie = True
    otp.date_verification = datetime.now()
    db.commit()
    logger.info("OTP vérifié pour %s", telephone)
    return OtpResult(success=True, message="Code OTP vérifié avec succès.")


def nettoyer_otp_expires(db: Session) -> int:
    """Supprime les codes expirés et les codes vérifiés depuis plus d'un jour."""
    now = datetime.now()
    result = db.execute(
        delete(OtpCode).where(
            or_(
                OtpCode.date_expiration < now,
                and_(OtpCode.verifie.is_(True), OtpCode.date_verification < now - timedelta(days=1)),
            )
        )
    )
    db.commit()
    logger.info("%d code(s) OTP nettoyé(s)", result.rowcount)
    return result.rowcount
