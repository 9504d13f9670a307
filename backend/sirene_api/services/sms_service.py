"""
Envoi de SMS via le provider configuré (SMS_PROVIDER) :
  - log             : développement, le message est seulement journalisé
  - twilio          : API REST Twilio (Basic auth)
  - africas_talking : API REST Africa's Talking (header apiKey)

Identifiants absents : envoi simulé (journalisé) et considéré comme réussi.
Réponse HTTP en erreur : SmsDeliveryError.
"""

import logging

import requests

from sirene_api.config import settings

logger = logging.getLogger(__name__)

TWILIO_URL = "https://api.twilio.com/2010-04-01/Accounts/{account}/Messages.json"
AFRICAS_TALKING_URL = "https://api.africastalking.com/version1/messaging"


class SmsDeliveryError(Exception):
    """Le provider SMS a refusé ou n'a pas pu traiter l'envoi."""


def _simuler(telephone: str, message: str, raison: str) -> bool:
    logger.warning("SMS non envoyé à %s (%s)", telephone, raison)
    logger.info("Contenu du SMS : %s", message)
    return True


def _envoyer_twilio(telephone: str, message: str) -> bool:
    if not settings.SMS_API_KEY or not settings.SMS_API_SECRET:
        return _simuler(telephone, message, "identifiants Twilio non configurés")

    response = requests.post(
        TWILIO_URL.format(account=settings.SMS_API_KEY),
        auth=(settings.SMS_API_KEY, settings.SMS_API_SECRET),
        data={"To": telephone, "From": settings.SMS_FROM_NUMBER, "Body": message},
        timeout=settings.SMS_TIMEOUT_SECONDS,
    )
    if not response.ok:
        raise SmsDeliveryError(f"Twilio : HTTP {response.status_code}")
    return True


def _envoyer_africas_talking(telephone: str, message: str) -> bool:
    if not settings.SMS_API_KEY:
        return _simuler(telephone, message, "clé Africa's Talking non configurée")

    payload = {
        "username": settings.SMS_USERNAME,
        "to": telephone,
        "message": message,
    }
    if settings.SMS_FROM_NUMBER:
        payload["from"] = settings.SMS_FROM_NUMBER

    response = requests.post(
        AFRICAS_TALKING_URL,
        headers={"apiKey": settings.SMS_API_KEY, "Accept": "application/json"},
        data=payload,
        timeout=settings.SMS_TIMEOUT_SECONDS,
    )
    if not response.ok:
        raise SmsDeliveryError(f"Africa's Talking : HTTP {response.status_code}")
    return True


def envoyer_sms(telephone: str, message: str) -> bool:
    """
    Envoie un SMS. Retourne True si le message est parti (ou a été simulé).
    Lève SmsDeliveryError ou requests.RequestException en cas d'échec.
    """
    provider = settings.SMS_PROVIDER
    try:
        if provider == "twilio":
            sent = _envoyer_twilio(telephone, message)
        elif provider == "africas_talking":
            sent = _envoyer_africas_talking(telephone, message)
        else:
            return _simuler(telephone, message, f"provider '{provider}'")
    except (SmsDeliveryError, requests.RequestException) as exc:
        logger.error("Échec de l'envoi du SMS à %s : %s", telephone, exc)
        raise

    logger.info("SMS envoyé à %s via %s", telephone, provider)
    return sent
