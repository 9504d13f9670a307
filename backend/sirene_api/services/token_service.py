"""
Service des tokens sirène chiffrés.

Un token prouve qu'un abonnement est actif et payé. Son contenu (abonnement,
sirène, école, validité, signature aléatoire) est sérialisé en JSON puis chiffré
avec Fernet (AES-128-CBC + HMAC-SHA256) ; le SHA-256 hexadécimal du chiffré
permet une comparaison rapide sans déchiffrer.

Règle : au plus un token actif par abonnement. L'émission est idempotente et
s'exécute dans la transaction de l'appelant, l'index unique partiel
`uq_token_actif_par_abonnement` garantit la règle en cas de concurrence.
"""

import base64
import hashlib
import json
import logging
import secrets
import string
import uuid
from datetime import datetime, time
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from sirene_api.config import settings
from sirene_api.models.abonnement import Abonnement, Paiement, TokenSirene
from sirene_api.state_machines import StatutPaiement

logger = logging.getLogger(__name__)

SIGNATURE_LENGTH = 32


def _fernet() -> Fernet:
    return Fernet(settings.fernet_key)


def encrypt(plaintext: str) -> str:
    """Chiffre une chaîne avec la clé serveur. Retourne le jeton Fernet (texte)."""
    return _fernet().encrypt(plaintext.encode("utf-8")).decode("ascii")


def decrypt(ciphertext: str) -> str:
    """Déchiffre un jeton Fernet. Lève InvalidToken si le chiffré est altéré ou la clé différente."""
    return _fernet().decrypt(ciphertext.encode("ascii")).decode("utf-8")


def hash_token(ciphertext: str) -> str:
    return hashlib.sha256(ciphertext.encode("utf-8")).hexdigest()


def _signature() -> str:
    alphabet = string.ascii_letters + string.digits
    return "".join(secrets.choice(alphabet) for _ in range(SIGNATURE_LENGTH))


def _expiration(abonnement: Abonnement) -> datetime:
    # Valide jusqu'à la fin du dernier jour de l'abonnement
    return datetime.combine(abonnement.date_fin, time(23, 59, 59))


def construire_payload(abonnement: Abonnement) -> dict:
    sirene = abonnement.sirene
    ecole = abonnement.ecole
    return {
        "abonnement_id": str(abonnement.id),
        "numero_abonnement": abonnement.numero_abonnement,
        "sirene_id": str(abonnement.sirene_id),
        "numero_serie": sirene.numero_serie if sirene else None,
        "ecole_id": str(abonnement.ecole_id),
        "ecole_nom": ecole.nom if ecole else None,
        "site_id": str(abonnement.site_id),
        "generated_at": datetime.now().isoformat(),
        "expires_at": _expiration(abonnement).isoformat(),
        "signature": _signature(),
    }


def get_token_actif(db: Session, abonnement_id: uuid.UUID) -> Optional[TokenSirene]:
    return db.execute(
        select(TokenSirene).where(
            TokenSirene.abonnement_id == abonnement_id,
            TokenSirene.actif.is_(True),
        )
    ).scalar()


def emettre_token(db: Session, abonnement: Abonnement) -> Optional[TokenSirene]:
    """
    Émet le token chiffré d'un abonnement. Ne commit pas.

    Étapes :
    1. Sans paiement validé : aucun token (retourne None)
    2. Un token actif existe déjà : on ne double pas l'émission (retourne None)
    3. Payload JSON chiffré, SHA-256 du chiffré
    4. Insertion du token actif, validité copiée de l'abonnement
    """
    paiement_valide = db.execute(
        select(Paiement.id).where(
            Paiement.abonnement_id == abonnement.id,
            Paiement.statut == StatutPaiement.VALIDE.value,
        )
    ).first()
    if paiement_valide is None:
        logger.info("Abonnement %s sans paiement validé : aucun token émis", abonnement.id)
        return None

    if get_token_actif(db, abonnement.id) is not None:
        logger.info("Abonnement %s : un token actif existe déjà", abonnement.id)
        return None

    token_crypte = encrypt(json.dumps(construire_payload(abonnement)))
    token = TokenSirene(
        abonnement_id=abonnement.id,
        sirene_id=abonnement.sirene_id,
        site_id=abonnement.site_id,
        token_crypte=token_crypte,
        token_hash=hash_token(token_crypte),
        date_debut=abonnement.date_debut,
        date_fin=abonnement.date_fin,
        date_generation=datetime.now(),
        date_expiration=_expiration(abonnement),
        actif=True,
    )
    db.add(token)
    db.flush()
    logger.info("Token %s émis pour l'abonnement %s", token.id, abonnement.id)
    return token


def desactiver_tokens(db: Session, abonnement_id: uuid.UUID) -> int:
    """Désactive en une seule requête conditionnelle tous les tokens actifs de l'abonnement."""
    result = db.execute(
        update(TokenSirene)
        .where(TokenSirene.abonnement_id == abonnement_id, TokenSirene.actif.is_(True))
        .values(actif=False, date_desactivation=datetime.now())
        .execution_options(synchronize_session="fetch")
    )
    if result.rowcount:
        logger.info("%d token(s) désactivé(s) pour l'abonnement %s", result.rowcount, abonnement_id)
    return result.rowcount


def regenerer_token(db: Session, abonnement: Abonnement) -> Optional[TokenSirene]:
    """Désactive les tokens actifs puis en émet un nouveau, dans la transaction courante."""
    desactiver_tokens(db, abonnement.id)
    return emettre_token(db, abonnement)


def decrypter_token(token: TokenSirene) -> Optional[dict]:
    if not token.token_crypte:
        return None
    try:
        return json.loads(decrypt(token.token_crypte))
    except (InvalidToken, ValueError) as exc:
        logger.error("Erreur de déchiffrement du token %s : %s", token.id, type(exc).__name__)
        return None


def verifier_token(token: TokenSirene) -> bool:
    """
    Vérifie l'intégrité d'un token : déchiffrable, non expiré, et dont la sirène
    et l'abonnement embarqués correspondent à l'enregistrement. Ne lève jamais.
    """
    try:
        data = decrypter_token(token)
        if not data:
            return False
        expires_at = data.get("expires_at")
        if expires_at and datetime.fromisoformat(expires_at) < datetime.now():
            return False
        return (
            data.get("sirene_id") == str(token.sirene_id)
            and data.get("abonnement_id") == str(token.abonnement_id)
        )
    except Exception as exc:
        logger.warning("Vérification du token %s impossible : %s", token.id, exc)
        return False


def verifier_hash(token: TokenSirene, token_crypte: str) -> bool:
    return secrets.compare_digest(hash_token(token_crypte), token.token_hash)


def formater_token(token: TokenSirene) -> Optional[str]:
    """Base64 du chiffré découpé en segments de 4 caractères séparés par des tirets."""
    if not token.token_crypte:
        return None
    encoded = base64.b64encode(token.token_crypte.encode("ascii")).decode("ascii")
    return "-".join(encoded[i:i + 4] for i in range(0, len(encoded), 4))


def verifier_token_crypte(db: Session, token_crypte: str) -> dict:
    """
    Vérification à partir du chiffré présenté par une sirène (ou un scan QR) :
    recherche par hash, puis contrôle complet du token.
    """
    token = db.execute(
        select(TokenSirene).where(TokenSirene.token_hash == hash_token(token_crypte))
    ).scalar()
    if token is None:
        return {"valide": False, "motif": "Token inconnu."}
    if not token.actif:
        return {"valide": False, "motif": "Token désactivé."}
    if not verifier_token(token):
        return {"valide": False, "motif": "Token invalide ou expiré."}

    abonnement = token.abonnement
    return {
        "valide": True,
        "motif": None,
        "abonnement_id": str(abonnement.id),
        "numero_abonnement": abonnement.numero_abonnement,
        "sirene_id": str(token.sirene_id),
        "date_fin": abonnement.date_fin.isoformat(),
        "statut": abonnement.statut,
    }
