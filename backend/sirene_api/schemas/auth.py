"""
Schémas Pydantic pour la demande et la vérification des codes OTP.
"""

import re
from typing import Optional

from pydantic import BaseModel, field_validator

_PHONE_RE = re.compile(r"^\+?[0-9]{8,15}$")


def _normalize_phone(v: str) -> str:
    v = re.sub(r"[\s.-]", "", v)
    if not _PHONE_RE.match(v):
        raise ValueError("Numéro de téléphone invalide.")
    return v


class OtpRequest(BaseModel):
    telephone: str
    type: str = "login"

    @field_validator("telephone")
    @classmethod
    def telephone_valid(cls, v: str) -> str:
        return _normalize_phone(v)


class OtpVerify(BaseModel):
    telephone: str
    code: str

    @field_validator("telephone")
    @classmethod
    def telephone_valid(cls, v: str) -> str:
        return _normalize_phone(v)

    @field_validator("code")
    @classmethod
    def code_six_digits(cls, v: str) -> str:
        v = v.strip()
        if not (len(v) == 6 and v.isdigit()):
            raise ValueError("Le code doit contenir 6 chiffres.")
        return v


class OtpResult(BaseModel):
    """Résultat d'une génération ou d'une vérification d'OTP."""
    success: bool
    message: str
    expires_in: Optional[int] = None
