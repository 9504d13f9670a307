"""
Schémas Pydantic pour l'inscription des écoles et le référentiel
(villes, sirènes, techniciens).
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, EmailStr, field_validator

from sirene_api.schemas.abonnement import AbonnementResponse


def _not_blank(v: str, label: str) -> str:
    if not v or not v.strip():
        raise ValueError(f"{label} ne peut pas être vide.")
    return v.strip()


# ----------------------------------------------------------------
# Villes
# ----------------------------------------------------------------

class VilleCreate(BaseModel):
    nom: str
    code: Optional[str] = None

    @field_validator("nom")
    @classmethod
    def nom_not_empty(cls, v: str) -> str:
        return _not_blank(v, "Le nom de la ville")


class VilleResponse(BaseModel):
    id: uuid.UUID
    nom: str
    code: Optional[str] = None
    actif: bool

    model_config = {"from_attributes": True}


# ----------------------------------------------------------------
# Sirènes
# ----------------------------------------------------------------

class SireneCreate(BaseModel):
    numero_serie: str
    modele: Optional[str] = None

    @field_validator("numero_serie")
    @classmethod
    def serie_not_empty(cls, v: str) -> str:
        return _not_blank(v, "Le numéro de série").upper()


class SireneResponse(BaseModel):
    id: uuid.UUID
    numero_serie: str
    modele: Optional[str] = None
    statut: str
    site_id: Optional[uuid.UUID] = None
    date_installation: Optional[datetime] = None

    model_config = {"from_attributes": True}


# ----------------------------------------------------------------
# Techniciens
# ----------------------------------------------------------------

class TechnicienCreate(BaseModel):
    ville_id: uuid.UUID
    nom: str
    prenom: Optional[str] = None
    telephone: Optional[str] = None
    specialite: Optional[str] = None
    user_id: Optional[uuid.UUID] = None

    @field_validator("nom")
    @classmethod
    def nom_not_empty(cls, v: str) -> str:
        return _not_blank(v, "Le nom du technicien")


class TechnicienResponse(BaseModel):
    id: uuid.UUID
    ville_id: uuid.UUID
    nom: str
    prenom: Optional[str] = None
    telephone: Optional[str] = None
    specialite: Optional[str] = None
    disponibilite: bool
    review: Optional[Decimal] = None

    model_config = {"from_attributes": True}


# ----------------------------------------------------------------
# Écoles et sites
# ----------------------------------------------------------------

class SiteInscription(BaseModel):
    """Site déclaré à l'inscription, avec éventuellement la sirène à y installer."""
    nom: str
    ville_id: uuid.UUID
    adresse: Optional[str] = None
    latitude: Optional[Decimal] = None
    longitude: Optional[Decimal] = None
    numero_serie: Optional[str] = None

    @field_validator("nom")
    @classmethod
    def nom_not_empty(cls, v: str) -> str:
        return _not_blank(v, "Le nom du site")

    @field_validator("numero_serie")
    @classmethod
    def serie_upper(cls, v: Optional[str]) -> Optional[str]:
        return v.strip().upper() if v and v.strip() else None


class EcoleInscription(BaseModel):
    nom: str
    nom_complet: Optional[str] = None
    telephone_contact: str
    email_contact: Optional[EmailStr] = None
    responsable_nom: Optional[str] = None
    responsable_prenom: Optional[str] = None
    responsable_telephone: Optional[str] = None
    site_principal: SiteInscription
    sites_annexes: List[SiteInscription] = []

    @field_validator("nom")
    @classmethod
    def nom_not_empty(cls, v: str) -> str:
        return _not_blank(v, "Le nom de l'école")

    @field_validator("telephone_contact")
    @classmethod
    def telephone_not_empty(cls, v: str) -> str:
        return _not_blank(v, "Le téléphone de contact")


class SiteResponse(BaseModel):
    id: uuid.UUID
    ecole_id: uuid.UUID
    ville_id: uuid.UUID
    nom: str
    est_principale: bool
    adresse: Optional[str] = None
    latitude: Optional[Decimal] = None
    longitude: Optional[Decimal] = None

    model_config = {"from_attributes": True}


class EcoleResponse(BaseModel):
    id: uuid.UUID
    nom: str
    nom_complet: Optional[str] = None
    telephone_contact: str
    email_contact: Optional[str] = None
    responsable_nom: Optional[str] = None
    responsable_prenom: Optional[str] = None
    responsable_telephone: Optional[str] = None
    sites: List[SiteResponse] = []

    model_config = {"from_attributes": True}


class InscriptionResponse(BaseModel):
    ecole: EcoleResponse
    abonnements: List[AbonnementResponse] = []
