"""
Schémas Pydantic pour les abonnements, les paiements et les tokens sirène.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator

from sirene_api.state_machines import MoyenPaiement


class AbonnementCreate(BaseModel):
    ecole_id: uuid.UUID
    site_id: uuid.UUID
    sirene_id: uuid.UUID
    auto_renouvellement: bool = False


class AbonnementUpdate(BaseModel):
    auto_renouvellement: Optional[bool] = None


class MotifStatut(BaseModel):
    """Motif obligatoire pour suspendre ou annuler un abonnement."""
    raison: str

    @field_validator("raison")
    @classmethod
    def raison_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Un motif est obligatoire.")
        return v.strip()


class AbonnementResponse(BaseModel):
    id: uuid.UUID
    numero_abonnement: str
    ecole_id: uuid.UUID
    site_id: uuid.UUID
    sirene_id: uuid.UUID
    statut: str
    date_debut: date
    date_fin: date
    montant: Decimal
    devise: str
    auto_renouvellement: bool
    date_activation: Optional[datetime] = None
    raison_statut: Optional[str] = None
    qr_code_path: Optional[str] = None

    model_config = {"from_attributes": True}


class PaiementCreate(BaseModel):
    """Montant facultatif : à défaut, celui de l'abonnement."""
    montant: Optional[Decimal] = Field(default=None, gt=0)
    moyen: MoyenPaiement
    reference_externe: Optional[str] = None
    metadata: Optional[dict] = None


class PaiementResponse(BaseModel):
    id: uuid.UUID
    abonnement_id: uuid.UUID
    ecole_id: uuid.UUID
    numero_transaction: str
    montant: Decimal
    moyen: str
    statut: str
    reference_externe: Optional[str] = None
    metadata: Optional[dict] = Field(default=None, validation_alias=AliasChoices("metadata_json", "metadata"))
    date_paiement: Optional[datetime] = None
    date_validation: Optional[datetime] = None

    model_config = {"from_attributes": True}


class TokenResponse(BaseModel):
    """Le chiffré n'est jamais renvoyé tel quel : seulement sa forme segmentée."""
    id: uuid.UUID
    abonnement_id: uuid.UUID
    sirene_id: uuid.UUID
    site_id: uuid.UUID
    date_debut: date
    date_fin: date
    date_generation: datetime
    date_expiration: datetime
    date_desactivation: Optional[datetime] = None
    actif: bool
    token_formate: Optional[str] = None

    model_config = {"from_attributes": True}


class TokenVerificationRequest(BaseModel):
    token_crypte: str

    @field_validator("token_crypte")
    @classmethod
    def token_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Le token ne peut pas être vide.")
        return v.strip()


class TokenVerificationResponse(BaseModel):
    valide: bool
    motif: Optional[str] = None
    abonnement_id: Optional[uuid.UUID] = None
    numero_abonnement: Optional[str] = None
    sirene_id: Optional[uuid.UUID] = None
    date_fin: Optional[date] = None
    statut: Optional[str] = None


class AbonnementDetail(AbonnementResponse):
    """Abonnement avec ses paiements et son token actif."""
    paiements: List[PaiementResponse] = []
    token_actif: Optional[TokenResponse] = None


class AbonnementStatistiques(BaseModel):
    total: int
    par_statut: Dict[str, int]
    revenus: Decimal
    devise: str
    date_debut: Optional[date] = None
    date_fin: Optional[date] = None


class PrixRenouvellement(BaseModel):
    abonnement_id: uuid.UUID
    montant: Decimal
    devise: str


class ResultatTache(BaseModel):
    """Résultat d'une tâche planifiée déclenchée par le cron."""
    tache: str
    traites: int
