"""
Schémas Pydantic pour la déclaration et le traitement des pannes.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from sirene_api.state_machines import PrioritePanne


class PanneCreate(BaseModel):
    """Corps de requête pour déclarer une panne sur une sirène."""
    description: str
    priorite: PrioritePanne = PrioritePanne.MOYENNE

    @field_validator("description")
    @classmethod
    def description_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("La description de la panne ne peut pas être vide.")
        return v.strip()


class AdminAction(BaseModel):
    """Action d'administration tracée par l'identifiant de l'admin."""
    admin_id: uuid.UUID


class PanneResponse(BaseModel):
    id: uuid.UUID
    sirene_id: uuid.UUID
    site_id: uuid.UUID
    description: str
    priorite: str
    statut: str
    date_declaration: Optional[datetime] = None
    date_validation: Optional[datetime] = None
    valide_par: Optional[uuid.UUID] = None
    date_cloture: Optional[datetime] = None

    model_config = {"from_attributes": True}
