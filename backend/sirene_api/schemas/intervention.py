"""
Schémas Pydantic pour les interventions, les rapports et leurs notations.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from sirene_api.state_machines import ResultatIntervention


class InterventionResponse(BaseModel):
    id: uuid.UUID
    panne_id: uuid.UUID
    technicien_id: uuid.UUID
    ordre_mission_id: uuid.UUID
    statut: str
    date_assignation: Optional[datetime] = None
    date_debut: Optional[datetime] = None
    date_fin: Optional[datetime] = None
    note_ecole: Optional[int] = None
    commentaire_ecole: Optional[str] = None

    model_config = {"from_attributes": True}


class RapportCreate(BaseModel):
    """Rapport rédigé par le technicien en fin d'intervention."""
    rapport: str
    diagnostic: Optional[str] = None
    travaux_effectues: Optional[str] = None
    pieces_utilisees: Optional[str] = None
    resultat: ResultatIntervention
    recommandations: Optional[str] = None
    photos: Optional[List[str]] = None

    @field_validator("rapport")
    @classmethod
    def rapport_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Le rapport ne peut pas être vide.")
        return v.strip()


class RapportResponse(BaseModel):
    id: uuid.UUID
    intervention_id: uuid.UUID
    rapport: str
    diagnostic: Optional[str] = None
    travaux_effectues: Optional[str] = None
    pieces_utilisees: Optional[str] = None
    recommandations: Optional[str] = None
    photos: Optional[List[str]] = None
    resultat: str
    statut: str
    review_note: Optional[int] = None
    review_admin: Optional[str] = None
    date_rapport: Optional[datetime] = None
    date_validation: Optional[datetime] = None

    model_config = {"from_attributes": True}


class NoteIntervention(BaseModel):
    """Note de l'école sur l'intervention (1 à 5)."""
    note: int = Field(ge=1, le=5)
    commentaire: Optional[str] = None


class NoteRapport(BaseModel):
    """Revue de l'admin sur le rapport (1 à 5)."""
    note: int = Field(ge=1, le=5)
    review: str

    @field_validator("review")
    @classmethod
    def review_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("La revue ne peut pas être vide.")
        return v.strip()
