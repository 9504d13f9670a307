"""
Schémas Pydantic pour les ordres de mission et les candidatures des techniciens.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator


class OrdreMissionCreate(BaseModel):
    """Création manuelle d'un ordre de mission pour une panne validée."""
    panne_id: uuid.UUID
    valide_par: uuid.UUID
    nombre_techniciens_requis: int = 1
    commentaire: Optional[str] = None

    @field_validator("nombre_techniciens_requis")
    @classmethod
    def at_least_one(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Au moins un technicien doit être requis.")
        return v


class OrdreMissionUpdate(BaseModel):
    nombre_techniciens_requis: Optional[int] = None
    commentaire: Optional[str] = None

    @field_validator("nombre_techniciens_requis")
    @classmethod
    def at_least_one(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 1:
            raise ValueError("Au moins un technicien doit être requis.")
        return v


class OrdreMissionResponse(BaseModel):
    id: uuid.UUID
    panne_id: uuid.UUID
    ville_id: uuid.UUID
    numero_ordre: str
    date_generation: datetime
    nombre_techniciens_requis: int
    candidature_cloturee: bool
    date_cloture_candidature: Optional[datetime] = None
    technicien_id: Optional[uuid.UUID] = None
    date_acceptation: Optional[datetime] = None
    valide_par: Optional[uuid.UUID] = None
    statut: str
    commentaire: Optional[str] = None

    model_config = {"from_attributes": True}


class CandidatureCreate(BaseModel):
    technicien_id: uuid.UUID


class CandidatureRetrait(BaseModel):
    """Retrait d'une candidature par le technicien : motif obligatoire."""
    motif_retrait: str

    @field_validator("motif_retrait")
    @classmethod
    def motif_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Un motif est obligatoire pour retirer une candidature.")
        return v.strip()


class CandidatureResponse(BaseModel):
    id: uuid.UUID
    ordre_mission_id: uuid.UUID
    technicien_id: uuid.UUID
    statut: str
    date_candidature: Optional[datetime] = None
    date_acceptation: Optional[datetime] = None
    date_cloture: Optional[datetime] = None
    date_retrait: Optional[datetime] = None
    motif_retrait: Optional[str] = None

    model_config = {"from_attributes": True}
