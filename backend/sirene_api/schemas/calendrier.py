"""
Schémas Pydantic pour les calendriers scolaires, les jours fériés
et les programmations des sirènes.
"""

import re
import uuid
from datetime import date
from typing import List, Literal, Optional

from pydantic import BaseModel, field_validator, model_validator

JOURS_SEMAINE = ("Lundi", "Mardi", "Mercredi", "Jeudi", "Vendredi", "Samedi", "Dimanche")

_HEURE_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


# ----------------------------------------------------------------
# Jours fériés
# ----------------------------------------------------------------

class JourFerieCreate(BaseModel):
    intitule_journee: str
    date_debut: date
    date_fin: Optional[date] = None
    est_national: bool = False
    recurrent: bool = False
    actif: bool = True
    ecole_id: Optional[uuid.UUID] = None
    calendrier_id: Optional[uuid.UUID] = None

    @field_validator("intitule_journee")
    @classmethod
    def intitule_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("L'intitulé du jour férié ne peut pas être vide.")
        return v.strip()

    @model_validator(mode="after")
    def check_dates(self):
        if self.date_fin is not None and self.date_fin < self.date_debut:
            raise ValueError("La date de fin doit être postérieure ou égale à la date de début.")
        return self


class JourFerieUpdate(BaseModel):
    intitule_journee: Optional[str] = None
    date_debut: Optional[date] = None
    date_fin: Optional[date] = None
    est_national: Optional[bool] = None
    recurrent: Optional[bool] = None
    actif: Optional[bool] = None


class JourFerieResponse(BaseModel):
    id: uuid.UUID
    intitule_journee: str
    date_debut: date
    date_fin: Optional[date] = None
    est_national: bool
    recurrent: bool
    actif: bool
    ecole_id: Optional[uuid.UUID] = None
    calendrier_id: Optional[uuid.UUID] = None

    model_config = {"from_attributes": True}


# ----------------------------------------------------------------
# Calendriers scolaires
# ----------------------------------------------------------------

class PeriodeVacances(BaseModel):
    nom: str
    date_debut: date
    date_fin: date

    @model_validator(mode="after")
    def check_dates(self):
        if self.date_fin < self.date_debut:
            raise ValueError(f"Période '{self.nom}' : la fin précède le début.")
        return self


class CalendrierCreate(BaseModel):
    annee_scolaire: str
    description: Optional[str] = None
    date_rentree: date
    date_fin_annee: date
    periodes_vacances: List[PeriodeVacances] = []
    actif: bool = True

    @field_validator("annee_scolaire")
    @classmethod
    def annee_format(cls, v: str) -> str:
        v = v.strip()
        if not re.match(r"^\d{4}-\d{4}$", v):
            raise ValueError("L'année scolaire doit être au format AAAA-AAAA.")
        return v

    @model_validator(mode="after")
    def check_dates(self):
        if self.date_fin_annee <= self.date_rentree:
            raise ValueError("La date de fin d'année doit être postérieure à la rentrée.")
        return self


class CalendrierUpdate(BaseModel):
    description: Optional[str] = None
    date_rentree: Optional[date] = None
    date_fin_annee: Optional[date] = None
    periodes_vacances: Optional[List[PeriodeVacances]] = None
    actif: Optional[bool] = None


class CalendrierResponse(BaseModel):
    id: uuid.UUID
    annee_scolaire: str
    description: Optional[str] = None
    date_rentree: date
    date_fin_annee: date
    periodes_vacances: Optional[List[PeriodeVacances]] = None
    actif: bool

    model_config = {"from_attributes": True}


class JoursScolaires(BaseModel):
    calendrier_id: uuid.UUID
    jours_ouvres: int
    jours_feries: int
    jours_vacances: int
    jours_scolaires: int


# ----------------------------------------------------------------
# Programmations
# ----------------------------------------------------------------

class Horaire(BaseModel):
    jour: Literal["Lundi", "Mardi", "Mercredi", "Jeudi", "Vendredi", "Samedi", "Dimanche"]
    heure: str

    @field_validator("heure")
    @classmethod
    def heure_format(cls, v: str) -> str:
        if not _HEURE_RE.match(v):
            raise ValueError("L'heure doit être au format HH:MM.")
        return v


class ExceptionFerie(BaseModel):
    date: date
    action: Literal["include", "exclude"]


class ProgrammationCreate(BaseModel):
    sirene_id: uuid.UUID
    calendrier_id: Optional[uuid.UUID] = None
    nom_programmation: str
    horaire_json: List[Horaire]
    jours_feries_inclus: bool = False
    jours_feries_exceptions: List[ExceptionFerie] = []
    date_debut: date
    date_fin: date
    actif: bool = True

    @field_validator("nom_programmation")
    @classmethod
    def nom_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Le nom de la programmation ne peut pas être vide.")
        return v.strip()

    @field_validator("horaire_json")
    @classmethod
    def at_least_one_slot(cls, v: List[Horaire]) -> List[Horaire]:
        if not v:
            raise ValueError("Au moins un horaire est requis.")
        return v

    @model_validator(mode="after")
    def check_dates(self):
        if self.date_fin < self.date_debut:
            raise ValueError("La date de fin doit être postérieure ou égale à la date de début.")
        return self


class ProgrammationUpdate(BaseModel):
    nom_programmation: Optional[str] = None
    calendrier_id: Optional[uuid.UUID] = None
    horaire_json: Optional[List[Horaire]] = None
    jours_feries_inclus: Optional[bool] = None
    jours_feries_exceptions: Optional[List[ExceptionFerie]] = None
    date_debut: Optional[date] = None
    date_fin: Optional[date] = None
    actif: Optional[bool] = None


class ProgrammationResponse(BaseModel):
    id: uuid.UUID
    sirene_id: uuid.UUID
    calendrier_id: Optional[uuid.UUID] = None
    nom_programmation: str
    horaire_json: List[Horaire]
    jours_feries_inclus: bool
    jours_feries_exceptions: Optional[List[ExceptionFerie]] = None
    date_debut: date
    date_fin: date
    actif: bool

    model_config = {"from_attributes": True}


class ProgrammationEffective(BaseModel):
    """Programmation retenue pour une date, avec les heures de sonnerie du jour."""
    programmation: ProgrammationResponse
    heures: List[str]
