"""
Modèles SQLAlchemy du calendrier : calendriers scolaires, jours fériés
et programmations de déclenchement des sirènes.
"""

import uuid
from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, JSON, String, Text, func
from sqlalchemy.dialects.postgresql import UUID

from sirene_api.database import Base, SoftDeleteMixin


class CalendrierScolaire(SoftDeleteMixin, Base):
    __tablename__ = "calendriers_scolaires"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    annee_scolaire = Column(String(20), nullable=False)   # Ex: "2025-2026"
    description = Column(String(500), nullable=True)
    date_rentree = Column(Date, nullable=False)
    date_fin_annee = Column(Date, nullable=False)
    periodes_vacances = Column(JSON, nullable=True)       # [{nom, date_debut, date_fin}]
    actif = Column(Boolean, default=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class JourFerie(SoftDeleteMixin, Base):
    """Jour férié national ou propre à une école, éventuellement sur plusieurs jours."""
    __tablename__ = "jours_feries"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    calendrier_id = Column(UUID(as_uuid=True), ForeignKey("calendriers_scolaires.id"), nullable=True)
    ecole_id = Column(UUID(as_uuid=True), ForeignKey("ecoles.id"), nullable=True)
    intitule_journee = Column(Text, nullable=False)
    date_debut = Column(Date, nullable=False)
    date_fin = Column(Date, nullable=True)                # NULL = un seul jour
    est_national = Column(Boolean, default=False)
    recurrent = Column(Boolean, default=False)            # revient chaque année (même jour/mois)
    actif = Column(Boolean, default=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class Programmation(SoftDeleteMixin, Base):
    """Horaires de déclenchement d'une sirène sur une période."""
    __tablename__ = "programmations"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    sirene_id = Column(UUID(as_uuid=True), ForeignKey("sirenes.id"), nullable=False)
    calendrier_id = Column(UUID(as_uuid=True), ForeignKey("calendriers_scolaires.id"), nullable=True)
    nom_programmation = Column(String(255), nullable=False)
    horaire_json = Column(JSON, nullable=False)               # [{jour: "Lundi", heure: "07:30"}]
    jours_feries_inclus = Column(Boolean, default=False)
    jours_feries_exceptions = Column(JSON, nullable=True)     # [{date: "2025-12-25", action: "include"}]
    date_debut = Column(Date, nullable=False)
    date_fin = Column(Date, nullable=False)
    actif = Column(Boolean, default=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
