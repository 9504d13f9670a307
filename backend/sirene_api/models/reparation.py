"""
Modèles SQLAlchemy du workflow de réparation :
panne → ordre de mission → candidatures → intervention → rapport.
"""

import uuid
from sqlalchemy import (
    Boolean, Column, DateTime, ForeignKey, Index, Integer, JSON, String, Text, func, text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from sirene_api.database import Base, SoftDeleteMixin


class Panne(Base):
    """Panne déclarée sur une sirène installée."""
    __tablename__ = "pannes"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    sirene_id = Column(UUID(as_uuid=True), ForeignKey("sirenes.id"), nullable=False)
    site_id = Column(UUID(as_uuid=True), ForeignKey("sites.id"), nullable=False)
    description = Column(Text, nullable=False)
    priorite = Column(String(20), default="moyenne")      # faible, moyenne, haute
    statut = Column(String(20), default="en_attente")     # en_attente, validee, cloturee
    date_declaration = Column(DateTime, server_default=func.now())
    date_validation = Column(DateTime, nullable=True)
    valide_par = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)
    date_cloture = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    site = relationship("Site")
    sirene = relationship("Sirene")


class OrdreMission(SoftDeleteMixin, Base):
    """Ordre de mission diffusé aux techniciens de la ville du site en panne."""
    __tablename__ = "ordres_mission"
    __unique_soft_delete_fields__ = ("numero_ordre",)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    # Un seul ordre par panne
    panne_id = Column(UUID(as_uuid=True), ForeignKey("pannes.id"), unique=True, nullable=False)
    ville_id = Column(UUID(as_uuid=True), ForeignKey("villes.id"), nullable=False)
    numero_ordre = Column(String(60), unique=True, nullable=False)
    date_generation = Column(DateTime, nullable=False)
    nombre_techniciens_requis = Column(Integer, default=1)
    candidature_cloturee = Column(Boolean, default=False)
    date_cloture_candidature = Column(DateTime, nullable=True)
    cloture_par = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)
    technicien_id = Column(UUID(as_uuid=True), ForeignKey("techniciens.id"), nullable=True)
    date_acceptation = Column(DateTime, nullable=True)
    valide_par = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)
    statut = Column(String(20), default="en_attente")     # en_attente, en_cours, termine, cloture
    commentaire = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    panne = relationship("Panne")
    candidatures = relationship("MissionTechnicien", back_populates="ordre_mission")


class MissionTechnicien(Base):
    """Candidature d'un technicien sur un ordre de mission."""
    __tablename__ = "missions_techniciens"
    __table_args__ = (
        # Au plus une candidature acceptée par ordre de mission
        Index(
            "uq_candidature_acceptee_par_ordre",
            "ordre_mission_id",
            unique=True,
            postgresql_where=text("statut = 'acceptee'"),
            sqlite_where=text("statut = 'acceptee'"),
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    ordre_mission_id = Column(
        UUID(as_uuid=True), ForeignKey("ordres_mission.id", ondelete="CASCADE"), nullable=False
    )
    technicien_id = Column(UUID(as_uuid=True), ForeignKey("techniciens.id"), nullable=False)
    statut = Column(String(20), default="en_attente")     # en_attente, acceptee, refusee, retiree
    date_candidature = Column(DateTime, server_default=func.now())
    date_acceptation = Column(DateTime, nullable=True)
    date_cloture = Column(DateTime, nullable=True)
    date_retrait = Column(DateTime, nullable=True)
    motif_retrait = Column(Text, nullable=True)
    traite_par = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)

    ordre_mission = relationship("OrdreMission", back_populates="candidatures")
    technicien = relationship("Technicien")


class Intervention(Base):
    """Intervention créée à l'acceptation d'une candidature (une seule par ordre)."""
    __tablename__ = "interventions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    panne_id = Column(UUID(as_uuid=True), ForeignKey("pannes.id"), nullable=False)
    technicien_id = Column(UUID(as_uuid=True), ForeignKey("techniciens.id"), nullable=False)
    ordre_mission_id = Column(
        UUID(as_uuid=True), ForeignKey("ordres_mission.id"), unique=True, nullable=False
    )
    statut = Column(String(20), default="assignee")       # assignee, en_cours, terminee
    date_assignation = Column(DateTime, nullable=True)
    date_debut = Column(DateTime, nullable=True)
    date_fin = Column(DateTime, nullable=True)
    note_ecole = Column(Integer, nullable=True)           # 1 à 5
    commentaire_ecole = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    panne = relationship("Panne")
    ordre_mission = relationship("OrdreMission")
    rapport = relationship("RapportIntervention", back_populates="intervention", uselist=False)


class RapportIntervention(Base):
    """Rapport rédigé par le technicien à la fin de l'intervention."""
    __tablename__ = "rapports_intervention"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    intervention_id = Column(
        UUID(as_uuid=True), ForeignKey("interventions.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    rapport = Column(Text, nullable=False)
    diagnostic = Column(Text, nullable=True)
    travaux_effectues = Column(Text, nullable=True)
    pieces_utilisees = Column(Text, nullable=True)
    recommandations = Column(Text, nullable=True)
    photos = Column(JSON, nullable=True)
    resultat = Column(String(30), nullable=False)          # resolu, partiellement_resolu, non_resolu
    statut = Column(String(20), default="brouillon")       # brouillon, valide
    review_note = Column(Integer, nullable=True)           # 1 à 5
    review_admin = Column(Text, nullable=True)
    date_rapport = Column(DateTime, nullable=True)
    date_validation = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    intervention = relationship("Intervention", back_populates="rapport")
