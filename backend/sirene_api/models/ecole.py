"""
Modèles SQLAlchemy pour les villes, les écoles et leurs sites.
"""

import uuid
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Numeric, String, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from sirene_api.database import Base, SoftDeleteMixin


class Ville(Base):
    __tablename__ = "villes"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    nom = Column(String(100), nullable=False)
    code = Column(String(20), unique=True, nullable=True)
    actif = Column(Boolean, default=True)
    created_at = Column(DateTime, server_default=func.now())


class Ecole(SoftDeleteMixin, Base):
    __tablename__ = "ecoles"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    nom = Column(String(100), nullable=False)
    nom_complet = Column(String(255), nullable=True)
    telephone_contact = Column(String(20), nullable=False)
    email_contact = Column(String(100), nullable=True)
    responsable_nom = Column(String(255), nullable=True)
    responsable_prenom = Column(String(255), nullable=True)
    responsable_telephone = Column(String(20), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    sites = relationship("Site", back_populates="ecole")


class Site(SoftDeleteMixin, Base):
    """Site physique d'une école (principal ou annexe), équipé d'au plus une sirène."""
    __tablename__ = "sites"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    ecole_id = Column(UUID(as_uuid=True), ForeignKey("ecoles.id", ondelete="CASCADE"), nullable=False)
    ville_id = Column(UUID(as_uuid=True), ForeignKey("villes.id"), nullable=False)
    nom = Column(String(255), nullable=False)
    est_principale = Column(Boolean, default=False)
    adresse = Column(String(255), nullable=True)
    latitude = Column(Numeric(10, 7), nullable=True)
    longitude = Column(Numeric(10, 7), nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    ecole = relationship("Ecole", back_populates="sites")
    ville = relationship("Ville")
