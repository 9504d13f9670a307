"""
Modèles SQLAlchemy pour le parc de sirènes et les techniciens de maintenance.
"""

import uuid
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Numeric, String, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from sirene_api.database import Base, SoftDeleteMixin


class Sirene(SoftDeleteMixin, Base):
    """Sirène physique. DISPONIBLE en stock, INSTALLEE une fois affectée à un site."""
    __tablename__ = "sirenes"
    __unique_soft_delete_fields__ = ("numero_serie",)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    numero_serie = Column(String(150), unique=True, nullable=False)
    modele = Column(String(100), nullable=True)
    statut = Column(String(20), default="DISPONIBLE")  # DISPONIBLE, INSTALLEE, HORS_SERVICE
    site_id = Column(UUID(as_uuid=True), ForeignKey("sites.id"), nullable=True)
    date_installation = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    site = relationship("Site")


class Technicien(SoftDeleteMixin, Base):
    __tablename__ = "techniciens"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)
    ville_id = Column(UUID(as_uuid=True), ForeignKey("villes.id"), nullable=False)
    nom = Column(String(100), nullable=False)
    prenom = Column(String(100), nullable=True)
    telephone = Column(String(20), nullable=True)
    specialite = Column(String(100), nullable=True)
    disponibilite = Column(Boolean, default=True)
    review = Column(Numeric(2, 1), nullable=True)  # moyenne des notes école
    created_at = Column(DateTime, server_default=func.now())

    ville = relationship("Ville")
