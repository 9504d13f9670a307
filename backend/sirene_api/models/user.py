"""
Modèle SQLAlchemy pour les utilisateurs du back-office (admins, comptes école, techniciens).
"""

import uuid
from sqlalchemy import Boolean, Column, DateTime, String, func
from sqlalchemy.dialects.postgresql import UUID

from sirene_api.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    nom_utilisateur = Column(String(100), nullable=False)
    telephone = Column(String(20), unique=True, nullable=True)
    email = Column(String(255), nullable=True)
    role = Column(String(20), nullable=False)  # ADMIN, ECOLE, TECHNICIEN
    actif = Column(Boolean, default=True)
    last_login = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
