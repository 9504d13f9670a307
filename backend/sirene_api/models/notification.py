"""
Modèle SQLAlchemy des notifications in-app (admins, techniciens, écoles).
"""

import uuid
from sqlalchemy import Boolean, Column, DateTime, JSON, String, Text, func
from sqlalchemy.dialects.postgresql import UUID

from sirene_api.database import Base


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    destinataire_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    destinataire_type = Column(String(20), nullable=False)  # user, technicien, ecole
    titre = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    data = Column(JSON, nullable=True)
    lu = Column(Boolean, default=False)
    date_envoi = Column(DateTime, server_default=func.now())
    date_lecture = Column(DateTime, nullable=True)
