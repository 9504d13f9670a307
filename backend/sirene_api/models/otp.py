"""
Modèle SQLAlchemy des codes OTP envoyés par SMS.
"""

import uuid
from sqlalchemy import Boolean, Column, DateTime, Integer, String, func
from sqlalchemy.dialects.postgresql import UUID

from sirene_api.database import Base


class OtpCode(Base):
    __tablename__ = "otp_codes"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    telephone = Column(String(20), nullable=False, index=True)
    code = Column(String(6), nullable=False)
    type = Column(String(20), default="login")
    verifie = Column(Boolean, default=False)
    tentatives = Column(Integer, default=0)
    date_expiration = Column(DateTime, nullable=False)
    date_verification = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
