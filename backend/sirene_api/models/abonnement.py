"""
Modèles SQLAlchemy du cycle de vie des abonnements :
abonnement d'une école pour une sirène, paiements, tokens chiffrés.
"""

import uuid
from sqlalchemy import (
    Boolean, Column, Date, DateTime, ForeignKey, Index, JSON, Numeric, String, Text, func, text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from sirene_api.database import Base


class Abonnement(Base):
    __tablename__ = "abonnements"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    numero_abonnement = Column(String(60), unique=True, nullable=False)
    ecole_id = Column(UUID(as_uuid=True), ForeignKey("ecoles.id"), nullable=False)
    site_id = Column(UUID(as_uuid=True), ForeignKey("sites.id"), nullable=False)
    sirene_id = Column(UUID(as_uuid=True), ForeignKey("sirenes.id"), nullable=False)
    statut = Column(String(20), default="en_attente")  # en_attente, actif, expire, suspendu, annule
    date_debut = Column(Date, nullable=False)
    date_fin = Column(Date, nullable=False)
    montant = Column(Numeric(12, 2), nullable=False)
    devise = Column(String(3), default="XOF")
    auto_renouvellement = Column(Boolean, default=False)
    date_activation = Column(DateTime, nullable=True)
    raison_statut = Column(Text, nullable=True)         # motif de suspension / annulation
    date_dernier_rappel = Column(Date, nullable=True)   # dernier rappel d'expiration envoyé
    qr_code_path = Column(String(500), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    ecole = relationship("Ecole")
    site = relationship("Site")
    sirene = relationship("Sirene")
    paiements = relationship("Paiement", back_populates="abonnement", order_by="Paiement.date_paiement")
    tokens = relationship("TokenSirene", back_populates="abonnement", order_by="TokenSirene.date_generation")


class Paiement(Base):
    __tablename__ = "paiements"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    abonnement_id = Column(UUID(as_uuid=True), ForeignKey("abonnements.id"), nullable=False)
    ecole_id = Column(UUID(as_uuid=True), ForeignKey("ecoles.id"), nullable=False)
    numero_transaction = Column(String(60), unique=True, nullable=False)
    montant = Column(Numeric(12, 2), nullable=False)
    moyen = Column(String(20), nullable=False)          # MOBILE_MONEY, CARTE_BANCAIRE, QR_CODE, VIREMENT
    statut = Column(String(20), default="en_attente")   # en_attente, valide
    reference_externe = Column(String(255), nullable=True)
    metadata_json = Column("metadata", JSON, nullable=True)
    date_paiement = Column(DateTime, nullable=True)
    date_validation = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    abonnement = relationship("Abonnement", back_populates="paiements")


class TokenSirene(Base):
    """
    Token chiffré prouvant un abonnement actif et payé.
    Historique append-only : un token n'est jamais modifié, sauf sa désactivation.
    """
    __tablename__ = "tokens_sirene"
    __table_args__ = (
        # Au plus un token actif par abonnement
        Index(
            "uq_token_actif_par_abonnement",
            "abonnement_id",
            unique=True,
            postgresql_where=text("actif"),
            sqlite_where=text("actif = 1"),
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    abonnement_id = Column(UUID(as_uuid=True), ForeignKey("abonnements.id"), nullable=False)
    sirene_id = Column(UUID(as_uuid=True), ForeignKey("sirenes.id"), nullable=False)
    site_id = Column(UUID(as_uuid=True), ForeignKey("sites.id"), nullable=False)
    token_crypte = Column(Text, nullable=False)
    token_hash = Column(String(64), nullable=False, index=True)  # SHA-256 hexadécimal du chiffré
    date_debut = Column(Date, nullable=False)
    date_fin = Column(Date, nullable=False)
    date_generation = Column(DateTime, nullable=False)
    date_expiration = Column(DateTime, nullable=False)
    date_desactivation = Column(DateTime, nullable=True)
    actif = Column(Boolean, default=True, nullable=False)

    abonnement = relationship("Abonnement", back_populates="tokens")
