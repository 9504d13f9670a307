"""
Service du référentiel : villes, parc de sirènes et techniciens.
"""

import logging
import uuid
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from sirene_api.database import atomic, soft_delete
from sirene_api.exceptions import ConflictError, NotFoundError
from sirene_api.models.ecole import Ville
from sirene_api.models.sirene import Sirene, Technicien
from sirene_api.schemas.ecole import (
    SireneCreate, SireneResponse, TechnicienCreate, TechnicienResponse, VilleCreate, VilleResponse,
)
from sirene_api.state_machines import StatutSirene

logger = logging.getLogger(__name__)


# ----------------------------------------------------------------
# Villes
# ----------------------------------------------------------------

def creer_ville(db: Session, data: VilleCreate) -> VilleResponse:
    with atomic(db, "creer_ville"):
        ville = Ville(nom=data.nom, code=data.code, actif=True)
        db.add(ville)

    db.refresh(ville)
    return VilleResponse.model_validate(ville)


def lister_villes(db: Session) -> List[VilleResponse]:
    villes = db.execute(select(Ville).where(Ville.actif.is_(True)).order_by(Ville.nom)).scalars().all()
    return [VilleResponse.model_validate(v) for v in villes]


# ----------------------------------------------------------------
# Sirènes
# ----------------------------------------------------------------

def creer_sirene(db: Session, data: SireneCreate) -> SireneResponse:
    """Ajoute une sirène au stock (DISPONIBLE). Le numéro de série est unique."""
    with atomic(db, "creer_sirene"):
        existing = db.execute(
            select(Sirene.id).where(Sirene.numero_serie == data.numero_serie)
        ).scalar()
        if existing:
            raise ConflictError(f"Une sirène avec le numéro de série {data.numero_serie} existe déjà.")
        sirene = Sirene(
            numero_serie=data.numero_serie,
            modele=data.modele,
            statut=StatutSirene.DISPONIBLE.value,
        )
        db.add(sirene)

    logger.info("Sirène %s ajoutée au stock", sirene.numero_serie)
    db.refresh(sirene)
    return SireneResponse.model_validate(sirene)


def lister_sirenes(db: Session, statut: Optional[str] = None) -> List[SireneResponse]:
    query = select(Sirene).where(Sirene.deleted_at.is_(None))
    if statut:
        query = query.where(Sirene.statut == statut)
    sirenes = db.execute(query.order_by(Sirene.numero_serie)).scalars().all()
    return [SireneResponse.model_validate(s) for s in sirenes]


def lister_sirenes_disponibles(db: Session) -> List[SireneResponse]:
    """Sirènes en stock, non affectées à un site."""
    sirenes = db.execute(
        select(Sirene).where(
            Sirene.deleted_at.is_(None),
            Sirene.statut == StatutSirene.DISPONIBLE.value,
            Sirene.site_id.is_(None),
        ).order_by(Sirene.numero_serie)
    ).scalars().all()
    return [SireneResponse.model_validate(s) for s in sirenes]


def get_sirene_par_numero_serie(db: Session, numero_serie: str) -> Optional[SireneResponse]:
    sirene = db.execute(
        select(Sirene).where(
            Sirene.numero_serie == numero_serie.strip().upper(),
            Sirene.deleted_at.is_(None),
        )
    ).scalar()
    if sirene is None:
        return None
    return SireneResponse.model_validate(sirene)


def supprimer_sirene(db: Session, sirene_id: uuid.UUID) -> None:
    """Suppression logique, uniquement pour une sirène non installée."""
    with atomic(db, "supprimer_sirene"):
        sirene = db.execute(
            select(Sirene).where(Sirene.id == sirene_id, Sirene.deleted_at.is_(None))
        ).scalar()
        if sirene is None:
            raise NotFoundError("Sirène introuvable.")
        if sirene.site_id is not None:
            raise ConflictError("Impossible de supprimer une sirène installée sur un site.")
        soft_delete(db, sirene)

    logger.info("Sirène %s supprimée", sirene_id)


# ----------------------------------------------------------------
# Techniciens
# ----------------------------------------------------------------

def creer_technicien(db: Session, data: TechnicienCreate) -> TechnicienResponse:
    with atomic(db, "creer_technicien"):
        if db.get(Ville, data.ville_id) is None:
            raise NotFoundError("Ville introuvable.")
        technicien = Technicien(**data.model_dump(), disponibilite=True)
        db.add(technicien)

    db.refresh(technicien)
    return TechnicienResponse.model_validate(technicien)


def lister_techniciens(db: Session, ville_id: Optional[uuid.UUID] = None) -> List[TechnicienResponse]:
    query = select(Technicien).where(Technicien.deleted_at.is_(None))
    if ville_id:
        query = query.where(Technicien.ville_id == ville_id)
    techniciens = db.execute(query.order_by(Technicien.nom)).scalars().all()
    return [TechnicienResponse.model_validate(t) for t in techniciens]


def get_technicien(db: Session, technicien_id: uuid.UUID) -> Optional[TechnicienResponse]:
    technicien = db.execute(
        select(Technicien).where(Technicien.id == technicien_id, Technicien.deleted_at.is_(None))
    ).scalar()
    if technicien is None:
        return None
    return TechnicienResponse.model_validate(technicien)
