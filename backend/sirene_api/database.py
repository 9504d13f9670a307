"""
Configuration de la connexion à la base de données PostgreSQL.
Moteur SQLAlchemy synchrone, une session par requête.
"""

import logging
from contextlib import contextmanager
from datetime import datetime

from sqlalchemy import Column, DateTime, create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import declarative_base
from sqlalchemy.orm import sessionmaker

from sirene_api.config import settings
from sirene_api.exceptions import ConflictError, DomainError

logger = logging.getLogger(__name__)

engine = create_engine(settings.DATABASE_URL, pool_pre_ping=True)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

DELETED_SUFFIX = "__deleted__"


class SoftDeleteMixin:
    """Suppression logique : la ligne reste en base avec deleted_at renseigné."""

    # Colonnes uniques libérées à la suppression (réutilisables par une nouvelle ligne)
    __unique_soft_delete_fields__: tuple = ()

    deleted_at = Column(DateTime, nullable=True)


def soft_delete(db, obj) -> None:
    """
    Marque la ligne comme supprimée.
    Les champs uniques déclarés reçoivent un suffixe horodaté pour que la contrainte
    d'unicité ne bloque pas la recréation d'une ligne avec la même valeur.
    """
    now = datetime.now()
    for field in getattr(obj, "__unique_soft_delete_fields__", ()):
        value = getattr(obj, field)
        if value and DELETED_SUFFIX not in value:
            setattr(obj, field, f"{value}{DELETED_SUFFIX}{now.strftime('%Y%m%d%H%M%S')}")
    obj.deleted_at = now
    db.flush()


def get_db():
    """Dépendance FastAPI : fournit une session BDD et la ferme après usage."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def atomic(db, operation: str):
    """
    Exécute un bloc d'écritures dans une seule transaction.
    Commit à la sortie ; rollback sur toute exception, qui est journalisée puis relancée.
    Une violation de contrainte d'unicité devient une ConflictError.
    """
    try:
        yield db
        db.commit()
    except DomainError:
        db.rollback()
        raise
    except IntegrityError as exc:
        db.rollback()
        logger.error("%s : contrainte d'intégrité violée, transaction annulée (%s)", operation, exc.orig)
        raise ConflictError("Opération en conflit avec l'état courant des données.") from exc
    except Exception:
        db.rollback()
        logger.error("%s : erreur inattendue, transaction annulée", operation, exc_info=True)
        raise
