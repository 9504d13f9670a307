"""
Configuration partagée pour tous les tests.

- `client` : override la dépendance get_db (session mockée) pour les tests d'API,
  les services sont patchés test par test.
- `db` : base SQLite en mémoire avec le schéma complet, pour les tests de workflow.
"""

import os

# Aucune connexion PostgreSQL pendant les tests
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import datetime
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import sirene_api.models  # noqa: F401
from sirene_api.database import Base, get_db
from sirene_api.main import app
from sirene_api.models.ecole import Ecole, Site, Ville
from sirene_api.models.sirene import Sirene, Technicien
from sirene_api.models.user import User
from sirene_api.routers.deps import get_admin_recipients


@pytest.fixture
def client():
    """Client HTTP de test avec la BDD mockée."""
    mock_db = MagicMock()
    app.dependency_overrides[get_db] = lambda: mock_db
    app.dependency_overrides[get_admin_recipients] = lambda: []
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def db():
    """Session sur une base SQLite en mémoire, recréée pour chaque test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture
def parc(db):
    """
    Jeu de données minimal : une ville, un admin, une école avec son site principal,
    une sirène installée sur ce site, une sirène en stock et deux techniciens de la ville.
    """
    ville = Ville(nom="Cotonou", code="COT")
    admin = User(nom_utilisateur="admin", role="ADMIN", actif=True)
    db.add_all([ville, admin])
    db.flush()

    ecole = Ecole(nom="EPP Akpakpa", telephone_contact="+22990000000", email_contact="direction@epp.bj")
    db.add(ecole)
    db.flush()
    site = Site(ecole_id=ecole.id, ville_id=ville.id, nom="Site principal", est_principale=True)
    db.add(site)
    db.flush()

    sirene = Sirene(numero_serie="SRN-0001", statut="INSTALLEE", site_id=site.id, date_installation=datetime.now())
    stock = Sirene(numero_serie="SRN-0002", statut="DISPONIBLE")
    tech_a = Technicien(ville_id=ville.id, nom="Houngbo", telephone="+22991000001")
    tech_b = Technicien(ville_id=ville.id, nom="Dossou", telephone="+22991000002")
    db.add_all([sirene, stock, tech_a, tech_b])
    db.commit()

    return SimpleNamespace(
        ville=ville, admin=admin, ecole=ecole, site=site,
        sirene=sirene, stock=stock, tech_a=tech_a, tech_b=tech_b,
    )
