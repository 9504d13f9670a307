"""
Service métier pour l'inscription des écoles.

Une inscription crée en une seule transaction :
1. L'école
2. Son site principal, puis ses sites annexes
3. Pour chaque site déclarant un numéro de série : installation de la sirène
   (qui doit être DISPONIBLE et non affectée) et abonnement en attente de paiement
Les QR codes des abonnements sont générés par l'appelant après le commit.
"""

import logging
import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from sirene_api.database import atomic, soft_delete
from sirene_api.exceptions import ConflictError, NotFoundError
from sirene_api.models.abonnement import Abonnement
from sirene_api.models.ecole import Ecole, Site, Ville
from sirene_api.models.sirene import Sirene
from sirene_api.schemas.abonnement import AbonnementResponse
from sirene_api.schemas.ecole import (
    EcoleInscription, EcoleResponse, InscriptionResponse, SiteInscription, SiteResponse,
)
from sirene_api.services import abonnement_service, token_service
from sirene_api.state_machines import StatutAbonnement, StatutSirene, transition

logger = logging.getLogger(__name__)


def _installer_sirene(db: Session, numero_serie: str, site: Site) -> Sirene:
    sirene = db.execute(
        select(Sirene).where(Sirene.numero_serie == numero_serie, Sirene.deleted_at.is_(None))
    ).scalar()
    if sirene is None:
        raise NotFoundError(f"Sirène {numero_serie} introuvable.")
    if sirene.statut != StatutSirene.DISPONIBLE.value or sirene.site_id is not None:
        raise ConflictError(f"La sirène {numero_serie} n'est pas disponible.")

    sirene.site_id = site.id
    sirene.statut = StatutSirene.INSTALLEE.value
    sirene.date_installation = datetime.now()
    return sirene


def _creer_site(db: Session, ecole: Ecole, data: SiteInscription, est_principale: bool) -> Site:
    if db.get(Ville, data.ville_id) is None:
        raise NotFoundError("Ville introuvable.")
    site = Site(
        ecole_id=ecole.id,
        ville_id=data.ville_id,
        nom=data.nom,
        est_principale=est_principale,
        adresse=data.adresse,
        latitude=data.latitude,
        longitude=data.longitude,
    )
    db.add(site)
    db.flush()
    return site


def inscrire_ecole(db: Session, data: EcoleInscription) -> InscriptionResponse:
    """Inscrit une école avec ses sites, ses sirènes et leurs abonnements en attente."""
    numeros = [s.numero_serie for s in [data.site_principal, *data.sites_annexes] if s.numero_serie]
    if len(numeros) != len(set(numeros)):
        raise ConflictError("Une même sirène ne peut pas équiper deux sites.")

    abonnements: List[Abonnement] = []
    with atomic(db, "inscrire_ecole"):
        ecole = Ecole(
            nom=data.nom,
            nom_complet=data.nom_complet,
            telephone_contact=data.telephone_contact,
            email_contact=data.email_contact,
            responsable_nom=data.responsable_nom,
            responsable_prenom=data.responsable_prenom,
            responsable_telephone=data.responsable_telephone,
        )
        db.add(ecole)
        db.flush()

        sites_data = [(data.site_principal, True)] + [(s, False) for s in data.sites_annexes]
        for site_data, est_principale in sites_data:
            site = _creer_site(db, ecole, site_data, est_principale)
            if site_data.numero_serie:
                sirene = _installer_sirene(db, site_data.numero_serie, site)
                abonnements.append(
                    abonnement_service.creer_abonnement_pour_site(db, ecole.id, site.id, sirene.id)
                )

    logger.info(
        "École inscrite : %s (%s) avec %d site(s) et %d abonnement(s)",
        ecole.nom, ecole.id, len(sites_data), len(abonnements),
    )
    db.refresh(ecole)
    return InscriptionResponse(
        ecole=_to_response(ecole),
        abonnements=[AbonnementResponse.model_validate(a) for a in abonnements],
    )


def _to_response(ecole: Ecole) -> EcoleResponse:
    response = EcoleResponse.model_validate(ecole)
    response.sites = [SiteResponse.model_validate(s) for s in ecole.sites if s.deleted_at is None]
    return response


def get_ecole(db: Session, ecole_id: uuid.UUID) -> Optional[EcoleResponse]:
    ecole = db.execute(
        select(Ecole).where(Ecole.id == ecole_id, Ecole.deleted_at.is_(None))
    ).scalar()
    if ecole is None:
        return None
    return _to_response(ecole)


def lister_ecoles(db: Session) -> List[EcoleResponse]:
    ecoles = db.execute(
        select(Ecole).where(Ecole.deleted_at.is_(None)).order_by(Ecole.nom)
    ).scalars().all()
    return [_to_response(e) for e in ecoles]


def supprimer_ecole(db: Session, ecole_id: uuid.UUID) -> None:
    """
    Suppression logique de l'école et de ses sites.
    Refusée tant qu'un abonnement est actif. Les abonnements en attente ou suspendus
    sont annulés et les sirènes installées redeviennent disponibles.
    """
    with atomic(db, "supprimer_ecole"):
        ecole = db.execute(
            select(Ecole).where(Ecole.id == ecole_id, Ecole.deleted_at.is_(None))
        ).scalar()
        if ecole is None:
            raise NotFoundError("École introuvable.")

        actif = db.execute(
            select(Abonnement.id).where(
                Abonnement.ecole_id == ecole.id,
                Abonnement.statut == StatutAbonnement.ACTIF.value,
            )
        ).scalar()
        if actif:
            raise ConflictError("Impossible de supprimer une école ayant un abonnement actif.")

        en_cours = db.execute(
            select(Abonnement).where(
                Abonnement.ecole_id == ecole.id,
                Abonnement.statut.in_([StatutAbonnement.EN_ATTENTE.value, StatutAbonnement.SUSPENDU.value]),
            )
        ).scalars().all()
        for abonnement in en_cours:
            transition("abonnement", abonnement, StatutAbonnement.ANNULE)
            abonnement.raison_statut = "École supprimée."
            token_service.desactiver_tokens(db, abonnement.id)

        for site in ecole.sites:
            if site.deleted_at is not None:
                continue
            for sirene in db.execute(select(Sirene).where(Sirene.site_id == site.id)).scalars():
                sirene.site_id = None
                sirene.statut = StatutSirene.DISPONIBLE.value
                sirene.date_installation = None
            soft_delete(db, site)
        soft_delete(db, ecole)

    logger.info("École %s supprimée", ecole_id)
