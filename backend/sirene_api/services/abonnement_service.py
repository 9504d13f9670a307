"""
Service métier pour le cycle de vie des abonnements.

en_attente → actif (paiement validé) → expire (tâche quotidienne)
                                     → suspendu / annule (admin, motif obligatoire)
suspendu → actif (réactivation) ; actif / expire → en_attente (renouvellement)

Toute entrée dans l'état actif passe par `activer_abonnement` (ou `reactiver`)
qui régénère le token dans la même transaction. Toute sortie de l'état actif
désactive les tokens. La régénération du QR code est planifiée par l'appelant
après le commit.
"""

import logging
import secrets
import string
import uuid
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from sirene_api.config import settings
from sirene_api.database import atomic
from sirene_api.exceptions import ConflictError, NotFoundError
from sirene_api.models.abonnement import Abonnement, Paiement
from sirene_api.models.ecole import Ecole, Site
from sirene_api.models.sirene import Sirene
from sirene_api.schemas.abonnement import (
    AbonnementCreate,
    AbonnementDetail,
    AbonnementResponse,
    AbonnementStatistiques,
    AbonnementUpdate,
    PaiementResponse,
    PrixRenouvellement,
    TokenResponse,
)
from sirene_api.services import email_service, notification_service, qr_code_service, token_service
from sirene_api.state_machines import StatutAbonnement, StatutPaiement, transition

logger = logging.getLogger(__name__)

# Statuts dans lesquels une sirène est considérée comme déjà couverte
STATUTS_EN_VIGUEUR = (
    StatutAbonnement.EN_ATTENTE.value,
    StatutAbonnement.ACTIF.value,
    StatutAbonnement.SUSPENDU.value,
)


def _generate_numero_abonnement(db: Session) -> str:
    """Numéro lisible et unique : ABO-AAAAMMJJ-XXXXXX."""
    alphabet = string.ascii_uppercase + string.digits
    while True:
        numero = "ABO-" + datetime.now().strftime("%Y%m%d") + "-" + "".join(
            secrets.choice(alphabet) for _ in range(6)
        )
        exists = db.execute(
            select(Abonnement.id).where(Abonnement.numero_abonnement == numero)
        ).scalar()
        if not exists:
            return numero


def _prix_annuel() -> Decimal:
    return Decimal(str(settings.SUBSCRIPTION_PRICE_PER_YEAR))


def get_abonnement_or_404(db: Session, abonnement_id: uuid.UUID, for_update: bool = False) -> Abonnement:
    query = select(Abonnement).where(Abonnement.id == abonnement_id)
    if for_update:
        query = query.with_for_update()
    abonnement = db.execute(query).scalar()
    if abonnement is None:
        raise NotFoundError("Abonnement introuvable.")
    return abonnement


def _to_detail(db: Session, abonnement: Abonnement) -> AbonnementDetail:
    detail = AbonnementDetail.model_validate(abonnement)
    detail.paiements = [PaiementResponse.model_validate(p) for p in abonnement.paiements]
    token = token_service.get_token_actif(db, abonnement.id)
    if token is not None:
        detail.token_actif = TokenResponse.model_validate(token)
        detail.token_actif.token_formate = token_service.formater_token(token)
    return detail


# ----------------------------------------------------------------
# Création et transitions
# ----------------------------------------------------------------

def creer_abonnement_pour_site(
    db: Session,
    ecole_id: uuid.UUID,
    site_id: uuid.UUID,
    sirene_id: uuid.UUID,
    auto_renouvellement: bool = False,
) -> Abonnement:
    """Crée un abonnement en attente de paiement. Ne commit pas."""
    en_vigueur = db.execute(
        select(Abonnement.id).where(
            Abonnement.sirene_id == sirene_id,
            Abonnement.statut.in_(STATUTS_EN_VIGUEUR),
        )
    ).scalar()
    if en_vigueur:
        raise ConflictError("Cette sirène est déjà couverte par un abonnement en cours.")

    date_debut = date.today()
    abonnement = Abonnement(
        numero_abonnement=_generate_numero_abonnement(db),
        ecole_id=ecole_id,
        site_id=site_id,
        sirene_id=sirene_id,
        statut=StatutAbonnement.EN_ATTENTE.value,
        date_debut=date_debut,
        date_fin=date_debut + timedelta(days=settings.SUBSCRIPTION_DURATION_DAYS),
        montant=_prix_annuel(),
        devise=settings.SUBSCRIPTION_CURRENCY,
        auto_renouvellement=auto_renouvellement,
    )
    db.add(abonnement)
    db.flush()
    logger.info("Abonnement %s créé pour la sirène %s", abonnement.numero_abonnement, sirene_id)
    return abonnement


def creer_abonnement(db: Session, data: AbonnementCreate) -> AbonnementResponse:
    with atomic(db, "creer_abonnement"):
        ecole = db.execute(
            select(Ecole).where(Ecole.id == data.ecole_id, Ecole.deleted_at.is_(None))
        ).scalar()
        if ecole is None:
            raise NotFoundError("École introuvable.")
        site = db.get(Site, data.site_id)
        if site is None or site.deleted_at is not None or site.ecole_id != ecole.id:
            raise NotFoundError("Site introuvable pour cette école.")
        sirene = db.execute(
            select(Sirene).where(Sirene.id == data.sirene_id, Sirene.deleted_at.is_(None))
        ).scalar()
        if sirene is None:
            raise NotFoundError("Sirène introuvable.")
        if sirene.site_id != site.id:
            raise ConflictError("La sirène n'est pas installée sur ce site.")

        abonnement = creer_abonnement_pour_site(
            db, ecole.id, site.id, sirene.id, data.auto_renouvellement,
        )

    db.refresh(abonnement)
    return AbonnementResponse.model_validate(abonnement)


def activer_abonnement(db: Session, abonnement: Abonnement) -> None:
    """
    Passe l'abonnement à actif et régénère son token, dans la transaction de l'appelant.
    Sans paiement validé, aucun token n'est émis.
    """
    transition("abonnement", abonnement, StatutAbonnement.ACTIF)
    abonnement.date_activation = datetime.now()
    abonnement.raison_statut = None
    db.flush()
    token_service.regenerer_token(db, abonnement)
    logger.info("Abonnement %s activé", abonnement.numero_abonnement)


def mettre_a_jour(db: Session, abonnement_id: uuid.UUID, data: AbonnementUpdate) -> AbonnementResponse:
    with atomic(db, "mettre_a_jour_abonnement"):
        abonnement = get_abonnement_or_404(db, abonnement_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(abonnement, field, value)

    db.refresh(abonnement)
    return AbonnementResponse.model_validate(abonnement)


def suspendre(db: Session, abonnement_id: uuid.UUID, raison: str) -> AbonnementResponse:
    with atomic(db, "suspendre_abonnement"):
        abonnement = get_abonnement_or_404(db, abonnement_id, for_update=True)
        transition("abonnement", abonnement, StatutAbonnement.SUSPENDU)
        abonnement.raison_statut = raison
        token_service.desactiver_tokens(db, abonnement.id)

    logger.info("Abonnement %s suspendu : %s", abonnement.numero_abonnement, raison)
    db.refresh(abonnement)
    return AbonnementResponse.model_validate(abonnement)


def annuler(db: Session, abonnement_id: uuid.UUID, raison: str) -> AbonnementResponse:
    with atomic(db, "annuler_abonnement"):
        abonnement = get_abonnement_or_404(db, abonnement_id, for_update=True)
        transition("abonnement", abonnement, StatutAbonnement.ANNULE)
        abonnement.raison_statut = raison
        token_service.desactiver_tokens(db, abonnement.id)

    logger.info("Abonnement %s annulé : %s", abonnement.numero_abonnement, raison)
    db.refresh(abonnement)
    return AbonnementResponse.model_validate(abonnement)


def reactiver(db: Session, abonnement_id: uuid.UUID) -> AbonnementResponse:
    """Réactive un abonnement suspendu dont la période n'est pas échue."""
    with atomic(db, "reactiver_abonnement"):
        abonnement = get_abonnement_or_404(db, abonnement_id, for_update=True)
        if abonnement.statut == StatutAbonnement.SUSPENDU.value and abonnement.date_fin < date.today():
            raise ConflictError("La période de cet abonnement est échue : il doit être renouvelé.")
        transition("abonnement", abonnement, StatutAbonnement.ACTIF)
        abonnement.raison_statut = None
        db.flush()
        token_service.regenerer_token(db, abonnement)

    logger.info("Abonnement %s réactivé", abonnement.numero_abonnement)
    db.refresh(abonnement)
    return AbonnementResponse.model_validate(abonnement)


def _renouveler(db: Session, abonnement: Abonnement) -> None:
    """
    Repart pour un cycle en_attente → actif : nouveau numéro, nouvelle période, prix recalculé.
    La nouvelle période suit la fin de l'actuelle si elle court encore, sinon démarre aujourd'hui.
    """
    today = date.today()
    date_debut = abonnement.date_fin + timedelta(days=1) if abonnement.date_fin >= today else today

    transition("abonnement", abonnement, StatutAbonnement.EN_ATTENTE)
    abonnement.numero_abonnement = _generate_numero_abonnement(db)
    abonnement.date_debut = date_debut
    abonnement.date_fin = date_debut + timedelta(days=settings.SUBSCRIPTION_DURATION_DAYS)
    abonnement.montant = _prix_annuel()
    abonnement.devise = settings.SUBSCRIPTION_CURRENCY
    abonnement.date_activation = None
    abonnement.raison_statut = None
    abonnement.date_dernier_rappel = None
    token_service.desactiver_tokens(db, abonnement.id)


def renouveler(db: Session, abonnement_id: uuid.UUID) -> AbonnementResponse:
    with atomic(db, "renouveler_abonnement"):
        abonnement = get_abonnement_or_404(db, abonnement_id, for_update=True)
        ancien_numero = abonnement.numero_abonnement
        _renouveler(db, abonnement)

    logger.info("Abonnement %s renouvelé en %s", ancien_numero, abonnement.numero_abonnement)
    db.refresh(abonnement)
    return AbonnementResponse.model_validate(abonnement)


# ----------------------------------------------------------------
# Calculs
# ----------------------------------------------------------------

def calculer_prix_renouvellement(db: Session, abonnement_id: uuid.UUID) -> PrixRenouvellement:
    abonnement = get_abonnement_or_404(db, abonnement_id)
    return PrixRenouvellement(
        abonnement_id=abonnement.id,
        montant=_prix_annuel(),
        devise=settings.SUBSCRIPTION_CURRENCY,
    )


def jours_restants(db: Session, abonnement_id: uuid.UUID) -> int:
    """Jours restants avant la fin de la période (0 si échue)."""
    abonnement = get_abonnement_or_404(db, abonnement_id)
    return max(0, (abonnement.date_fin - date.today()).days)


def est_valide(db: Session, abonnement_id: uuid.UUID) -> bool:
    abonnement = get_abonnement_or_404(db, abonnement_id)
    return (
        abonnement.statut == StatutAbonnement.ACTIF.value
        and abonnement.date_debut <= date.today() <= abonnement.date_fin
    )


def peut_etre_renouvele(db: Session, abonnement_id: uuid.UUID) -> bool:
    abonnement = get_abonnement_or_404(db, abonnement_id)
    return abonnement.statut in (StatutAbonnement.ACTIF.value, StatutAbonnement.EXPIRE.value)


# ----------------------------------------------------------------
# Lectures
# ----------------------------------------------------------------

def get_abonnement(db: Session, abonnement_id: uuid.UUID) -> Optional[AbonnementDetail]:
    abonnement = db.get(Abonnement, abonnement_id)
    if abonnement is None:
        return None
    return _to_detail(db, abonnement)


def lister_abonnements(
    db: Session,
    statut: Optional[str] = None,
    ecole_id: Optional[uuid.UUID] = None,
    sirene_id: Optional[uuid.UUID] = None,
) -> List[AbonnementResponse]:
    query = select(Abonnement)
    if statut:
        query = query.where(Abonnement.statut == statut)
    if ecole_id:
        query = query.where(Abonnement.ecole_id == ecole_id)
    if sirene_id:
        query = query.where(Abonnement.sirene_id == sirene_id)
    abonnements = db.execute(query.order_by(Abonnement.date_debut.desc())).scalars().all()
    return [AbonnementResponse.model_validate(a) for a in abonnements]


def get_abonnement_actif_ecole(db: Session, ecole_id: uuid.UUID) -> Optional[AbonnementResponse]:
    abonnement = db.execute(
        select(Abonnement)
        .where(Abonnement.ecole_id == ecole_id, Abonnement.statut == StatutAbonnement.ACTIF.value)
        .order_by(Abonnement.date_fin.desc())
    ).scalars().first()
    if abonnement is None:
        return None
    return AbonnementResponse.model_validate(abonnement)


def _query_expirant(jours: int):
    today = date.today()
    return select(Abonnement).where(
        Abonnement.statut == StatutAbonnement.ACTIF.value,
        Abonnement.date_fin >= today,
        Abonnement.date_fin <= today + timedelta(days=jours),
    )


def expirant_bientot(db: Session, jours: int = 30) -> List[AbonnementResponse]:
    abonnements = db.execute(_query_expirant(jours).order_by(Abonnement.date_fin)).scalars().all()
    return [AbonnementResponse.model_validate(a) for a in abonnements]


def statistiques(
    db: Session,
    date_debut: Optional[date] = None,
    date_fin: Optional[date] = None,
) -> AbonnementStatistiques:
    """Nombre d'abonnements par statut et revenus des paiements validés sur la période."""
    rows = db.execute(
        select(Abonnement.statut, func.count(Abonnement.id)).group_by(Abonnement.statut)
    ).all()
    par_statut = {s.value: 0 for s in StatutAbonnement}
    for statut, count in rows:
        par_statut[statut] = count

    revenus_query = select(func.coalesce(func.sum(Paiement.montant), 0)).where(
        Paiement.statut == StatutPaiement.VALIDE.value
    )
    if date_debut:
        revenus_query = revenus_query.where(Paiement.date_validation >= datetime.combine(date_debut, datetime.min.time()))
    if date_fin:
        revenus_query = revenus_query.where(Paiement.date_validation < datetime.combine(date_fin + timedelta(days=1), datetime.min.time()))
    revenus = db.execute(revenus_query).scalar()

    return AbonnementStatistiques(
        total=sum(par_statut.values()),
        par_statut=par_statut,
        revenus=Decimal(str(revenus or 0)),
        devise=settings.SUBSCRIPTION_CURRENCY,
        date_debut=date_debut,
        date_fin=date_fin,
    )


# ----------------------------------------------------------------
# Tâches planifiées (scheduler ou endpoints /taches)
# ----------------------------------------------------------------

def marquer_expires(db: Session) -> List[uuid.UUID]:
    """
    Passe à expire les abonnements actifs ou suspendus dont la période est échue
    et désactive leurs tokens. Retourne les identifiants traités.
    """
    with atomic(db, "marquer_expires"):
        abonnements = db.execute(
            select(Abonnement).where(
                Abonnement.statut.in_([StatutAbonnement.ACTIF.value, StatutAbonnement.SUSPENDU.value]),
                Abonnement.date_fin < date.today(),
            ).with_for_update()
        ).scalars().all()
        for abonnement in abonnements:
            transition("abonnement", abonnement, StatutAbonnement.EXPIRE)
            token_service.desactiver_tokens(db, abonnement.id)

    ids = [a.id for a in abonnements]
    logger.info("%d abonnement(s) marqué(s) expiré(s)", len(ids))
    return ids


def envoyer_notifications_expiration(db: Session, jours: int = 30) -> int:
    """
    Prévient chaque école dont l'abonnement actif expire dans les `jours` prochains jours.
    Un seul rappel par abonnement et par jour ; l'email n'est envoyé que si l'école a une adresse,
    et seulement après l'enregistrement des rappels.
    """
    today = date.today()
    envoyes = 0
    emails = []
    with atomic(db, "envoyer_notifications_expiration"):
        abonnements = db.execute(_query_expirant(jours)).scalars().all()
        for abonnement in abonnements:
            if abonnement.date_dernier_rappel == today:
                continue
            restants = (abonnement.date_fin - today).days
            notification_service.notifier_expiration_abonnement(db, abonnement, restants)

            ecole = abonnement.ecole
            if ecole is not None and ecole.email_contact:
                lien = qr_code_service.url_abonnement(abonnement)
                emails.append(dict(
                    to_email=ecole.email_contact,
                    ecole_nom=ecole.nom,
                    numero_abonnement=abonnement.numero_abonnement,
                    date_fin=abonnement.date_fin,
                    jours_restants=restants,
                    lien_paiement=lien,
                    qr_image_bytes=qr_code_service.generate_qr_image(lien),
                ))

            abonnement.date_dernier_rappel = today
            envoyes += 1

    for email in emails:
        try:
            email_service.send_expiration_email(**email)
        except Exception as exc:
            logger.error("Erreur envoi email %s : %s", email["to_email"], exc)

    logger.info("%d rappel(s) d'expiration envoyé(s)", envoyes)
    return envoyes


def auto_renouveler(db: Session) -> List[uuid.UUID]:
    """Renouvelle les abonnements expirés qui ont demandé le renouvellement automatique."""
    with atomic(db, "auto_renouveler"):
        abonnements = db.execute(
            select(Abonnement).where(
                Abonnement.statut == StatutAbonnement.EXPIRE.value,
                Abonnement.auto_renouvellement.is_(True),
            ).with_for_update()
        ).scalars().all()
        for abonnement in abonnements:
            _renouveler(db, abonnement)

    ids = [a.id for a in abonnements]
    logger.info("%d abonnement(s) renouvelé(s) automatiquement", len(ids))
    return ids
