"""
Service métier pour les paiements d'abonnement.
Un paiement est enregistré en attente, puis validé par un admin :
la validation active l'abonnement (et émet son token) dans la même transaction.
"""

import logging
import secrets
import string
import uuid
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from sirene_api.database import atomic
from sirene_api.exceptions import ConflictError, NotFoundError
from sirene_api.models.abonnement import Paiement
from sirene_api.schemas.abonnement import PaiementCreate, PaiementResponse
from sirene_api.services import abonnement_service, notification_service
from sirene_api.state_machines import StatutAbonnement, StatutPaiement, transition

logger = logging.getLogger(__name__)


def _generate_numero_transaction(db: Session) -> str:
    """Numéro unique : TXN-AAAAMMJJ-XXXXXXXX."""
    alphabet = string.ascii_uppercase + string.digits
    while True:
        numero = "TXN-" + datetime.now().strftime("%Y%m%d") + "-" + "".join(
            secrets.choice(alphabet) for _ in range(8)
        )
        exists = db.execute(
            select(Paiement.id).where(Paiement.numero_transaction == numero)
        ).scalar()
        if not exists:
            return numero


def traiter_paiement(db: Session, abonnement_id: uuid.UUID, data: PaiementCreate) -> PaiementResponse:
    """
    Enregistre un paiement en attente de validation.
    Seul un abonnement en attente accepte un paiement : ConflictError sinon
    (déjà payé, annulé, ou à renouveler).
    """
    with atomic(db, "traiter_paiement"):
        abonnement = abonnement_service.get_abonnement_or_404(db, abonnement_id)
        if abonnement.statut == StatutAbonnement.ACTIF.value:
            raise ConflictError("Cet abonnement a déjà été payé.")
        if abonnement.statut == StatutAbonnement.ANNULE.value:
            raise ConflictError("Cet abonnement est annulé.")
        if abonnement.statut != StatutAbonnement.EN_ATTENTE.value:
            raise ConflictError(f"Cet abonnement est {abonnement.statut} : il doit être renouvelé avant paiement.")

        paiement = Paiement(
            abonnement_id=abonnement.id,
            ecole_id=abonnement.ecole_id,
            numero_transaction=_generate_numero_transaction(db),
            montant=data.montant if data.montant is not None else abonnement.montant,
            moyen=data.moyen.value,
            statut=StatutPaiement.EN_ATTENTE.value,
            reference_externe=data.reference_externe,
            metadata_json=data.metadata,
            date_paiement=datetime.now(),
        )
        db.add(paiement)

    logger.info(
        "Paiement %s enregistré pour l'abonnement %s (%s %s)",
        paiement.numero_transaction, abonnement.numero_abonnement, paiement.montant, paiement.moyen,
    )
    db.refresh(paiement)
    return PaiementResponse.model_validate(paiement)


def valider_paiement(
    db: Session,
    paiement_id: uuid.UUID,
    admin_ids: Iterable[uuid.UUID] = (),
) -> PaiementResponse:
    """
    Valide un paiement et active son abonnement, en une seule transaction
    (abonnement verrouillé). Valider deux fois le même paiement est un conflit.
    """
    with atomic(db, "valider_paiement"):
        paiement = db.get(Paiement, paiement_id)
        if paiement is None:
            raise NotFoundError("Paiement introuvable.")
        transition("paiement", paiement, StatutPaiement.VALIDE)
        paiement.date_validation = datetime.now()
        db.flush()

        abonnement = abonnement_service.get_abonnement_or_404(db, paiement.abonnement_id, for_update=True)
        abonnement_service.activer_abonnement(db, abonnement)
        notification_service.notifier_paiement_valide(db, list(admin_ids), paiement)

    logger.info("Paiement %s validé, abonnement %s activé", paiement.numero_transaction, abonnement.numero_abonnement)
    db.refresh(paiement)
    return PaiementResponse.model_validate(paiement)


def get_paiement(db: Session, paiement_id: uuid.UUID) -> Optional[PaiementResponse]:
    paiement = db.get(Paiement, paiement_id)
    if paiement is None:
        return None
    return PaiementResponse.model_validate(paiement)


def lister_paiements(
    db: Session,
    abonnement_id: Optional[uuid.UUID] = None,
    statut: Optional[str] = None,
) -> List[PaiementResponse]:
    query = select(Paiement)
    if abonnement_id:
        query = query.where(Paiement.abonnement_id == abonnement_id)
    if statut:
        query = query.where(Paiement.statut == statut)
    paiements = db.execute(query.order_by(Paiement.date_paiement.desc())).scalars().all()
    return [PaiementResponse.model_validate(p) for p in paiements]
