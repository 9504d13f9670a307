"""
Router pour les abonnements des sirènes.

Toute transition de statut planifie la régénération du QR code après le commit
(BackgroundTasks) : une erreur de génération ne fait jamais échouer la requête.
"""

import uuid
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from sirene_api.database import get_db
from sirene_api.exceptions import NotFoundError
from sirene_api.schemas.abonnement import (
    AbonnementCreate,
    AbonnementDetail,
    AbonnementResponse,
    AbonnementStatistiques,
    AbonnementUpdate,
    MotifStatut,
    PrixRenouvellement,
    ResultatTache,
)
from sirene_api.schemas.common import ApiResponse, ok
from sirene_api.services import abonnement_service, qr_code_service

router = APIRouter(prefix="/api/v1/abonnements", tags=["Abonnements"])


def _planifier_qr(background_tasks: BackgroundTasks, *abonnement_ids: uuid.UUID) -> None:
    for abonnement_id in abonnement_ids:
        background_tasks.add_task(qr_code_service.regenerer_qr_code, abonnement_id)


@router.post("", response_model=ApiResponse[AbonnementResponse], status_code=201, summary="Créer un abonnement")
def creer_abonnement(data: AbonnementCreate, background_tasks: BackgroundTasks, db: Session = Depends(get_db)):
    """Abonnement en attente de paiement pour une sirène installée sur un site de l'école."""
    abonnement = abonnement_service.creer_abonnement(db, data)
    _planifier_qr(background_tasks, abonnement.id)
    return ok(abonnement, "Abonnement créé, en attente de paiement.")


@router.get("", response_model=ApiResponse[List[AbonnementResponse]], summary="Lister les abonnements")
def lister_abonnements(
    statut: Optional[str] = None,
    ecole_id: Optional[uuid.UUID] = None,
    sirene_id: Optional[uuid.UUID] = None,
    db: Session = Depends(get_db),
):
    return ok(abonnement_service.lister_abonnements(db, statut=statut, ecole_id=ecole_id, sirene_id=sirene_id))


@router.get("/statistiques", response_model=ApiResponse[AbonnementStatistiques], summary="Statistiques")
def statistiques(
    date_debut: Optional[date] = None,
    date_fin: Optional[date] = None,
    db: Session = Depends(get_db),
):
    return ok(abonnement_service.statistiques(db, date_debut=date_debut, date_fin=date_fin))


@router.get("/expirant-bientot", response_model=ApiResponse[List[AbonnementResponse]],
            summary="Abonnements proches de l'expiration")
def expirant_bientot(jours: int = Query(30, ge=1, le=365), db: Session = Depends(get_db)):
    return ok(abonnement_service.expirant_bientot(db, jours))


@router.get("/ecole/{ecole_id}/actif", response_model=ApiResponse[AbonnementResponse],
            summary="Abonnement actif d'une école")
def get_abonnement_actif_ecole(ecole_id: uuid.UUID, db: Session = Depends(get_db)):
    abonnement = abonnement_service.get_abonnement_actif_ecole(db, ecole_id)
    if abonnement is None:
        raise NotFoundError("Aucun abonnement actif pour cette école.")
    return ok(abonnement)


@router.get("/{abonnement_id}", response_model=ApiResponse[AbonnementDetail], summary="Détail d'un abonnement")
def get_abonnement(abonnement_id: uuid.UUID, db: Session = Depends(get_db)):
    """Abonnement avec ses paiements et son token actif (forme segmentée)."""
    abonnement = abonnement_service.get_abonnement(db, abonnement_id)
    if abonnement is None:
        raise NotFoundError("Abonnement introuvable.")
    return ok(abonnement)


@router.put("/{abonnement_id}", response_model=ApiResponse[AbonnementResponse], summary="Modifier un abonnement")
def mettre_a_jour(abonnement_id: uuid.UUID, data: AbonnementUpdate, db: Session = Depends(get_db)):
    return ok(abonnement_service.mettre_a_jour(db, abonnement_id, data), "Abonnement mis à jour.")


@router.put("/{abonnement_id}/suspendre", response_model=ApiResponse[AbonnementResponse],
            summary="Suspendre un abonnement")
def suspendre(
    abonnement_id: uuid.UUID,
    data: MotifStatut,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    abonnement = abonnement_service.suspendre(db, abonnement_id, data.raison)
    _planifier_qr(background_tasks, abonnement.id)
    return ok(abonnement, "Abonnement suspendu.")


@router.put("/{abonnement_id}/annuler", response_model=ApiResponse[AbonnementResponse],
            summary="Annuler un abonnement")
def annuler(
    abonnement_id: uuid.UUID,
    data: MotifStatut,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    abonnement = abonnement_service.annuler(db, abonnement_id, data.raison)
    _planifier_qr(background_tasks, abonnement.id)
    return ok(abonnement, "Abonnement annulé.")


@router.put("/{abonnement_id}/reactiver", response_model=ApiResponse[AbonnementResponse],
            summary="Réactiver un abonnement suspendu")
def reactiver(abonnement_id: uuid.UUID, background_tasks: BackgroundTasks, db: Session = Depends(get_db)):
    abonnement = abonnement_service.reactiver(db, abonnement_id)
    _planifier_qr(background_tasks, abonnement.id)
    return ok(abonnement, "Abonnement réactivé.")


@router.post("/{abonnement_id}/renouveler", response_model=ApiResponse[AbonnementResponse],
             summary="Renouveler un abonnement")
def renouveler(abonnement_id: uuid.UUID, background_tasks: BackgroundTasks, db: Session = Depends(get_db)):
    """Nouvelle période en attente de paiement ; les tokens de la période précédente sont désactivés."""
    abonnement = abonnement_service.renouveler(db, abonnement_id)
    _planifier_qr(background_tasks, abonnement.id)
    return ok(abonnement, "Abonnement renouvelé, en attente de paiement.")


@router.get("/{abonnement_id}/prix-renouvellement", response_model=ApiResponse[PrixRenouvellement],
            summary="Prix du renouvellement")
def calculer_prix_renouvellement(abonnement_id: uuid.UUID, db: Session = Depends(get_db)):
    return ok(abonnement_service.calculer_prix_renouvellement(db, abonnement_id))


@router.get("/{abonnement_id}/jours-restants", response_model=ApiResponse[dict], summary="Jours restants")
def jours_restants(abonnement_id: uuid.UUID, db: Session = Depends(get_db)):
    return ok({"jours_restants": abonnement_service.jours_restants(db, abonnement_id)})


@router.get("/{abonnement_id}/est-valide", response_model=ApiResponse[dict], summary="Abonnement valide ?")
def est_valide(abonnement_id: uuid.UUID, db: Session = Depends(get_db)):
    return ok({"est_valide": abonnement_service.est_valide(db, abonnement_id)})


@router.get("/{abonnement_id}/peut-etre-renouvele", response_model=ApiResponse[dict],
            summary="Abonnement renouvelable ?")
def peut_etre_renouvele(abonnement_id: uuid.UUID, db: Session = Depends(get_db)):
    return ok({"peut_etre_renouvele": abonnement_service.peut_etre_renouvele(db, abonnement_id)})


# ----------------------------------------------------------------
# Tâches planifiées, déclenchables à la demande
# ----------------------------------------------------------------

@router.post("/taches/marquer-expires", response_model=ApiResponse[ResultatTache],
             summary="Marquer les abonnements expirés")
def marquer_expires(background_tasks: BackgroundTasks, db: Session = Depends(get_db)):
    ids = abonnement_service.marquer_expires(db)
    _planifier_qr(background_tasks, *ids)
    return ok(ResultatTache(tache="marquer_expires", traites=len(ids)))


@router.post("/taches/notifications-expiration", response_model=ApiResponse[ResultatTache],
             summary="Envoyer les rappels d'expiration")
def envoyer_notifications_expiration(jours: int = Query(30, ge=1, le=365), db: Session = Depends(get_db)):
    envoyes = abonnement_service.envoyer_notifications_expiration(db, jours)
    return ok(ResultatTache(tache="notifications_expiration", traites=envoyes))


@router.post("/taches/auto-renouveler", response_model=ApiResponse[ResultatTache],
             summary="Renouveler automatiquement")
def auto_renouveler(background_tasks: BackgroundTasks, db: Session = Depends(get_db)):
    ids = abonnement_service.auto_renouveler(db)
    _planifier_qr(background_tasks, *ids)
    return ok(ResultatTache(tache="auto_renouveler", traites=len(ids)))
