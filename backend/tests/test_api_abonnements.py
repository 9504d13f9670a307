"""
Tests d'intégration API des abonnements et des paiements.
Les régénérations de QR code planifiées après la réponse sont patchées.
"""

import uuid
from datetime import date, datetime, timedelta
from decimal import Decimal
from unittest.mock import call, patch

from sirene_api.exceptions import ConflictError, InvalidTransitionError
from sirene_api.schemas.abonnement import (
    AbonnementResponse, AbonnementStatistiques, PaiementResponse, PrixRenouvellement,
)

QR_PATH = "sirene_api.routers.abonnements.qr_code_service.regenerer_qr_code"


# --- Helpers ---

def make_abonnement_response(**kwargs) -> AbonnementResponse:
    debut = kwargs.get("date_debut", date.today())
    return AbonnementResponse(
        id=kwargs.get("id", uuid.uuid4()),
        numero_abonnement=kwargs.get("numero_abonnement", "ABO-20261019-0001"),
        ecole_id=uuid.uuid4(),
        site_id=uuid.uuid4(),
        sirene_id=uuid.uuid4(),
        statut=kwargs.get("statut", "en_attente"),
        date_debut=debut,
        date_fin=debut + timedelta(days=365),
        montant=Decimal("50000"),
        devise="XOF",
        auto_renouvellement=kwargs.get("auto_renouvellement", False),
        raison_statut=kwargs.get("raison_statut"),
    )


def make_paiement_response(**kwargs) -> PaiementResponse:
    return PaiementResponse(
        id=kwargs.get("id", uuid.uuid4()),
        abonnement_id=kwargs.get("abonnement_id", uuid.uuid4()),
        ecole_id=uuid.uuid4(),
        numero_transaction="TRX-20261019-0001",
        montant=Decimal("50000"),
        moyen=kwargs.get("moyen", "MOBILE_MONEY"),
        statut=kwargs.get("statut", "en_attente"),
        date_paiement=datetime.now(),
    )


# ============================================================
# POST /api/v1/abonnements
# ============================================================

def test_creer_abonnement_planifie_le_qr_code(client):
    abonnement = make_abonnement_response()
    with patch("sirene_api.routers.abonnements.abonnement_service.creer_abonnement") as mock, \
         patch(QR_PATH) as mock_qr:
        mock.return_value = abonnement
        response = client.post("/api/v1/abonnements", json={
            "ecole_id": str(uuid.uuid4()),
            "site_id": str(uuid.uuid4()),
            "sirene_id": str(uuid.uuid4()),
        })

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["data"]["statut"] == "en_attente"
    assert body["data"]["montant"] == "50000"
    mock_qr.assert_called_once_with(abonnement.id)


def test_creer_abonnement_sirene_deja_couverte(client):
    """Conflit → 400, aucun QR code planifié."""
    with patch("sirene_api.routers.abonnements.abonnement_service.creer_abonnement") as mock, \
         patch(QR_PATH) as mock_qr:
        mock.side_effect = ConflictError("Cette sirène est déjà couverte par un abonnement en cours.")
        response = client.post("/api/v1/abonnements", json={
            "ecole_id": str(uuid.uuid4()),
            "site_id": str(uuid.uuid4()),
            "sirene_id": str(uuid.uuid4()),
        })

    assert response.status_code == 400
    assert "déjà couverte" in response.json()["message"]
    mock_qr.assert_not_called()


def test_creer_abonnement_body_manquant(client):
    response = client.post("/api/v1/abonnements")
    assert response.status_code == 422


# ============================================================
# Transitions de statut
# ============================================================

def test_suspendre_sans_motif(client):
    response = client.put(f"/api/v1/abonnements/{uuid.uuid4()}/suspendre", json={"raison": "  "})
    assert response.status_code == 422


def test_suspendre_succes(client):
    abonnement = make_abonnement_response(statut="suspendu", raison_statut="Contrôle")
    with patch("sirene_api.routers.abonnements.abonnement_service.suspendre") as mock, \
         patch(QR_PATH) as mock_qr:
        mock.return_value = abonnement
        response = client.put(f"/api/v1/abonnements/{abonnement.id}/suspendre", json={"raison": "Contrôle"})

    assert response.status_code == 200
    assert response.json()["data"]["raison_statut"] == "Contrôle"
    assert mock.call_args.args[2] == "Contrôle"
    mock_qr.assert_called_once_with(abonnement.id)


def test_renouveler_depuis_en_attente_refuse(client):
    with patch("sirene_api.routers.abonnements.abonnement_service.renouveler") as mock:
        mock.side_effect = InvalidTransitionError("abonnement", "en_attente", "en_attente")
        response = client.post(f"/api/v1/abonnements/{uuid.uuid4()}/renouveler")

    assert response.status_code == 400
    assert response.json()["success"] is False


def test_get_abonnement_introuvable(client):
    with patch("sirene_api.routers.abonnements.abonnement_service.get_abonnement") as mock:
        mock.return_value = None
        response = client.get(f"/api/v1/abonnements/{uuid.uuid4()}")

    assert response.status_code == 404
    assert response.json()["message"] == "Abonnement introuvable."


# ============================================================
# Calculs et statistiques
# ============================================================

def test_prix_renouvellement(client):
    abonnement_id = uuid.uuid4()
    with patch("sirene_api.routers.abonnements.abonnement_service.calculer_prix_renouvellement") as mock:
        mock.return_value = PrixRenouvellement(abonnement_id=abonnement_id, montant=Decimal("50000"), devise="XOF")
        response = client.get(f"/api/v1/abonnements/{abonnement_id}/prix-renouvellement")

    assert response.status_code == 200
    assert response.json()["data"]["devise"] == "XOF"


def test_jours_restants(client):
    with patch("sirene_api.routers.abonnements.abonnement_service.jours_restants") as mock:
        mock.return_value = 42
        response = client.get(f"/api/v1/abonnements/{uuid.uuid4()}/jours-restants")

    assert response.json()["data"] == {"jours_restants": 42}


def test_statistiques_route_avant_detail(client):
    """/statistiques n'est pas interprété comme un identifiant d'abonnement."""
    with patch("sirene_api.routers.abonnements.abonnement_service.statistiques") as mock:
        mock.return_value = AbonnementStatistiques(
            total=3, par_statut={"actif": 2, "en_attente": 1}, revenus=Decimal("100000"), devise="XOF",
        )
        response = client.get("/api/v1/abonnements/statistiques?date_debut=2026-01-01")

    assert response.status_code == 200
    assert response.json()["data"]["total"] == 3
    assert mock.call_args.kwargs["date_debut"] == date(2026, 1, 1)


def test_expirant_bientot_jours_hors_bornes(client):
    response = client.get("/api/v1/abonnements/expirant-bientot?jours=0")
    assert response.status_code == 422


# ============================================================
# Tâches planifiées
# ============================================================

def test_tache_marquer_expires(client):
    ids = [uuid.uuid4(), uuid.uuid4()]
    with patch("sirene_api.routers.abonnements.abonnement_service.marquer_expires") as mock, \
         patch(QR_PATH) as mock_qr:
        mock.return_value = ids
        response = client.post("/api/v1/abonnements/taches/marquer-expires")

    assert response.status_code == 200
    assert response.json()["data"] == {"tache": "marquer_expires", "traites": 2}
    assert mock_qr.call_args_list == [call(ids[0]), call(ids[1])]


def test_tache_notifications_expiration(client):
    with patch("sirene_api.routers.abonnements.abonnement_service.envoyer_notifications_expiration") as mock:
        mock.return_value = 4
        response = client.post("/api/v1/abonnements/taches/notifications-expiration?jours=15")

    assert response.json()["data"] == {"tache": "notifications_expiration", "traites": 4}
    assert mock.call_args.args[1] == 15


def test_tache_auto_renouveler_sans_abonnement(client):
    with patch("sirene_api.routers.abonnements.abonnement_service.auto_renouveler") as mock, \
         patch(QR_PATH) as mock_qr:
        mock.return_value = []
        response = client.post("/api/v1/abonnements/taches/auto-renouveler")

    assert response.json()["data"]["traites"] == 0
    mock_qr.assert_not_called()


# ============================================================
# Paiements
# ============================================================

def test_traiter_paiement_moyen_inconnu(client):
    response = client.post(f"/api/v1/abonnements/{uuid.uuid4()}/paiements", json={"moyen": "CHEQUE"})
    assert response.status_code == 422


def test_traiter_paiement_montant_negatif(client):
    response = client.post(f"/api/v1/abonnements/{uuid.uuid4()}/paiements", json={
        "moyen": "MOBILE_MONEY", "montant": "-10",
    })
    assert response.status_code == 422


def test_traiter_paiement_succes(client):
    abonnement_id = uuid.uuid4()
    with patch("sirene_api.routers.paiements.paiement_service.traiter_paiement") as mock:
        mock.return_value = make_paiement_response(abonnement_id=abonnement_id, moyen="QR_CODE")
        response = client.post(f"/api/v1/abonnements/{abonnement_id}/paiements", json={"moyen": "QR_CODE"})

    assert response.status_code == 201
    assert response.json()["data"]["moyen"] == "QR_CODE"
    assert response.json()["data"]["statut"] == "en_attente"


def test_valider_paiement_planifie_le_qr_code(client):
    paiement = make_paiement_response(statut="valide")
    with patch("sirene_api.routers.paiements.paiement_service.valider_paiement") as mock, \
         patch("sirene_api.routers.paiements.qr_code_service.regenerer_qr_code") as mock_qr:
        mock.return_value = paiement
        response = client.put(f"/api/v1/paiements/{paiement.id}/valider")

    assert response.status_code == 200
    assert response.json()["data"]["statut"] == "valide"
    mock_qr.assert_called_once_with(paiement.abonnement_id)


def test_valider_paiement_deja_valide(client):
    with patch("sirene_api.routers.paiements.paiement_service.valider_paiement") as mock:
        mock.side_effect = InvalidTransitionError("paiement", "valide", "valide")
        response = client.put(f"/api/v1/paiements/{uuid.uuid4()}/valider")

    assert response.status_code == 400
