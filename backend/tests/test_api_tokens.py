"""
Tests d'intégration API des tokens sirène et de l'authentification OTP.
"""

import uuid
from datetime import date, datetime, timedelta
from types import SimpleNamespace
from unittest.mock import patch

from sirene_api.exceptions import NotFoundError
from sirene_api.schemas.auth import OtpResult


def make_token(**kwargs):
    return SimpleNamespace(
        id=uuid.uuid4(),
        abonnement_id=kwargs.get("abonnement_id", uuid.uuid4()),
        sirene_id=uuid.uuid4(),
        site_id=uuid.uuid4(),
        date_debut=date.today(),
        date_fin=date.today() + timedelta(days=365),
        date_generation=datetime.now(),
        date_expiration=datetime.now() + timedelta(days=365),
        date_desactivation=None,
        actif=True,
        token_crypte="gAAAAABsecret",
    )


# ============================================================
# POST /api/v1/tokens/verifier
# ============================================================

def test_verifier_token_valide(client):
    abonnement_id = uuid.uuid4()
    with patch("sirene_api.routers.tokens.token_service.verifier_token_crypte") as mock:
        mock.return_value = {
            "valide": True, "motif": None, "abonnement_id": str(abonnement_id),
            "numero_abonnement": "ABO-20261019-0001", "sirene_id": str(uuid.uuid4()),
            "date_fin": "2027-10-19", "statut": "actif",
        }
        response = client.post("/api/v1/tokens/verifier", json={"token_crypte": " gAAAA "})

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Token valide."
    assert body["data"]["valide"] is True
    assert body["data"]["abonnement_id"] == str(abonnement_id)
    assert mock.call_args.args[1] == "gAAAA"


def test_verifier_token_inconnu_n_est_pas_une_erreur_http(client):
    """Un token refusé → 200, valide=False et le motif en message."""
    with patch("sirene_api.routers.tokens.token_service.verifier_token_crypte") as mock:
        mock.return_value = {"valide": False, "motif": "Token inconnu."}
        response = client.post("/api/v1/tokens/verifier", json={"token_crypte": "inconnu"})

    assert response.status_code == 200
    assert response.json()["message"] == "Token inconnu."
    assert response.json()["data"]["valide"] is False


def test_verifier_token_vide(client):
    response = client.post("/api/v1/tokens/verifier", json={"token_crypte": "   "})
    assert response.status_code == 422


# ============================================================
# GET /api/v1/tokens/abonnement/{abonnement_id}
# ============================================================

def test_token_actif_formate_sans_chiffre(client):
    """Le token actif est renvoyé sous forme segmentée, jamais le chiffré brut."""
    token = make_token()
    with patch("sirene_api.routers.tokens.abonnement_service.get_abonnement_or_404"), \
         patch("sirene_api.routers.tokens.token_service.get_token_actif") as mock_token, \
         patch("sirene_api.routers.tokens.token_service.formater_token") as mock_format:
        mock_token.return_value = token
        mock_format.return_value = "gAAA-AABs-ecre-t"
        response = client.get(f"/api/v1/tokens/abonnement/{token.abonnement_id}")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["token_formate"] == "gAAA-AABs-ecre-t"
    assert "token_crypte" not in data


def test_token_actif_absent(client):
    with patch("sirene_api.routers.tokens.abonnement_service.get_abonnement_or_404"), \
         patch("sirene_api.routers.tokens.token_service.get_token_actif") as mock_token:
        mock_token.return_value = None
        response = client.get(f"/api/v1/tokens/abonnement/{uuid.uuid4()}")

    assert response.status_code == 404
    assert response.json()["message"] == "Aucun token actif pour cet abonnement."


def test_token_abonnement_inconnu(client):
    with patch("sirene_api.routers.tokens.abonnement_service.get_abonnement_or_404") as mock:
        mock.side_effect = NotFoundError("Abonnement introuvable.")
        response = client.get(f"/api/v1/tokens/abonnement/{uuid.uuid4()}")

    assert response.status_code == 404


# ============================================================
# /api/v1/auth
# ============================================================

def test_request_otp_succes(client):
    with patch("sirene_api.routers.auth.otp_service.generer_otp") as mock:
        mock.return_value = OtpResult(success=True, message="Code OTP envoyé avec succès.", expires_in=5)
        response = client.post("/api/v1/auth/request-otp", json={"telephone": "+229 90 00 00 00"})

    assert response.status_code == 200
    assert response.json()["data"]["expires_in"] == 5
    assert mock.call_args.args[1] == "+22990000000"


def test_request_otp_echec_envoi(client):
    """SMS non parti → 503 dans l'enveloppe d'erreur."""
    with patch("sirene_api.routers.auth.otp_service.generer_otp") as mock:
        mock.return_value = OtpResult(success=False, message="Échec de l'envoi du code OTP.")
        response = client.post("/api/v1/auth/request-otp", json={"telephone": "+22990000000"})

    assert response.status_code == 503
    assert response.json() == {"success": False, "message": "Échec de l'envoi du code OTP.", "data": None}


def test_request_otp_telephone_invalide(client):
    response = client.post("/api/v1/auth/request-otp", json={"telephone": "12"})
    assert response.status_code == 422


def test_verify_otp_code_invalide(client):
    with patch("sirene_api.routers.auth.otp_service.verifier_otp") as mock:
        mock.return_value = OtpResult(success=False, message="Code OTP invalide.")
        response = client.post("/api/v1/auth/verify-otp", json={"telephone": "+22990000000", "code": "123456"})

    assert response.status_code == 400
    assert response.json()["message"] == "Code OTP invalide."


def test_verify_otp_succes(client):
    with patch("sirene_api.routers.auth.otp_service.verifier_otp") as mock:
        mock.return_value = OtpResult(success=True, message="Code OTP vérifié avec succès.")
        response = client.post("/api/v1/auth/verify-otp", json={"telephone": "+22990000000", "code": "123456"})

    assert response.status_code == 200
    assert response.json()["success"] is True
