"""
Tests du service OTP : génération, envoi SMS, vérification et nettoyage.
L'envoi SMS est patché, la base est SQLite en mémoire.
"""

from datetime import datetime, timedelta
from unittest.mock import patch

import pytest
from pydantic import ValidationError
from sqlalchemy import func, select

from sirene_api.models.otp import OtpCode
from sirene_api.schemas.auth import OtpRequest, OtpVerify
from sirene_api.services import otp_service
from sirene_api.services.sms_service import SmsDeliveryError

TELEPHONE = "+22990000000"
SMS_PATH = "sirene_api.services.otp_service.sms_service.envoyer_sms"


def generer(db, telephone=TELEPHONE):
    with patch(SMS_PATH, return_value=True) as mock_sms:
        result = otp_service.generer_otp(db, telephone)
    return result, mock_sms


def dernier_code(db, telephone=TELEPHONE):
    return db.execute(
        select(OtpCode).where(OtpCode.telephone == telephone, OtpCode.verifie.is_(False))
    ).scalar()


def count_codes(db):
    return db.execute(select(func.count(OtpCode.id))).scalar()


# --- Génération ---

def test_generer_envoie_le_code_par_sms(db):
    result, mock_sms = generer(db)

    assert result.success is True
    assert result.expires_in == 5
    otp = dernier_code(db)
    assert len(otp.code) == 6 and otp.code.isdigit()
    assert otp.tentatives == 0
    telephone, message = mock_sms.call_args.args
    assert telephone == TELEPHONE
    assert otp.code in message


def test_nouveau_code_remplace_les_anciens(db):
    generer(db)
    premier = dernier_code(db).id
    generer(db)

    assert count_codes(db) == 1
    assert dernier_code(db).id != premier


def test_echec_envoi_supprime_le_code(db):
    with patch(SMS_PATH, side_effect=SmsDeliveryError("HTTP 500")):
        result = otp_service.generer_otp(db, TELEPHONE)

    assert result.success is False
    assert count_codes(db) == 0


# --- Vérification ---

def test_verification_reussie_puis_usage_unique(db):
    generer(db)
    code = dernier_code(db).code

    result = otp_service.verifier_otp(db, TELEPHONE, code)
    assert result.success is True
    otp = db.execute(select(OtpCode)).scalar()
    assert otp.verifie is True
    assert otp.date_verification is not None

    assert otp_service.verifier_otp(db, TELEPHONE, code).success is False


def test_mauvais_code_compte_une_tentative(db):
    generer(db)
    otp = dernier_code(db)
    faux = "000000" if otp.code != "000000" else "111111"

    result = otp_service.verifier_otp(db, TELEPHONE, faux)
    assert result.success is False
    assert result.message == "Code OTP invalide."
    assert dernier_code(db).tentatives == 1


def test_trop_de_tentatives_meme_avec_le_bon_code(db):
    generer(db)
    code = dernier_code(db).code
    faux = "000000" if code != "000000" else "111111"
    for _ in range(3):
        otp_service.verifier_otp(db, TELEPHONE, faux)

    result = otp_service.verifier_otp(db, TELEPHONE, code)
    assert result.success is False
    assert "maximum" in result.message
    assert count_codes(db) == 0


def test_code_expire(db):
    generer(db)
    otp = dernier_code(db)
    otp.date_expiration = datetime.now() - timedelta(minutes=1)
    db.commit()

    result = otp_service.verifier_otp(db, TELEPHONE, otp.code)
    assert result.success is False
    assert result.message == "Code OTP expiré."
    assert count_codes(db) == 0


def test_aucun_code_pour_ce_numero(db):
    assert otp_service.verifier_otp(db, "+22997000000", "123456").success is False


# --- Nettoyage ---

def test_nettoyer_otp_expires(db):
    now = datetime.now()
    db.add_all([
        OtpCode(telephone="+22990000001", code="111111", date_expiration=now - timedelta(minutes=1)),
        OtpCode(
            telephone="+22990000002", code="222222", verifie=True,
            date_expiration=now + timedelta(minutes=5), date_verification=now - timedelta(days=2),
        ),
        OtpCode(telephone="+22990000003", code="333333", date_expiration=now + timedelta(minutes=5)),
    ])
    db.commit()

    assert otp_service.nettoyer_otp_expires(db) == 2
    assert count_codes(db) == 1


# --- Schémas ---

def test_telephone_normalise():
    assert OtpRequest(telephone="+229 90-00.00 00").telephone == "+22990000000"


def test_telephone_invalide():
    with pytest.raises(ValidationError, match="téléphone"):
        OtpRequest(telephone="abc")


@pytest.mark.parametrize("code", ["12345", "1234567", "12a456"])
def test_code_six_chiffres(code):
    with pytest.raises(ValidationError):
        OtpVerify(telephone=TELEPHONE, code=code)
