"""
Router pour l'authentification par code OTP envoyé par SMS.
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from sirene_api.database import get_db
from sirene_api.exceptions import DomainError
from sirene_api.schemas.auth import OtpRequest, OtpResult, OtpVerify
from sirene_api.schemas.common import ApiResponse, ok
from sirene_api.services import otp_service

router = APIRouter(prefix="/api/v1/auth", tags=["Authentification"])


@router.post("/request-otp", response_model=ApiResponse[OtpResult], summary="Demander un code OTP")
def request_otp(data: OtpRequest, db: Session = Depends(get_db)):
    """
    Envoie un code à 6 chiffres par SMS.
    Les codes non vérifiés précédents du même numéro sont invalidés.
    """
    result = otp_service.generer_otp(db, data.telephone, data.type)
    if not result.success:
        raise HTTPException(status_code=503, detail=result.message)
    return ok(result, result.message)


@router.post("/verify-otp", response_model=ApiResponse[OtpResult], summary="Vérifier un code OTP")
def verify_otp(data: OtpVerify, db: Session = Depends(get_db)):
    result = otp_service.verifier_otp(db, data.telephone, data.code)
    if not result.success:
        raise DomainError(result.message)
    return ok(result, result.message)
