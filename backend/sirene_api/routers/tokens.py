"""
Router pour les tokens sirène : vérification du chiffré présenté par une sirène
et consultation du token actif d'un abonnement.
"""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from sirene_api.database import get_db
from sirene_api.exceptions import NotFoundError
from sirene_api.schemas.abonnement import TokenResponse, TokenVerificationRequest, TokenVerificationResponse
from sirene_api.schemas.common import ApiResponse, ok
from sirene_api.services import abonnement_service, token_service

router = APIRouter(prefix="/api/v1/tokens", tags=["Tokens sirène"])


@router.post("/verifier", response_model=ApiResponse[TokenVerificationResponse], summary="Vérifier un token")
def verifier_token(data: TokenVerificationRequest, db: Session = Depends(get_db)):
    """
    Vérifie un token chiffré : connu, actif, déchiffrable, non expiré
    et cohérent avec sa sirène. Un token invalide n'est pas une erreur HTTP.
    """
    resultat = token_service.verifier_token_crypte(db, data.token_crypte)
    message = "Token valide." if resultat["valide"] else resultat["motif"]
    return ok(resultat, message)


@router.get("/abonnement/{abonnement_id}", response_model=ApiResponse[TokenResponse],
            summary="Token actif d'un abonnement")
def get_token_actif(abonnement_id: uuid.UUID, db: Session = Depends(get_db)):
    abonnement_service.get_abonnement_or_404(db, abonnement_id)
    token = token_service.get_token_actif(db, abonnement_id)
    if token is None:
        raise NotFoundError("Aucun token actif pour cet abonnement.")
    response = TokenResponse.model_validate(token)
    response.token_formate = token_service.formater_token(token)
    return ok(response)
