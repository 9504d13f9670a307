"""
Router pour les notifications in-app.
"""

import uuid
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from sirene_api.database import get_db
from sirene_api.exceptions import NotFoundError
from sirene_api.schemas.common import ApiResponse, ok
from sirene_api.schemas.notification import NotificationResponse
from sirene_api.services import notification_service

router = APIRouter(prefix="/api/v1/notifications", tags=["Notifications"])


@router.get("/{destinataire_id}", response_model=ApiResponse[List[NotificationResponse]],
            summary="Notifications d'un destinataire")
def lister_notifications(destinataire_id: uuid.UUID, non_lues: bool = False, db: Session = Depends(get_db)):
    return ok(notification_service.lister_notifications(db, destinataire_id, non_lues=non_lues))


@router.put("/{notification_id}/lue", response_model=ApiResponse[NotificationResponse],
            summary="Marquer une notification comme lue")
def marquer_lue(notification_id: uuid.UUID, db: Session = Depends(get_db)):
    notification = notification_service.marquer_lue(db, notification_id)
    if notification is None:
        raise NotFoundError("Notification introuvable.")
    return ok(notification)
