"""
Schémas Pydantic pour les notifications in-app.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class NotificationResponse(BaseModel):
    id: uuid.UUID
    destinataire_id: uuid.UUID
    destinataire_type: str
    titre: str
    message: str
    data: Optional[dict] = None
    lu: bool
    date_envoi: Optional[datetime] = None
    date_lecture: Optional[datetime] = None

    model_config = {"from_attributes": True}
