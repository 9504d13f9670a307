"""
Dépendances partagées par les routers.
"""

import uuid
from typing import List

from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from sirene_api.database import get_db
from sirene_api.models.user import User

ROLE_ADMIN = "ADMIN"


def get_admin_recipients(db: Session = Depends(get_db)) -> List[uuid.UUID]:
    """Destinataires des notifications d'administration : les admins actifs."""
    return list(db.execute(
        select(User.id).where(User.role == ROLE_ADMIN, User.actif.is_(True))
    ).scalars().all())
