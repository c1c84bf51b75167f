# app/api/dependencies.py
from typing import Type, Callable
from fastapi import Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.user import User
from app.schemas.users import PartnerIdentity
from app.services.directory_service import DirectoryService
from app.services.errors import ValidationError


def get_service(service_class: Type) -> Callable:
    """Factory function to create service dependencies with DB injection"""
    def _get_service(db: Session = Depends(get_db)):
        return service_class(db)
    return _get_service


def resolve_chat_partner(
    partner_email: str,
    current_user: User,
    directory: DirectoryService
) -> PartnerIdentity:
    """
    Resolve the partner named by a request and reject self-chats.

    The participant pair of every chat operation is derived from the caller
    and this partner, never from a client-supplied conversation id.
    """
    partner = directory.resolve_partner(partner_email)
    if partner.user_id == current_user.id:
        raise ValidationError("Cannot create chat with yourself")
    return partner
