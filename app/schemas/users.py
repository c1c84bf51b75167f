# app/schemas/users.py
from typing import Optional

from app.schemas.base import CamelModel

UNKNOWN_NAME = "Unknown"
UNKNOWN_EMAIL = "unknown@email.com"


class PartnerIdentity(CamelModel):
    """Display identity of a chat partner as resolved by the user directory"""
    user_id: str
    name: str = UNKNOWN_NAME
    email: str = UNKNOWN_EMAIL
    picture: Optional[str] = None

    @classmethod
    def placeholder(cls, user_id: str) -> "PartnerIdentity":
        """Identity shown when the directory lookup fails"""
        return cls(user_id=user_id)
