# app/schemas/chats.py
from typing import Optional
from datetime import datetime
from pydantic import EmailStr, field_validator

from app.schemas.base import CamelModel
from app.schemas.users import PartnerIdentity


class PartnerEmailMixin(CamelModel):
    partner_email: EmailStr

    @field_validator("partner_email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class ChatCreateRequest(PartnerEmailMixin):
    """Open (or find) the conversation with a partner"""


class ChatCreateResponse(CamelModel):
    chat_id: str
    partner: PartnerIdentity


class ChatSummary(CamelModel):
    """One entry of the caller's conversation list"""
    chat_id: str
    partner: PartnerIdentity
    last_message: Optional[str] = None
    updated_at: datetime


class MessageCreate(PartnerEmailMixin):
    """Message sent to a partner; blank content is rejected with 400 by the route"""
    content: str


class MessageResponse(CamelModel):
    """Persisted message returned after a send"""
    id: str
    chat_id: str
    sender_id: str
    content: str
    created_at: datetime


class HistoryMessage(CamelModel):
    """Message as replayed in history; sender_id is "me" for the caller's own messages"""
    sender_id: str
    content: str
    created_at: datetime


class ChatPreviewUpdate(PartnerEmailMixin):
    last_message: str


class Acknowledgement(CamelModel):
    message: str
