"""
Schema definitions for the application.
This module exports all schemas for easy importing throughout the app.
"""

# Import from base
from app.schemas.base import CamelModel

# Import from auth
from app.schemas.auth import (
    LoginRequest, RefreshTokenRequest, TokenResponse
)

# Import from users
from app.schemas.users import PartnerIdentity, UNKNOWN_NAME, UNKNOWN_EMAIL

# Import from chats
from app.schemas.chats import (
    ChatCreateRequest, ChatCreateResponse, ChatSummary, MessageCreate,
    MessageResponse, HistoryMessage, ChatPreviewUpdate, Acknowledgement
)
