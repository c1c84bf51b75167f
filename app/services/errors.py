# app/services/errors.py
from fastapi import status


class ChatError(Exception):
    """Base class for chat domain errors; carries the HTTP status the gateway maps it to"""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    
    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(detail)


class ValidationError(ChatError):
    """Empty message, self-chat or malformed participant id"""
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(ChatError):
    status_code = status.HTTP_404_NOT_FOUND


class PartnerNotFound(NotFoundError):
    """The user directory has no entry for the requested id or email"""


class ConversationNotFound(NotFoundError):
    pass


class NotParticipant(ChatError):
    """Caller tried to act on a conversation they are not part of"""
    status_code = status.HTTP_403_FORBIDDEN
