# app/api/v1/chats.py
import logging
from fastapi import APIRouter, Depends, Query, Response, status
from typing import List, Optional
from pydantic import EmailStr

from app.config import get_settings
from app.schemas import (
    Acknowledgement,
    ChatCreateRequest,
    ChatCreateResponse,
    ChatPreviewUpdate,
    ChatSummary,
    HistoryMessage,
    MessageCreate,
    MessageResponse,
)
from app.api.auth import get_current_user
from app.api.dependencies import get_service, resolve_chat_partner
from app.services.conversation_service import ConversationService
from app.services.directory_service import DirectoryService
from app.services.errors import ConversationNotFound, ValidationError
from app.services.message_service import MessageService
from app.models.user import User

logger = logging.getLogger(__name__)

router = APIRouter()

SELF_SENDER = "me"


@router.post("", response_model=ChatCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_chat(
    request: ChatCreateRequest,
    response: Response,
    current_user: User = Depends(get_current_user),
    directory: DirectoryService = Depends(get_service(DirectoryService)),
    conversation_service: ConversationService = Depends(get_service(ConversationService)),
):
    """
    Open the chat with a partner, creating the conversation on first contact.
    
    Returns 201 when the conversation was created and 200 when it already existed.
    """
    logger.info(f"Creating chat for user {current_user.id} with partner {request.partner_email}")
    partner = resolve_chat_partner(request.partner_email, current_user, directory)
    
    conversation, created = conversation_service.find_or_create(current_user.id, partner.user_id)
    if not created:
        logger.info(f"Existing chat found: {conversation.id}")
        response.status_code = status.HTTP_200_OK
    
    return ChatCreateResponse(chat_id=conversation.id, partner=partner)


@router.get("/me", response_model=List[ChatSummary])
async def list_my_chats(
    current_user: User = Depends(get_current_user),
    directory: DirectoryService = Depends(get_service(DirectoryService)),
    conversation_service: ConversationService = Depends(get_service(ConversationService)),
):
    """
    Get the caller's chats, most recent first, each with the partner's display identity.
    
    A failed partner lookup yields a placeholder identity for that entry only.
    """
    conversations = conversation_service.list_for_participant(current_user.id)
    
    return [
        ChatSummary(
            chat_id=conversation.id,
            partner=directory.resolve_or_placeholder(conversation.partner_of(current_user.id)),
            last_message=conversation.last_message,
            updated_at=conversation.updated_at,
        )
        for conversation in conversations
    ]


@router.post("/messages", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def send_message(
    request: MessageCreate,
    current_user: User = Depends(get_current_user),
    directory: DirectoryService = Depends(get_service(DirectoryService)),
    conversation_service: ConversationService = Depends(get_service(ConversationService)),
    message_service: MessageService = Depends(get_service(MessageService)),
):
    """
    Persist a message to a partner, creating the conversation if needed.
    
    Blank content is rejected before anything is written.
    """
    if not request.content.strip():
        raise ValidationError("Message content is required.")
    partner = resolve_chat_partner(request.partner_email, current_user, directory)
    
    conversation, _ = conversation_service.find_or_create(current_user.id, partner.user_id)
    message = message_service.append_message(
        conversation_id=conversation.id,
        sender_id=current_user.id,
        content=request.content
    )
    
    return MessageResponse(
        id=message.id,
        chat_id=message.conversation_id,
        sender_id=message.sender_id,
        content=message.content,
        created_at=message.created_at,
    )


@router.get("/messages", response_model=List[HistoryMessage])
async def get_messages(
    partner_email: EmailStr = Query(..., alias="partnerEmail"),
    limit: Optional[int] = Query(None, ge=1),
    current_user: User = Depends(get_current_user),
    directory: DirectoryService = Depends(get_service(DirectoryService)),
    conversation_service: ConversationService = Depends(get_service(ConversationService)),
    message_service: MessageService = Depends(get_service(MessageService)),
):
    """
    Get the message history with a partner, oldest first.
    
    A chat that has not been started yet has no history: returns an empty list.
    """
    settings = get_settings()
    limit = min(limit or settings.CHAT_HISTORY_LIMIT, settings.CHAT_HISTORY_MAX_LIMIT)
    
    partner = resolve_chat_partner(partner_email.strip().lower(), current_user, directory)
    conversation = conversation_service.find(current_user.id, partner.user_id)
    if not conversation:
        return []
    
    return [
        HistoryMessage(
            sender_id=SELF_SENDER if message.sender_id == current_user.id else message.sender_id,
            content=message.content,
            created_at=message.created_at,
        )
        for message in message_service.get_history(conversation.id, limit)
    ]


@router.put("/update", response_model=Acknowledgement)
async def update_chat_preview(
    request: ChatPreviewUpdate,
    current_user: User = Depends(get_current_user),
    directory: DirectoryService = Depends(get_service(DirectoryService)),
    conversation_service: ConversationService = Depends(get_service(ConversationService)),
):
    """
    Update the conversation-list preview text of an existing chat.
    """
    if not request.last_message.strip():
        raise ValidationError("Last message is required.")
    partner = resolve_chat_partner(request.partner_email, current_user, directory)
    conversation = conversation_service.find(current_user.id, partner.user_id)
    if not conversation:
        raise ConversationNotFound("Chat not found")
    
    conversation_service.update_preview(conversation.id, request.last_message)
    return Acknowledgement(message="Chat updated")
