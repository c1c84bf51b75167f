# app/services/message_service.py
from sqlalchemy.orm import Session
from typing import List, Optional

from app.models.message import Message
from app.models.conversation import Conversation
from app.models.mixins import utcnow
from app.services.errors import ValidationError, ConversationNotFound, NotParticipant

DEFAULT_HISTORY_LIMIT = 50


class MessageService:
    """Service for handling message operations."""
    
    def __init__(self, db: Session):
        self.db = db
    
    def append_message(
        self, 
        conversation_id: str, 
        sender_id: str, 
        content: str
    ) -> Message:
        """
        Persist a new message and update the conversation preview.

        Args:
            conversation_id: ID of the conversation.
            sender_id: ID of the sending participant.
            content: The message content; stored trimmed.
            
        Returns:
            The created Message instance.

        Raises:
            ConversationNotFound: the conversation does not exist.
            NotParticipant: the sender is not one of the two participants.
            ValidationError: the content is empty after trimming.
        """
        conversation = self.db.query(Conversation).filter(
            Conversation.id == conversation_id
        ).first()
        if not conversation:
            raise ConversationNotFound("Chat not found")
        
        if not conversation.has_participant(sender_id):
            raise NotParticipant("You are not a participant of this chat")
        
        text = (content or "").strip()
        if not text:
            raise ValidationError("Message content is required.")
        
        # created_at never goes backwards within a conversation.
        created_at = utcnow()
        latest = self._latest(conversation_id)
        if latest and latest.created_at > created_at:
            created_at = latest.created_at
        
        message = Message(
            content=text,
            conversation_id=conversation_id,
            sender_id=sender_id,
            created_at=created_at
        )
        self.db.add(message)
        
        conversation.last_message = text
        conversation.updated_at = created_at
        self.db.commit()
        self.db.refresh(message)
        
        return message
    
    def _latest(self, conversation_id: str) -> Optional[Message]:
        return self.db.query(Message).filter(
            Message.conversation_id == conversation_id
        ).order_by(Message.created_at.desc(), Message.seq.desc()).first()
    
    def get_history(self, conversation_id: str, limit: int = DEFAULT_HISTORY_LIMIT) -> List[Message]:
        """
        Most recent messages of a conversation, returned oldest first.
        """
        if limit < 1:
            return []
        
        newest_first = self.db.query(Message).filter(
            Message.conversation_id == conversation_id
        ).order_by(Message.created_at.desc(), Message.seq.desc()).limit(limit).all()
        
        newest_first.reverse()
        return newest_first
