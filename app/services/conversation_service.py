# app/services/conversation_service.py
import logging
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from sqlalchemy import or_
from typing import List, Optional, Tuple

from app.models.conversation import Conversation
from app.models.mixins import utcnow
from app.services.errors import ValidationError, ConversationNotFound
from app.services.pairing import canonical_pair, InvalidPair

logger = logging.getLogger(__name__)


class ConversationService:
    """Service for handling conversation operations"""
    
    def __init__(self, db: Session):
        self.db = db
    
    @staticmethod
    def _pair(first: str, second: str) -> Tuple[str, str]:
        try:
            return canonical_pair(first, second)
        except InvalidPair as e:
            raise ValidationError(str(e))
    
    def _lookup(self, low: str, high: str) -> Optional[Conversation]:
        return self.db.query(Conversation).filter(
            Conversation.participant_a == low,
            Conversation.participant_b == high
        ).first()
    
    def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        """Get a conversation by ID"""
        return self.db.query(Conversation).filter(Conversation.id == conversation_id).first()
    
    def find(self, first: str, second: str) -> Optional[Conversation]:
        """Find the conversation between two participants without creating it"""
        return self._lookup(*self._pair(first, second))
    
    def find_or_create(self, first: str, second: str) -> Tuple[Conversation, bool]:
        """
        Return the conversation between two participants, creating it if needed.
        
        The unique constraint on the canonical pair decides concurrent first
        contact: the losing insert rolls back and reads the winner's row.
        
        Returns:
            Tuple of (conversation, created).
        """
        low, high = self._pair(first, second)
        existing = self._lookup(low, high)
        if existing:
            return existing, False
        
        conversation = Conversation(participant_a=low, participant_b=high, last_message=None)
        self.db.add(conversation)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            logger.info(f"Concurrent conversation insert for {low}/{high}, reusing existing record")
            existing = self._lookup(low, high)
            if existing is None:
                raise
            return existing, False
        
        self.db.refresh(conversation)
        logger.info(f"New chat created: {conversation.id}")
        return conversation, True
    
    def list_for_participant(self, user_id: str) -> List[Conversation]:
        """Get all conversations containing a user, most recently updated first"""
        return self.db.query(Conversation).filter(
            or_(
                Conversation.participant_a == user_id,
                Conversation.participant_b == user_id
            )
        ).order_by(Conversation.updated_at.desc(), Conversation.id).all()
    
    def update_preview(self, conversation_id: str, text: str) -> Conversation:
        """Set the conversation-list preview text and bump updated_at"""
        conversation = self.get_conversation(conversation_id)
        if not conversation:
            raise ConversationNotFound("Chat not found")
        
        text = (text or "").strip()
        if not text:
            raise ValidationError("Last message is required.")
        
        conversation.last_message = text
        conversation.updated_at = utcnow()
        self.db.commit()
        self.db.refresh(conversation)
        return conversation
