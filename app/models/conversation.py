# app/models/conversation.py
from sqlalchemy import Column, String, Text, CheckConstraint, UniqueConstraint, Index
from sqlalchemy.orm import relationship
from app.database import Base
from app.models.mixins import TimestampMixin, generate_uuid


class Conversation(Base, TimestampMixin):
    """
    A two-party chat between a prospective buyer/renter and an advertiser.

    The participant pair is stored in canonical (sorted) order so that the
    unique constraint covers both directions of initiation.
    """
    __tablename__ = "conversations"
    
    id = Column(String(36), primary_key=True, default=generate_uuid, index=True)
    participant_a = Column(String(128), nullable=False)
    participant_b = Column(String(128), nullable=False)
    last_message = Column(Text, nullable=True)
    
    messages = relationship(
        "Message",
        back_populates="conversation",
        order_by="Message.seq",
        cascade="all, delete-orphan",
    )
    
    __table_args__ = (
        UniqueConstraint("participant_a", "participant_b", name="uq_conversations_pair"),
        CheckConstraint("participant_a < participant_b", name="check_canonical_pair"),
        Index("ix_conversations_participant_b", "participant_b"),
    )
    
    @property
    def participants(self):
        return (self.participant_a, self.participant_b)
    
    def has_participant(self, user_id: str) -> bool:
        return user_id in self.participants
    
    def partner_of(self, user_id: str) -> str:
        """Return the other participant's id"""
        return self.participant_b if user_id == self.participant_a else self.participant_a
    
    def __repr__(self):
        return f"<Conversation {self.id} - {self.participant_a}/{self.participant_b}>"
