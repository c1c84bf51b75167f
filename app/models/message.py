# app/models/message.py
from sqlalchemy import Column, Integer, String, Text, ForeignKey, DateTime, Index
from sqlalchemy.orm import relationship
from app.database import Base
from app.models.mixins import generate_uuid, utcnow


class Message(Base):
    """Immutable chat message; seq breaks ties between equal created_at values"""
    __tablename__ = "messages"
    
    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String(36), unique=True, nullable=False, default=generate_uuid, index=True)
    content = Column(Text, nullable=False)
    sender_id = Column(String(128), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    
    conversation_id = Column(String(36), ForeignKey("conversations.id"), nullable=False, index=True)
    
    conversation = relationship("Conversation", back_populates="messages")
    
    __table_args__ = (
        Index('ix_messages_conversation_created', "conversation_id", "created_at", "seq"),
    )
    
    def __repr__(self):
        return f"<Message {self.id} in Conversation {self.conversation_id}>"
