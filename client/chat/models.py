#!/usr/bin/env python
# Message and partner structures shared by the channel client, transcript and UI
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Dict, Any, Optional

UNKNOWN_NAME = "Unknown"
UNKNOWN_EMAIL = "unknown@email.com"


@dataclass
class Partner:
    """Display identity of the other participant"""
    user_id: str
    name: str = UNKNOWN_NAME
    email: str = UNKNOWN_EMAIL
    picture: Optional[str] = None
    
    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Partner":
        return cls(
            user_id=data.get("userId", ""),
            name=data.get("name") or UNKNOWN_NAME,
            email=data.get("email") or UNKNOWN_EMAIL,
            picture=data.get("picture")
        )


@dataclass
class ChatMessage:
    """
    A chat message as published on a channel.

    `id` is assigned by the realtime service and is used to de-duplicate
    history replay against live delivery; it is None for messages that
    came from the gateway history.
    """
    sender: str
    sender_id: str
    text: str
    sender_email: str = UNKNOWN_EMAIL
    receiver_id: str = ""
    receiver_email: str = UNKNOWN_EMAIL
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    id: Optional[str] = None
    
    def to_payload(self) -> Dict[str, Any]:
        """Channel payload in the wire field names"""
        return {
            "sender": self.sender,
            "senderId": self.sender_id,
            "senderEmail": self.sender_email,
            "receiverId": self.receiver_id,
            "receiverEmail": self.receiver_email,
            "text": self.text,
            "timestamp": self.timestamp,
        }
    
    @classmethod
    def from_channel(cls, message: Dict[str, Any]) -> "ChatMessage":
        """Build from a channel message {id, name, data, timestamp}"""
        data = message.get("data") or {}
        return cls(
            id=message.get("id"),
            sender=data.get("sender") or UNKNOWN_NAME,
            sender_id=data.get("senderId", ""),
            sender_email=data.get("senderEmail") or UNKNOWN_EMAIL,
            receiver_id=data.get("receiverId", ""),
            receiver_email=data.get("receiverEmail") or UNKNOWN_EMAIL,
            text=data.get("text", ""),
            timestamp=data.get("timestamp") or message.get("timestamp") or ""
        )
    
    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ChatEntry:
    """One row of the conversation list"""
    chat_id: str
    partner: Partner
    last_message: Optional[str] = None
    updated_at: Optional[str] = None
    
    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "ChatEntry":
        partner = data.get("partner") or {}
        return cls(
            chat_id=data.get("chatId", ""),
            partner=Partner.from_api(partner),
            last_message=data.get("lastMessage"),
            updated_at=data.get("updatedAt")
        )
