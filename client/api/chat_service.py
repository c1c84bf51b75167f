#!/usr/bin/env python
# Message Gateway client: conversations, persisted messages and partner lookup
from typing import Dict, Any, List, Optional
from urllib.parse import quote

from client.api.base_service import BaseService


class ChatService(BaseService):
    """Service for chat-related API operations"""
    
    async def create_chat(self, partner_email: str) -> Dict[str, Any]:
        """Open (or find) the chat with a partner; returns {chatId, partner}"""
        return await self.post("/chats", {"partnerEmail": partner_email})
    
    async def get_chats(self) -> List[Dict[str, Any]]:
        """Get the current user's chats, most recent first"""
        return await self.get("/chats/me") or []
    
    async def send_message(self, partner_email: str, content: str) -> Dict[str, Any]:
        """Persist a message to a partner"""
        return await self.post("/chats/messages", {
            "partnerEmail": partner_email,
            "content": content
        })
    
    async def get_messages(self, partner_email: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Get persisted history with a partner, oldest first"""
        params: Dict[str, Any] = {"partnerEmail": partner_email}
        if limit:
            params["limit"] = limit
        return await self.get("/chats/messages", params=params) or []
    
    async def update_preview(self, partner_email: str, last_message: str) -> Dict[str, Any]:
        """Update the conversation-list preview of an existing chat"""
        return await self.put("/chats/update", {
            "partnerEmail": partner_email,
            "lastMessage": last_message
        })
    
    async def get_user_by_email(self, email: str) -> Dict[str, Any]:
        """Resolve a user through the directory"""
        return await self.get(f"/users/by-email/{quote(email)}")
    
    async def get_me(self) -> Dict[str, Any]:
        return await self.get("/users/me")
