#!/usr/bin/env python
# Conversation list: the user's chats, partner lookup and the active chat session
import logging
from typing import Callable, List, Optional

from client.api.base_service import APIError
from client.api.chat_service import ChatService
from client.chat.models import ChatEntry, Partner
from client.realtime.channel_client import ChannelClient
from client.session.state import SessionState

logger = logging.getLogger(__name__)

ClientFactory = Callable[[SessionState, Partner], ChannelClient]


class ConversationList:
    """
    Chats of the logged-in user, most recent first.

    At most one ChannelClient is open at a time; opening another partner's
    chat closes the previous one.
    """

    def __init__(
        self,
        user: SessionState,
        chat_service: Optional[ChatService] = None,
        client_factory: Optional[ClientFactory] = None
    ):
        self.user = user
        self.chat_service = chat_service or ChatService(state=user)
        self.client_factory = client_factory or self._default_factory
        self.entries: List[ChatEntry] = []
        self.active: Optional[ChannelClient] = None

    def _default_factory(self, user: SessionState, partner: Partner) -> ChannelClient:
        return ChannelClient(user, partner, chat_service=self.chat_service)

    async def refresh(self) -> List[ChatEntry]:
        """Reload the chat list from the gateway"""
        chats = await self.chat_service.get_chats()
        self.entries = [ChatEntry.from_api(chat) for chat in chats]
        return self.entries

    def find_entry(self, user_id: Optional[str] = None, email: Optional[str] = None) -> Optional[ChatEntry]:
        email = email.strip().lower() if email else None
        for entry in self.entries:
            if user_id and entry.partner.user_id == user_id:
                return entry
            if email and entry.partner.email.lower() == email:
                return entry
        return None

    async def initiate_chat(self, partner_email: str) -> ChatEntry:
        """
        Start or reuse the chat with an advertiser.

        An existing entry for the same partner is reused; otherwise the
        gateway finds or creates the conversation. Raises APIError when the
        partner is unknown or is the current user.
        """
        existing = self.find_entry(email=partner_email)
        if existing:
            return existing

        created = await self.chat_service.create_chat(partner_email)
        partner = Partner.from_api(created.get("partner") or {})

        # The list may already hold this partner under a different email casing
        existing = self.find_entry(user_id=partner.user_id)
        if existing:
            return existing

        entry = ChatEntry(chat_id=created.get("chatId", ""), partner=partner)
        self.entries.insert(0, entry)
        logger.info(f"Chat {entry.chat_id} ready with {partner.email}")
        return entry

    async def activate(self, partner: Partner) -> ChannelClient:
        """Make a partner's chat the active one without attaching yet"""
        if self.active is not None:
            if self.active.partner.user_id == partner.user_id and not self.active.closed:
                return self.active
            await self.close_active()

        self.active = self.client_factory(self.user, partner)
        return self.active

    async def open_chat(self, partner: Partner) -> ChannelClient:
        """Open the realtime session with a partner, closing any other"""
        client = await self.activate(partner)
        await client.open()
        return client

    async def close_active(self) -> None:
        client, self.active = self.active, None
        if client is not None:
            await client.close()

    async def refresh_quietly(self) -> None:
        """Refresh the list, logging instead of raising on gateway errors"""
        try:
            await self.refresh()
        except APIError as e:
            logger.warning(f"Could not refresh chats: {e.detail}")
