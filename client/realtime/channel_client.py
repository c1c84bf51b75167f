#!/usr/bin/env python
# Binds a chat view to the realtime channel of a participant pair
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from app.services.pairing import channel_name
from client.api.base_service import APIError
from client.api.chat_service import ChatService
from client.chat.models import ChatMessage, Partner
from client.chat.transcript import Transcript
from client.realtime.cancellation import CancellationToken
from client.realtime.states import ChannelState, backoff_delay, transition
from client.realtime.transport import (
    ConnectionManager,
    RealtimeChannel,
    TransportError,
    connection_manager,
)
from client.session.state import SessionState
from client.utils.config import config

logger = logging.getLogger(__name__)

MESSAGE_EVENT = "message"

CONNECT_FAILED = "Failed to connect to chat after multiple attempts. Please check your network or try again later."
CONNECTION_LOST = "Connection lost. Reconnecting..."
HISTORY_FAILED = "Failed to load messages. Please try again."
SEND_FAILED = "Failed to send message. Please try again."
SESSION_EXPIRED = "Session expired. Please log in again."
EMPTY_MESSAGE = "Please enter a message."
NOT_ATTACHED = "Channel is not attached"

# Channels with an attach currently in flight, across all clients
_attaching: Set[str] = set()


class ChannelClient:
    """
    Realtime session for one conversation.

    State machine: detached -> attaching -> attached, with failed and
    suspended leading back to attaching. Attach attempts are bounded by a
    timeout each and retried with exponential backoff up to a fixed count;
    once exhausted the client stays failed until opened again.
    """

    def __init__(
        self,
        user: SessionState,
        partner: Partner,
        connections: Optional[ConnectionManager] = None,
        chat_service: Optional[ChatService] = None,
        attach_timeout: Optional[float] = None,
        max_attempts: Optional[int] = None,
        backoff_base: Optional[float] = None,
        backoff_max: Optional[float] = None,
        history_limit: Optional[int] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        on_change: Optional[Callable[[], None]] = None,
    ):
        self.user = user
        self.partner = partner
        self.connections = connections or connection_manager
        self.chat_service = chat_service or ChatService(state=user)
        self.attach_timeout = attach_timeout if attach_timeout is not None else config.attach_timeout
        self.max_attempts = max_attempts or config.max_attach_attempts
        self.backoff_base = backoff_base if backoff_base is not None else config.backoff_base
        self.backoff_max = backoff_max if backoff_max is not None else config.backoff_max
        self.history_limit = history_limit or config.history_limit
        self.sleep = sleep

        self.channel_name = channel_name(user.user_id, partner.user_id)
        self.transcript = Transcript(on_change)
        self.state = ChannelState.DETACHED
        self.attach_attempts = 0

        self._channel: Optional[RealtimeChannel] = None
        self._connection = None
        self._token = CancellationToken()
        self._attach_task: Optional[asyncio.Task] = None
        self._background: List[asyncio.Task] = []

    # State

    def _set_state(self, target: ChannelState) -> None:
        if target is self.state:
            return
        self.state = transition(self.state, target)
        logger.debug(f"Channel {self.channel_name} -> {target.value}")

    @property
    def closed(self) -> bool:
        return self._token.cancelled

    # Lifecycle

    async def open(self) -> ChannelState:
        """
        Attach to the conversation's channel, replay history and subscribe.

        A second call while an attach for the same channel is in flight is a
        no-op. Returns the resulting state.
        """
        if self.closed:
            self._token = CancellationToken()
        if self.channel_name in _attaching or self.state is ChannelState.ATTACHED:
            logger.info(f"Attach in progress for {self.channel_name}, skipping")
            return self.state

        self.transcript.set_status(None)
        self.transcript.set_loading(True)
        task = self._start_attach()
        try:
            await task
        except asyncio.CancelledError:
            if not self.closed:
                raise
        return self.state

    def _start_attach(self) -> asyncio.Task:
        # Claimed before the task first runs, so a call in the same tick sees it
        _attaching.add(self.channel_name)
        self.attach_attempts = 0
        self._attach_task = asyncio.create_task(self._attach_loop(self._token))
        self._attach_task.add_done_callback(self._release_attach)
        return self._attach_task

    def _release_attach(self, task: asyncio.Task) -> None:
        _attaching.discard(self.channel_name)

    async def _attach_loop(self, token: CancellationToken) -> None:
        for attempt in range(1, self.max_attempts + 1):
            if token.cancelled:
                return
            self._set_state(ChannelState.ATTACHING)
            self.attach_attempts += 1
            logger.info(f"Attempting to attach channel {self.channel_name}, attempt {attempt}")
            try:
                await asyncio.wait_for(self._attach_once(), self.attach_timeout)
            except (TransportError, asyncio.TimeoutError) as e:
                if token.cancelled:
                    return
                logger.warning(f"Channel attach error on {self.channel_name}: {str(e) or 'timed out'}")
                self._set_state(ChannelState.FAILED)
                if attempt < self.max_attempts:
                    await self.sleep(backoff_delay(attempt, self.backoff_base, self.backoff_max))
                continue

            if token.cancelled:
                return
            self._set_state(ChannelState.ATTACHED)
            logger.info(f"Channel {self.channel_name} attached")
            await self._replay_history(token)
            return

        logger.error(f"Giving up on {self.channel_name} after {self.attach_attempts} attempts")
        self.transcript.set_loading(False)
        self.transcript.set_status(CONNECT_FAILED)

    async def _attach_once(self) -> None:
        self._connection = await self.connections.acquire()
        channel = self._connection.get_channel(self.channel_name)
        if channel is not self._channel:
            self._unbind()
            self._channel = channel
            channel.on_state_change(self._handle_channel_state)
        # Subscribe before attaching so nothing published after attach is missed
        channel.subscribe(self._handle_message)
        await channel.attach()

    async def _replay_history(self, token: CancellationToken) -> None:
        try:
            history = await self._load_history()
        except (TransportError, APIError) as e:
            if token.cancelled:
                return
            logger.error(f"Error fetching chat history: {str(e)}")
            self.transcript.notify(HISTORY_FAILED)
        else:
            if token.cancelled:
                return
            self.transcript.merge_history(history)
        self.transcript.set_loading(False)

    async def _load_history(self) -> List[ChatMessage]:
        """Channel history oldest first, falling back to the gateway's durable log"""
        items = await self._channel.history(self.history_limit)
        if items:
            return [ChatMessage.from_channel(item) for item in reversed(items)]

        persisted = await self.chat_service.get_messages(self.partner.email, self.history_limit)
        return [self._from_gateway(item) for item in persisted]

    def _from_gateway(self, item: Dict[str, Any]) -> ChatMessage:
        mine = item.get("senderId") in ("me", self.user.user_id)
        return ChatMessage(
            sender=(self.user.name or "You") if mine else self.partner.name,
            sender_id=self.user.user_id if mine else self.partner.user_id,
            sender_email=(self.user.email if mine else self.partner.email) or "",
            receiver_id=self.partner.user_id if mine else self.user.user_id,
            text=item.get("content", ""),
            timestamp=item.get("createdAt", "")
        )

    async def close(self) -> None:
        """Unsubscribe, detach and release the shared connection"""
        self._token.cancel()

        if self._attach_task and not self._attach_task.done():
            self._attach_task.cancel()
            try:
                await self._attach_task
            except asyncio.CancelledError:
                pass
        self._attach_task = None

        for task in self._background:
            task.cancel()
        self._background.clear()

        channel = self._channel
        if channel is not None:
            channel.unsubscribe(self._handle_message)
            self._unbind()
            if channel.state in ("attached", "attaching"):
                try:
                    await channel.detach()
                except TransportError as e:
                    logger.error(f"Error detaching channel: {str(e)}")
            if self._connection is not None:
                self._connection.release_channel(self.channel_name)

        self._channel = None
        self._connection = None
        if self.state is not ChannelState.DETACHED:
            self._set_state(ChannelState.DETACHED)
        await self.connections.release_if_unused()

    def _unbind(self) -> None:
        if self._channel is not None:
            self._channel.off_state_change(self._handle_channel_state)

    # Transport callbacks

    def _handle_message(self, message: Dict[str, Any]) -> None:
        if self.closed or message.get("name", MESSAGE_EVENT) != MESSAGE_EVENT:
            return
        chat_message = ChatMessage.from_channel(message)
        if self.transcript.add(chat_message) and chat_message.sender_id == self.partner.user_id:
            self._spawn(self._sync_preview(chat_message.text))

    def _handle_channel_state(self, state: str, reason: Optional[str]) -> None:
        if self.closed or state != "suspended" or self.state is not ChannelState.ATTACHED:
            return
        logger.warning(f"Channel {self.channel_name} suspended: {reason}")
        self._set_state(ChannelState.SUSPENDED)
        self.transcript.notify(CONNECTION_LOST)
        self._spawn(self._reattach())

    async def _reattach(self) -> None:
        if self.channel_name in _attaching:
            return
        await self._start_attach()

    async def _sync_preview(self, text: str) -> None:
        """Keep the conversation-list preview in step with live messages"""
        try:
            await self.chat_service.update_preview(self.partner.email, text)
        except APIError as e:
            logger.warning(f"Preview update failed for {self.partner.email}: {e.detail}")

    def _spawn(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._background.append(task)
        task.add_done_callback(self._forget)

    def _forget(self, task: asyncio.Task) -> None:
        if task in self._background:
            self._background.remove(task)

    # Sending

    async def send(self, text: str) -> bool:
        """
        Publish a message to the peer and persist it through the gateway.

        The two run independently; either failing yields one notice. While
        the channel is not attached the message is still persisted and the
        skipped publish counts as the failure. Returns True when both
        succeeded.
        """
        text = (text or "").strip()
        if not text:
            self.transcript.notify(EMPTY_MESSAGE)
            return False

        message = ChatMessage(
            sender=self.user.name or self.user.email or "Guest",
            sender_id=self.user.user_id,
            sender_email=self.user.email or "",
            receiver_id=self.partner.user_id,
            receiver_email=self.partner.email,
            text=text
        )

        published, persisted = await asyncio.gather(
            self._publish(message),
            self.chat_service.send_message(self.partner.email, text),
            return_exceptions=True
        )
        if self.closed:
            return False

        if not isinstance(published, BaseException):
            message.id = published
            self.transcript.add(message)

        failures = [r for r in (published, persisted) if isinstance(r, BaseException)]
        for failure in failures:
            logger.error(f"Error sending message or saving chat: {str(failure)}")
        if not failures:
            return True

        if isinstance(persisted, APIError) and persisted.is_auth_error:
            self.transcript.notify(SESSION_EXPIRED)
        else:
            self.transcript.notify(SEND_FAILED)
        return False

    async def _publish(self, message: ChatMessage) -> str:
        if self._channel is None or self.state is not ChannelState.ATTACHED:
            raise TransportError(NOT_ATTACHED)
        return await self._channel.publish(MESSAGE_EVENT, message.to_payload())
