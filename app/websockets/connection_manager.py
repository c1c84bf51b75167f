# app/websockets/connection_manager.py
from collections import defaultdict, deque
import logging
from datetime import datetime, timezone
from typing import Dict, Any, Deque, List, Set
from fastapi import HTTPException, WebSocket, WebSocketDisconnect, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.api.auth import authenticate_token
from app.config import get_settings
from app.models.mixins import generate_uuid
from app.websockets.event_dispatcher import EventRegistry, error_frame

logger = logging.getLogger(__name__)


class ChannelMessage(BaseModel):
    """A message published on a realtime channel"""
    id: str = Field(default_factory=generate_uuid)
    name: str
    data: Dict[str, Any]
    client_id: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ChannelHub:
    """
    Named pub/sub channels with a bounded per-channel history.

    A websocket attached to a channel receives every message published on
    it afterwards; history replay covers what was published before.
    """
    
    def __init__(self, history_size: int = 100):
        self.history_size = history_size
        self.subscribers: Dict[str, Set[WebSocket]] = defaultdict(set)
        self.messages: Dict[str, Deque[ChannelMessage]] = {}
    
    async def attach(self, channel: str, websocket: WebSocket):
        self.subscribers[channel].add(websocket)
        logger.info(f"Channel {channel} attached ({len(self.subscribers[channel])} subscribers)")
    
    async def detach(self, channel: str, websocket: WebSocket):
        members = self.subscribers.get(channel)
        if members is None:
            return
        members.discard(websocket)
        if not members:
            del self.subscribers[channel]
        logger.info(f"Channel {channel} detached")
    
    async def disconnect(self, websocket: WebSocket):
        """Detach a websocket from every channel it joined"""
        for channel in [name for name, members in self.subscribers.items() if websocket in members]:
            await self.detach(channel, websocket)
    
    def subscriber_count(self, channel: str) -> int:
        return len(self.subscribers.get(channel, ()))
    
    async def publish(self, channel: str, name: str, data: Dict[str, Any], client_id: str) -> ChannelMessage:
        message = ChannelMessage(name=name, data=data, client_id=client_id)
        self.messages.setdefault(channel, deque(maxlen=self.history_size)).append(message)
        
        frame = {
            "id": None,
            "action": "message",
            "channel": channel,
            "message": message.model_dump(mode="json")
        }
        for websocket in list(self.subscribers.get(channel, ())):
            try:
                await websocket.send_json(frame)
            except Exception as e:
                logger.warning(f"Dropping subscriber of {channel}: {str(e)}")
                await self.disconnect(websocket)
        return message
    
    def history(self, channel: str, limit: int = 50) -> List[ChannelMessage]:
        """Most recent messages of a channel, newest first"""
        stored = self.messages.get(channel)
        if not stored:
            return []
        return list(reversed(stored))[:limit]


channel_hub = ChannelHub(get_settings().REALTIME_HISTORY_SIZE)
event_registry = EventRegistry(channel_hub)


async def handle_realtime_connection(
    websocket: WebSocket,
    access_token: str,
    db: Session
):
    try:
        await websocket.accept()
    except Exception as e:
        logger.error(f"Failed to accept WebSocket connection: {str(e)}")
        return
    
    try:
        user = authenticate_token(access_token, db)
    except HTTPException as e:
        await websocket.send_json(error_frame(None, f"Authentication error: {e.detail}"))
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    
    user_id = user.id
    logger.info(f"Realtime connection opened for user {user_id}")
    
    try:
        while True:
            data = await websocket.receive_json()
            if not isinstance(data, dict):
                await websocket.send_json(error_frame(None, "Invalid frame"))
                continue
            await event_registry.dispatcher.dispatch(websocket, data, user_id)
    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected: user {user_id}")
    except Exception as e:
        logger.error(f"Error processing frame: {str(e)}")
    finally:
        await channel_hub.disconnect(websocket)
        logger.info(f"Connection closed for user {user_id}")
