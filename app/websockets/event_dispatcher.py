# app/websockets/event_dispatcher.py
from datetime import datetime, timezone
from typing import Dict, Any, Callable, Awaitable, Optional

from fastapi import WebSocket
from pydantic import BaseModel, Field, ValidationError
import logging

from app.services.pairing import channel_members, InvalidPair

logger = logging.getLogger(__name__)


class RealtimeRequest(BaseModel):
    """A request frame sent by a realtime client"""
    id: Optional[str] = None
    action: str
    channel: str = ""
    name: str = "message"
    data: Dict[str, Any] = Field(default_factory=dict)
    limit: int = Field(50, ge=1, le=1000)


def error_frame(request_id: Optional[str], error: str) -> Dict[str, Any]:
    return {
        "id": request_id,
        "action": "error",
        "error": error,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


class EventDispatcher:
    """Dispatches realtime request frames to handlers based on their action."""
    
    def __init__(self):
        self.handlers: Dict[str, Callable[..., Awaitable[Dict[str, Any]]]] = {}
    
    def register_handler(self, action: str, handler: Callable[..., Awaitable[Dict[str, Any]]]):
        self.handlers[action] = handler
    
    async def dispatch(self, websocket: WebSocket, raw: Dict[str, Any], user_id: str):
        try:
            request = RealtimeRequest(**raw)
        except ValidationError as e:
            await websocket.send_json(error_frame(raw.get("id"), f"Invalid frame: {e.errors()[0]['msg']}"))
            return
        
        handler = self.handlers.get(request.action)
        if not handler:
            logger.warning(f"No handler registered for action: {request.action}")
            await websocket.send_json(error_frame(request.id, f"Unknown action: {request.action}"))
            return
        
        if request.action != "ping":
            try:
                channel_members(request.channel, user_id)
            except InvalidPair:
                await websocket.send_json(error_frame(request.id, f"Not authorized for channel {request.channel}"))
                return
        
        try:
            reply = await handler(websocket, request, user_id)
        except Exception as e:
            logger.error(f"Error in handler for {request.action}: {str(e)}")
            await websocket.send_json(error_frame(request.id, f"Error processing {request.action}: {str(e)}"))
            return
        
        await websocket.send_json({"id": request.id, **reply})


class EventRegistry:
    """Registry for all supported realtime actions."""
    
    def __init__(self, hub):
        self.hub = hub
        self.dispatcher = EventDispatcher()
        self._setup_handlers()
    
    def _setup_handlers(self):
        self.dispatcher.register_handler("attach", self.handle_attach)
        self.dispatcher.register_handler("detach", self.handle_detach)
        self.dispatcher.register_handler("publish", self.handle_publish)
        self.dispatcher.register_handler("history", self.handle_history)
        self.dispatcher.register_handler("ping", self.handle_ping)
    
    async def handle_attach(self, websocket: WebSocket, request: RealtimeRequest, user_id: str):
        await self.hub.attach(request.channel, websocket)
        return {"action": "attached", "channel": request.channel}
    
    async def handle_detach(self, websocket: WebSocket, request: RealtimeRequest, user_id: str):
        await self.hub.detach(request.channel, websocket)
        return {"action": "detached", "channel": request.channel}
    
    async def handle_publish(self, websocket: WebSocket, request: RealtimeRequest, user_id: str):
        message = await self.hub.publish(request.channel, request.name, request.data, user_id)
        return {"action": "published", "channel": request.channel, "messageId": message.id}
    
    async def handle_history(self, websocket: WebSocket, request: RealtimeRequest, user_id: str):
        items = self.hub.history(request.channel, request.limit)
        return {
            "action": "history",
            "channel": request.channel,
            "items": [item.model_dump(mode="json") for item in items]
        }
    
    async def handle_ping(self, websocket: WebSocket, request: RealtimeRequest, user_id: str):
        return {"action": "pong"}
