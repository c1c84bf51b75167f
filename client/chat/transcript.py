#!/usr/bin/env python
# In-memory transcript of one chat view
from typing import Callable, Iterable, List, Optional, Set

from client.chat.models import ChatMessage


class Transcript:
    """
    Messages displayed for a chat, plus the user-facing notices.

    `notices` are one-off, dismissable errors (a failed send); `status` is
    the persistent connectivity banner shown after attach retries run out.
    """
    
    def __init__(self, on_change: Optional[Callable[[], None]] = None):
        self.messages: List[ChatMessage] = []
        self.loading = False
        self.notices: List[str] = []
        self.status: Optional[str] = None
        self.on_change = on_change
        self._ids: Set[str] = set()
    
    def _changed(self) -> None:
        if self.on_change:
            self.on_change()
    
    def contains(self, message_id: Optional[str]) -> bool:
        return message_id is not None and message_id in self._ids
    
    def add(self, message: ChatMessage) -> bool:
        """Append a live message in arrival order; returns False for duplicates"""
        if self.contains(message.id):
            return False
        if message.id is not None:
            self._ids.add(message.id)
        self.messages.append(message)
        self._changed()
        return True
    
    def merge_history(self, history: Iterable[ChatMessage]) -> None:
        """
        Put replayed history (oldest first) ahead of messages that arrived live
        while it was being fetched, dropping any that appear in both.
        """
        replayed: List[ChatMessage] = []
        seen: Set[str] = set()
        for message in history:
            if message.id is not None:
                if message.id in seen:
                    continue
                seen.add(message.id)
            replayed.append(message)
        
        live = [m for m in self.messages if m.id is None or m.id not in seen]
        self.messages = replayed + live
        self._ids = {m.id for m in self.messages if m.id is not None}
        self._changed()
    
    def set_loading(self, loading: bool) -> None:
        self.loading = loading
        self._changed()
    
    def notify(self, notice: str) -> None:
        self.notices.append(notice)
        self._changed()
    
    def dismiss(self, index: Optional[int] = None) -> None:
        """Dismiss one notice, or all of them"""
        if index is None:
            self.notices.clear()
        elif 0 <= index < len(self.notices):
            del self.notices[index]
        self._changed()
    
    def set_status(self, status: Optional[str]) -> None:
        self.status = status
        self._changed()
