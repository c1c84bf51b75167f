#!/usr/bin/env python
# Cancellation token shared by the asynchronous steps of a chat session


class CancellationToken:
    """
    Signals that a chat session has been torn down.

    Every asynchronous continuation checks the token before mutating state,
    so late results from an attach or history fetch are dropped after close.
    """
    
    def __init__(self):
        self._cancelled = False
    
    @property
    def cancelled(self) -> bool:
        return self._cancelled
    
    def cancel(self) -> None:
        self._cancelled = True
