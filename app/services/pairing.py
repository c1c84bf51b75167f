# app/services/pairing.py
"""
Canonical pair keys for two-party conversations.

Both the server (conversation lookup) and the client (realtime channel name)
derive their keys here, so A messaging B and B messaging A always address
the same stored conversation and the same channel.
"""
from typing import Tuple

CHANNEL_PREFIX = "chat-"


class InvalidPair(ValueError):
    """Raised when two ids cannot form a conversation"""


def canonical_pair(first: str, second: str) -> Tuple[str, str]:
    """Return the two participant ids in lexicographic order"""
    if not first or not str(first).strip() or not second or not str(second).strip():
        raise InvalidPair("Both participant ids are required")
    if first == second:
        raise InvalidPair("Cannot create chat with yourself")
    return (first, second) if first < second else (second, first)


def channel_name(first: str, second: str) -> str:
    """Realtime channel name shared by both participants"""
    low, high = canonical_pair(first, second)
    return f"{CHANNEL_PREFIX}{low}-{high}"


def channel_members(name: str, candidate: str) -> Tuple[str, str]:
    """
    Recover the participant pair of a channel name for a known member.

    Participant ids may themselves contain hyphens, so the name is split
    around the candidate's id rather than on the separator.
    """
    if not name.startswith(CHANNEL_PREFIX):
        raise InvalidPair(f"Not a chat channel: {name}")
    body = name[len(CHANNEL_PREFIX):]
    head = f"{candidate}-"
    tail = f"-{candidate}"
    if body.startswith(head):
        other = body[len(head):]
    elif body.endswith(tail):
        other = body[:-len(tail)]
    else:
        raise InvalidPair(f"{candidate} is not a member of {name}")
    pair = canonical_pair(candidate, other)
    if channel_name(*pair) != name:
        raise InvalidPair(f"{candidate} is not a member of {name}")
    return pair
