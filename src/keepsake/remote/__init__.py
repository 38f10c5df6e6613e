"""Remote backend access."""

from .gateway import (
    COMMENTS_TABLE,
    LIKES_TABLE,
    MEMORY_TABLE,
    NullGateway,
    RemoteGateway,
    SupabaseGateway,
    create_gateway,
)

__all__ = [
    "COMMENTS_TABLE",
    "LIKES_TABLE",
    "MEMORY_TABLE",
    "NullGateway",
    "RemoteGateway",
    "SupabaseGateway",
    "create_gateway",
]
