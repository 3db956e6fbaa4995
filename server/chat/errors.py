"""
Exceptions raised by the chat server core.

Only lifecycle operations raise; per-connection failures stay inside the
session thread that hit them.
"""


class ChatServerError(Exception):
    """Base class for chat server errors."""


class ServerStateError(ChatServerError):
    """Operation not allowed in the server's current lifecycle state."""


class ServerStartError(ChatServerError):
    """The listening socket could not be opened."""
