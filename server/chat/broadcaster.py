"""
Broadcaster module.

Fans one line out to every registered session except an optional excluded
one. Delivery is best effort: a failing recipient is skipped and will notice
the broken connection on its own read path.
"""

from typing import Optional

from server.chat.registry import SessionRegistry
from server.chat.session import ChatSession
from server.chat.notifications import NotificationSink, notify
from server.utils.logger import logger


class Broadcaster:
    """Delivers chat lines to the sessions in a registry."""

    def __init__(self, registry: SessionRegistry, sink: Optional[NotificationSink] = None):
        self.registry = registry
        self.sink = sink or NotificationSink()

    def broadcast(self, text: str, excluded: Optional[ChatSession] = None) -> int:
        """
        Send text to every session in the current snapshot except excluded.

        Recipients are written to one after another; a slow peer delays the
        ones after it. The sink sees the message once, after all attempts.
        Returns the number of sessions the line was written to.
        """
        recipients = self.registry.snapshot()
        delivered = 0

        for session in recipients:
            if session is excluded:
                continue
            try:
                if session.send(text):
                    delivered += 1
            except Exception as e:
                logger.debug(f"Failed to broadcast to session {session.sid}: {e}")

        logger.debug(f"[BROADCAST] {text!r} delivered to {delivered}/{len(recipients)} sessions")
        notify(self.sink, 'on_chat_message', text)
        return delivered
