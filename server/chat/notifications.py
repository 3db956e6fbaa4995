"""
Notification sink module.

The server core reports what it is doing to a notification sink: operator log
lines, the chat traffic it fans out, client-count changes and connection
errors. A presentation layer implements the sink; this module ships the
no-op base and a sink that routes everything into the server logger.
"""

from server.utils.logger import logger


class NotificationSink:
    """Receives events from the chat core. Every method is a no-op here."""

    def on_log(self, text: str):
        pass

    def on_chat_message(self, text: str):
        pass

    def on_client_count_changed(self, count: int):
        pass

    def on_connect_error(self, text: str):
        pass


class LoggingNotificationSink(NotificationSink):
    """Sink that writes events to the server log and the chat transcript."""

    def on_log(self, text: str):
        logger.info(f"[LOG] {text}")

    def on_chat_message(self, text: str):
        logger.log_chat(text)

    def on_client_count_changed(self, count: int):
        logger.info(f"Connected Clients: {count}")

    def on_connect_error(self, text: str):
        logger.error(text)


def notify(sink: NotificationSink, event: str, *args):
    """Deliver one event to the sink; sink failures are logged and dropped."""
    try:
        getattr(sink, event)(*args)
    except Exception as e:
        logger.log_error(f"notification sink {event}", e)
