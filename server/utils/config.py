"""
Server configuration module.

This module handles server-side configuration settings.
"""

from common.constants import (
    DEFAULT_SERVER_HOST, DEFAULT_PORT, ACCEPT_BACKLOG, LINE_ENCODING,
    LOG_DIR, STOP_JOIN_TIMEOUT
)


class ServerConfig:
    """Server configuration class."""

    def __init__(self, host: str = DEFAULT_SERVER_HOST, port: int = DEFAULT_PORT,
                 logs_dir: str = LOG_DIR, encoding: str = LINE_ENCODING):
        self.host = host
        self.port = port

        # Logging configuration
        self.logs_dir = logs_dir

        # Wire settings
        self.encoding = encoding

        # Listener settings
        self.backlog = ACCEPT_BACKLOG
        self.stop_join_timeout = STOP_JOIN_TIMEOUT

    def get_log_settings(self):
        """Get logging settings."""
        return {
            'logs_dir': self.logs_dir
        }
