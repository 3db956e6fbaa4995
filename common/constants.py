"""
Shared constants for the Line Chat Hub.

This module contains all constants used across the server components.
"""

# Network Configuration
DEFAULT_SERVER_HOST = '0.0.0.0'
DEFAULT_PORT = 12345
ACCEPT_BACKLOG = 50

# Wire encoding (plain newline-delimited text)
LINE_ENCODING = 'utf-8'
LINE_TERMINATOR = '\n'

# Timeouts
STOP_JOIN_TIMEOUT = 2.0  # seconds to wait for the accept thread on stop

# Logging
LOG_DIR = 'logs'
CHAT_LOG_FILE = 'chat_history.log'

# Operator console
QUIT_COMMAND = '/quit'


# Message templates
class MessageTemplates:
    JOINED = '{name} joined the chat'
    LEFT = '{name} left the chat'
    CHAT = '{name}: {text}'
    SERVER = 'Server: {text}'
