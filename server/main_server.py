#!/usr/bin/env python3
"""
Line Chat Hub Server - Main Entry Point

Starts the chat server and turns the terminal into the operator console:
every line typed is broadcast to all clients as 'Server: <text>'.
Type /quit (or press Ctrl+D / Ctrl+C) to stop the server.
"""

import argparse
import logging
import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from common.constants import DEFAULT_SERVER_HOST, DEFAULT_PORT, LOG_DIR, QUIT_COMMAND
from server.chat.chat_server import ChatServer
from server.chat.errors import ServerStartError
from server.chat.notifications import LoggingNotificationSink
from server.utils.config import ServerConfig
from server.utils.logger import logger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Line Chat Hub Server')
    parser.add_argument('--host', type=str, default=DEFAULT_SERVER_HOST,
                        help=f'Host to bind to (default: {DEFAULT_SERVER_HOST})')
    parser.add_argument('--port', type=int, default=DEFAULT_PORT,
                        help=f'TCP port (default: {DEFAULT_PORT})')
    parser.add_argument('--logs-dir', type=str, default=LOG_DIR,
                        help=f'Directory for the chat transcript (default: {LOG_DIR})')
    parser.add_argument('--debug', action='store_true',
                        help='Enable debug logging')
    return parser


def run_console(server: ChatServer, stream=None):
    """Read operator lines until /quit or EOF, broadcasting each one."""
    stream = stream or sys.stdin
    for line in stream:
        text = line.strip()
        if text == QUIT_COMMAND:
            break
        server.broadcast_operator_message(text)


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    if args.debug:
        logger.set_level(logging.DEBUG)

    config = ServerConfig(host=args.host, port=args.port, logs_dir=args.logs_dir)
    logger.set_logs_dir(config.get_log_settings()['logs_dir'])
    server = ChatServer(config, LoggingNotificationSink())

    try:
        server.start()
    except ServerStartError as e:
        logger.error(f"Server failed to start: {e}")
        return 1

    try:
        run_console(server)
    except KeyboardInterrupt:
        logger.info("Server shutting down...")
    finally:
        server.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
