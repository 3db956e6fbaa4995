"""
Chat server module.

This module owns the listening socket and the lifecycle of the chat hub:
it accepts connections, gives each one a session thread, and turns what the
sessions read into broadcasts.
"""

import socket
import threading
from enum import Enum
from typing import Optional

from common.protocol_definitions import (
    create_joined_message, create_left_message, create_chat_message,
    create_server_message
)
from server.chat.broadcaster import Broadcaster
from server.chat.errors import ServerStateError, ServerStartError
from server.chat.notifications import NotificationSink, notify
from server.chat.registry import SessionRegistry
from server.chat.session import ChatSession
from server.utils.config import ServerConfig
from server.utils.logger import logger


class ServerState(Enum):
    STOPPED = 'stopped'
    STARTING = 'starting'
    RUNNING = 'running'
    STOPPING = 'stopping'


class ChatServer:
    """Line-oriented chat hub: one thread per client, fan-out to everyone else."""

    # accept() wakes up this often to notice a stop
    ACCEPT_POLL_INTERVAL = 0.5

    def __init__(self, config: Optional[ServerConfig] = None,
                 sink: Optional[NotificationSink] = None):
        self.config = config or ServerConfig()
        self.sink = sink or NotificationSink()
        self.registry = SessionRegistry()
        self.broadcaster = Broadcaster(self.registry, self.sink)

        self._state = ServerState.STOPPED
        self._state_lock = threading.Lock()  # Protect lifecycle state
        self._count_lock = threading.Lock()
        self._server_socket: Optional[socket.socket] = None
        self._accept_thread: Optional[threading.Thread] = None

    @property
    def state(self) -> ServerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is ServerState.RUNNING

    @property
    def address(self):
        """(host, port) actually bound, or None when not listening."""
        sock = self._server_socket
        if sock is None:
            return None
        try:
            return sock.getsockname()
        except OSError:
            return None

    def client_count(self) -> int:
        return self.registry.count()

    def _log(self, text: str):
        notify(self.sink, 'on_log', text)

    def _count_changed(self):
        # read and report under one lock so counts reach the sink in order
        with self._count_lock:
            notify(self.sink, 'on_client_count_changed', self.registry.count())

    def _open_listener(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self.config.host, self.config.port))
            sock.listen(self.config.backlog)
            sock.settimeout(self.ACCEPT_POLL_INTERVAL)
        except OSError:
            sock.close()
            raise
        return sock

    def start(self):
        """
        Open the listening socket and start accepting in the background.

        Raises ServerStateError if the server is not stopped, and
        ServerStartError if the socket cannot be bound.
        """
        with self._state_lock:
            if self._state is not ServerState.STOPPED:
                raise ServerStateError(f"Cannot start server while {self._state.value}")
            self._state = ServerState.STARTING

        try:
            sock = self._open_listener()
        except OSError as e:
            with self._state_lock:
                self._state = ServerState.STOPPED
            message = f"Server error: {e}"
            logger.log_error("start", e)
            notify(self.sink, 'on_connect_error', message)
            self._log(message)
            raise ServerStartError(message) from e

        thread = threading.Thread(target=self._accept_loop, args=(sock,),
                                  name='chat-accept', daemon=True)
        with self._state_lock:
            self._server_socket = sock
            self._accept_thread = thread
            self._state = ServerState.RUNNING
            thread.start()

        port = sock.getsockname()[1]
        logger.info(f"Server listening on {self.config.host}:{port}")
        self._log(f"Server started on port {port}")
        self._count_changed()

    def _accept_loop(self, server_socket: socket.socket):
        while self._state is ServerState.RUNNING:
            try:
                conn, addr = server_socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if self._state is not ServerState.RUNNING or server_socket.fileno() == -1:
                    break
                logger.log_error("accept", e)
                notify(self.sink, 'on_connect_error', f"Server socket error: {e}")
                self._log(f"Server socket error: {e}")
                continue

            conn.settimeout(None)
            logger.log_connection(addr)
            session = ChatSession(conn, addr, self.config.encoding)

            with self._state_lock:
                registered = (self._state is ServerState.RUNNING
                              and self.registry.add(session))
            if not registered:
                # stop() got in between accept() and registration
                session.close()
                break

            threading.Thread(target=self._run_session, args=(session,),
                             name=f'chat-session-{session.sid}', daemon=True).start()

        logger.debug("Accept loop finished")

    def _run_session(self, session: ChatSession):
        """Session thread: handshake, announce, relay lines, clean up."""
        try:
            if not session.handshake():
                logger.debug(f"Session {session.sid} closed before sending a name")
                return

            logger.log_join(session.name, session.addr)
            self._count_changed()
            self._log(f"{session.name} connected from {session.addr[0] if session.addr else 'unknown'}")
            self.broadcaster.broadcast(create_joined_message(session.name), excluded=session)

            session.read_loop(
                lambda name, line: self.broadcaster.broadcast(create_chat_message(name, line),
                                                              excluded=session),
                lambda name: self._release(session)
            )
        except Exception as e:
            logger.log_error(f"session {session.sid}", e)
            session.close()
        finally:
            self._release(session)

    def _release(self, session: ChatSession):
        """
        Deregister a finished session and announce it left.

        Both the read loop's disconnect callback and the session thread's
        cleanup end up here; only the call that wins the registry removal
        does anything.
        """
        if not self.registry.remove(session):
            return
        if session.name is None:
            return

        self._count_changed()

        if session.disconnect_reason:
            logger.log_disconnect(session.name, session.disconnect_reason)
            self._log(f"{session.name} disconnected: {session.disconnect_reason}")
        else:
            logger.log_disconnect(session.name)
        self.broadcaster.broadcast(create_left_message(session.name), excluded=session)

    def broadcast_operator_message(self, text: str) -> int:
        """Send 'Server: <text>' to every client. Blank text is ignored."""
        message = text.strip()
        if not message or not self.is_running:
            return 0
        return self.broadcaster.broadcast(create_server_message(message))

    def stop(self) -> bool:
        """
        Close every session and the listening socket.

        Returns False, doing nothing, if the server was not running.
        """
        with self._state_lock:
            if self._state is not ServerState.RUNNING:
                return False
            self._state = ServerState.STOPPING
            server_socket = self._server_socket
            accept_thread = self._accept_thread

        for session in self.registry.clear():
            session.close()
        self._count_changed()

        if server_socket is not None:
            try:
                server_socket.close()
            except OSError as e:
                logger.log_error("stop", e)
                self._log(f"Error stopping server: {e}")

        if accept_thread is not None and accept_thread is not threading.current_thread():
            accept_thread.join(timeout=self.config.stop_join_timeout)

        with self._state_lock:
            self._server_socket = None
            self._accept_thread = None
            self._state = ServerState.STOPPED

        logger.info("Server stopped")
        self._log("Server stopped")
        return True
