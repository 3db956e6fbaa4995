"""
Chat session module.

A ChatSession owns one client's socket: it reads the display name
(handshake), then reads chat lines until the peer goes away or the server
closes it. Sessions know nothing about each other.
"""

import itertools
import socket
import threading
from enum import Enum
from typing import Callable, Optional, Tuple

from common.constants import LINE_ENCODING
from common.protocol_definitions import encode_line, decode_line
from server.utils.logger import logger


class SessionState(Enum):
    CONNECTING = 'connecting'
    NAMED = 'named'
    CLOSED = 'closed'


_session_ids = itertools.count(1)


class ChatSession:
    """Server-side state and I/O for one connected client."""

    def __init__(self, sock: socket.socket, addr: Optional[Tuple] = None,
                 encoding: str = LINE_ENCODING):
        self.sid = next(_session_ids)
        self.sock = sock
        self.addr = addr
        self.encoding = encoding
        self.name: Optional[str] = None
        self.disconnect_reason: Optional[str] = None

        self._state = SessionState.CONNECTING
        self._loop_entered = False
        self._state_lock = threading.Lock()
        self._write_lock = threading.Lock()
        self._reader = sock.makefile('rb')

    def __repr__(self):
        return f"<ChatSession sid={self.sid} name={self.name!r} state={self._state.value}>"

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._state is SessionState.CLOSED

    def _read_line(self) -> Optional[str]:
        """Read one line; None on EOF or read error."""
        try:
            raw = self._reader.readline()
        except (OSError, ValueError) as e:
            # ValueError: the reader was closed underneath us
            if not self.closed:
                self.disconnect_reason = str(e)
            return None
        if not raw:
            return None
        return decode_line(raw, self.encoding)

    def handshake(self) -> bool:
        """
        Read the display name.

        Returns True once the session is NAMED. If the stream ends or fails
        before a full line arrives, the session is closed with no name and
        False is returned.
        """
        name = self._read_line()
        if name is None:
            self._finalize()
            return False

        with self._state_lock:
            named = self._state is SessionState.CONNECTING
            if named:
                self.name = name
                self._state = SessionState.NAMED

        if not named:
            # closed by the server while the name was in flight
            self._finalize()
        return named

    def read_loop(self, on_message: Callable[[str, str], None],
                  on_disconnect: Optional[Callable[[Optional[str]], None]] = None):
        """
        Hand every incoming line to on_message(name, line) until EOF or error.

        Runs on the session's own thread. When the loop ends the session
        closes itself and calls on_disconnect(name) once. Only a session
        that completed the handshake can enter the loop, and only once.
        """
        with self._state_lock:
            enter = self.name is not None and not self._loop_entered
            self._loop_entered = True
        if not enter:
            self._finalize()
            return

        try:
            while True:
                line = self._read_line()
                if line is None:
                    break
                on_message(self.name, line)
        finally:
            self._finalize()
            if on_disconnect is not None:
                on_disconnect(self.name)

    def send(self, line: str) -> bool:
        """Write one line to the peer. Returns False if it could not be written."""
        if self.closed:
            return False

        data = encode_line(line, self.encoding)
        try:
            with self._write_lock:
                self.sock.sendall(data)
            return True
        except OSError as e:
            logger.debug(f"Send to session {self.sid} failed: {e}")
            return False

    def close(self):
        """Close the connection. Safe to call repeatedly and from any thread."""
        with self._state_lock:
            if self._state is SessionState.CLOSED:
                return
            self._state = SessionState.CLOSED

        # shutdown wakes a reader blocked in recv on another thread
        try:
            self.sock.shutdown(socket.SHUT_RDWR)
        except OSError as e:
            logger.debug(f"Shutdown of session {self.sid} skipped: {e}")

        try:
            self.sock.close()
        except OSError as e:
            logger.warning(f"Error closing client connection: {e}")

    def _finalize(self):
        """Close the socket and release the reader; called on the reading thread."""
        self.close()
        try:
            self._reader.close()
        except OSError as e:
            logger.warning(f"Error closing client connection: {e}")
