#!/usr/bin/env python3
"""
Integration tests for server/chat/chat_server.py

Runs a real ChatServer on a loopback port and talks to it with plain
line-based clients:
- Join / chat / leave scenario between two clients
- Operator broadcasts
- Per-sender ordering and sender exclusion
- Client counting, including clients that never send a name
- Lifecycle: double start, double stop, restart, bind failure
"""

import socket
import threading
import time
import unittest

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from server.chat.chat_server import ChatServer, ServerState
from server.chat.errors import ServerStateError, ServerStartError
from server.chat.notifications import NotificationSink
from server.chat.session import ChatSession
from server.utils.config import ServerConfig


WAIT_TIMEOUT = 5.0


def wait_for(predicate, timeout=WAIT_TIMEOUT):
    """Poll until predicate() is true; return its final value."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class RecordingSink(NotificationSink):
    """Notification sink that keeps every event for inspection."""

    def __init__(self):
        self.lock = threading.Lock()
        self.logs = []
        self.chat_messages = []
        self.counts = []
        self.connect_errors = []

    def on_log(self, text):
        with self.lock:
            self.logs.append(text)

    def on_chat_message(self, text):
        with self.lock:
            self.chat_messages.append(text)

    def on_client_count_changed(self, count):
        with self.lock:
            self.counts.append(count)

    def on_connect_error(self, text):
        with self.lock:
            self.connect_errors.append(text)

    def chat_count(self, text):
        with self.lock:
            return self.chat_messages.count(text)


class LineClient:
    """Minimal newline-delimited text client."""

    def __init__(self, address):
        self.sock = socket.create_connection(address, timeout=WAIT_TIMEOUT)
        self.reader = self.sock.makefile('r', encoding='utf-8', newline='\n')

    def send(self, line):
        self.sock.sendall((line + '\n').encode('utf-8'))

    def read_line(self):
        return self.reader.readline().rstrip('\n')

    def close(self):
        self.reader.close()
        self.sock.close()


class ChatServerTestCase(unittest.TestCase):
    """Starts a server on an ephemeral loopback port for each test."""

    def setUp(self):
        self.sink = RecordingSink()
        self.server = ChatServer(ServerConfig(host='127.0.0.1', port=0), self.sink)
        self.server.start()
        self.clients = []

    def tearDown(self):
        for client in self.clients:
            client.close()
        self.server.stop()

    def connect(self):
        client = LineClient(self.server.address)
        self.clients.append(client)
        return client

    def open_connections(self):
        """Sockets the server has registered, named or not."""
        return len(self.server.registry.snapshot())

    def connect_pair(self):
        """
        Connect two clients and name them alice and bob.

        Both sockets are registered before either sends a name, so each side
        sees the other's join.
        """
        alice = self.connect()
        bob = self.connect()
        self.assertTrue(wait_for(lambda: self.open_connections() == 2))
        self.assertEqual(self.server.client_count(), 0)

        alice.send('alice')
        self.assertEqual(bob.read_line(), 'alice joined the chat')
        bob.send('bob')
        self.assertEqual(alice.read_line(), 'bob joined the chat')
        return alice, bob


class TestChatScenarios(ChatServerTestCase):

    def test_join_chat_leave(self):
        """alice and bob join, chat, and bob leaves."""
        alice, bob = self.connect_pair()

        alice.send('hi')
        self.assertEqual(bob.read_line(), 'alice: hi')

        bob.close()
        self.clients.remove(bob)

        # alice never got her own 'alice: hi'; the next thing she sees is bob leaving
        self.assertEqual(alice.read_line(), 'bob left the chat')
        self.assertTrue(wait_for(lambda: self.server.client_count() == 1))

    def test_operator_broadcast(self):
        """Operator text reaches every client, the sink sees it once."""
        alice, bob = self.connect_pair()

        delivered = self.server.broadcast_operator_message('be right back')

        self.assertEqual(delivered, 2)
        self.assertEqual(alice.read_line(), 'Server: be right back')
        self.assertEqual(bob.read_line(), 'Server: be right back')
        self.assertEqual(self.sink.chat_count('Server: be right back'), 1)

    def test_blank_operator_message_is_ignored(self):
        self.connect_pair()

        self.assertEqual(self.server.broadcast_operator_message('   '), 0)
        self.assertFalse(any(text.startswith('Server:') for text in self.sink.chat_messages))

    def test_operator_message_is_trimmed(self):
        alice, bob = self.connect_pair()

        self.server.broadcast_operator_message('  hello all  ')

        self.assertEqual(alice.read_line(), 'Server: hello all')

    def test_per_sender_order(self):
        """Lines from one sender arrive in the order they were sent."""
        alice, bob = self.connect_pair()
        lines = [f'message {i}' for i in range(50)]

        for line in lines:
            alice.send(line)

        received = [bob.read_line() for _ in lines]
        self.assertEqual(received, [f'alice: {line}' for line in lines])

    def test_single_leave_broadcast(self):
        """A disconnect is announced exactly once."""
        alice, bob = self.connect_pair()

        bob.close()
        self.clients.remove(bob)

        self.assertEqual(alice.read_line(), 'bob left the chat')
        self.assertTrue(wait_for(lambda: self.server.client_count() == 1))
        time.sleep(0.2)
        self.assertEqual(self.sink.chat_count('bob left the chat'), 1)

    def test_chat_is_echoed_to_sink(self):
        alice, bob = self.connect_pair()

        alice.send('hello')
        bob.read_line()

        self.assertTrue(wait_for(lambda: self.sink.chat_count('alice: hello') == 1))
        self.assertEqual(self.sink.chat_count('alice joined the chat'), 1)


class TestClientCounting(ChatServerTestCase):

    def test_count_tracks_connections(self):
        clients = [self.connect() for _ in range(5)]
        for i, client in enumerate(clients):
            client.send(f'user{i}')
        self.assertTrue(wait_for(lambda: self.server.client_count() == 5))

        for client in clients[:2]:
            client.close()
            self.clients.remove(client)

        self.assertTrue(wait_for(lambda: self.server.client_count() == 3))
        self.assertTrue(wait_for(lambda: 3 in self.sink.counts[self.sink.counts.index(5):]))

    def test_unnamed_disconnect_is_silent(self):
        """A client that leaves before sending a name gets no leave message."""
        watcher = self.connect()
        watcher.send('watcher')
        self.assertTrue(wait_for(lambda: self.sink.chat_count('watcher joined the chat') == 1))

        ghost = self.connect()
        self.assertTrue(wait_for(lambda: self.open_connections() == 2))
        ghost.close()
        self.clients.remove(ghost)

        self.assertTrue(wait_for(lambda: self.open_connections() == 1))
        self.assertEqual(self.server.client_count(), 1)
        self.assertFalse(any('left the chat' in text for text in self.sink.chat_messages))

    def test_connected_log_line(self):
        client = self.connect()
        client.send('alice')

        self.assertTrue(wait_for(
            lambda: 'alice connected from 127.0.0.1' in self.sink.logs))

    def test_unnamed_connection_is_not_counted(self):
        """Only clients that sent their name count as connected."""
        client = self.connect()
        self.assertTrue(wait_for(lambda: self.open_connections() == 1))
        time.sleep(0.2)

        self.assertEqual(self.server.client_count(), 0)
        self.assertNotIn(1, self.sink.counts)

        client.send('alice')
        self.assertTrue(wait_for(lambda: self.server.client_count() == 1))
        self.assertTrue(wait_for(lambda: 1 in self.sink.counts))


class TestReleaseRace(unittest.TestCase):
    """Racing finalize paths announce a departure only once."""

    def test_concurrent_release(self):
        sink = RecordingSink()
        server = ChatServer(ServerConfig(host='127.0.0.1', port=0), sink)
        server_sock, peer = socket.socketpair()
        try:
            peer.sendall(b'bob\n')
            session = ChatSession(server_sock, ('127.0.0.1', 50000))
            self.assertTrue(session.handshake())
            server.registry.add(session)

            session.close()
            threads = [threading.Thread(target=server._release, args=(session,))
                       for _ in range(4)]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join()

            self.assertEqual(sink.chat_count('bob left the chat'), 1)
            self.assertEqual(server.client_count(), 0)
        finally:
            peer.close()

    def test_last_count_reported_is_current(self):
        """Simultaneous departures leave the sink showing zero clients."""
        sink = RecordingSink()
        server = ChatServer(ServerConfig(host='127.0.0.1', port=0), sink)
        peers = []
        sessions = []
        try:
            for i in range(8):
                server_sock, peer = socket.socketpair()
                peers.append(peer)
                peer.sendall(f'user{i}\n'.encode('utf-8'))
                session = ChatSession(server_sock, ('127.0.0.1', 50000 + i))
                self.assertTrue(session.handshake())
                server.registry.add(session)
                sessions.append(session)

            def leave(session):
                session.close()
                server._release(session)

            threads = [threading.Thread(target=leave, args=(session,)) for session in sessions]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join()

            self.assertEqual(len(sink.counts), len(sessions))
            self.assertEqual(sink.counts[-1], 0)
        finally:
            for peer in peers:
                peer.close()


class TestLifecycle(ChatServerTestCase):

    def test_start_while_running_is_rejected(self):
        address = self.server.address

        with self.assertRaises(ServerStateError):
            self.server.start()

        self.assertEqual(self.server.state, ServerState.RUNNING)
        self.assertEqual(self.server.address, address)

    def test_double_stop(self):
        self.assertTrue(self.server.stop())
        self.assertFalse(self.server.stop())
        self.assertEqual(self.server.state, ServerState.STOPPED)
        self.assertIsNone(self.server.address)

    def test_stop_disconnects_clients(self):
        alice, bob = self.connect_pair()

        self.server.stop()

        self.assertEqual(alice.read_line(), '')
        self.assertEqual(bob.read_line(), '')
        self.assertEqual(self.server.client_count(), 0)
        self.assertIn('Server stopped', self.sink.logs)

    def test_restart_gives_fresh_registry(self):
        self.connect_pair()
        self.server.stop()

        self.server.start()

        self.assertEqual(self.server.client_count(), 0)
        carol = self.connect()
        dave = self.connect()
        self.assertTrue(wait_for(lambda: self.open_connections() == 2))
        carol.send('carol')
        self.assertEqual(dave.read_line(), 'carol joined the chat')

    def test_operator_message_needs_running_server(self):
        self.server.stop()
        self.assertEqual(self.server.broadcast_operator_message('anyone?'), 0)

    def test_started_log_line(self):
        port = self.server.address[1]
        self.assertIn(f'Server started on port {port}', self.sink.logs)


class TestBindFailure(unittest.TestCase):

    def test_port_in_use(self):
        """Bind failure is reported and leaves the server stopped."""
        blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        blocker.bind(('127.0.0.1', 0))
        blocker.listen(1)
        port = blocker.getsockname()[1]

        sink = RecordingSink()
        server = ChatServer(ServerConfig(host='127.0.0.1', port=port), sink)
        try:
            with self.assertRaises(ServerStartError):
                server.start()

            self.assertEqual(server.state, ServerState.STOPPED)
            self.assertEqual(len(sink.connect_errors), 1)
            self.assertFalse(server.stop())
        finally:
            blocker.close()


if __name__ == '__main__':
    unittest.main()
