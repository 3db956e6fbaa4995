"""
Chat module for the server core.

Handles:
- Per-client sessions (handshake and read loop)
- The registry of connected sessions
- Broadcasting lines to every other client
- Starting and stopping the listener
"""
