"""
Server package for the Line Chat Hub.

This package contains all server-side functionality including:
- Client session handling
- Broadcast fan-out
- Listener lifecycle
- Configuration and utilities
"""
