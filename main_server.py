#!/usr/bin/env python3
"""
Line Chat Hub Server - Main Entry Point

Plain-text chat hub: clients connect over TCP, send their display name as
the first line, then every line they send is relayed to all other clients.

Usage:
    python main_server.py

Optional arguments:
    --host HOST           Bind address (default: 0.0.0.0)
    --port PORT           TCP port (default: 12345)
    --logs-dir DIR        Chat transcript directory (default: logs)
    --debug               Verbose logging
"""

if __name__ == "__main__":
    import sys

    from server.main_server import main

    sys.exit(main())
