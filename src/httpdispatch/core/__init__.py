"""
=============================================================================
CORE SERVER COMPONENTS
=============================================================================

The network plumbing underneath the dispatcher:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                           LISTENER                                   │
    │  • Binds host:port with asyncio.start_server                         │
    │  • One Connection per accepted client                                │
    │  • Graceful close: idle connections first, in-flight ones finish     │
    └─────────────────────────────────────────────────────────────────────┘
                                    │
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │                          CONNECTION                                  │
    │  • Reads request heads, exposes bodies as one-shot streams           │
    │  • Calls on_request(request, response) for each request              │
    │  • Writes the response, keeps the connection alive when allowed      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .connection import Connection, ConnectionState
from .listener import (
    Listener,
    ListenerState,
    ServerAlreadyRunningError,
    ServerNotRunningError,
)

__all__ = [
    "Listener",
    "ListenerState",
    "Connection",
    "ConnectionState",
    "ServerNotRunningError",
    "ServerAlreadyRunningError",
]
