"""
Connection state enumeration.

Defines the lifecycle states of the shared MongoDB connection.
"""

import enum


class ConnectionState(str, enum.Enum):
    """
    Connection state enumeration.

    States:
        DISCONNECTED: No usable client (initial, after failure, close or loss)
        CONNECTING: A connection attempt is in flight
        CONNECTED: The client answered a ping and is being monitored
    """
    DISCONNECTED = "DISCONNECTED"
    CONNECTING = "CONNECTING"
    CONNECTED = "CONNECTED"
