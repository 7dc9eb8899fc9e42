"""
The status shown for a connection, derived from its state alone.
"""
from collections import namedtuple

from nodebot.connection import ConnectionState

Status = namedtuple('Status', 'fill shape text')

CONNECTING = Status('red', 'ring', 'connecting')
NETWORK_READY = Status('yellow', 'ring', 'connecting...')
NETWORK_ERROR = Status('red', 'dot', 'disconnected')
IO_ERROR = Status('red', 'dot', 'error')
CONNECTED = Status('green', 'dot', 'connected')
CLOSED = Status('grey', 'ring', 'closed')

statuses = {
    ConnectionState.IDLE: CONNECTING,
    ConnectionState.CONNECTING: CONNECTING,
    ConnectionState.NETWORK_READY: NETWORK_READY,
    ConnectionState.NETWORK_ERROR: NETWORK_ERROR,
    ConnectionState.IO_ERROR: IO_ERROR,
    ConnectionState.IO_READY: CONNECTED,
    ConnectionState.CLOSED: CLOSED,
}


def status_for(state: ConnectionState) -> Status:
    """
    >>> status_for(ConnectionState.IO_READY)
    Status(fill='green', shape='dot', text='connected')
    """
    return statuses[state]
