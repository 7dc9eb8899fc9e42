"""
The conduit package provides an abstraction of a bi-directional byte stream to a board.
Concrete implementations cover serial ports, TCP sockets, UDP datagrams and topics on a message bus.

Conduits are asyncio protocols; they republish the transport's callbacks as conduit events.
"""
