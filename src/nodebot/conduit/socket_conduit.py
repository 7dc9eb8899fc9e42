import asyncio
import logging

from nodebot.conduit.base import Conduit

logger = logging.getLogger(__name__)


class SocketConduit(Conduit):
    """
    A conduit that provides communication via a TCP socket.
    The conduit opens once the connection is established, either by connecting out
    to a server or by accepting a peer on a listening socket.
    """
    def __init__(self):
        super().__init__()
        self.peer = None

    def connection_made(self, transport):
        self.peer = transport.get_extra_info('peername')
        logger.info("socket connected to %s" % (self.peer,))
        super().connection_made(transport)


class RejectedPeer(asyncio.Protocol):
    """ Closes a peer connection as soon as it is accepted. """

    def connection_made(self, transport):
        peer = transport.get_extra_info('peername')
        logger.warning("rejecting connection from %s, the listener is already bound to a board" % (peer,))
        transport.close()


async def open_client(loop, conduit: SocketConduit, host, port):
    """
    Connects the conduit to a TCP server.
    Raises OSError when the connection cannot be established.
    """
    transport, _ = await loop.create_connection(lambda: conduit, host, port)
    return transport


async def open_listener(loop, protocol_factory, port, host=None):
    """
    Binds a TCP server on the given port. Each accepted connection is handed to
    the protocol returned by protocol_factory.
    Raises OSError when the port cannot be bound.
    """
    return await loop.create_server(protocol_factory, host, port)
