import asyncio
import logging

from nodebot.conduit.base import Conduit, ConduitNotOpenError

logger = logging.getLogger(__name__)


class DatagramConduit(Conduit, asyncio.DatagramProtocol):
    """
    A conduit that bridges a UDP socket to a byte stream. Each datagram received is
    delivered as stream data, and each write is sent as a datagram to the remote address.

    UDP is connectionless, so the conduit opens when the socket is bound, not when the peer is reached.
    Socket errors are reported as conduit errors and do not close the conduit.
    """
    def __init__(self, remote=None):
        super().__init__()
        self.remote = remote

    def connection_made(self, transport):
        logger.info("udp socket bound for %s" % (self.remote,))
        super().connection_made(transport)

    def datagram_received(self, data, addr):
        self.data_received(data)

    def error_received(self, exc):
        logger.warning("udp error for %s: %s" % (self.remote, exc))
        self.error(exc)

    def write(self, data):
        if not self.open:
            raise ConduitNotOpenError("conduit is not open")
        self._transport.sendto(bytes(data))


async def open_datagram(loop, conduit: DatagramConduit, host, port):
    """
    Binds a UDP endpoint connected to host:port and attaches the conduit.
    Raises OSError when the socket cannot be created.
    """
    conduit.remote = (host, port)
    transport, _ = await loop.create_datagram_endpoint(lambda: conduit, remote_addr=(host, port))
    return transport
