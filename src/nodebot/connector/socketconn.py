import logging

from nodebot.conduit.socket_conduit import RejectedPeer, SocketConduit, open_client, open_listener
from nodebot.connector.base import AbstractConnector
from nodebot.support.closeable import CallbackCloseable

logger = logging.getLogger(__name__)


class TcpClientConnector(AbstractConnector):
    """
    A connector that reaches a board by connecting to its TCP server.
    """
    def __init__(self, host, port):
        super().__init__(SocketConduit())
        self.host = host
        self.port = port

    @property
    def endpoint(self):
        """
        >>> TcpClientConnector('board.local', 3030).endpoint
        'board.local:3030'
        """
        return "%s:%s" % (self.host, self.port)

    async def _connect(self, loop, resources):
        resources.push(self._conduit)
        await open_client(loop, self._conduit, self.host, self.port)
        logger.info("opened socket to %s" % self.endpoint)


class TcpListenerConnector(AbstractConnector):
    """
    A connector that listens on a port for the board to connect in.
    The first peer accepted is bound to the conduit. The conduit serves a single board, so
    every later peer is closed as soon as it is accepted, for as long as the listener runs.
    """
    def __init__(self, port, host=None):
        super().__init__(SocketConduit())
        self.host = host
        self.port = port
        self.accepted = False
        self.server = None

    @property
    def endpoint(self):
        """
        >>> TcpListenerConnector(9000).endpoint
        '*:9000'
        """
        return "%s:%s" % (self.host or '*', self.port)

    def _accept(self):
        if self.accepted:
            return RejectedPeer()
        self.accepted = True
        return self._conduit

    async def _connect(self, loop, resources):
        self.server = server = await open_listener(loop, self._accept, self.port, self.host)
        resources.push(CallbackCloseable("tcp listener on %s" % self.endpoint, server.close))
        resources.push(self._conduit)
        logger.info("listening for a board on %s" % self.endpoint)
