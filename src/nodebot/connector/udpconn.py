from nodebot.conduit.datagram_conduit import DatagramConduit, open_datagram
from nodebot.connector.base import AbstractConnector


class UdpConnector(AbstractConnector):
    """
    A connector that exchanges the board stream as datagrams with host:port.
    """
    def __init__(self, host, port):
        super().__init__(DatagramConduit())
        self.host = host
        self.port = port

    @property
    def endpoint(self):
        return "udp://%s:%s" % (self.host, self.port)

    async def _connect(self, loop, resources):
        resources.push(self._conduit)
        await open_datagram(loop, self._conduit, self.host, self.port)
