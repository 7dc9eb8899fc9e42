import logging

from nodebot.conduit.serial_conduit import SerialConduit, open_serial_conduit
from nodebot.connector.base import AbstractConnector

logger = logging.getLogger(__name__)


class SerialConnector(AbstractConnector):
    """
    Implements a connector that communicates data via a local serial link.
    A local link has no network phase - the board handshake starts as soon as the port is open.
    """
    network_phase = False

    def __init__(self, path, baud_rate):
        """
        Creates a new serial connector.
        :param path - the device path of the serial port, e.g. /dev/ttyUSB0 or COM3
        :param baud_rate - the line speed
        """
        super().__init__(SerialConduit(path))
        self.path = path
        self.baud_rate = baud_rate

    @property
    def endpoint(self):
        return self.path

    async def _connect(self, loop, resources):
        resources.push(self._conduit)
        await open_serial_conduit(loop, self._conduit, self.path, self.baud_rate)
