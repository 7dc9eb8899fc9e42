import logging
from abc import abstractmethod

from serial import SerialException

from nodebot.conduit.base import Conduit
from nodebot.support.closeable import ClosingStack

logger = logging.getLogger(__name__)


class ConnectorError(Exception):
    """ Indicates an error condition with a connection. """


class ConfigurationError(ConnectorError):
    """ The connection settings are invalid. Raised before any I/O is attempted. """


class TransportError(ConnectorError):
    """ The transport could not be opened - a missing device, an unreachable host, a port in use. """


class Connector:
    """ A connector describes an endpoint to which a conduit can be established. """

    # False when the conduit opening is not a network event, such as a locally attached serial port.
    network_phase = True

    @property
    @abstractmethod
    def endpoint(self):
        """ the endpoint that this connector reaches out to """
        raise NotImplementedError

    @property
    @abstractmethod
    def conduit(self) -> Conduit:
        """
        The conduit for this connection. The conduit exists from construction so that
        listeners can subscribe before it opens.
        """
        raise NotImplementedError

    @abstractmethod
    async def connect(self, loop, resources: ClosingStack):
        """
        Opens the transport to the endpoint and binds it to the conduit.
        Each resource is pushed onto resources in the order it should be released, so that closing
        the stack releases them even when the stack was closed while the connection was in progress.
        Raises TransportError if the transport cannot be opened.
        """
        raise NotImplementedError


class AbstractConnector(Connector):
    """ Manages the opening of the transport to an endpoint. """

    def __init__(self, conduit: Conduit):
        self._conduit = conduit

    @property
    def conduit(self):
        return self._conduit

    async def connect(self, loop, resources: ClosingStack):
        try:
            await self._connect(loop, resources)
        except (OSError, SerialException) as e:
            logger.warning("error opening %s: %s" % (self.endpoint, e))
            raise TransportError("unable to open %s: %s" % (self.endpoint, e)) from e

    @abstractmethod
    async def _connect(self, loop, resources: ClosingStack):
        """ Template method for subclasses to open the transport.
            If connection is not possible, an exception should be thrown
        """
        raise NotImplementedError

    def __str__(self):
        return "%s(%s)" % (type(self).__name__, self.endpoint)
