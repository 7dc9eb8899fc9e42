import asyncio
import logging

from nodebot.support.closeable import Closeable
from nodebot.support.events import EventSource
from nodebot.support.mixins import CommonEqualityMixin, StringerMixin

logger = logging.getLogger(__name__)


class ConduitNotOpenError(IOError):
    """ Raised when writing to a conduit that is not open. """


class ConduitEvent(CommonEqualityMixin, StringerMixin):
    """ base class for conduit events. """
    def __init__(self, conduit):
        self.conduit = conduit


class ConduitOpenedEvent(ConduitEvent):
    """ The conduit's stream is open and can be written to. """


class ConduitDataEvent(ConduitEvent):
    """ Data arrived on the conduit. """
    def __init__(self, conduit, data: bytes):
        super().__init__(conduit)
        self.data = data


class ConduitErrorEvent(ConduitEvent):
    """ The stream reported an error. The conduit may still be open. """
    def __init__(self, conduit, error):
        super().__init__(conduit)
        self.error = error


class ConduitClosedEvent(ConduitEvent):
    """ The stream closed. error is None when the stream was closed locally or cleanly by the peer. """
    def __init__(self, conduit, error=None):
        super().__init__(conduit)
        self.error = error


class Conduit(asyncio.Protocol, Closeable):
    """
    A conduit is a duplex byte stream to a board. It is an asyncio protocol, so any asyncio
    transport (serial, tcp, pipes) can drive it, and it republishes the transport callbacks
    as events: ConduitOpenedEvent, ConduitDataEvent, ConduitErrorEvent, ConduitClosedEvent.

    A conduit is created before the transport is connected so that listeners can subscribe
    before the first event fires. Closing the conduit before the transport connects closes the
    transport as soon as it arrives.
    """

    def __init__(self):
        self.events = EventSource()
        self._transport = None
        self._closed = False

    @property
    def target(self):
        """ the asyncio transport carrying the stream, or None """
        return self._transport

    @property
    def open(self) -> bool:
        """ determines if the conduit can be written to. """
        t = self._transport
        return t is not None and not self._closed and not t.is_closing()

    @property
    def closed(self) -> bool:
        return self._closed

    def connection_made(self, transport):
        if self._closed:
            logger.debug("conduit closed before the transport connected, closing %s" % transport)
            transport.close()
            return
        self._transport = transport
        self.events.fire(ConduitOpenedEvent(self))

    def data_received(self, data):
        self.events.fire(ConduitDataEvent(self, data))

    def connection_lost(self, exc):
        self._transport = None
        self.events.fire(ConduitClosedEvent(self, exc))

    def error(self, exc):
        """ reports a stream error that does not close the conduit. """
        self.events.fire(ConduitErrorEvent(self, exc))

    def write(self, data):
        if not self.open:
            raise ConduitNotOpenError("conduit is not open")
        self._transport.write(bytes(data))

    def close(self):
        """ Closes the underlying transport. Calling close more than once has no effect. """
        if self._closed:
            return
        self._closed = True
        transport = self._transport
        if transport is not None:
            transport.close()
