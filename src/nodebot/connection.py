"""
The lifecycle of one connection node: bringing up the transport, binding the board to it,
and tearing both down.

Everything the transport and the board report arrives on a single queue per connection,
delivered on the next tick of the event loop, and is mapped to at most one state transition
and public event:

    NetworkReadyEvent   the transport is open (not fired for a locally attached serial port)
    NetworkErrorEvent   the transport reported an error, or closed
    IOReadyEvent        the board completed its handshake - fired at most once
    IOErrorEvent        the settings are invalid, the transport could not be opened, or the board failed

Nothing raised by the transport or the board escapes the manager; failures are logged
and published as one of the events above.
"""
import asyncio
import logging
from enum import Enum

from nodebot.board.adapter import BoardAdapter
from nodebot.board.base import BoardError, BoardErrorEvent, BoardReadyEvent
from nodebot.board.registry import resolve_board_type
from nodebot.conduit.base import ConduitClosedEvent, ConduitDataEvent, ConduitErrorEvent, ConduitOpenedEvent
from nodebot.config.settings import ConnectionSettings, parse_settings
from nodebot.connector.base import ConfigurationError, TransportError
from nodebot.connector.registry import create_connector
from nodebot.support.closeable import ClosingStack
from nodebot.support.events import EventSource, QueuedEventSource
from nodebot.support.mixins import CommonEqualityMixin, StringerMixin

logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    IDLE = 'idle'
    CONNECTING = 'connecting'
    NETWORK_READY = 'network ready'
    IO_READY = 'io ready'
    NETWORK_ERROR = 'network error'
    IO_ERROR = 'io error'
    CLOSED = 'closed'


class ConnectionEvent(CommonEqualityMixin, StringerMixin):
    """ base class for the events published by a connection. """
    def __init__(self, connection):
        self.connection = connection


class NetworkReadyEvent(ConnectionEvent):
    def __init__(self, connection, io):
        super().__init__(connection)
        self.io = io


class NetworkErrorEvent(ConnectionEvent):
    def __init__(self, connection, error):
        super().__init__(connection)
        self.error = error


class IOReadyEvent(ConnectionEvent):
    """ The board is ready. io is the board, which accepts commands from this point. """
    def __init__(self, connection, io):
        super().__init__(connection)
        self.io = io


class IOErrorEvent(ConnectionEvent):
    def __init__(self, connection, error):
        super().__init__(connection)
        self.error = error


class ConnectFailedEvent(CommonEqualityMixin, StringerMixin):
    """ The connection could not be started, either from its settings or from opening the transport. """
    def __init__(self, error):
        self.error = error


class ConnectionLifecycleManager:
    """
    Manages the transport and board for one connection node.

    :param node_id: identifies the connection node. The board is cached under this key.
    :param settings: a ConnectionSettings, or the mapping of raw settings for the node. Raw settings are
        validated when the connection starts, and invalid settings are reported as an IOErrorEvent.
    :param cache: the BoardCache boards are added to
    :param board_resolver: finds the board factory for a board type name
    :param connector_factory: builds the connector for a transport config
    """

    def __init__(self, node_id, settings, cache, board_resolver=resolve_board_type,
                 connector_factory=create_connector, log=logger):
        self.node_id = node_id
        self.settings = settings
        self.cache = cache
        self.board_resolver = board_resolver
        self.connector_factory = connector_factory
        self.logger = log
        self.events = EventSource()
        self.state = ConnectionState.IDLE
        self.io = None
        self.loop = None
        self.connector = None
        self.adapter = None
        self.task = None
        self._resources = ClosingStack(log)
        self._signals = None
        self._network_ready = False
        self._io_ready = False
        self._closed = False

    @property
    def board(self):
        return self.adapter.board if self.adapter is not None else None

    @property
    def closed(self):
        return self._closed

    def start(self, loop=None):
        """
        Starts connecting. Returns immediately; progress is reported by the connection events.
        :param loop: the event loop to run on. By default, the running loop.
        """
        if self._closed:
            raise RuntimeError("%s is closed" % self)
        self.loop = loop = loop or asyncio.get_running_loop()
        self._signals = QueuedEventSource(loop.call_soon)
        self._signals.add(self._handle)
        self._set_state(ConnectionState.CONNECTING)
        try:
            settings = self.settings
            if not isinstance(settings, ConnectionSettings):
                settings = self.settings = parse_settings(settings)
            board_factory = self.board_resolver(settings.board_type)
            self.connector = self.connector_factory(loop, settings.transport)
        except ConfigurationError as e:
            self._signals.fire(ConnectFailedEvent(e))
            return

        self.logger.info("%s: connecting to %s" % (self.node_id, self.connector))
        conduit = self.connector.conduit
        conduit.events.add(self._conduit_event)
        self.adapter = BoardAdapter(board_factory, conduit, loop, self.cache, self.node_id,
                                    settings.handshake_timeout)
        self.adapter.events.add(self._signals.fire)
        try:
            self.adapter.attach()
        except Exception as e:
            self._signals.fire(ConnectFailedEvent(
                ConfigurationError("unable to create board '%s': %s" % (settings.board_type, e))))
            return
        self.task = loop.create_task(self._connect())

    async def _connect(self):
        try:
            await self.connector.connect(self.loop, self._resources)
        except TransportError as e:
            self._signals.fire(ConnectFailedEvent(e))
        except Exception as e:
            self.logger.exception("%s: unexpected error opening %s" % (self.node_id, self.connector))
            self._signals.fire(ConnectFailedEvent(TransportError(str(e))))

    def _conduit_event(self, event):
        if not isinstance(event, ConduitDataEvent):
            self._signals.fire(event)

    def _handle(self, signal):
        if self._closed:
            self.logger.debug("%s: dropping %s after close" % (self.node_id, signal))
            return
        if isinstance(signal, ConduitOpenedEvent):
            if self.connector.network_phase and not self._io_ready:
                self._network_opened()
        elif isinstance(signal, ConduitErrorEvent):
            self._network_error(signal.error)
        elif isinstance(signal, ConduitClosedEvent):
            self._network_error(signal.error or ConnectionError("connection closed by peer"))
        elif isinstance(signal, BoardReadyEvent):
            self._board_ready(signal.board)
        elif isinstance(signal, (BoardErrorEvent, ConnectFailedEvent)):
            self._io_error(signal.error)

    def _network_opened(self):
        self._network_ready = True
        self.logger.info("%s: network ready" % self.node_id)
        self._set_state(ConnectionState.NETWORK_READY)
        self.events.fire(NetworkReadyEvent(self, self.board))

    def _board_ready(self, board):
        if self._io_ready:
            return
        if self.connector.network_phase and not self._network_ready:
            self._network_opened()
        self._io_ready = True
        self.io = board
        try:
            board.set_sampling_interval(self.settings.sampling_interval)
        except BoardError as e:
            self.logger.warning("%s: unable to set sampling interval: %s" % (self.node_id, e))
        self.logger.info("%s: board ready" % self.node_id)
        self._set_state(ConnectionState.IO_READY)
        self.events.fire(IOReadyEvent(self, board))

    def _network_error(self, error):
        self.logger.warning("%s: network error: %s" % (self.node_id, error))
        self._set_state(ConnectionState.NETWORK_ERROR)
        self.events.fire(NetworkErrorEvent(self, error))

    def _io_error(self, error):
        self.logger.warning("%s: io error: %s" % (self.node_id, error))
        self._set_state(ConnectionState.IO_ERROR)
        self.events.fire(IOErrorEvent(self, error))

    def _set_state(self, state):
        self.logger.debug("%s: %s -> %s" % (self.node_id, self.state.value, state.value))
        self.state = state

    def close(self, done=None):
        """
        Tears down the connection. The listening server, the transport and any bus session are
        closed in the order they were acquired, the board is removed from the cache, its components
        are released and its transport reference cleared.
        A failing step is logged and the remaining steps still run. Closing more than once has no
        further effect.
        :param done: called when the teardown completes, whatever the outcome, including when
            the connection was already closed.
        """
        try:
            if self._closed:
                self.logger.debug("%s: already closed" % self.node_id)
                return
            self._closed = True
            self._teardown()
        finally:
            self.state = ConnectionState.CLOSED
            if done is not None:
                done()

    def _teardown(self):
        self._resources.close_all()
        if self.connector is not None:
            self._attempt("closing the conduit", self.connector.conduit.close)
        adapter = self.adapter
        if adapter is not None:
            board = adapter.board
            if board is not None:
                self._attempt("pruning the board cache", self.cache.remove, board)
            self._attempt("releasing components", adapter.release_components)
            self._attempt("detaching the board", adapter.detach)
        if self._signals is not None:
            self._signals.clear()
        self.io = None
        self.logger.info("%s: closed" % self.node_id)

    def _attempt(self, description, step, *args):
        try:
            step(*args)
        except Exception as e:
            self.logger.warning("%s: error %s: %s" % (self.node_id, description, e))

    def __str__(self):
        return "connection %s" % self.node_id
