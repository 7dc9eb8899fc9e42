import asyncio
import unittest
from unittest.mock import Mock, patch

from hamcrest import assert_that, is_, contains_exactly, instance_of, has_length, calling, raises

from nodebot.board.base import BoardErrorEvent, BoardReadyEvent, CommandError, HandshakeError
from nodebot.board.cache import BoardCache
from nodebot.conduit.base import Conduit
from nodebot.config.settings import BridgedSerial, ConnectionSettings, TcpClient
from nodebot.connection import ConnectionLifecycleManager, ConnectionState, IOErrorEvent, IOReadyEvent, \
    NetworkErrorEvent, NetworkReadyEvent
from nodebot.connector.base import ConfigurationError, TransportError
from nodebot.status import status_for, CONNECTING, NETWORK_READY, CONNECTED, IO_ERROR, NETWORK_ERROR, CLOSED
from nodebot.support.closeable import CallbackCloseable
from nodebot.support.events import EventSource


async def settle():
    """ lets queued callbacks and tasks run. """
    for _ in range(10):
        await asyncio.sleep(0)


class FakeBoard:

    def __init__(self, conduit, loop, handshake_timeout=10.0):
        self.conduit = conduit
        self.loop = loop
        self.events = EventSource()
        self.components = []
        self.sampling_interval = None
        self.sampling_error = None
        self.closed = 0

    def start(self):
        pass

    def set_sampling_interval(self, interval):
        if self.sampling_error is not None:
            raise self.sampling_error
        self.sampling_interval = interval

    def close(self):
        self.closed += 1

    def ready(self):
        self.events.fire(BoardReadyEvent(self))


class FakeConnector:

    def __init__(self, network_phase=True, error=None, open_transport=True):
        self.conduit = Conduit()
        self.network_phase = network_phase
        self.error = error
        self.open_transport = open_transport
        self.transport = Mock()
        self.transport.is_closing.return_value = False
        self.release = None

    async def connect(self, loop, resources):
        resources.push(self.conduit)
        if self.release is not None:
            await self.release
            resources.push(CallbackCloseable("late resource", self.late_close))
        if self.error is not None:
            raise self.error
        if self.open_transport:
            self.conduit.connection_made(self.transport)

    late_close = Mock()


class ConnectionLifecycleManagerTest(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.cache = BoardCache()
        self.events = []
        self.statuses = []
        self.settings = ConnectionSettings('fake', TcpClient('board', 3030), 250, 1.0)

    def manager(self, connector, settings=None):
        sut = ConnectionLifecycleManager('node-1', settings or self.settings, self.cache,
                                         board_resolver=lambda name: FakeBoard,
                                         connector_factory=lambda loop, transport: connector)
        sut.events += self.events.append
        sut.events += lambda e: self.statuses.append(status_for(sut.state))
        return sut

    async def test_network_then_io_ready(self):
        connector = FakeConnector()
        sut = self.manager(connector)
        sut.start()
        assert_that(status_for(sut.state), is_(CONNECTING))
        await settle()
        board = sut.board
        assert_that(self.events, contains_exactly(NetworkReadyEvent(sut, board)))

        board.ready()
        await settle()
        assert_that(self.events, contains_exactly(NetworkReadyEvent(sut, board), IOReadyEvent(sut, board)))
        assert_that(self.statuses, is_([NETWORK_READY, CONNECTED]))
        assert_that(sut.io, is_(board))
        assert_that(board.sampling_interval, is_(250))
        sut.close()

    async def test_local_serial_goes_straight_to_io_ready(self):
        sut = self.manager(FakeConnector(network_phase=False))
        sut.start()
        await settle()
        assert_that(self.events, is_([]))
        sut.board.ready()
        await settle()
        assert_that(self.events, contains_exactly(IOReadyEvent(sut, sut.board)))
        sut.close()

    async def test_board_ready_before_open_signal_reports_network_first(self):
        sut = self.manager(FakeConnector(open_transport=False))
        sut.start()
        await settle()
        sut.board.ready()
        await settle()
        assert_that([type(e) for e in self.events], is_([NetworkReadyEvent, IOReadyEvent]))
        sut.close()

    async def test_transport_failure_is_one_io_error(self):
        error = TransportError("unable to open /dev/ttyUSB0")
        sut = self.manager(FakeConnector(network_phase=False, error=error))
        sut.start()
        assert_that(self.events, is_([]))
        await settle()
        assert_that(self.events, contains_exactly(IOErrorEvent(sut, error)))
        assert_that(status_for(sut.state), is_(IO_ERROR))
        sut.close()

    async def test_unexpected_connect_error_is_io_error(self):
        sut = self.manager(FakeConnector(error=RuntimeError("bug")))
        sut.start()
        await settle()
        assert_that(self.events, has_length(1))
        assert_that(self.events[0].error, instance_of(TransportError))
        sut.close()

    async def test_unknown_connection_type_creates_no_board(self):
        sut = ConnectionLifecycleManager('node-1', {'connection_type': 'bluetooth'}, self.cache)
        sut.events += self.events.append
        sut.start()
        await settle()
        assert_that(self.events, has_length(1))
        assert_that(self.events[0], instance_of(IOErrorEvent))
        assert_that(self.events[0].error, instance_of(ConfigurationError))
        assert_that(sut.board, is_(None))
        assert_that(len(self.cache), is_(0))
        sut.close()

    async def test_unknown_board_type_attempts_no_transport(self):
        connector_factory = Mock()
        sut = ConnectionLifecycleManager('node-1', {'board_type': 'no.such.Board', 'connection_type': 'tcp',
                                                    'tcp_host': 'board', 'tcp_port': 3030},
                                         self.cache, connector_factory=connector_factory)
        sut.events += self.events.append
        sut.start()
        await settle()
        connector_factory.assert_not_called()
        assert_that(self.events[0], instance_of(IOErrorEvent))

    async def test_board_construction_failure_is_io_error(self):
        sut = ConnectionLifecycleManager('node-1', self.settings, self.cache,
                                         board_resolver=lambda name: Mock(side_effect=TypeError("bad board")),
                                         connector_factory=lambda loop, transport: FakeConnector())
        sut.events += self.events.append
        sut.start()
        await settle()
        assert_that(self.events, has_length(1))
        assert_that(self.events[0].error, instance_of(ConfigurationError))
        sut.close()

    async def test_errors_after_ready(self):
        connector = FakeConnector()
        sut = self.manager(connector)
        sut.start()
        await settle()
        sut.board.ready()
        await settle()

        socket_error = ConnectionResetError()
        connector.conduit.error(socket_error)
        sut.board.events.fire(BoardErrorEvent(sut.board, HandshakeError("protocol fault")))
        connector.conduit.connection_lost(None)
        await settle()
        assert_that(self.events[2], is_(NetworkErrorEvent(sut, socket_error)))
        assert_that(self.events[3], instance_of(IOErrorEvent))
        assert_that(self.events[4], instance_of(NetworkErrorEvent))
        assert_that(self.events[4].error, instance_of(ConnectionError))
        assert_that(self.statuses[-1], is_(NETWORK_ERROR))
        sut.close()

    async def test_io_ready_at_most_once(self):
        sut = self.manager(FakeConnector())
        sut.start()
        await settle()
        sut.board.ready()
        sut.board.ready()
        await settle()
        assert_that([e for e in self.events if isinstance(e, IOReadyEvent)], has_length(1))
        sut.close()

    async def test_sampling_interval_failure_is_logged(self):
        sut = self.manager(FakeConnector())
        sut.start()
        await settle()
        sut.board.sampling_error = CommandError("not supported")
        with self.assertLogs('nodebot.connection', 'WARNING'):
            sut.board.ready()
            await settle()
        assert_that(sut.state, is_(ConnectionState.IO_READY))
        sut.close()

    async def test_close_twice(self):
        connector = FakeConnector()
        sut = self.manager(connector)
        sut.start()
        await settle()
        board = sut.board
        done = Mock()
        sut.close(done)
        sut.close(done)
        assert_that(done.call_count, is_(2))
        connector.transport.close.assert_called_once_with()
        assert_that(board.closed, is_(1))
        assert_that(board.conduit, is_(None))
        assert_that(status_for(sut.state), is_(CLOSED))
        assert_that(sut.io, is_(None))

    async def test_close_prunes_cache_and_keeps_others_in_order(self):
        first, last = Mock(name='first'), Mock(name='last')
        self.cache.add('other-1', first)
        sut = self.manager(FakeConnector())
        sut.start()
        self.cache.add('other-2', last)
        assert_that(self.cache.list(), contains_exactly(first, sut.board, last))
        sut.close()
        assert_that(self.cache.list(), contains_exactly(first, last))

    async def test_close_releases_components(self):
        sut = self.manager(FakeConnector())
        sut.start()
        await settle()
        board = sut.board
        broken, timer = Mock(), Mock(spec=['board', 'conduit', 'interval'])
        broken.stop.side_effect = RuntimeError("stuck")
        interval = timer.interval
        board.components = [broken, timer]
        sut.close()
        interval.cancel.assert_called_once_with()
        for component in (broken, timer):
            assert_that(component.board, is_(None))
            assert_that(component.conduit, is_(None))

    async def test_close_signals_done_when_a_step_fails(self):
        sut = self.manager(FakeConnector())
        sut.start()
        await settle()
        sut.board.close = Mock(side_effect=RuntimeError("stuck"))
        done = Mock()
        sut.close(done)
        done.assert_called_once_with()

    async def test_close_mid_handshake_then_restart(self):
        sut = self.manager(FakeConnector())
        sut.start()
        await settle()
        old_board = sut.board
        sut.close()
        old_board.ready()
        await settle()
        assert_that([e for e in self.events if isinstance(e, IOReadyEvent)], is_([]))
        assert_that(self.cache.list(), is_([]))

        again = self.manager(FakeConnector())
        again.start()
        await settle()
        again.board.ready()
        await settle()
        assert_that(self.events[-1], is_(IOReadyEvent(again, again.board)))
        assert_that(self.cache.list(), contains_exactly(again.board))
        again.close()

    async def test_late_failure_after_close_is_dropped(self):
        connector = FakeConnector(error=TransportError("late"))
        connector.release = asyncio.get_running_loop().create_future()
        connector.late_close = Mock()
        sut = self.manager(connector)
        sut.start()
        await settle()
        sut.close()
        connector.release.set_result(None)
        await settle()
        assert_that(self.events, is_([]))
        connector.late_close.assert_called_once_with()
        assert_that(self.cache.list(), is_([]))

    async def test_close_before_start_and_start_after_close(self):
        sut = self.manager(FakeConnector())
        done = Mock()
        sut.close(done)
        done.assert_called_once_with()
        assert_that(calling(sut.start), raises(RuntimeError))

    @patch('nodebot.conduit.mqtt_conduit.mqtt')
    async def test_unreachable_broker_is_one_network_error(self, mqtt):
        client = mqtt.Client.return_value
        settings = ConnectionSettings('fake', BridgedSerial('mqtt://127.0.0.1:1', None, None, 'tx', 'rx'), 250, 1.0)
        sut = ConnectionLifecycleManager('node-1', settings, self.cache, board_resolver=lambda name: FakeBoard)
        sut.events += self.events.append
        sut.start()
        await settle()
        client.connect_async.assert_called_once_with('127.0.0.1', 1, 60)
        # the client retries from its own thread
        for _ in range(3):
            client.on_connect_fail(client, None)
            await settle()
        assert_that(self.events, has_length(1))
        assert_that(self.events[0], instance_of(NetworkErrorEvent))
        assert_that(status_for(sut.state), is_(NETWORK_ERROR))
        sut.close()
        client.loop_stop.assert_called_once_with()


if __name__ == '__main__':  # pragma no cover
    unittest.main()
