import asyncio
import unittest
from unittest.mock import AsyncMock, Mock

from hamcrest import assert_that, is_

from nodebot.conduit.socket_conduit import RejectedPeer, SocketConduit, open_client, open_listener


class SocketConduitTest(unittest.TestCase):

    def test_records_peer(self):
        transport = Mock()
        transport.get_extra_info.return_value = ('10.0.0.7', 3030)
        transport.is_closing.return_value = False
        sut = SocketConduit()
        sut.connection_made(transport)
        transport.get_extra_info.assert_called_once_with('peername')
        assert_that(sut.peer, is_(('10.0.0.7', 3030)))
        assert_that(sut.open, is_(True))

    def test_rejected_peer_is_closed(self):
        transport = Mock()
        RejectedPeer().connection_made(transport)
        transport.close.assert_called_once_with()


class SocketOpenTest(unittest.IsolatedAsyncioTestCase):

    async def test_open_client(self):
        loop = Mock()
        transport = Mock()
        loop.create_connection = AsyncMock(return_value=(transport, None))
        conduit = SocketConduit()
        result = await open_client(loop, conduit, "board.local", 3030)
        assert_that(result, is_(transport))
        factory, host, port = loop.create_connection.call_args[0]
        assert_that(factory(), is_(conduit))
        assert_that((host, port), is_(("board.local", 3030)))

    async def test_loopback_listener_and_client(self):
        loop = asyncio.get_running_loop()
        accepted = SocketConduit()
        received = asyncio.Event()
        data = []

        def on_data(event):
            if hasattr(event, 'data'):
                data.append(event.data)
                received.set()

        accepted.events += on_data
        server = await open_listener(loop, lambda: accepted, 0, '127.0.0.1')
        try:
            port = server.sockets[0].getsockname()[1]
            client = SocketConduit()
            await open_client(loop, client, '127.0.0.1', port)
            client.write(b'\xf9')
            await asyncio.wait_for(received.wait(), 5)
            assert_that(data, is_([b'\xf9']))
            client.close()
            accepted.close()
        finally:
            server.close()
            await server.wait_closed()
