import unittest
from unittest.mock import AsyncMock, Mock, patch

from hamcrest import assert_that, is_

from nodebot.conduit.serial_conduit import SerialConduit, board_ports, is_board_port, open_serial_conduit, \
    serial_ports

test_ports = [("/dev/ttyS0", "name", "desc"), ("/dev/ttyUSB0", "FT232R", "USB VID:PID=0403:6001"),
              ("/dev/ttyACM0", "Uno", "USB VID:PID=2341:0043"), ("COM4", "Leonardo", "USB")]


class SerialPortsTest(unittest.TestCase):

    @patch('serial.tools.list_ports.comports', return_value=test_ports)
    def test_serial_ports(self, comports):
        assert_that(list(serial_ports()), is_(["/dev/ttyS0", "/dev/ttyUSB0", "/dev/ttyACM0", "COM4"]))
        comports.assert_called_once()

    @patch('serial.tools.list_ports.comports', return_value=test_ports)
    def test_board_ports_filters_by_name(self, comports):
        assert_that(board_ports(), is_(["/dev/ttyUSB0", "/dev/ttyACM0", "COM4"]))

    @patch('serial.tools.list_ports.comports', return_value=[])
    def test_board_ports_empty(self, comports):
        assert_that(board_ports(), is_([]))

    def test_is_board_port_ignores_case(self):
        assert_that(is_board_port("/dev/cu.usbmodem1411"), is_(True))
        assert_that(is_board_port("com12"), is_(True))
        assert_that(is_board_port("/dev/ttyAMA0"), is_(False))


class SerialConduitTest(unittest.IsolatedAsyncioTestCase):

    def test_connection_made_opens(self):
        sut = SerialConduit("/dev/ttyUSB0")
        transport = Mock()
        transport.is_closing.return_value = False
        sut.connection_made(transport)
        assert_that(sut.open, is_(True))
        assert_that(sut.port, is_("/dev/ttyUSB0"))

    @patch('nodebot.conduit.serial_conduit.serial_asyncio.create_serial_connection', new_callable=AsyncMock)
    async def test_open_serial_conduit(self, create):
        transport = Mock()
        create.return_value = (transport, None)
        sut = SerialConduit()
        loop = Mock()

        result = await open_serial_conduit(loop, sut, "/dev/ttyACM0", 57600)

        assert_that(result, is_(transport))
        assert_that(sut.port, is_("/dev/ttyACM0"))
        args, kwargs = create.call_args
        assert_that(args[0], is_(loop))
        assert_that(args[1](), is_(sut))
        assert_that(args[2], is_("/dev/ttyACM0"))
        assert_that(kwargs, is_({'baudrate': 57600}))
