"""
Implements a conduit over a serial port.
"""

import logging
import re

import serial_asyncio
from serial.tools import list_ports

from nodebot.conduit.base import Conduit

logger = logging.getLogger(__name__)

# device paths that usually belong to an attachable board
board_port_pattern = re.compile(r"usb|acm|com\d+", re.IGNORECASE)


class SerialConduit(Conduit):
    """
    A conduit that provides comms via a serial port.
    """

    def __init__(self, port=None):
        super().__init__()
        self.port = port

    def connection_made(self, transport):
        logger.info("opened serial port %s" % self.port)
        super().connection_made(transport)


async def open_serial_conduit(loop, conduit: SerialConduit, port, baud_rate):
    """
    Opens the serial port and binds it to the conduit.
    Raises serial.SerialException when the device is missing or cannot be opened.
    """
    conduit.port = port
    transport, _ = await serial_asyncio.create_serial_connection(loop, lambda: conduit, port, baudrate=baud_rate)
    return transport


def serial_port_info():
    """
    :return: a tuple of serial port info objects,
    :rtype:
    """
    return tuple(list_ports.comports())


def serial_ports():
    """
    Returns a generator for all available serial port device names.
    """
    for port in serial_port_info():
        yield port[0]


def is_board_port(device):
    """
    >>> is_board_port('/dev/ttyUSB0')
    True
    >>> is_board_port('/dev/ttyACM1')
    True
    >>> is_board_port('COM3')
    True
    >>> is_board_port('/dev/ttyS0')
    False
    """
    return board_port_pattern.search(device) is not None


def board_ports():
    """
    Lists the device paths of the local serial ports a board could be attached to.
    """
    return [device for device in serial_ports() if is_board_port(device)]
