import logging
from abc import abstractmethod
from enum import IntEnum

from nodebot.conduit.base import ConduitNotOpenError
from nodebot.support.closeable import Closeable
from nodebot.support.events import EventSource
from nodebot.support.mixins import CommonEqualityMixin, StringerMixin

logger = logging.getLogger(__name__)


class BoardError(Exception):
    """ base class for errors raised by a board. """


class HandshakeError(BoardError):
    """ The board did not complete its protocol handshake. """


class CommandError(BoardError):
    """ A pin or peripheral command was rejected - an unsupported mode, or no transport to send it on. """


class PinMode(IntEnum):
    INPUT = 0x00
    OUTPUT = 0x01
    ANALOG = 0x02
    PWM = 0x03
    SERVO = 0x04
    I2C = 0x06
    PULLUP = 0x0B


class BoardEvent(CommonEqualityMixin, StringerMixin):
    def __init__(self, board):
        self.board = board


class BoardReadyEvent(BoardEvent):
    """ The board completed its handshake and accepts commands. """


class BoardErrorEvent(BoardEvent):
    """ The board failed, either during the handshake or afterwards. """
    def __init__(self, board, error):
        super().__init__(board)
        self.error = error


class Board(Closeable):
    """
    The IO control surface of a microcontroller bound to one conduit.

    A board fires BoardReadyEvent once, when its handshake completes, and BoardErrorEvent
    when the handshake fails or the board faults afterwards. Commands may only be issued once
    the board is ready; each may raise CommandError.

    Peripheral helpers constructed against the board are registered with it, so they
    can be released when the board is torn down.
    """
    MODES = PinMode

    def __init__(self, conduit, loop=None):
        self.conduit = conduit
        self.loop = loop
        self.events = EventSource()
        self.components = []
        self.ready = False

    def register(self, component):
        self.components.append(component)
        return component

    def write(self, data):
        conduit = self.conduit
        if conduit is None:
            raise CommandError("board %s has no transport" % self)
        try:
            conduit.write(data)
        except ConduitNotOpenError as e:
            raise CommandError("board transport is not open") from e

    @abstractmethod
    def start(self):
        """ begins the handshake. The board listens to the conduit from this point. """
        raise NotImplementedError

    @abstractmethod
    def pin_mode(self, pin, mode):
        raise NotImplementedError

    @abstractmethod
    def digital_write(self, pin, value):
        raise NotImplementedError

    @abstractmethod
    def analog_write(self, pin, value):
        raise NotImplementedError

    @abstractmethod
    def servo_write(self, pin, value):
        raise NotImplementedError

    @abstractmethod
    def digital_read(self, pin, callback):
        """
        Reports the value of a digital pin each time the board sends it.
        :param callback: called with the value 0 or 1
        """
        raise NotImplementedError

    @abstractmethod
    def analog_read(self, channel, callback):
        """
        Reports the value of an analog channel at the sampling interval.
        :param callback: called with the value read
        """
        raise NotImplementedError

    @abstractmethod
    def i2c_config(self, delay=0):
        raise NotImplementedError

    @abstractmethod
    def i2c_write(self, address, data, register=None):
        raise NotImplementedError

    @abstractmethod
    def i2c_read_once(self, address, num_bytes, callback, register=None):
        """
        Reads num_bytes from the i2c device once.
        :param callback: called with the list of bytes read
        """
        raise NotImplementedError

    @abstractmethod
    def set_sampling_interval(self, interval):
        """ sets how often, in milliseconds, the board reports analog values. """
        raise NotImplementedError

    def close(self):
        """ stops listening to the conduit. The conduit itself is owned by the connection. """
