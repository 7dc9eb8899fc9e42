"""
A board speaking the Firmata protocol.

Firmata messages are a command byte (high bit set) followed by 7-bit data bytes. Sysex messages
are framed by START_SYSEX and END_SYSEX. The handshake asks for the protocol version, then for
the capabilities of each pin; the board is ready once the capabilities arrive.
"""
import logging

from nodebot.board.base import Board, BoardErrorEvent, BoardReadyEvent, CommandError, HandshakeError, PinMode
from nodebot.conduit.base import ConduitDataEvent, ConduitOpenedEvent

logger = logging.getLogger(__name__)

DIGITAL_MESSAGE = 0x90
ANALOG_MESSAGE = 0xE0
REPORT_ANALOG = 0xC0
REPORT_DIGITAL = 0xD0
SET_PIN_MODE = 0xF4
REPORT_VERSION = 0xF9
START_SYSEX = 0xF0
END_SYSEX = 0xF7

# sysex commands
EXTENDED_ANALOG = 0x6F
CAPABILITY_QUERY = 0x6B
CAPABILITY_RESPONSE = 0x6C
STRING_DATA = 0x71
I2C_REQUEST = 0x76
I2C_REPLY = 0x77
I2C_CONFIG = 0x78
REPORT_FIRMWARE = 0x79
SAMPLING_INTERVAL = 0x7A

I2C_WRITE = 0x00
I2C_READ_ONCE = 0x08

# terminates the list of modes for a pin in a capability response
END_OF_PIN = 0x7F

MIN_SAMPLING_INTERVAL = 10
MAX_SAMPLING_INTERVAL = 65535

# number of data bytes that follow each non-sysex command
message_lengths = {
    DIGITAL_MESSAGE: 2,
    ANALOG_MESSAGE: 2,
    REPORT_VERSION: 2,
}


def lsb_msb(value):
    """
    >>> lsb_msb(0x3FFF)
    [127, 127]
    >>> lsb_msb(300)
    [44, 2]
    """
    return [value & 0x7F, (value >> 7) & 0x7F]


def from_7bit(data):
    """
    decodes pairs of 7-bit bytes into values.
    >>> from_7bit([44, 2, 1, 0])
    [300, 1]
    """
    return [data[i] | (data[i + 1] << 7) for i in range(0, len(data) - 1, 2)]


def parse_capabilities(data):
    """
    Parses a capability response into a list, one entry per pin, of the modes the pin
    supports mapped to their resolution.
    >>> parse_capabilities([0, 1, 1, 1, 0x7F, 0x7F, 2, 10, 0x7F])
    [{0: 1, 1: 1}, {}, {2: 10}]
    """
    pins = []
    modes = {}
    i = 0
    while i < len(data):
        if data[i] == END_OF_PIN:
            pins.append(modes)
            modes = {}
            i += 1
        else:
            modes[data[i]] = data[i + 1] if i + 1 < len(data) else 0
            i += 2
    return pins


class FirmataParser:
    """
    Assembles the Firmata byte stream into messages. Messages may be split across
    any number of chunks.
    Each message is a tuple (command, channel, data):
        - command is the command byte with the channel bits removed, or the sysex command
        - channel is the low nibble of channel commands (digital port, analog pin), else 0
        - data is the list of data bytes
    """

    def __init__(self):
        self._command = None
        self._expected = 0
        self._buffer = []
        self._sysex = False

    def feed(self, data):
        """ :return: the list of messages completed by the data """
        messages = []
        for b in data:
            message = self._byte(b)
            if message is not None:
                messages.append(message)
        return messages

    def _byte(self, b):
        if self._sysex:
            if b == END_SYSEX:
                self._sysex = False
                if not self._buffer:
                    return None
                return self._buffer[0], 0, self._buffer[1:]
            self._buffer.append(b)
            return None

        if b & 0x80:
            self._buffer = []
            if b == START_SYSEX:
                self._sysex = True
                self._command = None
                return None
            command = b if b >= 0xF0 else b & 0xF0
            self._expected = message_lengths.get(command, 0)
            self._command = b if self._expected else None
            if not self._expected:
                logger.debug("ignoring command 0x%02x" % b)
            return None

        if self._command is None:
            return None  # data byte without a command
        self._buffer.append(b)
        if len(self._buffer) < self._expected:
            return None
        command = self._command
        self._command = None
        if command >= 0xF0:
            return command, 0, self._buffer
        return command & 0xF0, command & 0x0F, self._buffer


class FirmataBoard(Board):
    """
    A board running StandardFirmata or a compatible sketch.

    :param conduit: the conduit to the board
    :param loop: the event loop that runs the handshake timer
    :param handshake_timeout: seconds to wait from the conduit opening to the board being ready
    """

    def __init__(self, conduit, loop, handshake_timeout=10.0):
        super().__init__(conduit, loop)
        self.handshake_timeout = handshake_timeout
        self.parser = FirmataParser()
        self.version = None
        self.firmware = None
        self.pins = []
        self.pin_modes = {}
        self._ports = {}
        self._digital_callbacks = {}
        self._analog_callbacks = {}
        self._i2c_callbacks = {}
        self._handshake_timer = None
        self._capabilities_requested = False
        self._handlers = {
            REPORT_VERSION: self._version,
            DIGITAL_MESSAGE: self._digital,
            ANALOG_MESSAGE: self._analog,
            CAPABILITY_RESPONSE: self._capabilities,
            REPORT_FIRMWARE: self._firmware,
            STRING_DATA: self._string,
            I2C_REPLY: self._i2c_reply,
        }

    def start(self):
        self.conduit.events.add(self._conduit_event)
        if self.conduit.open:
            self._begin_handshake()

    def _conduit_event(self, event):
        if isinstance(event, ConduitOpenedEvent):
            self._begin_handshake()
        elif isinstance(event, ConduitDataEvent):
            self._data(event.data)

    def _begin_handshake(self):
        if self.ready or self._handshake_timer is not None:
            return
        logger.debug("starting firmata handshake")
        self._handshake_timer = self.loop.call_later(self.handshake_timeout, self._handshake_timed_out)
        self.write([REPORT_VERSION])

    def _handshake_timed_out(self):
        self._handshake_timer = None
        if self.ready:
            return
        self.events.fire(BoardErrorEvent(self, HandshakeError(
            "no response from board after %s seconds" % self.handshake_timeout)))

    def _data(self, data):
        for command, channel, payload in self.parser.feed(data):
            handler = self._handlers.get(command)
            if handler is None:
                logger.debug("unhandled firmata message 0x%02x %s" % (command, payload))
                continue
            try:
                handler(channel, payload)
            except Exception as e:
                logger.warning("error handling firmata message 0x%02x: %s" % (command, e))
                self.events.fire(BoardErrorEvent(self, e))

    def _version(self, channel, data):
        self.version = (data[0], data[1])
        logger.info("firmata protocol version %d.%d" % self.version)
        if not self._capabilities_requested and not self.ready:
            self._capabilities_requested = True
            self.write([START_SYSEX, CAPABILITY_QUERY, END_SYSEX])

    def _capabilities(self, channel, data):
        self.pins = parse_capabilities(data)
        if self.ready:
            return
        self.ready = True
        if self._handshake_timer is not None:
            self._handshake_timer.cancel()
            self._handshake_timer = None
        logger.info("board ready with %d pins" % len(self.pins))
        self.events.fire(BoardReadyEvent(self))

    def _firmware(self, channel, data):
        if len(data) >= 2:
            self.firmware = bytes(from_7bit(data[2:])).decode('ascii', 'replace')
            logger.info("firmware %s %d.%d" % (self.firmware, data[0], data[1]))

    def _string(self, channel, data):
        logger.info("board says: %s" % bytes(from_7bit(data)).decode('ascii', 'replace'))

    def _digital(self, port, data):
        value = data[0] | (data[1] << 7)
        for pin, callback in list(self._digital_callbacks.items()):
            if pin // 8 == port:
                callback((value >> (pin % 8)) & 1)

    def _analog(self, channel, data):
        callback = self._analog_callbacks.get(channel)
        if callback is not None:
            callback(data[0] | (data[1] << 7))

    def _i2c_reply(self, channel, data):
        values = from_7bit(data)
        address = values[0]
        callback = self._i2c_callbacks.pop(address, None)
        if callback is not None:
            callback(values[2:])

    def pin_mode(self, pin, mode):
        try:
            mode = PinMode(mode)
        except ValueError:
            raise CommandError("unknown pin mode %s" % mode)
        if self.pins and (pin >= len(self.pins) or mode not in self.pins[pin]):
            raise CommandError("pin %s does not support mode %s" % (pin, mode.name))
        self.write([SET_PIN_MODE, pin, mode])
        self.pin_modes[pin] = mode

    def digital_write(self, pin, value):
        port = pin // 8
        mask = self._ports.get(port, 0)
        if value:
            mask |= 1 << (pin % 8)
        else:
            mask &= ~(1 << (pin % 8))
        self._ports[port] = mask
        self.write([DIGITAL_MESSAGE | port] + lsb_msb(mask))

    def analog_write(self, pin, value):
        value = int(value)
        if pin > 15 or value > 0x3FFF:
            self.write([START_SYSEX, EXTENDED_ANALOG, pin] + lsb_msb(value) + [(value >> 14) & 0x7F, END_SYSEX])
        else:
            self.write([ANALOG_MESSAGE | pin] + lsb_msb(value))

    def servo_write(self, pin, value):
        self.analog_write(pin, value)

    def digital_read(self, pin, callback):
        self._digital_callbacks[pin] = callback
        self.write([REPORT_DIGITAL | (pin // 8), 1])

    def analog_read(self, channel, callback):
        self._analog_callbacks[channel] = callback
        self.write([REPORT_ANALOG | channel, 1])

    def i2c_config(self, delay=0):
        self.write([START_SYSEX, I2C_CONFIG] + lsb_msb(delay) + [END_SYSEX])

    def i2c_write(self, address, data, register=None):
        if isinstance(data, int):
            data = [data]
        body = [] if register is None else lsb_msb(register)
        for b in data:
            body += lsb_msb(b)
        self.write([START_SYSEX, I2C_REQUEST, address, I2C_WRITE] + body + [END_SYSEX])

    def i2c_read_once(self, address, num_bytes, callback, register=None):
        self._i2c_callbacks[address] = callback
        body = [] if register is None else lsb_msb(register)
        self.write([START_SYSEX, I2C_REQUEST, address, I2C_READ_ONCE] + body + lsb_msb(num_bytes) + [END_SYSEX])

    def set_sampling_interval(self, interval):
        interval = max(MIN_SAMPLING_INTERVAL, min(MAX_SAMPLING_INTERVAL, int(interval)))
        self.write([START_SYSEX, SAMPLING_INTERVAL] + lsb_msb(interval) + [END_SYSEX])

    def close(self):
        if self._handshake_timer is not None:
            self._handshake_timer.cancel()
            self._handshake_timer = None
        if self.conduit is not None:
            self.conduit.events.remove(self._conduit_event)

    def __str__(self):
        return "firmata board on %s" % (self.conduit,)
