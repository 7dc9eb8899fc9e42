import logging

from nodebot.board.base import PinMode
from nodebot.connection import IOErrorEvent, IOReadyEvent
from nodebot.status import status_for

logger = logging.getLogger(__name__)


def parse_int(value):
    """
    >>> parse_int('12')
    12
    >>> parse_int('') is None
    True
    """
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def parse_number(value):
    """
    >>> parse_number('127')
    127
    >>> parse_number(2.5)
    2.5
    >>> parse_number('on') is None
    True
    """
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return int(number) if number.is_integer() else number


def switch_value(payload):
    """
    The digital value for an on/off payload, or None when the payload is neither.
    >>> switch_value('ON'), switch_value(0), switch_value(True), switch_value('blue')
    (1, 0, 1, None)
    """
    if isinstance(payload, str):
        payload = payload.strip().lower()
        if payload in ('on', '1', 'true'):
            return 1
        if payload in ('off', '0', 'false'):
            return 0
        return None
    if payload is True or payload == 1:
        return 1
    if payload is False or payload == 0:
        return 0
    return None


class PeripheralNode:
    """
    Follows the events of a connection. The node's status is recomputed on every event,
    and io is set once the board is ready.

    :param connection: the ConnectionLifecycleManager the node uses
    :param send: called with each message the node outputs
    """

    def __init__(self, connection, pin, state, send=None, log=logger):
        self.connection = connection
        self.pin = pin
        self.state = state
        self.send = send or (lambda msg: None)
        self.logger = log
        self.io = None
        self.status = status_for(connection.state)
        connection.events.add(self._connection_event)

    def _connection_event(self, event):
        self.status = status_for(self.connection.state)
        if isinstance(event, IOReadyEvent):
            self.io = event.io
            self.ready(event.io)
        elif isinstance(event, IOErrorEvent):
            self.logger.warning("%s pin %s: %s" % (self.connection.node_id, self.pin, event.error))

    def ready(self, io):
        """ called once the board is ready """

    def _try(self, description, command, *args, **kwargs):
        """ runs an io command or a send, logging any failure. :return: True when it succeeded """
        try:
            command(*args, **kwargs)
        except Exception as e:
            self.logger.warning("%s pin %s: unable to %s: %s" % (self.connection.node_id, self.pin, description, e))
            return False
        return True

    def close(self):
        self.connection.events.remove(self._connection_event)
        self.io = None


class GpioInNode(PeripheralNode):
    """
    Reports the value of a pin. Each reading is sent as {'payload': value, 'topic': pin}.
    :param state: INPUT or PULLUP for a digital pin, ANALOG for an analog channel
    :param sampling_interval: milliseconds between analog readings
    """

    def __init__(self, connection, pin, state='INPUT', sampling_interval=300, send=None, log=logger):
        super().__init__(connection, pin, state, send, log)
        self.sampling_interval = parse_int(sampling_interval) or 300

    def ready(self, io):
        if self.state == 'ANALOG':
            self._try("set sampling interval", io.set_sampling_interval, self.sampling_interval)
            self._try("set pin mode", io.pin_mode, self.pin, PinMode.ANALOG)
            self._try("read", io.analog_read, self.pin, self._reading)
        else:
            mode = PinMode.PULLUP if self.state == 'PULLUP' else PinMode.INPUT
            self._try("set pin mode", io.pin_mode, self.pin, mode)
            self._try("read", io.digital_read, self.pin, self._reading)

    def _reading(self, value):
        self._try("send reading", self.send, {'payload': value, 'topic': self.pin})


class GpioOutNode(PeripheralNode):
    """
    Writes each input message to a pin or an i2c device.

    The node's state selects what the payload means, and a message may override it with its own 'state':
        OUTPUT              'on' or 1 sets the pin high, 'off' or 0 sets it low
        PWM                 a duty cycle 0..255
        SERVO               an angle 0..180
        I2C_READ_REQUEST    the number of bytes to read once; the bytes read are sent as the payload
        I2C_WRITE_REQUEST   the bytes to write
        I2C_DELAY           the delay, in microseconds, the board waits between i2c write and read
    A message may also override the node's i2c_address and i2c_register.
    Messages received before the board is ready are dropped.
    """
    pin_modes = {
        'OUTPUT': PinMode.OUTPUT,
        'PWM': PinMode.PWM,
        'SERVO': PinMode.SERVO,
    }

    def __init__(self, connection, pin, state='OUTPUT', i2c_address=None, i2c_register=None, send=None, log=logger):
        super().__init__(connection, pin, state, send, log)
        self.i2c_address = parse_int(i2c_address)
        self.i2c_register = parse_int(i2c_register)
        self._mode = None
        self._handlers = {
            'OUTPUT': self._output,
            'PWM': self._pwm,
            'SERVO': self._servo,
            'I2C_READ_REQUEST': self._i2c_read,
            'I2C_WRITE_REQUEST': self._i2c_write,
            'I2C_DELAY': self._i2c_delay,
        }

    def ready(self, io):
        self._mode = None

    def input(self, msg):
        io = self.io
        if io is None:
            self.logger.debug("%s pin %s: board not ready, dropping %s" % (self.connection.node_id, self.pin, msg))
            return
        state = msg.get('state') or self.state
        handler = self._handlers.get(state)
        if handler is None:
            self.logger.warning("%s pin %s: unknown state %s" % (self.connection.node_id, self.pin, state))
            return
        try:
            handler(io, msg)
        except Exception as e:
            self.logger.warning("%s pin %s: %s failed: %s" % (self.connection.node_id, self.pin, state, e))

    def _set_mode(self, io, state):
        mode = self.pin_modes[state]
        if self._mode != mode:
            if self._try("set pin mode", io.pin_mode, self.pin, mode):
                self._mode = mode

    def _output(self, io, msg):
        self._set_mode(io, 'OUTPUT')
        value = switch_value(msg.get('payload'))
        if value is not None:
            io.digital_write(self.pin, value)

    def _ranged_write(self, io, msg, state, high, write):
        self._set_mode(io, state)
        value = parse_number(msg.get('payload'))
        if value is None or not 0 <= value <= high:
            self.logger.debug("%s pin %s: %s value %r out of range" %
                              (self.connection.node_id, self.pin, state, msg.get('payload')))
            return
        write(self.pin, value)

    def _pwm(self, io, msg):
        self._ranged_write(io, msg, 'PWM', 255, io.analog_write)

    def _servo(self, io, msg):
        self._ranged_write(io, msg, 'SERVO', 180, io.servo_write)

    def _i2c_target(self, msg):
        address = parse_int(msg.get('i2c_address')) or self.i2c_address
        register = parse_int(msg.get('i2c_register')) or self.i2c_register
        return address, register

    def _i2c_read(self, io, msg):
        address, register = self._i2c_target(msg)
        num_bytes = parse_int(msg.get('payload'))
        if not address or not num_bytes:
            return

        def reply(data):
            out = {'payload': data, 'i2c_address': address, 'num_bytes': num_bytes}
            if register:
                out['register'] = register
            self._try("send i2c reply", self.send, out)
        io.i2c_read_once(address, num_bytes, reply, register=register or None)

    def _i2c_write(self, io, msg):
        address, register = self._i2c_target(msg)
        payload = msg.get('payload')
        if not address or not payload:
            return
        io.i2c_write(address, payload, register=register or None)

    def _i2c_delay(self, io, msg):
        delay = parse_int(msg.get('payload'))
        if delay is not None:
            io.i2c_config(delay)
