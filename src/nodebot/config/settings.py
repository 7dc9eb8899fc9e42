"""
Connection node settings.

The inbound settings of a connection node are validated against a configobj configspec, which
coerces values such as "9000" to integers and checks ranges and options, and are then turned
into a ConnectionSettings holding the board type and one of the TransportConfig variants.
"""
from collections import namedtuple

from configobj import ConfigObj, flatten_errors
from validate import Validator

from nodebot.connector.base import ConfigurationError

connection_schema = """
board_type = string(min=1, default='firmata')
connection_type = string(min=1, default='local')
serialport_name = string(default=None)
baud_rate = integer(min=50, default=57600)
tcp_host = string(default=None)
tcp_port = integer(min=0, max=65535, default=None)
mqtt_server = string(default=None)
username = string(default=None)
password = string(default=None)
pub_topic = string(default=None)
sub_topic = string(default=None)
sampling_interval = integer(min=0, max=65535, default=500)
handshake_timeout = float(min=0, default=10.0)
""".strip().splitlines()


class LocalSerial(namedtuple('LocalSerial', 'path baud_rate')):
    """ a board attached to a local serial device """
    kind = 'local'


class TcpClient(namedtuple('TcpClient', 'host port')):
    """ a board reached by connecting to its TCP server """
    kind = 'tcp'


class TcpListener(namedtuple('TcpListener', 'port')):
    """ a board that connects in to a port we listen on """
    kind = 'tcplisten'


class Udp(namedtuple('Udp', 'host port')):
    kind = 'udp'


class BridgedSerial(namedtuple('BridgedSerial', 'server_url username password publish_topic subscribe_topic')):
    """ a serial stream tunnelled over a pair of message bus topics """
    kind = 'mqtt'

    def __repr__(self):
        # keep credentials out of the logs
        return "BridgedSerial(server_url=%r, publish_topic=%r, subscribe_topic=%r)" % \
               (self.server_url, self.publish_topic, self.subscribe_topic)


ConnectionSettings = namedtuple('ConnectionSettings', 'board_type transport sampling_interval handshake_timeout')


def _require(section, *names):
    missing = [name for name in names if section.get(name) in (None, '')]
    if missing:
        raise ConfigurationError("connection type '%s' requires %s" %
                                 (section['connection_type'], ", ".join(missing)))
    return [section[name] for name in names]


def _local(section):
    path, = _require(section, 'serialport_name')
    return LocalSerial(path, section['baud_rate'])


def _tcp(section):
    return TcpClient(*_require(section, 'tcp_host', 'tcp_port'))


def _tcp_listen(section):
    return TcpListener(*_require(section, 'tcp_port'))


def _udp(section):
    return Udp(*_require(section, 'tcp_host', 'tcp_port'))


def _mqtt(section):
    server, publish, subscribe = _require(section, 'mqtt_server', 'pub_topic', 'sub_topic')
    return BridgedSerial(server, section['username'], section['password'], publish, subscribe)


transport_builders = {
    LocalSerial.kind: _local,
    TcpClient.kind: _tcp,
    TcpListener.kind: _tcp_listen,
    Udp.kind: _udp,
    BridgedSerial.kind: _mqtt,
}


def validate_section(values) -> ConfigObj:
    """
    Validates and coerces the raw settings against the connection configspec.
    :param values: a mapping of setting name to value. Keys not in the connection schema are kept as is.
        None and empty values are treated as not given.
    :return: the validated section, with defaults filled in.
    """
    given = dict((k, v) for k, v in values.items() if v is not None and v != '')
    section = ConfigObj(given, configspec=connection_schema)
    result = section.validate(Validator(), preserve_errors=True)
    if result is not True:
        problems = []
        for sections, key, error in flatten_errors(section, result):
            problems.append("%s: %s" % (key, error or "missing"))
        raise ConfigurationError("invalid connection settings - " + "; ".join(problems))
    return section


def parse_settings(values) -> ConnectionSettings:
    """
    Builds the settings for a connection node, rejecting unknown connection types and
    missing fields before any I/O is attempted.
    Raises ConfigurationError.
    """
    section = validate_section(values)
    kind = section['connection_type']
    builder = transport_builders.get(kind)
    if builder is None:
        raise ConfigurationError("unknown connection type '%s'" % kind)
    return ConnectionSettings(section['board_type'], builder(section),
                              section['sampling_interval'], section['handshake_timeout'])
