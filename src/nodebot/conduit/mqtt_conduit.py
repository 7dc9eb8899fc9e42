"""
Implements a conduit tunnelled over a message bus.

Bytes written to the conduit are published to one topic, and messages received on another
topic are delivered as stream data, so a board bridged to an MQTT broker looks like a serial port.
The paho client runs its network loop on its own thread; every callback is marshalled onto the
event loop before it touches the conduit.
"""
import logging
from urllib.parse import urlsplit

import paho.mqtt.client as mqtt

from nodebot.conduit.base import Conduit
from nodebot.support.closeable import Closeable

logger = logging.getLogger(__name__)

default_ports = {'mqtt': 1883, 'tcp': 1883, 'mqtts': 8883, 'ssl': 8883}


def parse_server_url(url):
    """
    Splits a broker url into host, port and whether tls is used.

    >>> parse_server_url('mqtt://broker.local')
    ('broker.local', 1883, False)
    >>> parse_server_url('mqtts://broker.local:8884')
    ('broker.local', 8884, True)
    >>> parse_server_url('broker.local:1884')
    ('broker.local', 1884, False)
    """
    if '://' not in url:
        url = 'mqtt://' + url
    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    if scheme not in default_ports:
        raise ValueError("unsupported broker scheme '%s'" % scheme)
    if not parts.hostname:
        raise ValueError("no broker host in '%s'" % url)
    return parts.hostname, parts.port or default_ports[scheme], default_ports[scheme] == 8883


def new_client(username=None, password=None, tls=False):
    client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2)
    if username:
        client.username_pw_set(username, password)
    if tls:
        client.tls_set()
    return client


class MqttSession(Closeable):
    """
    The bus client's connection to the broker. Closing the session disconnects from the
    broker and stops the client's network thread.
    """
    def __init__(self, client, server_url):
        self.client = client
        self.server_url = server_url
        self._started = False

    def start(self, host, port, keepalive=60):
        self.client.connect_async(host, port, keepalive)
        self.client.loop_start()
        self._started = True

    def close(self):
        if not self._started:
            return
        self._started = False
        self.client.disconnect()
        self.client.loop_stop()

    def __str__(self):
        return "mqtt session %s" % self.server_url


class TopicTransport:
    """ A transport-shaped wrapper that publishes writes to a topic. """

    def __init__(self, client, publish_topic, subscribe_topic):
        self.client = client
        self.publish_topic = publish_topic
        self.subscribe_topic = subscribe_topic
        self._closing = False

    def write(self, data):
        self.client.publish(self.publish_topic, bytes(data))

    def is_closing(self):
        return self._closing

    def close(self):
        if self._closing:
            return
        self._closing = True
        self.client.unsubscribe(self.subscribe_topic)

    def get_extra_info(self, name, default=None):
        return self.subscribe_topic if name == 'peername' else default


class MqttConduit(Conduit):
    """
    A conduit over a pair of bus topics.
    The conduit opens when the client first connects to the broker. Broker refusals,
    connection failures and unexpected disconnects are reported as conduit errors;
    the paho client keeps reconnecting while the session runs. Only the first failure of
    an outage is reported, and the next successful connect ends the outage.
    """

    def __init__(self, loop, client, publish_topic, subscribe_topic):
        super().__init__()
        self.loop = loop
        self.client = client
        self.publish_topic = publish_topic
        self.subscribe_topic = subscribe_topic
        self._failing = False
        client.on_connect = self._on_connect
        client.on_connect_fail = self._on_connect_fail
        client.on_disconnect = self._on_disconnect
        client.on_message = self._on_message

    # paho network thread
    def _on_connect(self, client, userdata, flags, reason_code, properties=None):
        self.loop.call_soon_threadsafe(self._connected, reason_code)

    def _on_connect_fail(self, client, userdata):
        self.loop.call_soon_threadsafe(self._broker_failure, ConnectionError("unable to connect to broker"))

    def _on_disconnect(self, client, userdata, flags, reason_code, properties=None):
        if reason_code != 0:
            self.loop.call_soon_threadsafe(self._broker_failure,
                                           ConnectionError("disconnected from broker: %s" % reason_code))

    def _on_message(self, client, userdata, message):
        self.loop.call_soon_threadsafe(self.data_received, bytes(message.payload))

    # event loop
    def _broker_failure(self, error):
        if self.closed:
            return
        if self._failing:
            logger.debug("broker still unavailable: %s" % error)
            return
        self._failing = True
        logger.warning("%s" % error)
        self.error(error)

    def _connected(self, reason_code):
        if self.closed:
            return
        if reason_code.is_failure:
            self._broker_failure(ConnectionError("broker refused connection: %s" % reason_code))
            return
        self._failing = False
        self.client.subscribe(self.subscribe_topic)
        if self.target is None:
            logger.info("bridged serial connected, publishing to %s, subscribed to %s" %
                        (self.publish_topic, self.subscribe_topic))
            self.connection_made(TopicTransport(self.client, self.publish_topic, self.subscribe_topic))
        else:
            logger.info("reconnected to broker, resubscribed to %s" % self.subscribe_topic)
