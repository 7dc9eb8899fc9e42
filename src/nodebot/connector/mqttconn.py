import logging

from nodebot.conduit.mqtt_conduit import MqttConduit, MqttSession, new_client, parse_server_url
from nodebot.connector.base import AbstractConnector, ConfigurationError

logger = logging.getLogger(__name__)


class MqttConnector(AbstractConnector):
    """
    A connector to a board whose serial stream is bridged over a message bus.
    The conduit is released before the session, so the subscription is dropped while the
    client is still connected.
    """
    def __init__(self, loop, server_url, publish_topic, subscribe_topic, username=None, password=None):
        try:
            self.host, self.port, tls = parse_server_url(server_url)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e
        client = new_client(username, password, tls)
        super().__init__(MqttConduit(loop, client, publish_topic, subscribe_topic))
        self.server_url = server_url
        self.session = MqttSession(client, server_url)

    @property
    def endpoint(self):
        return self.server_url

    async def _connect(self, loop, resources):
        resources.push(self._conduit)
        resources.push(self.session)
        self.session.start(self.host, self.port)
        logger.info("connecting to broker %s" % self.server_url)
