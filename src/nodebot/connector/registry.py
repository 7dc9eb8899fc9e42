"""
Maps each transport kind to the connector that opens it.
"""
from nodebot.config.settings import BridgedSerial, LocalSerial, TcpClient, TcpListener, Udp
from nodebot.connector.base import ConfigurationError
from nodebot.connector.mqttconn import MqttConnector
from nodebot.connector.serialconn import SerialConnector
from nodebot.connector.socketconn import TcpClientConnector, TcpListenerConnector
from nodebot.connector.udpconn import UdpConnector

connector_types = {
    LocalSerial.kind: lambda loop, t: SerialConnector(t.path, t.baud_rate),
    TcpClient.kind: lambda loop, t: TcpClientConnector(t.host, t.port),
    TcpListener.kind: lambda loop, t: TcpListenerConnector(t.port),
    Udp.kind: lambda loop, t: UdpConnector(t.host, t.port),
    BridgedSerial.kind: lambda loop, t: MqttConnector(loop, t.server_url, t.publish_topic, t.subscribe_topic,
                                                      t.username, t.password),
}


def create_connector(loop, transport):
    """
    Builds the connector for a transport config.
    Raises ConfigurationError for an unknown transport kind or invalid settings.
    """
    factory = connector_types.get(getattr(transport, 'kind', None))
    if factory is None:
        raise ConfigurationError("unsupported transport %r" % (transport,))
    return factory(loop, transport)
