import logging

from nodebot.board.cache import BoardCache
from nodebot.connection import ConnectionLifecycleManager

logger = logging.getLogger(__name__)


class ConnectionSupervisor:
    """
    Owns the connections of a flow, one per connection node, and the cache of the boards
    they construct.

    Deploying a node that is already deployed tears down the existing connection before the
    new one starts, so the cache never holds the boards of both.
    """

    def __init__(self, cache=None, manager_factory=ConnectionLifecycleManager, log=logger):
        self.cache = cache if cache is not None else BoardCache()
        self.manager_factory = manager_factory
        self.logger = log
        self.connections = {}

    def deploy(self, node_id, settings, loop=None):
        """
        Starts a connection for the node.
        :param settings: the node's ConnectionSettings, or its raw settings
        :return: the ConnectionLifecycleManager for the node. Subscribe to its events for progress.
        """
        previous = self.connections.pop(node_id, None)
        if previous is not None:
            self.logger.info("redeploying %s" % node_id)
            previous.close()
        connection = self.manager_factory(node_id, settings, self.cache)
        self.connections[node_id] = connection
        connection.start(loop)
        return connection

    def get(self, node_id):
        return self.connections.get(node_id)

    def remove(self, node_id, done=None):
        """
        Tears down the node's connection.
        :param done: called once the teardown completes, also when the node is not deployed.
        """
        connection = self.connections.pop(node_id, None)
        if connection is None:
            if done is not None:
                done()
            return
        connection.close(done)

    def close(self):
        """ tears down every connection, in the order they were deployed. """
        for node_id in list(self.connections):
            self.remove(node_id)
