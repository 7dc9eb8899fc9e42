import logging

from nodebot.board.base import BoardErrorEvent, BoardReadyEvent
from nodebot.support.events import EventSource

logger = logging.getLogger(__name__)


class BoardAdapter:
    """
    Binds a board to a conduit.

    The board is constructed against the conduit when the adapter is attached, and is added to
    the board cache under the connection's key. The board's ready and error events are
    republished on the adapter's events.

    :param board_factory: builds the board - see nodebot.board.registry
    :param conduit: the conduit the board speaks over
    :param loop: the event loop the board runs on
    :param cache: the BoardCache the board is added to
    :param key: the identity of the owning connection in the cache
    """

    def __init__(self, board_factory, conduit, loop, cache, key, handshake_timeout=10.0):
        self.board_factory = board_factory
        self.conduit = conduit
        self.loop = loop
        self.cache = cache
        self.key = key
        self.handshake_timeout = handshake_timeout
        self.events = EventSource()
        self.board = None

    def attach(self):
        board = self.board_factory(self.conduit, self.loop, handshake_timeout=self.handshake_timeout)
        self.board = board
        self.cache.add(self.key, board)
        board.events.add(self._board_event)
        board.start()
        return board

    def _board_event(self, event):
        if isinstance(event, (BoardReadyEvent, BoardErrorEvent)):
            self.events.fire(event)

    def release_components(self):
        """
        Stops every component registered with the board, or cancels its interval when it cannot
        be stopped, then clears its references to the board and conduit.
        A component that fails to release is logged, and the remaining components are still released.
        :return: the list of errors raised
        """
        board = self.board
        if board is None:
            return []
        errors = []
        components, board.components = board.components, []
        for component in components:
            try:
                self._stop(component)
            except Exception as e:
                logger.warning("error stopping component %s: %s" % (component, e))
                errors.append(e)
            try:
                component.board = None
                component.conduit = None
            except Exception as e:
                logger.warning("error releasing component %s: %s" % (component, e))
                errors.append(e)
        return errors

    @staticmethod
    def _stop(component):
        stop = getattr(component, 'stop', None)
        if callable(stop):
            stop()
            return
        interval = getattr(component, 'interval', None)
        if interval is not None:
            interval.cancel()
            component.interval = None

    def detach(self):
        """ closes the board and clears its reference to the conduit. """
        board = self.board
        if board is None:
            return
        board.events.remove(self._board_event)
        try:
            board.close()
        finally:
            board.conduit = None
            self.conduit = None
