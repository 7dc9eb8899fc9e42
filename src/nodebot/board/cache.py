import logging

logger = logging.getLogger(__name__)


class BoardCache:
    """
    The boards currently constructed in the process, keyed by the identity of the connection
    that owns each one, in the order they were added.

    The cache is owned by the connection supervisor. Boards are added when constructed and
    removed only when their connection is torn down.
    """

    def __init__(self):
        self._entries = []

    def add(self, key, board):
        self._entries.append((key, board))

    def remove(self, board):
        """
        Removes every entry for the board. The cache is drained, and every entry for another
        board is added back in its original order.
        :return: the number of entries removed
        """
        entries, self._entries = self._entries, []
        removed = 0
        for key, cached in entries:
            if cached is board:
                removed += 1
            else:
                self._entries.append((key, cached))
        if removed:
            logger.debug("removed %s from the board cache" % board)
        return removed

    def list(self):
        """ the cached boards, in the order they were added. """
        return [board for key, board in self._entries]

    def get(self, key):
        """ the board most recently added for the key, or None. """
        for cached_key, board in reversed(self._entries):
            if cached_key == key:
                return board
        return None

    def __len__(self):
        return len(self._entries)

    def __contains__(self, board):
        return any(cached is board for key, cached in self._entries)
