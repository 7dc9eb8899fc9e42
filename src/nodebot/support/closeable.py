"""
Uniform release of owned resources.

Everything the connection owns - listening servers, conduits, bus sessions - is a Closeable.
Closeables are pushed onto a ClosingStack as they are acquired, and closed in that same order
at teardown. Each is attempted exactly once, whatever happens to the others.
"""
import logging
from abc import abstractmethod

logger = logging.getLogger(__name__)


class TeardownError(Exception):
    """ Records a failure releasing a resource. Logged, never raised past the teardown. """

    def __init__(self, closeable, cause):
        super().__init__("error closing %s: %s" % (closeable, cause))
        self.closeable = closeable
        self.cause = cause


class Closeable:
    """ A resource that must be released at teardown. """

    @abstractmethod
    def close(self):
        raise NotImplementedError


class CallbackCloseable(Closeable):
    """ adapts a plain callable, such as server.close, to a Closeable. """

    def __init__(self, name, callback):
        self.name = name
        self.callback = callback

    def close(self):
        self.callback()

    def __str__(self):
        return self.name


class ClosingStack:
    """
    Owns a list of closeables in acquisition order.
    Once closed, any closeable pushed afterwards is closed immediately, so a resource that is
    acquired after teardown has started is not leaked.
    """

    def __init__(self, log=logger):
        self._closeables = []
        self.closed = False
        self.logger = log

    def __len__(self):
        return len(self._closeables)

    def push(self, closeable):
        if self.closed:
            self.logger.debug("releasing %s acquired after close" % closeable)
            self._close_one(closeable)
        else:
            self._closeables.append(closeable)
        return closeable

    def close_all(self):
        """
        closes each owned closeable in acquisition order. Failures are logged and collected.
        :return: a list of TeardownError, one for each closeable that failed to close.
        """
        self.closed = True
        closeables, self._closeables = self._closeables, []
        errors = []
        for closeable in closeables:
            error = self._close_one(closeable)
            if error is not None:
                errors.append(error)
        return errors

    def _close_one(self, closeable):
        try:
            closeable.close()
        except Exception as e:
            self.logger.warning("error closing %s: %s" % (closeable, e))
            return TeardownError(closeable, e)
