"""
Publish/subscribe for the events of conduits, boards and connections.
"""
from collections import deque


class EventSource(object):
    """ Delivers each fired event to the handlers, in the order they were added. """

    def __init__(self):
        self._handlers = []

    def __iadd__(self, handler):
        return self.add(handler)

    def __isub__(self, handler):
        return self.remove(handler)

    def add(self, handler):
        self._handlers.append(handler)
        return self

    def remove(self, handler):
        if handler in self._handlers:
            self._handlers.remove(handler)
        return self

    def fire(self, *args, **kwargs):
        self._deliver(*args, **kwargs)

    def _deliver(self, *args, **kwargs):
        # a handler may unsubscribe while the event is delivered
        for handler in tuple(self._handlers):
            handler(*args, **kwargs)


class QueuedEventSource(EventSource):
    """
    fire() posts the event to a queue. Queued events are delivered to the handlers when publish()
    is called.

    :param schedule: optional callable that is passed publish() when the first event is queued, such as
        loop.call_soon. The queued events are then delivered on the next tick of the event loop, in the
        order they were posted.
    """
    def __init__(self, schedule=None):
        super().__init__()
        self.event_queue = deque()
        self._schedule = schedule
        self._scheduled = False

    def fire(self, event):
        self.event_queue.append(event)
        if self._schedule is not None and not self._scheduled:
            self._scheduled = True
            self._schedule(self.publish)

    def publish(self):
        """ delivers the queued events, including any queued by a handler while publishing. """
        self._scheduled = False
        queue = self.event_queue
        while queue:
            self._deliver(queue.popleft())

    def clear(self):
        """ discards any events not yet published. """
        self.event_queue.clear()
