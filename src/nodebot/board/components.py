"""
Peripheral helpers constructed against a board.

A component registers itself with its board, and holds back references to the board and its
conduit. A component may own a running interval, which must be cancelled when the board is torn down.
"""
import logging

logger = logging.getLogger(__name__)


class Component:
    """
    :param board: the board the component drives
    """
    def __init__(self, board):
        self.board = board
        self.conduit = board.conduit
        self.interval = None
        board.register(self)


class Led(Component):

    def __init__(self, board, pin):
        super().__init__(board)
        self.pin = pin
        self.value = 0
        board.pin_mode(pin, board.MODES.OUTPUT)

    def on(self):
        self._write(1)

    def off(self):
        self._write(0)

    def toggle(self):
        self._write(0 if self.value else 1)

    def _write(self, value):
        self.value = value
        self.board.digital_write(self.pin, value)

    def blink(self, period=0.1):
        """ toggles the led every period seconds until stopped. """
        self.stop()
        loop = self.board.loop

        def tick():
            self.toggle()
            self.interval = loop.call_later(period, tick)
        self.interval = loop.call_later(period, tick)

    def stop(self):
        if self.interval is not None:
            self.interval.cancel()
            self.interval = None
