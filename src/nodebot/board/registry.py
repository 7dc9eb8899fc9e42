"""
Board types are selected by name. Built in boards are registered in board_types; any other name
is treated as the dotted path of a board class, so boards from other packages can be used.

A board factory is called as factory(conduit, loop, handshake_timeout=...) and returns a Board.
"""
import importlib
import logging

from nodebot.board.firmata import FirmataBoard
from nodebot.connector.base import ConfigurationError

logger = logging.getLogger(__name__)

board_types = {
    'firmata': FirmataBoard,
}


def register_board_type(name, factory):
    board_types[name] = factory


def import_board_type(path):
    """
    Loads a board class given its dotted path, e.g. mypackage.boards.CustomBoard
    """
    module_name, _, class_name = path.rpartition('.')
    if not module_name:
        raise ConfigurationError("unknown board type '%s'" % path)
    try:
        module = importlib.import_module(module_name)
        factory = getattr(module, class_name)
    except (ImportError, AttributeError) as e:
        raise ConfigurationError("unable to load board type '%s': %s" % (path, e)) from e
    if not callable(factory):
        raise ConfigurationError("board type '%s' is not a class or function" % path)
    return factory


def resolve_board_type(name):
    """
    Finds the factory for a board type name.
    Raises ConfigurationError when the board type cannot be found or loaded.
    """
    factory = board_types.get(name)
    if factory is None:
        factory = import_board_type(name)
        logger.info("loaded board type %s" % name)
    return factory
