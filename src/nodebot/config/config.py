import logging
import os
import platform

from configobj import ConfigObj, ConfigObjError
from validate import Validator

from nodebot.config.settings import parse_settings

logger = logging.getLogger(__name__)

config_extension = '.cfg'


def flavored(name, flavor=None):
    """
    >>> flavored('connections', 'default')
    'connections.default'
    >>> flavored('connections')
    'connections'
    """
    return name + '.' + flavor if flavor else name


def map_os_name(name):
    """
    >>> map_os_name('Windows')
    'windows'
    >>> map_os_name("Darwin")
    'osx'
    """
    name = name.lower()
    return 'osx' if name == 'darwin' else name


def os_name():
    return map_os_name(platform.system())


def config_layers(name, directory, home=None):
    """
    The files making up a configuration, in the order they are merged, later files overriding earlier ones:
        - <name>.default.cfg
        - <name>.<os>.cfg, since serial port names differ between windows and linux
        - <name>.cfg in the user's home directory
        - <name>.cfg
    """
    home = home or os.path.expanduser('~')
    return [
        os.path.join(directory, flavored(name, 'default') + config_extension),
        os.path.join(directory, flavored(name, os_name()) + config_extension),
        os.path.join(home, name + config_extension),
        os.path.join(directory, name + config_extension),
    ]


def load_file(file, must_exist=True):
    """
    Loads a configuration file
    :param file:        The configuration file to load
    :param must_exist:  when True, the file must exist or an exception is thrown.
        Otherwise a missing file is an empty configuration.
    """
    if not must_exist and not os.path.exists(file):
        return ConfigObj()
    try:
        return ConfigObj(file, interpolation='Template', file_error=True)
    except ConfigObjError as e:
        raise type(e)(str(e) + ' at ' + file)


def load_config(name, directory, home=None) -> ConfigObj:
    """
    Merges the configuration layers for the given name, and validates the result against
    <name>.schema.cfg when that file exists.
    :param directory: the location of the configuration files
    :param home: the directory holding the user override, by default the user's home directory.
    """
    config = ConfigObj()
    for file in config_layers(name, directory, home):
        layer = load_file(file, must_exist=False)
        if layer:
            logger.debug("merging config %s" % file)
        config.merge(layer)

    schema_file = os.path.join(directory, flavored(name, 'schema') + config_extension)
    if os.path.exists(schema_file):
        config.configspec = ConfigObj(schema_file, _inspec=True)
        result = config.validate(Validator())
        if result is not True:
            raise ConfigObjError("the config file %s failed validation %s" % (name, result))
    return config


def load_connections(name, directory, home=None):
    """
    Loads the connection nodes described by a configuration. Each top level section is one
    connection node, keyed by the section name.
    :return: a dict of node id to ConnectionSettings
    Raises ConfigurationError when a section has invalid settings.
    """
    config = load_config(name, directory, home)
    connections = {}
    for node_id in config.sections:
        connections[node_id] = parse_settings(config[node_id])
        logger.debug("loaded connection %s: %s" % (node_id, connections[node_id]))
    return connections
