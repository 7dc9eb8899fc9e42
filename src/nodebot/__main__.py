"""
Command line for listing the serial ports a board may be attached to, and for running
the connections described by a configuration file.

    python -m nodebot ports
    python -m nodebot connect boards --dir /etc/nodebot
"""
import argparse
import asyncio
import json
import logging
import os
import sys

from configobj import ConfigObjError

from nodebot.conduit.serial_conduit import board_ports
from nodebot.config.config import load_connections
from nodebot.connection import IOErrorEvent, IOReadyEvent, NetworkErrorEvent, NetworkReadyEvent
from nodebot.connector.base import ConfigurationError
from nodebot.supervisor import ConnectionSupervisor

logger = logging.getLogger(__name__)


def log_connection_events(event):
    name = event.connection.node_id
    if isinstance(event, NetworkReadyEvent):
        logger.info("%s: network ready" % name)
    elif isinstance(event, IOReadyEvent):
        logger.info("%s: board ready" % name)
    elif isinstance(event, (NetworkErrorEvent, IOErrorEvent)):
        logger.warning("%s: %s" % (name, event.error))


async def run(connections):
    supervisor = ConnectionSupervisor()
    loop = asyncio.get_running_loop()
    for node_id, settings in connections.items():
        supervisor.deploy(node_id, settings, loop).events.add(log_connection_events)
    try:
        await loop.create_future()
    finally:
        supervisor.close()


def ports(args):
    print(json.dumps(board_ports()))
    return 0


def connect(args):
    try:
        connections = load_connections(args.name, args.dir)
    except (ConfigurationError, ConfigObjError, IOError) as e:
        logger.error("unable to load %s: %s" % (args.name, e))
        return 1
    if not connections:
        logger.error("no connections configured in %s" % args.name)
        return 1
    try:
        asyncio.run(run(connections))
    except KeyboardInterrupt:
        logger.info("stopped")
    return 0


def build_parser():
    parser = argparse.ArgumentParser(prog='nodebot', description="connects flows to microcontroller boards")
    parser.add_argument("-v", "--verbose", action="store_true", help="log debug messages")
    commands = parser.add_subparsers(dest='command', required=True)
    commands.add_parser('ports', help="list the serial ports a board may be attached to").set_defaults(func=ports)
    connect_parser = commands.add_parser('connect', help="run the connections in a configuration file")
    connect_parser.add_argument('name', help="configuration name, e.g. 'boards' for boards.cfg")
    connect_parser.add_argument('--dir', default=os.getcwd(), help="directory holding the configuration files")
    connect_parser.set_defaults(func=connect)
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    return args.func(args)


if __name__ == '__main__':
    sys.exit(main())
