"""
hashistack
==========

The umbrella command for image builds and instance boot.
Don't use it directly, instead install the package with setup.py.
It automatically creates an executable in your path.

"""
import argparse
import sys

from mach import mach1

from . import __version__, AGENTS
from .cli import FATAL_ERRORS, install, configure, fail
from .provision.agent_config import Role
from .provision.apt import REPOSITORIES, install_packages
from .util.logger import Logger, LEVEL_NAMES

LOGGER = Logger(__name__)


def agent_validation(agent):
    """Exits with status 1 if agent is unknown"""
    if agent not in AGENTS:
        LOGGER.error('Error: agent must be [%s]' % " | ".join(AGENTS))
        sys.exit(1)
    return agent


@mach1()
class Hashistack:  # pylint: disable=no-self-use
    """
    Install and run the nomad and consul agents of a machine image.
    """
    def __init__(self):
        self.parser.add_argument(  # pylint: disable=no-member
            "--version", action="store_true",
            help="show version and exit",
            default=argparse.SUPPRESS)

        verbosity_help = "".join([
            "set the verbosity level (",
            "0 = quiet, ",
            "1 = error, ",
            "2 = warning, ",
            "3 = info, ",
            "4 = debug)"])
        self.parser.add_argument("--verbosity",  # pylint: disable=no-member
                                 "-v",
                                 help=verbosity_help,
                                 choices=['0', '1', '2', '3', '4'] +
                                 list(LEVEL_NAMES),
                                 type=str,
                                 default=3)

    def _get_version(self):
        print("%s version: %s" % (self.__class__.__name__, __version__))

    def install(self, agent: str, release: str, settings: str = None):
        """
        Install an agent binary on this machine

        agent - nomad or consul
        release - the version to install, e.g. 1.6.1
        settings - the settings file
        """
        install(agent_validation(agent), release, settings)

    def start(self, agent: str, server: bool = False, client: bool = False,
              servers: int = 0, settings: str = None):
        """
        Configure and start an agent on instance boot

        agent - nomad or consul
        server - run in server mode
        client - run in client mode
        servers - the number of servers expected in the cluster
        settings - the settings file
        """
        agent_validation(agent)
        try:
            role = Role(server, client, servers or None)
        except ValueError as exc:
            fail(exc)

        configure(agent, role, settings)

    def packages(self, name: str):
        """
        Add a third party apt repository and install its packages

        name - one of the known repositories
        """
        if name not in REPOSITORIES:
            LOGGER.error('Error: name must be '
                         '[%s]' % " | ".join(sorted(REPOSITORIES)))
            sys.exit(1)

        try:
            install_packages(name)
        except FATAL_ERRORS as exc:
            fail(exc)


def main():
    """
    run and execute hashistack
    """
    k = Hashistack()

    # Setting verbosity level
    # pylint: disable=no-member
    LOGGER.level = k.parser.parse_args().verbosity

    # the mach decorator analyzes the methods in the class and dynamically
    # creates the CLI parser. It also adds the method run to the class.
    k.run()  # pylint: disable=no-member
