"""
cli.py
======

The per agent commands ``install-<agent>`` and ``run-<agent>``.

Every failure ends with an error line and exit code 1, including usage
errors, so the image build and the instance user data can simply check
for a non-zero exit.
"""
import argparse
import subprocess as sp
import sys

from urllib.error import URLError

from hashistack import NOMAD, CONSUL, __version__
from hashistack.cloud.metadata import MetadataError
from hashistack.provision.agent_config import Role
from hashistack.provision.install import Installer, InstallError
from hashistack.provision.release import ChecksumMismatch
from hashistack.provision.runner import RUNNERS, DiscoveryAgentUnavailable
from hashistack.settings import SettingsError, load_settings
from hashistack.util.logger import Logger, LEVEL_NAMES
from hashistack.util.util import (MissingToolError, UnknownUserError,
                                  require_tools)

LOGGER = Logger(__name__)

FATAL_ERRORS = (SettingsError, MetadataError, MissingToolError, InstallError,
                ChecksumMismatch, DiscoveryAgentUnavailable,
                UnknownUserError, sp.CalledProcessError, URLError, OSError)


class ArgumentParser(argparse.ArgumentParser):
    """An argparse parser exiting with 1 on usage errors"""

    def error(self, message):
        self.print_usage(sys.stderr)
        LOGGER.error("%s: %s", self.prog, message)
        sys.exit(1)


def add_common_arguments(parser):
    parser.add_argument("--settings", help="the settings file to use")
    parser.add_argument("--verbosity", "-v",
                        choices=[str(i) for i in range(5)] + list(LEVEL_NAMES),
                        default="3",
                        help="0 = quiet, 1 = error, 2 = warning, 3 = info, "
                             "4 = debug")


def install_parser(agent):
    parser = ArgumentParser(
        prog=f"install-{agent}",
        description=f"Install {agent} (hashistack {__version__}).")
    parser.add_argument("--version", required=True,
                        help=f"the version of {agent} to install, e.g. 1.6.1")
    parser.add_argument("--path", help="the install root, e.g. /opt/%s" % agent)
    parser.add_argument("--user", help=f"the account {agent} runs as")
    parser.add_argument("--skip-checksum", action="store_true",
                        help="don't verify the SHA256SUMS of the download")
    add_common_arguments(parser)
    return parser


def run_parser(agent):
    parser = ArgumentParser(
        prog=f"run-{agent}",
        description=f"Configure and start {agent} on this instance.")
    parser.add_argument("--server", action="store_true",
                        help=f"run {agent} in server mode")
    parser.add_argument("--client", action="store_true",
                        help=f"run {agent} in client mode")
    parser.add_argument("--num-servers", type=int,
                        help="the number of servers to expect in the cluster")
    parser.add_argument("--user",
                        help="owner of the configuration, defaults to the "
                             "owner of the install path")
    if agent == CONSUL:
        parser.add_argument("--cluster-tag-key",
                            help="instance tag key used for auto-join")
        parser.add_argument("--cluster-tag-value",
                            help="instance tag value used for auto-join")
    add_common_arguments(parser)
    return parser


def fail(exc):
    LOGGER.error(f"Error: {exc}")
    sys.exit(1)


def install(agent, version, settings=None, path=None, user=None,
            skip_checksum=False):
    """Install an agent release, exits 1 on any failure"""
    try:
        installer = Installer(agent, version, load_settings(settings),
                              path=path, user=user,
                              verify=False if skip_checksum else None)
        installer.run()
    except FATAL_ERRORS + (ValueError,) as exc:
        fail(exc)


def configure(agent, role, settings=None, user=None, overrides=None):
    """Configure and start an agent, exits 1 on any failure.

    Args:
        agent (str): nomad or consul
        role (:class:`hashistack.provision.agent_config.Role`): the role
        settings (str): path of the settings file
        user (str): owner of the configuration
        overrides (dict): values replacing the agent settings
    """
    try:
        require_tools("systemctl")
        conf = load_settings(settings)
        conf['agents'][agent].update(overrides or {})
        RUNNERS[agent](conf, role, user=user).run()
    except FATAL_ERRORS as exc:
        fail(exc)


def install_main(agent, argv=None):
    parser = install_parser(agent)
    args = parser.parse_args(argv)
    LOGGER.level = args.verbosity
    install(agent, args.version, args.settings, args.path, args.user,
            args.skip_checksum)


def run_main(agent, argv=None):
    parser = run_parser(agent)
    args = parser.parse_args(argv)
    LOGGER.level = args.verbosity

    try:
        role = Role(args.server, args.client, args.num_servers)
    except ValueError as exc:
        parser.error(str(exc))

    overrides = {}
    for key in ("cluster_tag_key", "cluster_tag_value"):
        value = getattr(args, key, None)
        if value:
            overrides[key.replace("_", "-")] = value

    configure(agent, role, args.settings, args.user, overrides)


def install_nomad():
    """entry point of install-nomad"""
    install_main(NOMAD)


def run_nomad():
    """entry point of run-nomad"""
    run_main(NOMAD)


def install_consul():
    """entry point of install-consul"""
    install_main(CONSUL)


def run_consul():
    """entry point of run-consul"""
    run_main(CONSUL)
