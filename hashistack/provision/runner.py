"""
runner
======

Configure and start an agent on instance boot.

The steps run in this order and nothing is written before the first
two have passed:

1. the discovery agent answers on its local address (nomad only)
2. the instance metadata is read
3. the configuration is rendered and written
4. the systemd unit is written
5. systemd is reloaded and the service started

Steps 3 to 5 share a :class:`hashistack.util.util.Rollback`, a failure
in a later step restores the files written before.
"""
import os

from urllib.request import urlopen

from hashistack import NOMAD, CONSUL, DISCOVERY_AGENT
from hashistack.cloud.metadata import MetadataClient
from hashistack.provision.agent_config import NomadConfig, ConsulConfig
from hashistack.provision.systemd import ServiceUnit, write_unit, start_service
from hashistack.settings import agent_settings
from hashistack.util.logger import Logger
from hashistack.util.util import Rollback, owner_of_path, retry, write_file

LOGGER = Logger(__name__)

HEALTH_PATH = "/v1/status/leader"


class DiscoveryAgentUnavailable(RuntimeError):
    """Raised when the local discovery agent doesn't answer"""


def wait_for_discovery_agent(address, tries=6, delay=2, timeout=5):
    """Poll the discovery agent's HTTP API until it answers.

    Args:
        address (str): ``host:port`` of the local agent
        tries (int): number of attempts
        delay (int): seconds before the first retry, doubled every retry

    Raises:
        DiscoveryAgentUnavailable
    """
    url = f"http://{address}{HEALTH_PATH}"

    @retry(OSError, tries=tries, delay=delay, logger=LOGGER.warn)
    def _check():
        with urlopen(url, timeout=timeout) as resp:
            return resp.read().decode().strip()

    LOGGER.info("Waiting for %s at %s ...", DISCOVERY_AGENT, address)
    try:
        leader = _check()
    except OSError as exc:
        raise DiscoveryAgentUnavailable(
            f"{DISCOVERY_AGENT} is not reachable at {address}: {exc}") from exc

    LOGGER.debug("%s leader: %s", DISCOVERY_AGENT, leader)


class AgentRunner:
    """
    Render the configuration of an agent and start it under systemd.

    Args:
        settings (dict): the complete settings
        role (:class:`hashistack.provision.agent_config.Role`): the role
        user (str): the account owning the configuration, defaults to the
            owner of the install path
        metadata (:class:`MetadataClient`): defaults to a client built
            from the settings
    """
    agent = None
    config_class = None
    documentation = None

    def __init__(self, settings, role, user=None, metadata=None):
        self.settings = settings
        self.agent_settings = agent_settings(settings, self.agent)
        self.role = role
        self.user = user or owner_of_path(self.agent_settings['path'])
        self.metadata = metadata or MetadataClient.from_settings(settings)

    @property
    def bin_dir(self):
        return os.path.join(self.agent_settings['path'], "bin")

    def check_preconditions(self):
        """Checks which must pass before anything is written"""

    def exec_start(self, config):
        raise NotImplementedError

    def service_user(self):
        return self.user

    def requires(self):
        return []

    def unit(self, config):
        return ServiceUnit(
            self.agent,
            f"{self.agent.capitalize()} agent",
            self.exec_start(config),
            user=self.service_user(),
            requires=self.requires(),
            documentation=self.documentation,
            condition_file=config.path)

    def render(self):
        """Returns the configuration of this instance"""
        instance = self.metadata.instance()
        return self.config_class(instance, self.role, self.agent_settings)

    def run(self):
        """Configure and start the agent.

        Returns:
            The path of the written configuration.
        """
        self.check_preconditions()
        config = self.render()

        with Rollback() as rollback:
            LOGGER.info("Writing %s configuration (%s) to %s ...",
                        self.agent, self.role, config.path)
            write_file(config.path, str(config), owner=self.user,
                       permissions=0o640, rollback=rollback)

            unit = self.unit(config)
            write_unit(unit, self.settings['systemd-dir'], rollback)
            start_service(unit)

        LOGGER.success("%s started as %s", self.agent, self.role)
        return config.path


class NomadRunner(AgentRunner):
    """Runs nomad, which depends on the local consul agent"""
    agent = NOMAD
    config_class = NomadConfig
    documentation = "https://www.nomadproject.io/docs/"

    def check_preconditions(self):
        if not self.agent_settings['consul-check']:
            LOGGER.debug("Skipping %s check", DISCOVERY_AGENT)
            return

        wait_for_discovery_agent(self.agent_settings['consul-address'],
                                 self.agent_settings['consul-check-tries'],
                                 self.agent_settings['consul-check-delay'])

    def service_user(self):
        # the exec and docker drivers need root on clients
        if self.role.client:
            return "root"
        return self.user

    def requires(self):
        return [f"{DISCOVERY_AGENT}.service"]

    def exec_start(self, config):
        return "{} agent -config {}".format(
            os.path.join(self.bin_dir, self.agent), config.config_dir)


class ConsulRunner(AgentRunner):
    """Runs consul, the discovery agent"""
    agent = CONSUL
    config_class = ConsulConfig
    documentation = "https://www.consul.io/docs/"

    def exec_start(self, config):
        return "{} agent -config-dir {} -data-dir {}".format(
            os.path.join(self.bin_dir, self.agent), config.config_dir,
            config.data_dir)


RUNNERS = {
    NOMAD: NomadRunner,
    CONSUL: ConsulRunner,
}
