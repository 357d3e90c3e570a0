"""
This module renders the agent configuration files written on every boot.

Nomad is configured in HCL, consul in JSON. Both are built from the
:class:`hashistack.cloud.metadata.InstanceMetadata` of the instance and
its :class:`Role`.
"""
import json
import os
import textwrap


class Role:
    """
    The role of an agent in the cluster.

    Args:
        server (bool): run as server
        client (bool): run as client
        num_servers (int): expected number of servers, needed to bootstrap
            the consensus when server is set.

    Raises:
        ValueError if neither role is selected or a server has no
        positive num_servers.
    """
    def __init__(self, server=False, client=False, num_servers=None):
        if not (server or client):
            raise ValueError("at least one of the server or client roles "
                             "must be selected")

        if server:
            if num_servers is None:
                raise ValueError("the server role needs the number of servers")
            if not isinstance(num_servers, int) or num_servers < 1:
                raise ValueError("the number of servers must be a positive "
                                 "integer")

        self.server = server
        self.client = client
        self.num_servers = num_servers

    def __str__(self):
        return "+".join(name for name, enabled in
                        (("server", self.server), ("client", self.client))
                        if enabled)


class AgentConfig:  # pylint: disable=too-few-public-methods
    """
    Base class of the agent configurations.

    Args:
        instance (InstanceMetadata): the facts of this instance
        role (Role): the role of the agent
        settings (dict): the agent section of the settings
    """
    agent = None

    def __init__(self, instance, role, settings):
        self.instance = instance
        self.role = role
        self.settings = settings

    @property
    def data_dir(self):
        return os.path.join(self.settings['path'], "data")

    @property
    def config_dir(self):
        return os.path.join(self.settings['path'], "config")

    @property
    def path(self):
        """Where the rendered configuration is written to"""
        return os.path.join(self.config_dir, self.settings['config-file'])


class NomadConfig(AgentConfig):
    """
    The nomad agent configuration in HCL.

    A server gets a ``server`` stanza with the expected number of servers,
    a client a ``client`` stanza with the directories visible to tasks
    (``chroot_env``) and a ``reachability`` meta tag telling if the node
    has a public IP.
    """
    agent = "nomad"

    def _server_stanza(self):
        if not self.role.server:
            return ""

        return textwrap.dedent("""
        server {{
          enabled = true
          bootstrap_expect = {}
        }}
        """).format(self.role.num_servers)

    def _client_stanza(self):
        if not self.role.client:
            return ""

        chroot_env = "\n".join(
            f'    "{path}" = "{path}"' for path in self.settings['chroot-env'])

        # dedent doesn't see through the interpolated block, indent by hand
        return (
            "\nclient {\n"
            "  enabled = true\n"
            "  chroot_env {\n"
            f"{chroot_env}\n"
            "  }\n"
            "  meta {\n"
            f'    "reachability" = "{self.instance.reachability}"\n'
            "  }\n"
            "}\n")

    def __str__(self):
        content = textwrap.dedent("""
        data_dir   = "{data_dir}"
        region     = "{region}"
        datacenter = "{datacenter}"
        name       = "{name}"
        bind_addr  = "0.0.0.0"

        advertise {{
          http = "{ip}"
          rpc  = "{ip}"
          serf = "{ip}"
        }}
        """).format(data_dir=self.data_dir,
                    region=self.instance.region,
                    datacenter=self.instance.availability_zone,
                    name=self.instance.instance_id,
                    ip=self.instance.ip_address)

        content += self._client_stanza()
        content += self._server_stanza()
        content += textwrap.dedent("""
        consul {{
          address = "{}"
        }}
        """).format(self.settings['consul-address'])

        return content.lstrip("\n")


class ConsulConfig(AgentConfig):
    """
    The consul agent configuration in JSON.

    Servers and clients find each other with cloud auto-join, which
    looks up instances by tag in the region of this instance.
    """
    agent = "consul"

    def retry_join(self):
        return "provider=aws region={} tag_key={} tag_value={}".format(
            self.instance.region,
            self.settings['cluster-tag-key'],
            self.settings['cluster-tag-value'])

    def as_dict(self):
        config = {
            "advertise_addr": self.instance.ip_address,
            "bind_addr": self.instance.ip_address,
            "client_addr": self.settings['client-addr'],
            "datacenter": self.instance.region,
            "node_name": self.instance.instance_id,
            "data_dir": self.data_dir,
            "retry_join": [self.retry_join()],
            "node_meta": {
                "availability_zone": self.instance.availability_zone,
                "reachability": self.instance.reachability,
            },
        }

        if self.role.server:
            config["server"] = True
            config["bootstrap_expect"] = self.role.num_servers
            config["ui"] = bool(self.settings['ui'])

        return config

    def __str__(self):
        return json.dumps(self.as_dict(), indent=2, sort_keys=True) + "\n"
