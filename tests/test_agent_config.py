"""
tests for hashistack.provision.agent_config
"""
import json
import re

import pytest

from hashistack.provision.agent_config import (Role, NomadConfig,
                                               ConsulConfig)
from hashistack.settings import DEFAULTS

from .testdata import INSTANCE, PUBLIC_INSTANCE

NOMAD_SETTINGS = DEFAULTS['agents']['nomad']
CONSUL_SETTINGS = DEFAULTS['agents']['consul']


def hcl_value(content, key):
    match = re.search(r'^\s*%s\s*=\s*"?([^"\n]*)"?$' % key, content,
                      re.MULTILINE)
    return match.group(1) if match else None


@pytest.fixture
def nomad_server():
    return str(NomadConfig(INSTANCE, Role(server=True, num_servers=3),
                           NOMAD_SETTINGS))


def test_role_needs_server_or_client():
    with pytest.raises(ValueError):
        Role()


def test_role_server_needs_num_servers():
    with pytest.raises(ValueError) as exc:
        Role(server=True)
    assert "--" not in str(exc.value)

    for invalid in [0, -1, "3"]:
        with pytest.raises(ValueError):
            Role(server=True, num_servers=invalid)


def test_role_client_ignores_num_servers():
    role = Role(client=True)
    assert role.num_servers is None
    assert str(role) == "client"
    assert str(Role(True, True, 3)) == "server+client"


def test_nomad_server(nomad_server):
    assert hcl_value(nomad_server, "data_dir") == "/opt/nomad/data"
    assert hcl_value(nomad_server, "region") == "us-east-1"
    assert hcl_value(nomad_server, "datacenter") == "us-east-1a"
    assert hcl_value(nomad_server, "name") == "i-abc123"
    assert hcl_value(nomad_server, "bind_addr") == "0.0.0.0"

    for key in ("http", "rpc", "serf"):
        assert hcl_value(nomad_server, key) == "10.0.1.5"

    assert ("server {\n  enabled = true\n  bootstrap_expect = 3\n}"
            in nomad_server)
    assert "client {" not in nomad_server


def test_nomad_consul_stanza(nomad_server):
    assert 'consul {\n  address = "127.0.0.1:8500"\n}' in nomad_server


def test_nomad_private_client():
    content = str(NomadConfig(INSTANCE, Role(client=True), NOMAD_SETTINGS))

    assert "server {" not in content
    assert "client {\n  enabled = true\n" in content
    assert hcl_value(content, '"reachability"') == "private"
    for path in NOMAD_SETTINGS['chroot-env']:
        assert f'    "{path}" = "{path}"' in content


def test_nomad_public_client():
    content = str(NomadConfig(PUBLIC_INSTANCE, Role(client=True),
                              NOMAD_SETTINGS))
    assert hcl_value(content, '"reachability"') == "public"
    assert hcl_value(content, "rpc") == "10.0.1.6"


def test_nomad_server_and_client():
    content = str(NomadConfig(INSTANCE, Role(True, True, 5), NOMAD_SETTINGS))
    assert "bootstrap_expect = 5" in content
    assert "client {" in content


def test_nomad_config_path():
    config = NomadConfig(INSTANCE, Role(client=True), NOMAD_SETTINGS)
    assert config.path == "/opt/nomad/config/default.hcl"
    assert config.config_dir == "/opt/nomad/config"


def test_consul_server():
    config = ConsulConfig(INSTANCE, Role(server=True, num_servers=3),
                          CONSUL_SETTINGS)
    data = json.loads(str(config))

    assert data["server"] is True
    assert data["bootstrap_expect"] == 3
    assert data["ui"] is True
    assert data["datacenter"] == "us-east-1"
    assert data["node_name"] == "i-abc123"
    assert data["advertise_addr"] == data["bind_addr"] == "10.0.1.5"
    assert data["data_dir"] == "/opt/consul/data"
    assert data["retry_join"] == [
        "provider=aws region=us-east-1 tag_key=consul-servers "
        "tag_value=auto-join"]
    assert config.path == "/opt/consul/config/default.json"


def test_consul_client():
    data = ConsulConfig(PUBLIC_INSTANCE, Role(client=True),
                        CONSUL_SETTINGS).as_dict()

    assert "server" not in data
    assert "bootstrap_expect" not in data
    assert data["node_meta"] == {"availability_zone": "us-east-1b",
                                 "reachability": "public"}
