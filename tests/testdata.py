"""Defines test data shared among tests"""

# pylint: disable=invalid-name,missing-docstring
import json
import os
import pwd

import yaml

from hashistack.cloud.metadata import InstanceMetadata
from hashistack.settings import DEFAULTS, merge

CURRENT_USER = pwd.getpwuid(os.getuid()).pw_name

INSTANCE = InstanceMetadata("10.0.1.5", "i-abc123", "us-east-1",
                            "us-east-1a")

PUBLIC_INSTANCE = InstanceMetadata("10.0.1.6", "i-def456", "us-east-1",
                                   "us-east-1b", public_ip="54.12.3.4")

IDENTITY_DOCUMENT = {
    "accountId": "123456789012",
    "architecture": "x86_64",
    "availabilityZone": "us-east-1a",
    "instanceId": "i-abc123",
    "instanceType": "t3.micro",
    "privateIp": "10.0.1.5",
    "region": "us-east-1",
}

METADATA = {
    "/latest/api/token": "AQAEAK1JxO0-token",
    "/latest/meta-data/local-ipv4": "10.0.1.5",
    "/latest/meta-data/instance-id": "i-abc123",
    "/latest/meta-data/placement/availability-zone": "us-east-1a",
    "/latest/dynamic/instance-identity/document":
        json.dumps(IDENTITY_DOCUMENT),
}


class FakeMetadata:
    """Stands in for hashistack.cloud.metadata.MetadataClient"""

    def __init__(self, instance=INSTANCE):
        self._instance = instance

    def instance(self):
        return self._instance

    def region(self):
        return self._instance.region


def settings_for(tmp_path, **overrides):
    """Settings with every path below tmp_path"""
    settings = merge(DEFAULTS, {
        'system-bin-dir': str(tmp_path / "usr-local-bin"),
        'systemd-dir': str(tmp_path / "systemd"),
        'agents': {
            'nomad': {'path': str(tmp_path / "opt" / "nomad"),
                      'user': CURRENT_USER,
                      'consul-check': False},
            'consul': {'path': str(tmp_path / "opt" / "consul"),
                       'user': CURRENT_USER},
        },
    })
    settings = merge(settings, overrides)
    for directory in (settings['system-bin-dir'], settings['systemd-dir']):
        os.makedirs(directory, exist_ok=True)
    return settings


def create_layout(settings, agent):
    path = settings['agents'][agent]['path']
    for name in ("bin", "config", "data"):
        os.makedirs(os.path.join(path, name), exist_ok=True)
    return path


def write_settings(tmp_path, settings):
    path = tmp_path / "settings.yml"
    with open(path, "w") as stream:
        yaml.safe_dump(settings, stream)
    return str(path)
