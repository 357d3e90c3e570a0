"""
settings
========

Loading of the hashistack settings file.

The settings file is optional. Its content is merged over ``DEFAULTS``,
so it only has to contain the values which differ, e.g. to route
downloads through a regional mirror:

.. code:: yaml

    releases:
      mirror-url: https://mirror.example.cn/{agent}/{version}/{filename}
      mirror-checksums-url: https://mirror.example.cn/{agent}/{version}/{checksums}
      mirror-regions:
        - cn-*
    agents:
      nomad:
        consul-address: 127.0.0.1:8500

The file is looked up at ``--settings``, ``$HASHISTACK_SETTINGS`` or
``/etc/hashistack/settings.yml``, in this order.
"""
import copy
import os

import yaml

from hashistack import AGENTS
from hashistack.util.net import split_address

DEFAULT_SETTINGS_PATH = "/etc/hashistack/settings.yml"
SETTINGS_ENV = "HASHISTACK_SETTINGS"

RELEASES_URL = "https://releases.hashicorp.com/{agent}/{version}"

# chroot_env defaults of nomad's exec driver
NOMAD_CHROOT_ENV = ["/bin", "/etc", "/lib", "/lib32", "/lib64",
                    "/run/resolvconf", "/sbin", "/usr"]

DEFAULTS = {
    'metadata': {
        'url': 'http://169.254.169.254',
        'timeout': 5,
        'imdsv2': True,
        'token-ttl': 21600,
    },
    'releases': {
        'url': RELEASES_URL + "/{filename}",
        'checksums-url': RELEASES_URL + "/{checksums}",
        'mirror-url': None,
        'mirror-checksums-url': None,
        'mirror-regions': ['cn-*'],
        'region': None,
        'arch': 'amd64',
        'timeout': 60,
        'verify-checksum': True,
    },
    'system-bin-dir': '/usr/local/bin',
    'systemd-dir': '/etc/systemd/system',
    'agents': {
        'nomad': {
            'path': '/opt/nomad',
            'user': 'nomad',
            'config-file': 'default.hcl',
            'consul-address': '127.0.0.1:8500',
            'consul-check': True,
            'consul-check-tries': 6,
            'consul-check-delay': 2,
            'chroot-env': NOMAD_CHROOT_ENV,
        },
        'consul': {
            'path': '/opt/consul',
            'user': 'consul',
            'config-file': 'default.json',
            'client-addr': '0.0.0.0',
            'cluster-tag-key': 'consul-servers',
            'cluster-tag-value': 'auto-join',
            'ui': True,
        },
    },
}


class SettingsError(ValueError):
    """Raised when the settings file is unreadable or invalid"""


def merge(base, override):
    """Recursively merge override into a copy of base"""
    result = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = merge(result[key], value)
        else:
            result[key] = value
    return result


def check_sections(settings, defaults=DEFAULTS, prefix=""):
    """Makes sure every section of the defaults is still a mapping.

    An empty section in YAML, e.g. a lone ``agents:``, loads as None.

    Raises:
        SettingsError
    """
    for key, value in defaults.items():
        if not isinstance(value, dict):
            continue
        name = prefix + key
        if not isinstance(settings.get(key), dict):
            raise SettingsError(f"{name} must be a mapping")
        check_sections(settings[key], value, name + ".")


def validate(settings):
    """Checks the values a typo would only surface at boot time.

    Raises:
        SettingsError
    """
    unknown = set(settings['agents']) - set(AGENTS)
    if unknown:
        raise SettingsError("unknown agent(s): %s" % ", ".join(sorted(unknown)))

    try:
        split_address(settings['agents']['nomad']['consul-address'])
    except ValueError as exc:
        raise SettingsError(f"agents.nomad.consul-address: {exc}") from None

    regions = settings['releases']['mirror-regions']
    if not isinstance(regions, list):
        raise SettingsError("releases.mirror-regions must be a list")

    releases = settings['releases']
    if (releases['verify-checksum'] and releases['mirror-url'] and
            not releases['mirror-checksums-url']):
        raise SettingsError("releases.mirror-checksums-url is required "
                            "when a mirror is used with verify-checksum")

    for section in ('metadata', 'releases'):
        timeout = settings[section]['timeout']
        if not isinstance(timeout, (int, float)) or timeout <= 0:
            raise SettingsError(f"{section}.timeout must be a positive number")


def load_settings(path=None):
    """Returns the effective settings as a dict.

    Args:
        path (str): the settings file. Defaults to ``$HASHISTACK_SETTINGS``
            or ``/etc/hashistack/settings.yml``. A missing default file is
            fine, a missing explicit file is not.

    Raises:
        SettingsError
    """
    explicit = path or os.getenv(SETTINGS_ENV)
    path = explicit or DEFAULT_SETTINGS_PATH

    settings = copy.deepcopy(DEFAULTS)
    if os.path.exists(path):
        try:
            with open(path, 'r') as stream:
                user_settings = yaml.safe_load(stream) or {}
        except yaml.YAMLError as exc:
            raise SettingsError(f"unable to parse {path}: {exc}") from None

        if not isinstance(user_settings, dict):
            raise SettingsError(f"{path} must contain a mapping")
        settings = merge(settings, user_settings)
        check_sections(settings)
    elif explicit:
        raise SettingsError(f"settings file {path} not found")

    validate(settings)
    return settings


def agent_settings(settings, agent):
    """Returns the section of one agent.

    Raises:
        SettingsError if the agent is unknown.
    """
    try:
        return settings['agents'][agent]
    except KeyError:
        raise SettingsError(f"unknown agent '{agent}'") from None
