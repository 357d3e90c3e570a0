# pylint: disable=missing-docstring
from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version('hashistack')
except PackageNotFoundError:
    __version__ = '0.1.0'

# Defining some constants
NOMAD = "nomad"
CONSUL = "consul"
AGENTS = (NOMAD, CONSUL)
DISCOVERY_AGENT = CONSUL
