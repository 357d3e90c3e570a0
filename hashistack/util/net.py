"""Contains utility functions for network stuff"""

from netaddr import valid_ipv4, valid_ipv6
from netaddr.core import AddrFormatError


def is_port(port):
    """Checks if a port is valid"""

    return isinstance(port, int) and 0 <= port <= 65535


def is_ip(ip):
    """Checks if an IP is a valid IPv4 or IPv6 address"""

    try:
        return valid_ipv4(ip) or valid_ipv6(ip)
    except AddrFormatError:
        return False


def split_address(address):
    """Splits ``host:port`` into its parts.

    Args:
        address (str): e.g. ``127.0.0.1:8500``.

    Returns:
        A tuple of host (str) and port (int).

    Raises:
        ValueError if the address has no port, the port is out of range
        or the host is not an IP address.
    """
    if not isinstance(address, str) or ":" not in address:
        raise ValueError(f"'{address}' is not of the form host:port")

    host, _, port = address.rpartition(":")
    host = host.strip("[]")
    try:
        port = int(port)
    except ValueError:
        raise ValueError(f"'{address}' has an invalid port") from None

    if not is_port(port):
        raise ValueError(f"'{address}' has an invalid port")
    if not is_ip(host):
        raise ValueError(f"'{address}' has an invalid IP address")

    return host, port
