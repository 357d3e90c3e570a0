"""
Install packages from third party apt repositories.

Repositories are not added to ``/etc/apt/sources.list`` since cloud-init
rewrites it on the first boot of an instance, the entries would not
survive a re-bundle of the image. Each repository gets its own file in
``/etc/apt/sources.list.d`` and its signing key a keyring of its own.
"""
import os

from urllib.request import urlopen

from hashistack.util.logger import Logger
from hashistack.util.util import (Rollback, register_undo, require_tools, run,
                                  write_file)

LOGGER = Logger(__name__)

SOURCES_DIR = "/etc/apt/sources.list.d"
KEYRINGS_DIR = "/usr/share/keyrings"


# pylint: disable=too-few-public-methods,too-many-arguments
class AptRepository:
    """
    A third party apt repository.

    Args:
        name (str): used for the sources and keyring file names
        key_url (str): URL of the ASCII armored signing key
        url (str): the repository URL
        components (list): e.g. ``["nginx"]`` or ``["stable"]``
        packages (list): the packages to install from it
        source (bool): add a ``deb-src`` line as well
    """
    def __init__(self, name, key_url, url, components, packages,
                 source=False):
        self.name = name
        self.key_url = key_url
        self.url = url
        self.components = components
        self.packages = packages
        self.source = source

    @property
    def keyring(self):
        return os.path.join(KEYRINGS_DIR, f"{self.name}.gpg")

    def sources(self, codename):
        """Returns the content of the sources list file"""
        components = " ".join(self.components)
        kinds = ["deb", "deb-src"] if self.source else ["deb"]
        lines = [f"# {self.name} repository"]
        lines += [f"{kind} [signed-by={self.keyring}] {self.url} "
                  f"{codename} {components}" for kind in kinds]
        return "\n".join(lines) + "\n"


REPOSITORIES = {
    "nginx": AptRepository(
        "nginx",
        "https://nginx.org/keys/nginx_signing.key",
        "http://nginx.org/packages/ubuntu/",
        ["nginx"],
        ["nginx"],
        source=True),
    "docker": AptRepository(
        "docker",
        "https://download.docker.com/linux/ubuntu/gpg",
        "https://download.docker.com/linux/ubuntu",
        ["stable"],
        ["docker-ce", "docker-ce-cli", "containerd.io"]),
}


def release_codename():
    """The Ubuntu codename, e.g. jammy"""
    return run(["lsb_release", "-cs"]).strip()


def add_repository(repo, codename, timeout=60, rollback=None):
    """Install the signing key and the sources list of repo"""
    LOGGER.info("Adding %s signing key ...", repo.name)
    with urlopen(repo.key_url, timeout=timeout) as resp:
        key = resp.read().decode()
    if rollback is not None:
        register_undo(repo.keyring, rollback)
    run(["gpg", "--batch", "--yes", "--dearmor", "-o", repo.keyring],
        input=key)

    LOGGER.info("Adding %s repository to apt sources ...", repo.name)
    write_file(os.path.join(SOURCES_DIR, f"{repo.name}.list"),
               repo.sources(codename), rollback=rollback)


def install_packages(name, timeout=60):
    """Add the repository known as name and install its packages.

    Raises:
        KeyError if the repository is unknown.
    """
    repo = REPOSITORIES[name]
    require_tools("apt-get", "gpg", "lsb_release")

    codename = release_codename()
    LOGGER.info("Ubuntu codename is %s", codename)

    with Rollback() as rollback:
        add_repository(repo, codename, timeout, rollback)
        LOGGER.info("Installing %s by apt-get ...", ", ".join(repo.packages))
        run(["apt-get", "-y", "update"])
        run(["apt-get", "-y", "install"] + repo.packages)

    LOGGER.success("Installed %s", ", ".join(repo.packages))
