"""
install
=======

Install a released agent binary on the image.

The installer can be run again with the same version: an existing
account, directory or symlink is left alone. A failing step rolls back
what the previous steps of the same run created and nothing else.
"""
import os
import shutil
import sys
import tempfile
import textwrap

from hashistack import __version__
from hashistack.cloud.metadata import MetadataClient, MetadataError
from hashistack.provision.release import Release, fetch_release, unpack
from hashistack.settings import agent_settings
from hashistack.util.logger import Logger
from hashistack.util.util import (Rollback, chown, require_tools, run,
                                  user_exists, write_file)

LOGGER = Logger(__name__)

LAYOUT = ("bin", "config", "data")


class InstallError(RuntimeError):
    """Raised when an install step or the final verification fails"""


# pylint: disable=too-many-instance-attributes
class Installer:
    """
    Installs one agent.

    Args:
        agent (str): e.g. nomad
        version (str): the release to install, e.g. 1.6.1
        settings (dict): the complete settings
        path (str): the install root, defaults to the agent settings
        user (str): the service account, defaults to the agent settings
        verify (bool): verify the archive checksum, defaults to the
            ``releases.verify-checksum`` setting
        metadata (:class:`MetadataClient`): used to find the region when
            a mirror is configured

    Raises:
        ValueError if the version is invalid.
    """
    def __init__(self, agent, version, settings, path=None, user=None,
                 verify=None, metadata=None):
        conf = agent_settings(settings, agent)
        self.agent = agent
        self.settings = settings
        self.releases = settings['releases']
        self.release = Release(agent, version, self.releases['arch'])
        self.path = path or conf['path']
        self.user = user or conf['user']
        self.verify = self.releases['verify-checksum'] if verify is None \
            else verify
        self.metadata = metadata

    @property
    def bin_dir(self):
        return os.path.join(self.path, "bin")

    @property
    def binary(self):
        return os.path.join(self.bin_dir, self.agent)

    @property
    def symlink(self):
        return os.path.join(self.settings['system-bin-dir'], self.agent)

    @property
    def run_script(self):
        return os.path.join(self.bin_dir, f"run-{self.agent}")

    def region(self):
        """The region deciding on the download mirror.

        Instance metadata is only asked when a mirror is configured and
        no region is set.
        """
        if self.releases['region'] or not self.releases['mirror-url']:
            return self.releases['region']

        metadata = self.metadata or MetadataClient.from_settings(self.settings)
        try:
            return metadata.region()
        except MetadataError as exc:
            LOGGER.warn("Unable to determine the region, not using the "
                        "mirror: %s", exc)
            return None

    def check_tools(self):
        if not user_exists(self.user):
            require_tools("useradd")

    def create_user(self, rollback):
        if user_exists(self.user):
            LOGGER.info("User %s already exists. Will not create again.",
                        self.user)
            return

        LOGGER.info("Creating user %s ...", self.user)
        run(["useradd", "--system", "--home-dir", self.path,
             "--no-create-home", "--shell", "/bin/false", self.user])
        rollback.add(f"remove user {self.user}", run,
                     ["userdel", self.user])

    def create_layout(self, rollback):
        for name in ("",) + LAYOUT:
            directory = os.path.join(self.path, name).rstrip("/")
            if not os.path.isdir(directory):
                LOGGER.info("Creating directory %s ...", directory)
                os.makedirs(directory, 0o755)
                rollback.add(f"remove {directory}", shutil.rmtree, directory,
                             True)
            chown(directory, self.user)

    def install_binary(self, rollback):
        with tempfile.TemporaryDirectory(prefix=f"{self.agent}-") as workdir:
            archive = fetch_release(self.release, self.releases, workdir,
                                    self.region(), self.verify)
            try:
                extracted = unpack(archive, self.agent, workdir)
            except KeyError:
                raise InstallError(
                    f"{self.release.filename} contains no {self.agent} "
                    "binary") from None

            if os.path.exists(self.binary):
                backup = self.binary + ".previous"
                shutil.copy2(self.binary, backup)
                rollback.add(f"restore {self.binary}", os.replace, backup,
                             self.binary)
            else:
                rollback.add(f"remove {self.binary}", os.remove, self.binary)

            LOGGER.info("Moving %s binary to %s ...", self.agent, self.binary)
            shutil.move(extracted, self.binary)

        os.chmod(self.binary, 0o755)
        chown(self.binary, self.user)

    def create_symlink(self, rollback):
        if os.path.lexists(self.symlink):
            LOGGER.info("Symlink %s already exists. Will not add again.",
                        self.symlink)
            return

        LOGGER.info("Adding symlink %s -> %s ...", self.symlink, self.binary)
        os.symlink(self.binary, self.symlink)
        rollback.add(f"remove {self.symlink}", os.remove, self.symlink)

    def install_run_script(self, rollback):
        content = textwrap.dedent("""\
        #!/bin/bash
        # Configures and starts {agent} on boot, installed by hashistack {version}.
        exec "{python}" -c 'from hashistack.cli import run_{agent}; run_{agent}()' "$@"
        """).format(agent=self.agent, version=__version__,
                    python=sys.executable)

        LOGGER.info("Copying run-%s script to %s ...", self.agent,
                    self.run_script)
        write_file(self.run_script, content, owner=self.user,
                   permissions=0o755, rollback=rollback)

    def verify_installed(self):
        """The binary must be resolvable in PATH.

        Raises:
            InstallError
        """
        found = shutil.which(self.agent)
        if found is None:
            raise InstallError(
                f"could not find {self.agent} in PATH after installation")

        LOGGER.debug("%s resolves to %s", self.agent, found)
        return found

    def run(self):
        """Run all steps, undoing the finished ones if a later one fails"""
        self.check_tools()
        LOGGER.info("Installing %s ...", self.release)

        with Rollback() as rollback:
            self.create_user(rollback)
            self.create_layout(rollback)
            self.install_binary(rollback)
            self.create_symlink(rollback)
            self.install_run_script(rollback)
            self.verify_installed()

        backup = self.binary + ".previous"
        if os.path.exists(backup):
            os.remove(backup)

        LOGGER.success("%s install complete!", self.release)
