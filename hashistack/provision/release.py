"""
Resolve, download and verify released agent archives.
"""
import fnmatch
import os
import re
import shutil
import zipfile

from urllib.request import urlopen

from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import hashes

from hashistack.util.logger import Logger

LOGGER = Logger(__name__)

CHUNK_SIZE = 64 * 1024

VERSION_RE = re.compile(r"^\d+\.\d+\.\d+(-[0-9A-Za-z.]+)?(\+[0-9A-Za-z.]+)?$")


class ChecksumMismatch(RuntimeError):
    """Raised when a downloaded archive doesn't match its published digest"""


def version_validation(version):
    """Checks if version looks like a semantic version, e.g. 1.6.1"""
    return isinstance(version, str) and bool(VERSION_RE.match(version))


class Release:
    """
    A released archive of an agent.

    Args:
        agent (str): e.g. nomad
        version (str): e.g. 1.6.1
        arch (str): e.g. amd64

    Raises:
        ValueError if version is not a semantic version.
    """
    def __init__(self, agent, version, arch="amd64"):
        if not version_validation(version):
            raise ValueError(f"'{version}' is not a valid version")

        self.agent = agent
        self.version = version
        self.arch = arch

    @property
    def filename(self):
        return f"{self.agent}_{self.version}_linux_{self.arch}.zip"

    @property
    def checksums(self):
        return f"{self.agent}_{self.version}_SHA256SUMS"

    def url(self, template):
        """Fill a URL template.

        Templates may use ``{agent}``, ``{version}``, ``{arch}``,
        ``{filename}`` and ``{checksums}``.
        """
        return template.format(agent=self.agent, version=self.version,
                               arch=self.arch, filename=self.filename,
                               checksums=self.checksums)

    def __str__(self):
        return f"{self.agent} {self.version} ({self.arch})"


def use_mirror(releases, region):
    """Decide if the regional mirror is used.

    Args:
        releases (dict): the ``releases`` section of the settings
        region (str): the region the image is built in, may be None

    Returns:
        True if a mirror is configured and region matches one of the
        ``mirror-regions`` patterns.
    """
    if not releases['mirror-url'] or not region:
        return False

    return any(fnmatch.fnmatchcase(region, pattern)
               for pattern in releases['mirror-regions'])


def release_urls(release, releases, region=None):
    """Returns the archive and the checksums URL of a release"""
    if use_mirror(releases, region):
        LOGGER.info("Region %s uses the release mirror", region)
        return (release.url(releases['mirror-url']),
                release.url(releases['mirror-checksums-url'] or ""))

    return (release.url(releases['url']),
            release.url(releases['checksums-url']))


def download(url, dest, timeout=60):
    """Stream url into the file dest.

    Raises:
        urllib.error.URLError, OSError
    """
    LOGGER.info("Downloading %s ...", url)
    with urlopen(url, timeout=timeout) as resp, open(dest, "wb") as fh:
        shutil.copyfileobj(resp, fh, CHUNK_SIZE)
    return dest


def sha256sum(path):
    """Returns the hex SHA-256 digest of a file"""
    digest = hashes.Hash(hashes.SHA256(), backend=default_backend())
    with open(path, "rb") as fh:
        for chunk in iter(lambda: fh.read(CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.finalize().hex()


def parse_checksums(text):
    """Parse the output of sha256sum into a dict of filename: digest"""
    checksums = {}
    for line in text.splitlines():
        parts = line.split()
        if len(parts) == 2:
            digest, name = parts
            checksums[name.lstrip("*")] = digest.lower()
    return checksums


def verify_checksum(path, filename, checksums):
    """Compare the digest of path with the published one.

    Args:
        path (str): the downloaded archive
        filename (str): the name of the archive in the checksums file
        checksums (str): content of the SHA256SUMS file

    Raises:
        ChecksumMismatch if filename is not listed or the digests differ.
    """
    expected = parse_checksums(checksums).get(filename)
    if expected is None:
        raise ChecksumMismatch(f"{filename} is not listed in the checksums")

    actual = sha256sum(path)
    if actual != expected:
        raise ChecksumMismatch(
            f"{filename}: expected sha256 {expected}, got {actual}")
    LOGGER.debug("Checksum of %s OK", filename)


def fetch_release(release, releases, workdir, region=None, verify=True):
    """Download a release into workdir.

    Args:
        release (:class:`Release`): what to fetch
        releases (dict): the ``releases`` section of the settings
        workdir (str): a scratch directory
        region (str): the region, decides on the mirror
        verify (bool): check the archive against SHA256SUMS

    Returns:
        The path of the verified archive.
    """
    url, checksums_url = release_urls(release, releases, region)
    archive = download(url, os.path.join(workdir, release.filename),
                       releases['timeout'])

    if verify:
        sums = download(checksums_url,
                        os.path.join(workdir, release.checksums),
                        releases['timeout'])
        with open(sums) as fh:
            verify_checksum(archive, release.filename, fh.read())
    else:
        LOGGER.warn("Skipping checksum verification of %s", release.filename)

    return archive


def unpack(archive, binary, dest_dir):
    """Extract a single binary from the archive.

    Returns:
        The path of the extracted binary.

    Raises:
        KeyError if the archive doesn't contain binary.
    """
    with zipfile.ZipFile(archive) as zfh:
        return zfh.extract(binary, dest_dir)
