"""
tests for hashistack.provision.release
"""
import hashlib
import io
import os
import zipfile

from unittest import mock

import pytest

from hashistack.provision.release import (
    Release, ChecksumMismatch, version_validation, use_mirror, release_urls,
    parse_checksums, verify_checksum, sha256sum, fetch_release, unpack)
from hashistack.settings import DEFAULTS, merge

RELEASES = DEFAULTS['releases']

MIRRORED = merge(RELEASES, {
    'mirror-url': "https://mirror.example.cn/{agent}/{version}/{filename}",
    'mirror-checksums-url':
        "https://mirror.example.cn/{agent}/{version}/{checksums}",
})

ARCHIVE = b"PK\x03\x04 not really a zip"


def test_version_validation():
    valid = ["1.6.1", "0.12.0", "1.5.0-beta.1", "1.4.3+ent", "10.20.30"]
    invalid = [1, None, 1.6, "1", "1.6", "v1.6.1", "latest", "1.6.1 "]

    for vers in valid:
        assert version_validation(vers) is True

    for vers in invalid:
        assert version_validation(vers) is False


def test_release_names():
    release = Release("nomad", "1.6.1")
    assert release.filename == "nomad_1.6.1_linux_amd64.zip"
    assert release.checksums == "nomad_1.6.1_SHA256SUMS"
    assert release.url(RELEASES['url']) == \
        "https://releases.hashicorp.com/nomad/1.6.1/nomad_1.6.1_linux_amd64.zip"
    assert str(Release("consul", "1.16.1", "arm64")) == \
        "consul 1.16.1 (arm64)"


def test_invalid_release():
    with pytest.raises(ValueError):
        Release("nomad", "latest")


def test_use_mirror():
    assert use_mirror(MIRRORED, "cn-north-1") is True
    assert use_mirror(MIRRORED, "cn-northwest-1") is True
    assert use_mirror(MIRRORED, "us-east-1") is False
    assert use_mirror(MIRRORED, None) is False
    # no mirror configured
    assert use_mirror(RELEASES, "cn-north-1") is False


def test_release_urls():
    release = Release("nomad", "1.6.1")

    url, sums = release_urls(release, MIRRORED, "cn-north-1")
    assert url == "https://mirror.example.cn/nomad/1.6.1/" \
        "nomad_1.6.1_linux_amd64.zip"
    assert sums == "https://mirror.example.cn/nomad/1.6.1/" \
        "nomad_1.6.1_SHA256SUMS"

    url, sums = release_urls(release, MIRRORED, "eu-central-1")
    assert url.startswith("https://releases.hashicorp.com/nomad/1.6.1/")
    assert sums.endswith("/nomad_1.6.1_SHA256SUMS")


def test_parse_checksums():
    text = ("aaaa  nomad_1.6.1_darwin_amd64.zip\n"
            "BBBB *nomad_1.6.1_linux_amd64.zip\n"
            "\n"
            "garbage\n")
    assert parse_checksums(text) == {
        "nomad_1.6.1_darwin_amd64.zip": "aaaa",
        "nomad_1.6.1_linux_amd64.zip": "bbbb"}


def test_verify_checksum(tmp_path):
    archive = tmp_path / "nomad_1.6.1_linux_amd64.zip"
    archive.write_bytes(ARCHIVE)
    digest = hashlib.sha256(ARCHIVE).hexdigest()

    assert sha256sum(str(archive)) == digest
    verify_checksum(str(archive), archive.name,
                    f"{digest}  {archive.name}\n")

    with pytest.raises(ChecksumMismatch):
        verify_checksum(str(archive), archive.name,
                        f"{'0' * 64}  {archive.name}\n")

    with pytest.raises(ChecksumMismatch):
        verify_checksum(str(archive), archive.name,
                        f"{digest}  consul_1.16.1_linux_amd64.zip\n")


def serve(files):
    """a replacement for urlopen serving files by URL"""
    def _urlopen(url, timeout=None):  # pylint: disable=unused-argument
        return io.BytesIO(files[url])
    return _urlopen


def test_fetch_release(tmp_path):
    release = Release("nomad", "1.6.1")
    url, sums = release_urls(release, RELEASES)
    digest = hashlib.sha256(ARCHIVE).hexdigest()
    files = {url: ARCHIVE,
             sums: f"{digest}  {release.filename}\n".encode()}

    with mock.patch("hashistack.provision.release.urlopen",
                    side_effect=serve(files)) as urlopen:
        archive = fetch_release(release, RELEASES, str(tmp_path))

    assert urlopen.call_count == 2
    assert archive == os.path.join(str(tmp_path), release.filename)
    with open(archive, "rb") as fh:
        assert fh.read() == ARCHIVE


def test_fetch_release_tampered(tmp_path):
    release = Release("nomad", "1.6.1")
    url, sums = release_urls(release, RELEASES)
    files = {url: ARCHIVE,
             sums: f"{'f' * 64}  {release.filename}\n".encode()}

    with mock.patch("hashistack.provision.release.urlopen",
                    side_effect=serve(files)):
        with pytest.raises(ChecksumMismatch):
            fetch_release(release, RELEASES, str(tmp_path))


def test_fetch_release_unverified(tmp_path):
    release = Release("nomad", "1.6.1")
    url, _ = release_urls(release, RELEASES)

    with mock.patch("hashistack.provision.release.urlopen",
                    side_effect=serve({url: ARCHIVE})) as urlopen:
        fetch_release(release, RELEASES, str(tmp_path), verify=False)

    urlopen.assert_called_once_with(url, timeout=RELEASES['timeout'])


def test_unpack(tmp_path):
    archive = str(tmp_path / "nomad.zip")
    with zipfile.ZipFile(archive, "w") as zfh:
        zfh.writestr("nomad", "binary")

    dest = tmp_path / "out"
    binary = unpack(archive, "nomad", str(dest))
    assert binary == str(dest / "nomad")

    with pytest.raises(KeyError):
        unpack(archive, "consul", str(dest))
