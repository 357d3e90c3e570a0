import os
import subprocess as sp

from unittest import mock

import pytest

from hashistack.util.util import (MissingToolError, Rollback, owner_of_path,
                                  require_tools, retry, user_exists,
                                  write_file)

from .testdata import CURRENT_USER


def test_require_tools():
    require_tools("sh")

    with pytest.raises(MissingToolError) as exc:
        require_tools("sh", "no-such-tool-1", "no-such-tool-2")
    assert "no-such-tool-1, no-such-tool-2" in str(exc.value)


def test_user_exists():
    assert user_exists(CURRENT_USER)
    assert not user_exists("no-such-user-hashistack")


def test_owner_of_path(tmp_path):
    assert owner_of_path(str(tmp_path)) == CURRENT_USER


def test_write_file(tmp_path):
    path = str(tmp_path / "default.hcl")
    write_file(path, "name = \"a\"\n", owner=CURRENT_USER, permissions=0o640)

    with open(path) as fh:
        assert fh.read() == "name = \"a\"\n"
    assert os.stat(path).st_mode & 0o777 == 0o640


def test_rollback_removes_new_file(tmp_path):
    path = str(tmp_path / "nomad.service")

    with pytest.raises(RuntimeError):
        with Rollback() as rollback:
            write_file(path, "[Unit]\n", rollback=rollback)
            raise RuntimeError("systemctl failed")

    assert not os.path.exists(path)


def test_rollback_restores_file(tmp_path):
    path = tmp_path / "default.hcl"
    path.write_text("old\n")

    with pytest.raises(RuntimeError):
        with Rollback() as rollback:
            write_file(str(path), "new\n", rollback=rollback)
            raise RuntimeError("systemctl failed")

    assert path.read_text() == "old\n"


def test_rollback_order():
    calls = []
    with pytest.raises(ValueError):
        with Rollback() as rollback:
            rollback.add("first", calls.append, 1)
            rollback.add("broken", os.remove, "/nonexistent/hashistack")
            rollback.add("third", calls.append, 3)
            raise ValueError("step failed")

    assert calls == [3, 1]
    assert rollback.actions == []


def test_rollback_on_success():
    undo = mock.Mock()
    with Rollback() as rollback:
        rollback.add("undo", undo)

    undo.assert_not_called()
    assert rollback.actions == []


@mock.patch("hashistack.util.util.time.sleep")
def test_retry(sleep):
    func = mock.Mock(side_effect=[sp.CalledProcessError(1, "x"),
                                  sp.CalledProcessError(1, "x"), "ok"])
    logger = mock.Mock()

    assert retry(sp.CalledProcessError, tries=4, delay=1,
                 logger=logger)(func)() == "ok"
    assert func.call_count == 3
    assert logger.call_count == 2
    sleep.assert_has_calls([mock.call(1), mock.call(2)])


@mock.patch("hashistack.util.util.time.sleep")
def test_retry_gives_up(sleep):
    func = mock.Mock(side_effect=OSError("refused"))

    with pytest.raises(OSError):
        retry(OSError, tries=2, delay=1)(func)()
    assert func.call_count == 2
