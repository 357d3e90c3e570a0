"""
General purpose utilities
"""
import grp
import os
import pwd
import shutil
import subprocess as sp
import time

from functools import wraps

from hashistack.util.logger import Logger

LOGGER = Logger(__name__)


class MissingToolError(RuntimeError):
    """Raised when an external program needed by a step is not installed"""


class UnknownUserError(LookupError):
    """Raised when an account to own files doesn't exist"""


def require_tools(*tools):
    """Makes sure all tools are found in PATH.

    Args:
        tools (str): program names, e.g. ``systemctl``.

    Raises:
        MissingToolError naming every missing program.
    """
    missing = [tool for tool in tools if shutil.which(tool) is None]
    if missing:
        raise MissingToolError("required tool(s) not installed: %s" %
                               ", ".join(missing))


def run(cmd, **kwargs):
    """Run a command and return its stdout.

    Raises:
        subprocess.CalledProcessError if the command exits non-zero.
    """
    LOGGER.debug("Running: %s", " ".join(cmd))
    proc = sp.run(cmd, check=True, stdout=sp.PIPE, stderr=sp.PIPE,
                  universal_newlines=True, **kwargs)
    return proc.stdout


def user_exists(name):
    """Checks if an OS account exists"""
    try:
        pwd.getpwnam(name)
    except KeyError:
        return False
    return True


def owner_of_path(path):
    """Returns the name of the user owning path"""
    return pwd.getpwuid(os.stat(path).st_uid).pw_name


def chown(path, user):
    """Change owner of path to user and the user's primary group"""
    try:
        gid = pwd.getpwnam(user).pw_gid
    except KeyError:
        raise UnknownUserError(f"user '{user}' does not exist") from None
    shutil.chown(path, user, grp.getgrgid(gid).gr_name)


def _restore(path, content):
    with open(path, "wb") as fh:
        fh.write(content)


def register_undo(path, rollback):
    """Register the undo of a coming change of path with rollback.

    An existing file gets its current content back, a file that doesn't
    exist yet is removed.
    """
    if os.path.exists(path):
        with open(path, "rb") as fh:
            rollback.add(f"restore {path}", _restore, path, fh.read())
    else:
        rollback.add(f"remove {path}", os.remove, path)


def write_file(path, content, owner=None, permissions=0o644, rollback=None):
    """
    writes a file to the local file system.

    path: e.g. /opt/nomad/config/default.hcl
    content: string of the content of the file
    owner: e.g. nomad, the group is the owner's primary group
    permissions: e.g. 0o644
    rollback: Optional :class:`Rollback` to register the undo action with,
        see :func:`register_undo`.
    """
    if rollback is not None:
        register_undo(path, rollback)

    with open(path, "w") as fh:
        fh.write(content)

    os.chmod(path, permissions)
    if owner:
        chown(path, owner)


def retry(exceptions, tries=4, delay=3, backoff=2, logger=None):
    """
    Retry calling the decorated function using an exponential backoff.

    Args:
        exceptions: The exception to check. may be a tuple of exceptions to check.
        tries: Number of times to try (not retry) before giving up.
        delay: Initial delay between retries in seconds.
        backoff: Backoff multiplier (e.g. value of 2 will double the delay each retry).
        logger: Logger to use. If None, print.
    """
    def deco_retry(f):  # pylint: disable=invalid-name

        @wraps(f)
        def f_retry(*args, **kwargs):
            mtries, mdelay = tries, delay
            while mtries > 1:
                try:
                    return f(*args, **kwargs)
                except exceptions as e:  # pylint: disable=invalid-name
                    msg = '{}, Retrying in {} seconds...'.format(e,
                                                                 int(mdelay))
                    if logger:
                        logger(msg)
                    time.sleep(mdelay)
                    mtries -= 1
                    mdelay *= backoff
            return f(*args, **kwargs)

        return f_retry  # true decorator

    return deco_retry


class Rollback:
    """Collects undo actions of a sequence of steps.

    Used as a context manager: when the block raises, the registered
    actions run in reverse order and the exception is re-raised. A
    failing undo action is logged and the remaining ones still run.
    On success the list is discarded.

    Example:
        >>> with Rollback() as rollback:
        ...     os.mkdir("/opt/nomad")
        ...     rollback.add("remove /opt/nomad", os.rmdir, "/opt/nomad")
        ...     install_binary()  # raises, /opt/nomad is removed again
    """

    def __init__(self):
        self.actions = []

    def add(self, description, func, *args):
        """Register func(*args) to be called on failure"""
        self.actions.append((description, func, args))

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        if exc_type is None:
            self.actions.clear()
            return False

        if self.actions:
            LOGGER.warn("Rolling back %d step(s) after: %s",
                        len(self.actions), exc_value)
        while self.actions:
            description, func, args = self.actions.pop()
            LOGGER.debug("Undo: %s", description)
            try:
                func(*args)
            except (OSError, sp.CalledProcessError) as err:
                LOGGER.error("Undo '%s' failed: %s", description, err)

        return False
