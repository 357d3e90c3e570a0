"""
systemd unit files for the agents and the calls to start them
"""
import os
import textwrap

from hashistack.util.logger import Logger
from hashistack.util.util import run, write_file

LOGGER = Logger(__name__)


# pylint: disable=too-many-instance-attributes,too-few-public-methods
class ServiceUnit:
    """
    A systemd service that is restarted when the agent fails.

    Args:
        name (str): the unit name without ``.service``
        description (str): human readable description
        exec_start (str): the command line of the agent
        user (str): the account running the agent
        group (str): the group running the agent, defaults to user
        requires (list): units which must run before this one, e.g.
            ``["consul.service"]``
        documentation (str): a URL
        condition_file (str): the unit is only started if this file
            exists and is not empty
    """
    def __init__(self, name, description, exec_start, user="root",
                 group=None, requires=(), documentation=None,
                 condition_file=None):
        self.name = name
        self.description = description
        self.exec_start = exec_start
        self.user = user
        self.group = group or user
        self.requires = ["network-online.target"] + list(requires)
        self.documentation = documentation
        self.condition_file = condition_file

    @property
    def filename(self):
        return f"{self.name}.service"

    def __str__(self):
        unit = [
            "[Unit]",
            f"Description={self.description}",
        ]
        if self.documentation:
            unit.append(f"Documentation={self.documentation}")
        unit += [
            "Requires=%s" % " ".join(self.requires),
            "After=%s" % " ".join(self.requires),
        ]
        if self.condition_file:
            unit.append(f"ConditionFileNotEmpty={self.condition_file}")

        service = textwrap.dedent("""
        [Service]
        User={}
        Group={}
        ExecStart={}
        ExecReload=/bin/kill --signal HUP $MAINPID
        KillMode=process
        KillSignal=SIGINT
        Restart=on-failure
        RestartSec=2
        LimitNOFILE=65536
        TasksMax=infinity

        [Install]
        WantedBy=multi-user.target
        """).format(self.user, self.group, self.exec_start)

        return "\n".join(unit) + "\n" + service


def write_unit(unit, systemd_dir, rollback=None):
    """Write the unit file and return its path.

    On rollback a new unit is disabled before its file is removed, and
    systemd reloads the units afterwards.
    """
    path = os.path.join(systemd_dir, unit.filename)
    new = not os.path.exists(path)
    if rollback is not None:
        rollback.add("systemctl daemon-reload", run,
                     ["systemctl", "daemon-reload"])

    LOGGER.info("Writing systemd unit %s ...", path)
    write_file(path, str(unit), permissions=0o644, rollback=rollback)

    if rollback is not None and new:
        rollback.add(f"disable {unit.filename}", run,
                     ["systemctl", "disable", unit.filename])
    return path


def start_service(unit):
    """Reload systemd, enable and (re)start the unit"""
    LOGGER.info("Starting %s ...", unit.filename)
    run(["systemctl", "daemon-reload"])
    run(["systemctl", "enable", unit.filename])
    run(["systemctl", "restart", unit.filename])
