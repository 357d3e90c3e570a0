"""

.. _provision:

hashistack.provision
--------------------

install
~~~~~~~

Runs once while the image is built. Downloads an agent release, creates
its account and directories and links the binary into the system path.
See :py:class:`hashistack.provision.install.Installer`

runner
~~~~~~

Runs once on every boot. Renders the agent configuration from the
instance metadata and starts the agent under systemd.
See :py:class:`hashistack.provision.runner.AgentRunner`

apt
~~~

Adds third party apt repositories and installs packages from them.
"""
