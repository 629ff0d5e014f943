"""Built-in CLI sub-commands for swproxy.

* :mod:`~swproxy.commands.worker` -- lifecycle, ``fetch``, ``info``,
  ``clear`` and ``sync``, registered directly on the root app.
* :mod:`~swproxy.commands.queue` -- the ``queue`` group.
* :mod:`~swproxy.commands.config` -- the ``config`` group.
"""
