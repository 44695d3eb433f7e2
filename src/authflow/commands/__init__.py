"""Sub-command groups for the ``authflow`` CLI.

- :mod:`authflow.commands.providers` -- ``authflow providers ...``
"""
