"""
Resolver settings.

A Settings value is an immutable bundle of the switches that change how a
command tree is searched and how run hooks are chained. It is handed to the
resolver explicitly instead of living in process-wide mutable state.

Resolution order (first hit wins)
- the argument passed to Command.find()/Command.traverse()/Command.execute()
- the root command's `settings`
- a Settings (or mapping) exposed as __settings__ in __main__
- the defaults below
"""
from collections import namedtuple
from collections.abc import Mapping

from .utils import Unset


Settings = namedtuple(
    "Settings",
    (
        "prefix_matching",
        "case_insensitive",
        "command_sorting",
        "traverse_hooks",
    ),
    defaults=(False, False, True, False),
)
Settings.__doc__ = """
immutable resolver configuration.

fields
- prefix_matching: a unique prefix of a child name or alias selects that child.
- case_insensitive: child names and aliases match regardless of case.
- command_sorting: Command.commands() returns children sorted by name.
- traverse_hooks: run every ancestor's persistent hooks, not just the closest.
"""


CompletionOptions = namedtuple(
    "CompletionOptions",
    (
        "disable_default_command",
        "disable_no_desc_flag",
        "disable_descriptions",
        "hidden_default_command",
    ),
    defaults=(False, False, False, False),
)
CompletionOptions.__doc__ = """
root-level switches for the default `completion` command.

fields
- disable_default_command: do not add the `completion` command at all.
- disable_no_desc_flag: do not offer `--no-descriptions` on its subcommands.
- disable_descriptions: generated scripts never request descriptions.
- hidden_default_command: add the command but keep it out of help and completion.
"""


def current(settings=Unset, /):
    """
    return the settings in effect.

    an explicit Settings wins; otherwise the host's __main__.__settings__ is
    consulted (either a Settings or a mapping of field overrides); otherwise the
    defaults apply.
    """
    if isinstance(settings, Settings):
        return settings
    if settings is not Unset:
        raise TypeError("settings must be a Settings instance")
    hosted = getattr(__import__("__main__"), "__settings__", Unset)
    if isinstance(hosted, Settings):
        return hosted
    if isinstance(hosted, Mapping):
        return Settings(**hosted)
    return Settings()


__all__ = (
    "Settings",
    "CompletionOptions",
)
