"""
Halyard faults (errors and warnings) and rendering.

Scope
- FaultCode: canonical, stable numeric identifiers for all user-facing issues
  (errors and warnings). Codes are grouped by domain to keep copy consistent
  and make logs/searches predictable.
- CommandException / CommandWarning: base types that carry message + options and
  know how to render themselves in a friendly, lowercased, and actionable way.
- trigger(): central entry point to surface any fault (respecting shell/fancy/colorful).
- getdoc(): optional description lookup for a code from the host application.

Taxonomy
- ResolutionError: the argument vector does not lead to a command
  (UnknownCommandError, AmbiguousCommandError).
- ArgumentError: positional arguments rejected by a validator
  (InvalidArgCountError, InvalidArgValueError).
- FlagError: flag syntax or values rejected while parsing
  (UnknownFlagError, InvalidFlagValueError, MissingFlagValueError) or required
  flags left unset (RequiredFlagsError).
- FlagGroupError: a flag group constraint was violated (RequiredTogetherError,
  MutuallyExclusiveError, OneRequiredError, IfPresentThenRequiredError).

Payload
- every fault keeps its structured context in `options` (a read-only mapping):
  `command`, `code`, `title`, `hint`, plus domain fields such as `group`,
  `missing`, `present`, `minimum`, `maximum`, `received`, `candidates`,
  `suggestions` or `flag`. Callers inspect these instead of parsing messages.

Integration
- In non-shell mode, exceptions are raised; in shell mode, they are rendered via
  rich on stderr and the process exits with status 1.
"""
import copy
import inspect
import sys
import warnings
from abc import ABC
from collections import defaultdict
from enum import IntEnum
from types import MappingProxyType

from rich.console import Console, Group
from rich.panel import Panel
from rich.text import Text

from .utils import Unset

console = Console(stderr=True)


class FaultCode(IntEnum):
    """
    canonical fault codes used across the router (stable identifiers).

    grouping (by high-level domain)
    - routing (111xx)
      • UNKNOWN_COMMAND, AMBIGUOUS_COMMAND
    - positionals (112xx)
      • INVALID_ARG_COUNT, INVALID_ARG_VALUE
    - flags (113xx)
      • UNKNOWN_FLAG, INVALID_FLAG_VALUE, MISSING_FLAG_VALUE, MISSING_REQUIRED_FLAGS
    - flag groups (114xx)
      • FLAGS_REQUIRED_TOGETHER, FLAGS_MUTUALLY_EXCLUSIVE, FLAGS_ONE_REQUIRED,
        FLAGS_IF_PRESENT_THEN_REQUIRED
    - warnings (12xxx)
      • DEPRECATED_COMMAND, DEPRECATED_FLAG

    normalize() allows host remapping to custom labels while keeping code-stability.
    """
    # --- routing errors (111xx) ---
    UNKNOWN_COMMAND                = 11101
    AMBIGUOUS_COMMAND              = 11102

    # --- positional errors (112xx) ---
    INVALID_ARG_COUNT              = 11201
    INVALID_ARG_VALUE              = 11202

    # --- flag errors (113xx) ---
    UNKNOWN_FLAG                   = 11301
    INVALID_FLAG_VALUE             = 11302
    MISSING_FLAG_VALUE             = 11303
    MISSING_REQUIRED_FLAGS         = 11304

    # --- flag group errors (114xx) ---
    FLAGS_REQUIRED_TOGETHER        = 11401
    FLAGS_MUTUALLY_EXCLUSIVE       = 11402
    FLAGS_ONE_REQUIRED             = 11403
    FLAGS_IF_PRESENT_THEN_REQUIRED = 11404

    # --- warnings (12xxx) ---
    DEPRECATED_COMMAND             = 12101
    DEPRECATED_FLAG                = 12102

    def normalize(self):
        """
        return a host-normalized string for this code.

        the host application can provide a __codes__ mapping in __main__
        to override numeric ids with friendlier labels. when no mapping
        is present, the numeric value is returned as a string.
        """
        return str(getattr(__import__("__main__"), "__codes__", {}).get(self, self.value))


def _renderer(self, palette):
    """
    shared rich rendering for errors and warnings.

    the palette names the per-kind style keys ("title" and "message") so errors
    and warnings keep distinct colors while sharing the layout.
    """
    main = __import__("__main__")

    styles = defaultdict(str, palette | getattr(main, "__styles__", {}))
    colorful = self.options.get("colorful", False)
    fancy = self.options.get("fancy", False)

    def styler(style):
        return styles[style] if colorful else ""

    def text(fragment, style=""):
        if not fragment:
            return Text("")
        if not colorful:
            return Text(str(fragment))
        if isinstance(fragment, Text):
            return fragment
        return Text(str(fragment), style)

    command = self.options.get("command")
    name = command.root.name if command is not None else "halyard"
    prog = text(getattr(main, "__prog__", name), styler("prog-name"))

    code = self.options.get("code")
    title = self.options.get("title", type(self).__name__)
    header = Text.assemble(
        "[ ",
        prog,
        " — ",
        text(code.normalize() if code is not None else "-", styler("code")),
        " | ",
        text(str(title).title(), styler("title")),
        " ]"
    )
    message = text(self.message, styler("message"))
    renders = [message]
    if hint := self.options.get("hint"):
        renders.append(Text.assemble(text(" → ", styler("hint-arrow")), text(hint, styler("hint"))))
    for suggestion in self.options.get("suggestions", ()):
        renders.append(Text.assemble(text("   • ", styler("hint-arrow")), text(suggestion, styler("hint"))))

    if fancy:
        return Panel(Group(*renders), title=header, title_align="left")

    return Group(header, *renders)


class CommandException(Exception):
    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | Unset)
        super().__init__(message)
        self.message = message
        self.options = MappingProxyType(options)

    def __str__(self):
        return self.message if self.message is not Unset else ""

    @property
    def command(self):
        return self.options.get("command")

    @property
    def code(self):
        return self.options.get("code")

    def __rich__(self):
        return _renderer(self, {
            # header parts
            "prog-name": "bold #E6E6F0",  # near-white program name
            "code": "bold #00E5FF",  # neon cyan fault code
            "title": "bold #FF4DA6",  # friendly pinky title

            # body
            "message": "#C8C8D0",  # soft light gray message
            "hint-arrow": "#9CE19C dim",  # gentle green arrow
            "hint": "italic #9CE19C",  # gentle green hint text
        })

    def __trigger__(self) -> None:
        if not self.options.get("shell", False):
            raise self from None
        console.print(self)
        sys.exit(1)

    def __replace__(self, *unused, **overrides):
        assert not unused, "unused arguments are not allowed"
        return type(self)(self.message, **{**self.options, **overrides})


class ResolutionError(CommandException): ...
class UnknownCommandError(ResolutionError): ...
class AmbiguousCommandError(ResolutionError): ...

class ArgumentError(CommandException): ...
class InvalidArgCountError(ArgumentError): ...
class InvalidArgValueError(ArgumentError): ...

class FlagError(CommandException): ...
class UnknownFlagError(FlagError): ...
class InvalidFlagValueError(FlagError): ...
class MissingFlagValueError(FlagError): ...
class RequiredFlagsError(FlagError): ...

class FlagGroupError(CommandException): ...
class RequiredTogetherError(FlagGroupError): ...
class MutuallyExclusiveError(FlagGroupError): ...
class OneRequiredError(FlagGroupError): ...
class IfPresentThenRequiredError(FlagGroupError): ...


class CommandWarning(ABC, Warning):
    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | Unset)
        super().__init__(message)
        self.message = message
        self.options = MappingProxyType(options)

    def __str__(self):
        return self.message if self.message is not Unset else ""

    def __rich__(self):
        return _renderer(self, {
            # header parts
            "prog-name": "bold #E6E6F0",  # near-white program name
            "code": "bold #FFB400",  # amber fault code for warnings
            "title": "bold #FFC2E0",  # softer pinky title for warnings

            # body
            "message": "#D6D6DE",  # slightly lighter gray body
            "hint-arrow": "#B8EFAF dim",  # softer green arrow
            "hint": "italic #B8EFAF",  # softer green hint text
        })

    def __trigger__(self) -> None:
        if not self.options.get("shell", False):
            return warnings.warn(self, stacklevel=len(inspect.stack()))
        console.print(self)

    def __replace__(self, *unused, **overrides):
        assert not unused, "positional arguments are not allowed"
        return type(self)(self.message, **{**self.options, **overrides})


class DeprecatedCommandWarning(CommandWarning): ...
class DeprecatedFlagWarning(CommandWarning): ...


def trigger(fault, /, **options):
    """
    surface a fault with the given runtime options.

    contract
    - fault must provide __trigger__ and __replace__ methods (see base classes).
    - options are merged into the fault via __replace__(**options) before triggering.
    - in shell mode, rendering happens via rich console; otherwise, exceptions are raised
      and warnings go through the warnings module.
    """
    if (
        not hasattr(fault, "__trigger__") or
        not callable(fault.__trigger__) or
        not hasattr(fault, "__replace__") or
        not callable(fault.__replace__)
    ):
        raise TypeError("trigger() argument must have a __trigger__ and __replace__ methods")
    copy.replace(fault, **options).__trigger__()


def getdoc(code, /):
    """
    optional documentation fetch for a fault code.

    the host application may expose a __docs__ mapping in __main__ where keys
    are FaultCode instances and values are short documentation strings. when
    not found, returns None.
    """
    if not isinstance(code, FaultCode):
        raise TypeError("getdoc() argument must be a fault-code")
    return getattr(__import__("__main__"), "__docs__", {}).get(code)


__all__ = (
    "FaultCode",
    "CommandException",
    "ResolutionError",
    "UnknownCommandError",
    "AmbiguousCommandError",
    "ArgumentError",
    "InvalidArgCountError",
    "InvalidArgValueError",
    "FlagError",
    "UnknownFlagError",
    "InvalidFlagValueError",
    "MissingFlagValueError",
    "RequiredFlagsError",
    "FlagGroupError",
    "RequiredTogetherError",
    "MutuallyExclusiveError",
    "OneRequiredError",
    "IfPresentThenRequiredError",
    "CommandWarning",
    "DeprecatedCommandWarning",
    "DeprecatedFlagWarning",
    "trigger",
    "getdoc",
)
