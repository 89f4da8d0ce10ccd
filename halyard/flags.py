r"""
Halyard flag sets: typed flags and POSIX-style parsing.

Overview
- Values
  • BoolValue, StringValue, IntValue, FloatValue, CountValue,
    StringSliceValue, StringArrayValue: typed slots that parse their text form
    and render it back. Each declares a `typename` (e.g. "bool", "stringSlice")
    used by help and completion.

- Flag
  • A named value with an optional one-character shorthand, usage text, a
    string form of its default, a `changed` marker set by parsing, free-form
    annotations (key → list of strings), and hidden/deprecated visibility.
  • `no_opt_default` is the text used when the flag appears without a value
    (bool flags use "true", count flags "+1").

- FlagSet
  • Ordered registry of flags with name and shorthand lookup.
  • parse(arguments) accepts "--name=value", "--name value", "-n value",
    "-nvalue", "-n=value", combined shorthands ("-abc"), and "--" as the end of
    flags. Non-flag tokens are collected in `args`; `args_len_at_dash` records
    how many were seen before "--".
  • With interspersed=False, parsing stops at the first positional token.
  • With whitelist_unknown=True, unknown flags (and a value that looks like
    theirs) are skipped instead of raising.

Faults
- UnknownFlagError, MissingFlagValueError and InvalidFlagValueError (see
  halyard.faults) are raised with the offending `flag` and `token` in their
  options; the command layer attaches the command afterwards.

Quick example:
    >>> flags = FlagSet("demo")
    >>> flags.bool("verbose", shorthand="v", usage="talk more")
    >>> flags.string_slice("tag", usage="repeatable tags")
    >>> flags.parse(["-v", "--tag=a,b", "file"])
    >>> flags.lookup("tag").value, flags.args
    (['a', 'b'], ['file'])
"""
import csv
import functools
import io
import operator
import re

from .faults import *
from .utils import *


REQUIRED_ANNOTATION = "halyard_annotation_one_required_flag"
FILENAME_EXT_ANNOTATION = "halyard_annotation_filename_extensions"
SUBDIRS_IN_DIR_ANNOTATION = "halyard_annotation_subdirs_in_dir"
CUSTOM_ANNOTATION = "halyard_annotation_custom_function"
DEFAULT_FLAG_ANNOTATION = "halyard_annotation_flag_set_by_halyard"


class Value:
    """
    Base typed slot. Subclasses implement parse(text) and render(value).
    """
    typename = "value"
    repeatable = False
    no_opt_default = None

    def __init__(self, default):
        self._default = default
        self._value = default

    def get(self):
        return self._value

    def set(self, text):
        self._value = self.parse(text)

    def reset(self):
        self._value = self._default

    def parse(self, text):
        raise NotImplementedError

    def render(self, value):
        return str(value)

    def __str__(self):
        return self.render(self._value)


class BoolValue(Value):
    typename = "bool"
    no_opt_default = "true"

    def parse(self, text):
        match text:
            case "1" | "t" | "T" | "true" | "TRUE" | "True":
                return True
            case "0" | "f" | "F" | "false" | "FALSE" | "False":
                return False
        raise ValueError("invalid syntax for a boolean")

    def render(self, value):
        return "true" if value else "false"


class StringValue(Value):
    typename = "string"

    def parse(self, text):
        return text


class IntValue(Value):
    typename = "int"

    def parse(self, text):
        return int(text, 0)


class FloatValue(Value):
    typename = "float"

    def parse(self, text):
        return float(text)


class CountValue(Value):
    typename = "count"
    repeatable = True
    no_opt_default = "+1"

    def parse(self, text):
        if text == "+1":
            return self._value + 1
        return int(text, 0)


class StringSliceValue(Value):
    """
    comma-separated, repeatable list: "--tag a,b --tag c" gives ["a", "b", "c"].

    the first occurrence replaces the default instead of extending it.
    """
    typename = "stringSlice"
    repeatable = True

    def __init__(self, default):
        super().__init__(list(default))
        self._touched = False

    def set(self, text):
        values = self.parse(text)
        self._value = self._value + values if self._touched else values
        self._touched = True

    def reset(self):
        self._value = list(self._default)
        self._touched = False

    def parse(self, text):
        if text == "":
            return []
        return next(csv.reader(io.StringIO(text)))

    def render(self, value):
        return "[" + ",".join(value) + "]"


class StringArrayValue(StringSliceValue):
    """
    repeatable list without comma splitting: each occurrence adds one element.
    """
    typename = "stringArray"

    def parse(self, text):
        return [text]


class FlagType(type):
    """
    Metaclass giving flags a stable, introspectable shape.

    - __typename__ is derived from the class name (camel-case split with hyphens).
    - every name listed in __introspectable__ becomes a read-only property that
      mirrors the private "_<name>" backing field.
    - __repr__/__rich_repr__ list the __displayable__ (or __introspectable__) fields.
    """
    __introspectable__ = ()
    __displayable__ = Unset

    def __new__(cls, name, bases, namespace, **options):
        self = super().__new__(
            cls,
            name,
            bases,
            namespace | {
                "__typename__": re.sub(r"(?<!^)(?=[A-Z])", r"-", name).lower(),
            } | {
                name: mirror(name) for name in namespace.get("__introspectable__", ())
            },
        )

        @rename("__repr__")
        def __repr__(self):
            return f"{type(self).__typename__}({
                ", ".join(map(functools.partial(operator.mod, "%s=%r"), self.__rich_repr__()))
            })"
        self.__repr__ = __repr__

        @rename("__rich_repr__")
        def __rich_repr__(self):
            for name in coalesce(type(self).__displayable__, type(self).__introspectable__):
                yield name, getattr(self, name)
        self.__rich_repr__ = __rich_repr__

        return self


_NAME = re.compile(r"[^\W_][\w.-]*")


class Flag(metaclass=FlagType):
    """
    Named, typed flag owned by one FlagSet and shared by merged views.

    Properties
    - name, shorthand, usage, default (string form), changed, hidden,
      deprecated (message or None), annotations, no_opt_default.
    - value: the current typed value; typename: the value type label.
    - repeatable: slice, array and count flags may appear more than once.
    """

    __introspectable__ = (
        "name",
        "shorthand",
        "usage",
        "default",
        "changed",
        "hidden",
        "deprecated",
        "annotations",
        "no_opt_default",
    )

    __displayable__ = (
        "name",
        "shorthand",
        "typename",
        "default",
        "changed",
    )

    def __init__(
            self,
            name,
            value,
            /,
            usage="",
            *,
            shorthand=Unset,
            no_opt_default=Unset,
            hidden=False,
            deprecated=Unset,
    ):
        if not isinstance(name, str) or not _NAME.fullmatch(name):
            raise ValueError(f"{type(self).__typename__} name {name!r} is not valid")
        if not isinstance(value, Value):
            raise TypeError(f"{type(self).__typename__} value must be a Value instance")
        if not isinstance(usage, str):
            raise TypeError(f"{type(self).__typename__} usage must be a string")
        if shorthand is not Unset and (not isinstance(shorthand, str) or len(shorthand) != 1 or shorthand == "-"):
            raise ValueError(f"{type(self).__typename__} shorthand {shorthand!r} must be a single character")
        if deprecated is not Unset and not isinstance(deprecated, str):
            raise TypeError(f"{type(self).__typename__} deprecation message must be a string")

        self._name = name
        self._type = value
        self._usage = usage
        self._shorthand = coalesce(shorthand)
        self._default = str(value)
        self._changed = False
        self._hidden = bool(hidden)
        self._deprecated = coalesce(deprecated)
        self._annotations = {}
        self._no_opt_default = coalesce(no_opt_default, value.no_opt_default)
        self._completer = Unset

    @property
    def value(self):
        return self._type.get()

    @property
    def typename(self):
        return self._type.typename

    @property
    def repeatable(self):
        return self._type.repeatable

    @property
    def required(self):
        return self._annotations.get(REQUIRED_ANNOTATION) == ["true"]

    @property
    def completable(self):
        """Hidden and deprecated flags are never offered to a shell."""
        return not self._hidden and self._deprecated is None

    @property
    def completer(self):
        """The value completer registered for this flag, or Unset."""
        return self._completer

    def attach(self, completer, /):
        if self._completer is not Unset:
            raise ValueError(f"flag {self._name!r} already registered")
        self._completer = completer

    def set(self, text):
        self._type.set(text)
        self._changed = True

    def reset(self):
        self._type.reset()
        self._changed = False

    def annotate(self, key, values):
        if not isinstance(key, str):
            raise TypeError(f"{type(self).__typename__} annotation key must be a string")
        self._annotations[key] = [str(value) for value in values]

    def describe(self):
        """Return the "-s, --name" label used in messages."""
        if self._shorthand:
            return f"-{self._shorthand}, --{self._name}"
        return f"--{self._name}"

    def __str__(self):
        return str(self._type)


def _strip_unknown_value(arguments):
    # an unknown flag may carry a value: skip the next token unless it is a flag itself
    if not arguments:
        return arguments
    if arguments[0].startswith("-"):
        return arguments
    return arguments[1:]


class FlagSet:
    """
    Ordered collection of flags plus the results of the last parse.
    """

    def __init__(self, name="", /, *, interspersed=True, whitelist_unknown=False):
        self._name = name
        self._flags = {}
        self._shorthands = {}
        self._args = []
        self._dash = -1
        self._parsed = False
        self._notices = []
        self.interspersed = interspersed
        self.whitelist_unknown = whitelist_unknown

    name = property(lambda self: self._name)
    parsed = property(lambda self: self._parsed)

    @property
    def args(self):
        """Positional tokens left after the last parse."""
        return list(self._args)

    @property
    def args_len_at_dash(self):
        """Number of positionals seen before "--", or -1 when "--" was absent."""
        return self._dash

    @property
    def notices(self):
        """Deprecated flags used during the last parse, as (flag, token) pairs."""
        return tuple(self._notices)

    def __contains__(self, name):
        return name in self._flags

    def __iter__(self):
        return iter(sorted(self._flags.values(), key=lambda flag: flag.name))

    def __len__(self):
        return len(self._flags)

    def __repr__(self):
        return f"flag-set(name={self._name!r}, flags={[flag.name for flag in self]!r})"

    def ordered(self):
        """Flags in definition order."""
        return list(self._flags.values())

    def changed(self):
        return [flag for flag in self if flag.changed]

    def has_available_flags(self):
        return any(not flag.hidden for flag in self._flags.values())

    def add(self, flag, /):
        if not isinstance(flag, Flag):
            raise TypeError("add() argument must be a flag")
        if flag.name in self._flags:
            raise ValueError(f"{self._name or 'flag set'}: flag redefined: {flag.name}")
        if flag.shorthand is not None and flag.shorthand in self._shorthands:
            used = self._shorthands[flag.shorthand].name
            raise ValueError(
                f"unable to redefine {flag.shorthand!r} shorthand in {self._name or 'flag set'!r} flagset: "
                f"it's already used for {used!r} flag"
            )
        self._flags[flag.name] = flag
        if flag.shorthand is not None:
            self._shorthands[flag.shorthand] = flag
        return flag

    def merge(self, other, /):
        """
        Adopt every flag of `other` whose name is not defined here yet.

        Flag objects are shared, not copied. A shorthand already taken here is
        left pointing at the existing flag.
        """
        for flag in other.ordered():
            self.adopt(flag)

    def adopt(self, flag, /):
        """Share a single flag with this set unless its name is already taken."""
        if flag.name in self._flags:
            return
        self._flags[flag.name] = flag
        if flag.shorthand is not None:
            self._shorthands.setdefault(flag.shorthand, flag)

    def lookup(self, name, /):
        return self._flags.get(name)

    def shorthand_lookup(self, shorthand, /):
        if len(shorthand) != 1:
            raise ValueError(f"can not look up shorthand which is more than one character: {shorthand!r}")
        return self._shorthands.get(shorthand)

    def _define(self, name, value, usage, shorthand, options):
        return self.add(Flag(name, value, usage, shorthand=shorthand, **options))

    def bool(self, name, /, default=False, usage="", *, shorthand=Unset, **options):
        return self._define(name, BoolValue(bool(default)), usage, shorthand, options)

    def string(self, name, /, default="", usage="", *, shorthand=Unset, **options):
        return self._define(name, StringValue(default), usage, shorthand, options)

    def int(self, name, /, default=0, usage="", *, shorthand=Unset, **options):
        return self._define(name, IntValue(default), usage, shorthand, options)

    def float(self, name, /, default=0.0, usage="", *, shorthand=Unset, **options):
        return self._define(name, FloatValue(default), usage, shorthand, options)

    def count(self, name, /, usage="", *, shorthand=Unset, **options):
        return self._define(name, CountValue(0), usage, shorthand, options)

    def string_slice(self, name, /, default=(), usage="", *, shorthand=Unset, **options):
        return self._define(name, StringSliceValue(default), usage, shorthand, options)

    def string_array(self, name, /, default=(), usage="", *, shorthand=Unset, **options):
        return self._define(name, StringArrayValue(default), usage, shorthand, options)

    def _require(self, name):
        if (flag := self._flags.get(name)) is None:
            raise ValueError(f"no such flag -{name}")
        return flag

    def set(self, name, text, /):
        self._require(name).set(text)

    def set_annotation(self, name, key, values, /):
        self._require(name).annotate(key, values)

    def mark_hidden(self, name, /):
        self._require(name)._hidden = True

    def mark_deprecated(self, name, message, /):
        if not message:
            raise ValueError(f"deprecated message for flag {name!r} must be set")
        self._require(name)._deprecated = message

    def reset(self):
        for flag in self._flags.values():
            flag.reset()
        self._args = []
        self._dash = -1
        self._parsed = False
        self._notices = []

    def parse(self, arguments, /):
        """
        Parse flag tokens out of `arguments`, setting values as they are seen.

        Raises
        - UnknownFlagError: a flag that is not defined (unless whitelisted) or a
          malformed token such as "---x" or "--=x".
        - MissingFlagValueError: a value-taking flag at the end of input.
        - InvalidFlagValueError: the value did not parse for the flag's type.
        """
        self._parsed = True
        self._args = []
        self._dash = -1
        self._notices = []

        arguments = list(arguments)
        while arguments:
            token = arguments.pop(0)
            if len(token) < 2 or token[0] != "-":
                self._args.append(token)
                if not self.interspersed:
                    self._args.extend(arguments)
                    return
                continue

            if token[1] == "-":
                if len(token) == 2:
                    self._dash = len(self._args)
                    self._args.extend(arguments)
                    return
                arguments = self._parse_long(token, arguments)
            else:
                shorthands = token[1:]
                while shorthands:
                    shorthands, arguments = self._parse_short(shorthands, arguments)

    def _parse_long(self, token, arguments):
        name = token[2:]
        if name[0] in "-=":
            raise UnknownFlagError(
                "bad flag syntax: %s" % token,
                title="bad flag syntax",
                code=FaultCode.UNKNOWN_FLAG,
                hint="flags look like --name, --name=value or -n",
                token=token,
                flag=name,
            )
        name, separator, text = name.partition("=")
        if (flag := self._flags.get(name)) is None:
            if self.whitelist_unknown:
                return arguments if separator else _strip_unknown_value(arguments)
            raise UnknownFlagError(
                "unknown flag: --%s" % name,
                title="unknown flag",
                code=FaultCode.UNKNOWN_FLAG,
                hint="run with --help to list the flags this command accepts",
                token=token,
                flag=name,
            )

        if separator:
            value = text
        elif flag.no_opt_default is not None:
            value = flag.no_opt_default
        elif arguments:
            value = arguments.pop(0)
        else:
            raise MissingFlagValueError(
                "flag needs an argument: %s" % token,
                title="missing flag value",
                code=FaultCode.MISSING_FLAG_VALUE,
                hint="pass a value with --%s=<value> or --%s <value>" % (name, name),
                token=token,
                flag=name,
            )
        self._apply(flag, value, token)
        return arguments

    def _parse_short(self, shorthands, arguments):
        character, remainder = shorthands[0], shorthands[1:]
        if (flag := self._shorthands.get(character)) is None:
            if self.whitelist_unknown:
                if len(shorthands) > 2 and shorthands[1] == "=":
                    return "", arguments
                return remainder, _strip_unknown_value(arguments)
            raise UnknownFlagError(
                "unknown shorthand flag: %r in -%s" % (character, shorthands),
                title="unknown flag",
                code=FaultCode.UNKNOWN_FLAG,
                hint="run with --help to list the flags this command accepts",
                token="-" + shorthands,
                flag=character,
            )

        if len(shorthands) > 2 and shorthands[1] == "=":
            value, remainder = shorthands[2:], ""
        elif flag.no_opt_default is not None:
            value = flag.no_opt_default
        elif remainder:
            value, remainder = remainder, ""
        elif arguments:
            value = arguments.pop(0)
        else:
            raise MissingFlagValueError(
                "flag needs an argument: %r in -%s" % (character, shorthands),
                title="missing flag value",
                code=FaultCode.MISSING_FLAG_VALUE,
                hint="pass a value with -%s <value>" % character,
                token="-" + shorthands,
                flag=flag.name,
            )
        self._apply(flag, value, "-" + shorthands)
        return remainder, arguments

    def _apply(self, flag, value, token):
        try:
            flag.set(value)
        except ValueError as error:
            raise InvalidFlagValueError(
                "invalid argument %r for %r flag: %s" % (value, flag.describe(), error),
                title="invalid flag value",
                code=FaultCode.INVALID_FLAG_VALUE,
                hint="%s expects a %s value" % (flag.describe(), flag.typename),
                token=token,
                flag=flag.name,
                value=value,
            ) from None
        if flag.deprecated is not None:
            self._notices.append((flag, token))


__all__ = (
    "REQUIRED_ANNOTATION",
    "FILENAME_EXT_ANNOTATION",
    "SUBDIRS_IN_DIR_ANNOTATION",
    "CUSTOM_ANNOTATION",
    "DEFAULT_FLAG_ANNOTATION",
    "Value",
    "BoolValue",
    "StringValue",
    "IntValue",
    "FloatValue",
    "CountValue",
    "StringSliceValue",
    "StringArrayValue",
    "Flag",
    "FlagSet",
)
