"""
Halyard commands: the command tree, its resolver, and execution.

Overview
- Command
  • A node named by the first word of its use line, with aliases, display
    texts, child commands (insertion order), and a weak back-reference to its
    parent. A node without `run` is a topic node: it only groups children.
  • Flags live in two sets per node: local (`flags`) and persistent
    (`persistent_flags`, inherited by every descendant). effective_flags()
    merges local, own persistent and ancestors' persistent flags; the closest
    definition wins and flag objects are shared, never copied.
  • Flag groups (required-together, mutually-exclusive, one-required,
    if-present-then-required) are registered per node and checked only for the
    node that is invoked.

- Resolution
  • find(args): descend while the next non-flag token names a child. Flags are
    skipped, together with the value they take, but left in place.
  • traverse(args): like find, but each level parses its own flags before the
    next child is matched; unknown flags at traversed levels are errors.
  • Matching: exact name, exact alias, case-folded (Settings.case_insensitive),
    then a unique prefix over names and aliases (Settings.prefix_matching).

- Execution
  • execute(args) resolves, parses, validates and runs the target:
    deprecation notice, help/version flags, arguments, persistent pre-run,
    pre-run, required flags, flag groups, run, post-run, persistent post-run.
  • Faults raise by default. With shell=True they are rendered with rich on
    stderr and the process exits with status 1.

Quick example:
    >>> root = Command("app", short="demo")
    >>> @root.command("echo [text...]", aliases=("say",))
    ... def echo(command, args):
    ...     print(*args)
    >>> command, remaining = root.find(["say", "hello"])
    >>> command.name, command.called_as, remaining
    ('echo', 'say', ['hello'])
"""
import copy
import functools
import inspect
import operator
import re
import shlex
import sys
import weakref
from collections import defaultdict, namedtuple

from rich.box import ROUNDED
from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from . import groups as _groups
from .args import legacy, validator
from .faults import *
from .flags import *
from .settings import CompletionOptions, current
from .utils import *


CommandGroup = namedtuple("CommandGroup", ("id", "title"))
CommandGroup.__doc__ = """
a titled section of child commands in help output; children join it by group_id.
"""


def _invoke(hook, command, args):
    # hooks are Runnable objects (with __run__) or plain callables
    if callable(runner := getattr(hook, "__run__", None)):
        return runner(command, args)
    return hook(command, args)


def _hook(name, hook):
    if hook is not Unset and not callable(getattr(hook, "__run__", None)) and not callable(hook):
        raise TypeError(f"command {name} hook must be callable or expose __run__")
    return hook


def _strings(label, values):
    if isinstance(values, str):
        raise TypeError(f"command {label} must be an iterable of strings, not a string")
    values = tuple(values)
    if not all(isinstance(value, str) for value in values):
        raise TypeError(f"command {label} must only contain strings")
    return values


def _consumes_value(token, flags):
    """True when `token` is a flag that takes the following token as its value."""
    if token.startswith("--"):
        if "=" in token:
            return False
        flag = flags.lookup(token[2:])
        return flag is None or flag.no_opt_default is None
    if token.startswith("-") and "=" not in token and len(token) == 2:
        flag = flags.shorthand_lookup(token[1])
        return flag is None or flag.no_opt_default is None
    return False


class CommandType(type):
    """
    Metaclass giving commands a stable, introspectable shape.

    - __typename__ is derived from the class name (camel-case split with hyphens).
    - every name listed in __introspectable__ becomes a read-only property that
      mirrors the private "_<name>" backing field.
    - __repr__/__rich_repr__ list the __displayable__ fields.
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


class Command(metaclass=CommandType):
    """
    One node of a command tree.

    Properties
    - use, name, aliases, suggest_for, short, long, example, version.
    - args (positional validator or Unset), valid_args, arg_aliases,
      valid_args_function (completer or Unset).
    - run, pre_run, post_run, persistent_pre_run, persistent_post_run.
    - annotations, hidden, deprecated (message or None).
    - group_id: id of the parent's CommandGroup this command is listed under.
    - disable_flag_parsing, traverse_children, whitelist_unknown_flags,
      repeatable_args, disable_suggestions, suggestions_minimum_distance,
      silence_errors, bash_completion_function.
    - parent (None for a root), root, path (root → self), children.
    - shell, fancy, colorful, out, err: runtime options inherited from the
      parent when not set on the node itself.

    Settings (see halyard.settings) are read from the root.
    """

    __introspectable__ = (
        "use",
        "aliases",
        "suggest_for",
        "short",
        "long",
        "example",
        "version",
        "args",
        "valid_args",
        "arg_aliases",
        "valid_args_function",
        "run",
        "pre_run",
        "post_run",
        "persistent_pre_run",
        "persistent_post_run",
        "annotations",
        "hidden",
        "deprecated",
        "disable_flag_parsing",
        "traverse_children",
        "whitelist_unknown_flags",
        "repeatable_args",
        "disable_suggestions",
        "suggestions_minimum_distance",
        "silence_errors",
        "bash_completion_function",
        "group_id",
    )

    __displayable__ = (
        "name",
        "aliases",
        "short",
        "hidden",
        "children",
    )

    def __init__(
            self,
            use,
            /,
            run=Unset,
            *,
            parent=Unset,
            aliases=(),
            suggest_for=(),
            short="",
            long="",
            example="",
            version="",
            args=Unset,
            valid_args=(),
            arg_aliases=(),
            valid_args_function=Unset,
            pre_run=Unset,
            post_run=Unset,
            persistent_pre_run=Unset,
            persistent_post_run=Unset,
            annotations=None,
            hidden=False,
            deprecated=Unset,
            disable_flag_parsing=False,
            traverse_children=False,
            whitelist_unknown_flags=False,
            repeatable_args=False,
            disable_suggestions=False,
            suggestions_minimum_distance=2,
            silence_errors=False,
            bash_completion_function="",
            group_id="",
            completion_options=Unset,
            settings=Unset,
            shell=Unset,
            fancy=Unset,
            colorful=Unset,
            out=Unset,
            err=Unset,
    ):
        if not isinstance(use, str) or not use.split():
            raise ValueError(f"{type(self).__typename__} use line must be a non-empty string")
        for label, text in (("short", short), ("long", long), ("example", example), ("version", version)):
            if not isinstance(text, str):
                raise TypeError(f"{type(self).__typename__} {label} must be a string")
        if deprecated is not Unset and not isinstance(deprecated, str):
            raise TypeError(f"{type(self).__typename__} deprecation message must be a string")
        if args is not Unset:
            args = validator(args)
        if valid_args_function is not Unset and not (
            callable(valid_args_function) or callable(getattr(valid_args_function, "__complete__", None))
        ):
            raise TypeError(f"{type(self).__typename__} valid_args_function must be callable or expose __complete__")
        if not isinstance(group_id, str):
            raise TypeError(f"{type(self).__typename__} group_id must be a string")
        if not isinstance(suggestions_minimum_distance, int) or suggestions_minimum_distance < 0:
            raise ValueError(f"{type(self).__typename__} suggestions_minimum_distance must be a non-negative integer")

        self._use = use
        self._aliases = _strings("aliases", aliases)
        self._suggest_for = _strings("suggest_for", suggest_for)
        self._short = short
        self._long = long
        self._example = example
        self._version = version
        self._args = args
        self._valid_args = _strings("valid_args", valid_args)
        self._arg_aliases = _strings("arg_aliases", arg_aliases)
        self._valid_args_function = valid_args_function
        self._run = _hook("run", run)
        self._pre_run = _hook("pre_run", pre_run)
        self._post_run = _hook("post_run", post_run)
        self._persistent_pre_run = _hook("persistent_pre_run", persistent_pre_run)
        self._persistent_post_run = _hook("persistent_post_run", persistent_post_run)
        self._annotations = dict(annotations or {})
        self._hidden = bool(hidden)
        self._deprecated = coalesce(deprecated)
        self._disable_flag_parsing = bool(disable_flag_parsing)
        self._traverse_children = bool(traverse_children)
        self._whitelist_unknown_flags = bool(whitelist_unknown_flags)
        self._repeatable_args = bool(repeatable_args)
        self._disable_suggestions = bool(disable_suggestions)
        self._suggestions_minimum_distance = suggestions_minimum_distance
        self._silence_errors = bool(silence_errors)
        self._bash_completion_function = bash_completion_function
        self._group_id = group_id
        self._completion_options = completion_options
        self._settings = settings
        self._shell = shell
        self._fancy = fancy
        self._colorful = colorful
        self._out = out
        self._err = err

        self._parent = None
        self._children = []
        self._flags = FlagSet(self.name)
        self._persistent_flags = FlagSet(self.name)
        self._parsed = None
        self._flag_groups = []
        self._called_as = ""
        self._help_command = None
        self._command_groups = []
        self._help_command_group_id = ""
        self._completion_command_group_id = ""

        # opaque Active Help configuration handed to completers for this request
        self.active_help_config = ""

        if parent is not Unset:
            parent.add_command(self)

    # --- naming ---------------------------------------------------------

    @property
    def name(self):
        return self._use.split()[0]

    @property
    def called_as(self):
        """The literal token that selected this command during the last resolution."""
        return self._called_as

    def has_alias(self, text, /):
        settings = self._settings_for()
        for alias in self._aliases:
            if alias == text or (settings.case_insensitive and alias.casefold() == text.casefold()):
                return True
        return False

    def name_and_aliases(self):
        return ", ".join((self.name, *self._aliases))

    def command_path(self):
        if (parent := self.parent) is not None:
            return parent.command_path() + " " + self.name
        return self.name

    def use_line(self):
        if (parent := self.parent) is not None:
            line = parent.command_path() + " " + self._use
        else:
            line = self._use
        if self.effective_flags().has_available_flags() and "[flags]" not in line:
            line += " [flags]"
        return line

    # --- tree -------------------------------------------------------------

    @property
    def parent(self):
        return self._parent() if self._parent is not None else None

    @property
    def root(self):
        """
        The top-most command of this tree.
        """
        command = self
        while (parent := command.parent) is not None:
            command = parent
        return command

    @property
    def path(self):
        """
        Commands from the root down to this one.
        """
        path = [self]
        while (parent := path[-1].parent) is not None:
            path.append(parent)
        return tuple(reversed(path))

    @property
    def children(self):
        return tuple(self._children)

    @property
    def help_command(self):
        """The default `help` child, once it has been added."""
        return self._help_command

    @property
    def flag_groups(self):
        return tuple(self._flag_groups)

    @property
    def completion_options(self):
        return coalesce(self.root._completion_options, CompletionOptions())

    # --- command groups ---------------------------------------------------

    @property
    def groups(self):
        return tuple(self._command_groups)

    def add_group(self, *groups):
        """
        Declare titled sections for this command's children.

        Each group is a CommandGroup or an (id, title) pair of strings.
        """
        for group in groups:
            group = CommandGroup(*group)
            if not all(isinstance(field, str) for field in group):
                raise TypeError("add_group() ids and titles must be strings")
            self._command_groups.append(group)

    def contains_group(self, group_id, /):
        return any(group.id == group_id for group in self._command_groups)

    def all_child_commands_have_group(self):
        return all(
            child._group_id
            for child in self._children
            if child.is_available_command() or child is self._help_command
        )

    def set_help_command_group_id(self, group_id, /):
        if self._help_command is not None:
            self._help_command._group_id = group_id
        self._help_command_group_id = group_id

    def set_completion_command_group_id(self, group_id, /):
        self.root._completion_command_group_id = group_id

    @property
    def completion_command_group_id(self):
        return self.root._completion_command_group_id

    def check_command_groups(self):
        """
        Raises ValueError when a descendant names a group its parent never declared.
        """
        for child in self._children:
            if child._group_id and not self.contains_group(child._group_id):
                raise ValueError(
                    f"group id {child._group_id!r} is not defined for subcommand {child.command_path()!r}"
                )
            child.check_command_groups()

    def add_command(self, *commands):
        """
        Attach children to this command.

        Raises
        - TypeError: a child is not a command.
        - ValueError: a command added to itself, an ancestor added below one of
          its descendants, or a command already attached elsewhere.
        """
        for command in commands:
            if not isinstance(command, Command):
                raise TypeError("add_command() arguments must be commands")
            if command is self:
                raise ValueError(f"command {self.name!r} can't be a child of itself")
            if command in self.path:
                raise ValueError(f"command {command.name!r} is an ancestor of {self.name!r}")
            if (parent := command.parent) is not None:
                if parent is self:
                    continue
                raise ValueError(f"command {command.name!r} is already attached to {parent.name!r}")
            command._parent = weakref.ref(self)
            self._children.append(command)

    def remove_command(self, *commands):
        for command in commands:
            for index, child in enumerate(self._children):
                if child is command:
                    del self._children[index]
                    command._parent = None
                    if self._help_command is command:
                        self._help_command = None
                    break

    def commands(self):
        """Children, sorted by name unless the root's settings disable sorting."""
        if self._settings_for().command_sorting:
            return sorted(self._children, key=lambda child: child.name)
        return list(self._children)

    def has_subcommands(self):
        return len(self._children) > 0

    def has_available_subcommands(self):
        return any(child.is_available_command() for child in self._children)

    @property
    def runnable(self):
        return self._run is not Unset

    def is_available_command(self):
        """
        Whether the command is offered in help and completion.

        Hidden and deprecated commands are not, nor is the default help command.
        Topic nodes are available only when they have available children.
        """
        if self._hidden or self._deprecated is not None:
            return False
        if (parent := self.parent) is not None and parent._help_command is self:
            return False
        return self.runnable or self.has_available_subcommands()

    # --- runtime options ---------------------------------------------------

    def _inherited(self, name, default):
        value = getattr(self, "_" + name)
        if value is not Unset:
            return value
        if (parent := self.parent) is not None:
            return getattr(parent, name)
        return default() if callable(default) else default

    shell = property(lambda self: self._inherited("shell", False))
    fancy = property(lambda self: self._inherited("fancy", False))
    colorful = property(lambda self: self._inherited("colorful", True))
    out = property(lambda self: self._inherited("out", lambda: sys.stdout))
    err = property(lambda self: self._inherited("err", lambda: sys.stderr))

    @property
    def settings(self):
        return self._settings_for()

    def _settings_for(self, settings=Unset):
        return current(coalesce(settings, self.root._settings))

    def _runtime(self):
        return {"shell": self.shell, "fancy": self.fancy, "colorful": self.colorful}

    def _fail(self, fault):
        if self.shell and self._silence_errors:
            sys.exit(1)
        trigger(fault, **self._runtime())

    # --- flags ------------------------------------------------------------

    @property
    def flags(self):
        """Local flags: visible to this command only."""
        return self._flags

    @property
    def persistent_flags(self):
        """Persistent flags: visible to this command and every descendant."""
        return self._persistent_flags

    def _fresh(self):
        return FlagSet(
            self.name,
            interspersed=True,
            whitelist_unknown=self._whitelist_unknown_flags,
        )

    def effective_flags(self):
        """
        A new flag set holding every flag this command understands.

        Local flags first, then own persistent flags, then each ancestor's
        persistent flags from the closest up; the first definition of a name
        wins.
        """
        flags = self._fresh()
        flags.merge(self._flags)
        flags.merge(self._persistent_flags)
        for ancestor in reversed(self.path[:-1]):
            flags.merge(ancestor._persistent_flags)
        return flags

    def local_flags(self):
        flags = self._fresh()
        flags.merge(self._flags)
        flags.merge(self._persistent_flags)
        return flags

    non_inherited_flags = local_flags

    def inherited_flags(self):
        local = self.local_flags()
        flags = self._fresh()
        for ancestor in reversed(self.path[:-1]):
            for flag in ancestor._persistent_flags.ordered():
                if flag.name not in local:
                    flags.adopt(flag)
        return flags

    def local_non_persistent_flags(self):
        flags = self._fresh()
        for flag in self._flags.ordered():
            if flag.name not in self._persistent_flags:
                flags.adopt(flag)
        return flags

    def flag(self, name, /):
        return self.effective_flags().lookup(name)

    def parse_flags(self, args):
        """
        Parse `args` against the effective flags and keep the result.

        With disable_flag_parsing the arguments are left alone.
        Deprecated flags that were used emit a DeprecatedFlagWarning.
        """
        if self._disable_flag_parsing:
            self._parsed = None
            return
        flags = self.effective_flags()
        try:
            flags.parse(args)
        except FlagError as fault:
            self._parsed = flags
            raise copy.replace(fault, command=self) from None
        self._parsed = flags
        for flag, token in flags.notices:
            trigger(
                DeprecatedFlagWarning(
                    "flag --%s has been deprecated, %s" % (flag.name, flag.deprecated),
                    title="deprecated flag",
                    code=FaultCode.DEPRECATED_FLAG,
                    command=self,
                    flag=flag.name,
                    token=token,
                ),
                **self._runtime(),
            )

    def flag_args(self):
        """Positionals left by the last parse_flags()."""
        return self._parsed.args if self._parsed is not None else []

    def args_len_at_dash(self):
        return self._parsed.args_len_at_dash if self._parsed is not None else -1

    def reset_flags_state(self):
        """Reset every flag value and parse result in this subtree."""
        self._flags.reset()
        self._persistent_flags.reset()
        self._parsed = None
        for child in self._children:
            child.reset_flags_state()

    def init_default_help_flag(self):
        flags = self.effective_flags()
        if "help" in flags:
            return
        shorthand = "h" if flags.shorthand_lookup("h") is None else Unset
        flag = self._flags.bool("help", False, "help for %s" % self.name, shorthand=shorthand)
        flag.annotate(DEFAULT_FLAG_ANNOTATION, ["true"])

    def init_default_version_flag(self):
        if not self._version:
            return
        flags = self.effective_flags()
        if "version" in flags:
            return
        shorthand = "v" if flags.shorthand_lookup("v") is None else Unset
        flag = self._flags.bool("version", False, "version for %s" % self.name, shorthand=shorthand)
        flag.annotate(DEFAULT_FLAG_ANNOTATION, ["true"])

    # --- flag marking -------------------------------------------------------

    def _lookup(self, name):
        if (flag := self.flag(name)) is None:
            raise ValueError(f"no such flag -{name}")
        return flag

    def mark_flag_required(self, name, /):
        self._lookup(name).annotate(REQUIRED_ANNOTATION, ["true"])

    def mark_persistent_flag_required(self, name, /):
        self._persistent_flags.set_annotation(name, REQUIRED_ANNOTATION, ["true"])

    def mark_flag_filename(self, name, /, *extensions):
        self._lookup(name).annotate(FILENAME_EXT_ANNOTATION, extensions)

    def mark_persistent_flag_filename(self, name, /, *extensions):
        self._persistent_flags.set_annotation(name, FILENAME_EXT_ANNOTATION, extensions)

    def mark_flag_dirname(self, name, /, directory=Unset):
        self._lookup(name).annotate(SUBDIRS_IN_DIR_ANNOTATION, () if directory is Unset else (directory,))

    def mark_persistent_flag_dirname(self, name, /, directory=Unset):
        self._persistent_flags.set_annotation(
            name, SUBDIRS_IN_DIR_ANNOTATION, () if directory is Unset else (directory,)
        )

    def mark_flag_custom(self, name, function, /):
        """Delegate completion of the flag's value to a shell function (bash only)."""
        self._lookup(name).annotate(CUSTOM_ANNOTATION, [function])

    def register_flag_completion(self, name, completer, /):
        """
        Attach a value completer to a flag of the effective set.

        the completer is shared by every command that sees the flag.
        """
        if not callable(completer) and not callable(getattr(completer, "__complete__", None)):
            raise TypeError("register_flag_completion() completer must be callable or expose __complete__")
        if (flag := self.flag(name)) is None:
            raise ValueError(f"register_flag_completion(): flag {name!r} does not exist")
        flag.attach(completer)

    def _group(self, kind, names):
        group = _groups.FlagGroup(kind, names)
        flags = self.effective_flags()
        for name in group.names:
            if name not in flags:
                raise ValueError(f"failed to find flag {name!r} and mark it as being part of a {kind} group")
        self._flag_groups.append(group)
        return group

    def mark_flags_required_together(self, *names):
        return self._group(_groups.REQUIRED_TOGETHER, names)

    def mark_flags_mutually_exclusive(self, *names):
        return self._group(_groups.MUTUALLY_EXCLUSIVE, names)

    def mark_flags_one_required(self, *names):
        return self._group(_groups.ONE_REQUIRED, names)

    def mark_if_flag_present_then_required(self, trigger, /, *names):
        return self._group(_groups.IF_PRESENT_THEN_REQUIRED, (trigger, *names))

    # --- validation -------------------------------------------------------

    def validate_args(self, args):
        if self._args is Unset:
            return
        self._args.__validate__(self, list(args))

    def validate_required_flags(self):
        if self._disable_flag_parsing:
            return
        flags = self._parsed if self._parsed is not None else self.effective_flags()
        missing = [flag.name for flag in flags if flag.required and not flag.changed]
        if missing:
            raise RequiredFlagsError(
                "required flag(s) %s not set" % ", ".join('"%s"' % name for name in missing),
                title="required flags",
                code=FaultCode.MISSING_REQUIRED_FLAGS,
                hint="set %s" % ", ".join("--" + name for name in missing),
                command=self,
                missing=tuple(missing),
            )

    def validate_flag_groups(self):
        if self._disable_flag_parsing:
            return
        flags = self._parsed if self._parsed is not None else self.effective_flags()
        _groups.validate(self, self._flag_groups, flags)

    # --- resolution -------------------------------------------------------

    def _strip_flags(self, args):
        flags = self.effective_flags()
        commands = []
        args = list(args)
        while args:
            token = args.pop(0)
            if token == "--":
                break
            if _consumes_value(token, flags):
                if args:
                    args.pop(0)
                continue
            if token and not token.startswith("-"):
                commands.append(token)
        return commands

    def _args_minus_first(self, args, token):
        # drop the first occurrence of `token` that is not a flag value
        flags = self.effective_flags()
        skip = False
        for index, argument in enumerate(args):
            if skip:
                skip = False
                continue
            if argument == "--":
                break
            if _consumes_value(argument, flags):
                skip = True
                continue
            if argument == token:
                return args[:index] + args[index + 1:]
        return args

    def _find_next(self, token, settings):
        for child in self._children:
            if child.name == token:
                return child, token
        for child in self._children:
            if token in child._aliases:
                return child, token
        if settings.case_insensitive:
            folded = token.casefold()
            for child in self._children:
                if any(folded == name.casefold() for name in (child.name, *child._aliases)):
                    return child, token
        if settings.prefix_matching and token:
            matches = {}
            for child in self._children:
                for name in (child.name, *child._aliases):
                    if settings.case_insensitive:
                        matched = name.casefold().startswith(token.casefold())
                    else:
                        matched = name.startswith(token)
                    if matched:
                        matches.setdefault(child, name)
            if len(matches) == 1:
                return next(iter(matches.items()))
            if len(matches) > 1:
                candidates = tuple(child.name for child in matches)
                raise AmbiguousCommandError(
                    "ambiguous command %r for %r: could be %s" % (
                        token, self.command_path(), ", ".join(candidates)
                    ),
                    title="ambiguous command",
                    code=FaultCode.AMBIGUOUS_COMMAND,
                    hint="type more characters to pick one of: %s" % ", ".join(candidates),
                    command=self,
                    argument=token,
                    candidates=candidates,
                    suggestions=candidates,
                )
        return None, None

    def find(self, args, settings=Unset):
        """
        Resolve `args` to the deepest matching command.

        Returns (command, remaining) where remaining still holds every flag
        token. A command without a validator applies the legacy rule to the
        leftover positionals (see halyard.args.legacy).
        """
        settings = self._settings_for(settings)
        command, args = self, list(args)
        while stripped := command._strip_flags(args):
            child, literal = command._find_next(stripped[0], settings)
            if child is None:
                break
            child._called_as = literal
            args = command._args_minus_first(args, stripped[0])
            command = child
        if command._args is Unset:
            legacy(command, command._strip_flags(args))
        return command, args

    def traverse(self, args, settings=Unset):
        """
        Resolve `args` parsing the flags found at each level on the way down.

        Returns (command, remaining); the remaining tokens belong to the final
        command and are not parsed here.
        """
        settings = self._settings_for(settings)
        command, args = self, list(args)
        while True:
            flags = command.effective_flags()
            seen = []
            expecting = False
            for index, token in enumerate(args):
                if token.startswith("--") and "=" not in token:
                    flag = flags.lookup(token[2:])
                    expecting = flag is None or flag.no_opt_default is None
                    seen.append(token)
                    continue
                if token.startswith("-") and "=" not in token and len(token) == 2:
                    flag = flags.shorthand_lookup(token[1])
                    expecting = flag is None or flag.no_opt_default is None
                    seen.append(token)
                    continue
                if expecting:
                    expecting = False
                    seen.append(token)
                    continue
                if token.startswith("-") and len(token) > 1:
                    seen.append(token)
                    continue
                child, literal = command._find_next(token, settings)
                if child is None:
                    return command, args
                command.parse_flags(seen)
                child._called_as = literal
                command, args = child, args[index + 1:]
                break
            else:
                return command, args

    def suggestions_for(self, word, /):
        """
        Names of available children close to `word`.

        a child is suggested when its name is within the configured edit
        distance (case-insensitive), starts with `word`, or lists `word` in its
        suggest_for.
        """
        if self._disable_suggestions:
            return []
        suggestions = []
        for child in self.commands():
            if not child.is_available_command():
                continue
            if (
                distance(word, child.name, fold=True) <= self._suggestions_minimum_distance or
                child.name.casefold().startswith(word.casefold()) or
                any(word.casefold() == explicit.casefold() for explicit in child._suggest_for)
            ):
                if child.name not in suggestions:
                    suggestions.append(child.name)
        return suggestions

    # --- execution ----------------------------------------------------------

    def init_default_help_command(self):
        """
        Add the `help [command]` child when this command has children.
        """
        if not self._children or self._help_command is not None:
            return
        if any(child.name == "help" or "help" in child._aliases for child in self._children):
            return

        def run(command, args):
            try:
                target, remaining = self.find(args)
            except CommandException:
                target, remaining = None, args
            if target is None or (target is self and remaining):
                print("Unknown help topic %r" % (args,), file=command.out)
                self.print_usage()
                return
            target.init_default_help_flag()
            target.init_default_version_flag()
            target.print_help()

        def complete(command, args, to_complete):
            from .completions import ShellCompDirective
            try:
                target, remaining = self.find(args)
            except CommandException:
                return [], ShellCompDirective.NO_FILE_COMP
            if remaining and target is self:
                return [], ShellCompDirective.NO_FILE_COMP
            candidates = []
            for child in target.commands():
                if child.is_available_command() and child.name.startswith(to_complete):
                    candidates.append(child.name + "\t" + child._short)
            return candidates, ShellCompDirective.NO_FILE_COMP

        self._help_command = Command(
            "help [command]",
            run,
            short="Help about any command",
            long="Help provides help for any command in the application.\n"
                 "Simply type %s help [path to command] for full details." % self.name,
            valid_args_function=complete,
            group_id=self._help_command_group_id,
        )
        self.add_command(self._help_command)

    def execute(self, args=Unset, *, settings=Unset):
        """
        Resolve and run a command line.

        Parameters
        - args: Unset (read sys.argv[1:]), a string (split with shlex) or an
          iterable of strings.
        - settings: optional Settings for this invocation.

        Returns the command that was selected. Faults raise, or in shell mode
        are rendered and end the process.
        """
        if (parent := self.parent) is not None:
            return parent.root.execute(args, settings=settings)

        if args is Unset:
            args = sys.argv[1:]
        elif isinstance(args, str):
            args = shlex.split(args)
        args = list(args)
        if not all(isinstance(token, str) for token in args):
            raise TypeError("execute() arguments must be strings")

        settings = self._settings_for(settings)

        from .completions import install
        self.init_default_help_command()
        install(self, args)
        self.check_command_groups()

        try:
            if self._traverse_children:
                command, args = self.traverse(args, settings)
            else:
                command, args = self.find(args, settings)
        except CommandException as fault:
            (fault.command or self)._fail(fault)

        if not command._called_as:
            command._called_as = command.name
        try:
            command._execute(args, settings)
        except CommandException as fault:
            command._fail(fault)
        return command

    def _execute(self, args, settings):
        if self._deprecated is not None:
            trigger(
                DeprecatedCommandWarning(
                    "command %r is deprecated, %s" % (self.name, self._deprecated),
                    title="deprecated command",
                    code=FaultCode.DEPRECATED_COMMAND,
                    command=self,
                ),
                **self._runtime(),
            )

        self.init_default_help_flag()
        self.init_default_version_flag()
        self.parse_flags(args)

        if self._parsed is not None:
            if (flag := self._parsed.lookup("help")) is not None and flag.typename == "bool" and flag.value:
                self.print_help()
                return
            if self._version and (flag := self._parsed.lookup("version")) is not None and \
                    flag.typename == "bool" and flag.value:
                self.print_version()
                return

        if not self.runnable:
            self.print_help()
            return

        positionals = list(args) if self._disable_flag_parsing else self._parsed.args
        self.validate_args(positionals)

        lineage = list(reversed(self.path))
        owners = [command for command in lineage if command._persistent_pre_run is not Unset]
        if settings.traverse_hooks:
            for owner in reversed(owners):
                _invoke(owner._persistent_pre_run, self, positionals)
        elif owners:
            _invoke(owners[0]._persistent_pre_run, self, positionals)
        if self._pre_run is not Unset:
            _invoke(self._pre_run, self, positionals)

        self.validate_required_flags()
        self.validate_flag_groups()

        _invoke(self._run, self, positionals)

        if self._post_run is not Unset:
            _invoke(self._post_run, self, positionals)
        owners = [command for command in lineage if command._persistent_post_run is not Unset]
        if settings.traverse_hooks:
            for owner in owners:
                _invoke(owner._persistent_post_run, self, positionals)
        elif owners:
            _invoke(owners[0]._persistent_post_run, self, positionals)

    # --- factories ----------------------------------------------------------

    def command(self, source=Unset, /, **options):
        """
        Create a child command and attach it here.

        Same forms as the module-level command() factory:
        - command(callback, ...) / command("use line", callback=...)
        - @self.command / @self.command("use line", ...)
        """
        return command(source, parent=self, **options)

    # --- rendering ----------------------------------------------------------

    def _palette(self):
        return defaultdict(str, {
            # head
            "usage-label": "bold #00E6FF",
            "program-name": "bold #FF4D94",
            "usage-section": "bold #36C5F0",
            "description-section": "italic #A3A3A3",
            "footer-section": "#737373",

            # flags
            "group-label": "bold #FFFFFF",
            "flag-name": "bold #22C55E",
            "metavar": "bold #FFD600",
            "flag-description": "#9CA3AF",

            # children
            "children-title": "bold #FFFFFF",
            "children-table": "#4B5563",
            "children": "bold #36C5F0",
            "children-description": "#9CA3AF",

            # examples
            "examples-label": "bold #22C55E",
            "example": "#E5E7EB",

            # panel
            "panel-title": "bold #FF4D94",
        } | getattr(__import__("__main__"), "__styles__", {}))

    def _helper(self, *, usage_only=False):
        """
        Render help (or only the usage block) to the command's output stream.

        Palette keys
        - usage-label, program-name, usage-section, description-section, footer-section
        - group-label, flag-name, metavar, flag-description
        - children-title, children-table, children, children-description
        - examples-label, example, panel-title

        Define a mapping named __styles__ in __main__ to override any entry.
        """
        console = Console(file=self.out, highlight=False, soft_wrap=True)
        styles = self._palette()

        def styler(style):
            return styles[style] if self.colorful else ""

        def text(fragment, style=""):
            if not fragment:
                return Text("")
            if not self.colorful:
                return Text(str(fragment))
            return Text(str(fragment), style)

        def flag_lines(flags):
            rows = []
            for flag in flags:
                if flag.hidden:
                    continue
                label = Text.assemble(
                    "  ",
                    text("-%s, " % flag.shorthand if flag.shorthand else "    ", styler("flag-name")),
                    text("--" + flag.name, styler("flag-name")),
                )
                if flag.typename != "bool":
                    label.append(" ")
                    label.append(text(flag.typename, styler("metavar")))
                rows.append((label, flag))
            width = max((len(label) for label, _ in rows), default=0) + 3
            lines = Text()
            for label, flag in rows:
                usage = flag.usage
                if flag.default not in ("", "0", "false", "[]", "0.0"):
                    usage += " (default %s)" % (
                        '"%s"' % flag.default if flag.typename == "string" else flag.default
                    )
                if flag.deprecated is not None:
                    usage += " (deprecated: %s)" % flag.deprecated
                lines.append(label).append(" " * (width - len(label)))
                lines.append(text(usage, styler("flag-description"))).append("\n")
            return lines

        renders = []

        if not usage_only and (description := (self._long or self._short).strip()):
            renders.append(text(description, styler("description-section")).append("\n"))

        usage = Text.assemble(text("usage", styler("usage-label")), ":\n")
        if self.runnable:
            usage.append("  ").append(text(self.use_line(), styler("usage-section"))).append("\n")
        if self.has_available_subcommands():
            usage.append("  ").append(text(self.command_path() + " [command]", styler("usage-section"))).append("\n")
        renders.append(usage)

        if self._aliases:
            renders.append(Text.assemble(
                text("aliases", styler("group-label")), ":\n  ", self.name_and_aliases(), "\n"
            ))

        if self._example:
            renders.append(Text.assemble(
                text("examples", styler("examples-label")), ":\n", text(self._example, styler("example")), "\n"
            ))

        if self.has_available_subcommands():
            def children_table(title, group_id=Unset):
                table = Table(
                    "name", "help",
                    title=text(title, styler("children-title")),
                    box=ROUNDED,
                    style=styler("children-table"),
                    header_style=styler("children-title"),
                )
                for child in self.commands():
                    if group_id is not Unset and child._group_id != group_id:
                        continue
                    if child.is_available_command() or child is self._help_command:
                        table.add_row(
                            text(child.name, styler("children")),
                            text(child._short, styler("children-description")),
                        )
                return table

            if not self._command_groups:
                renders.append(children_table("available commands"))
            else:
                for group in self._command_groups:
                    renders.append(children_table(group.title, group.id))
                if not self.all_child_commands_have_group():
                    renders.append(children_table("additional commands", ""))

        if (local := self.local_flags()).has_available_flags():
            renders.append(Text.assemble(text("flags", styler("group-label")), ":\n", flag_lines(local)))

        if (inherited := self.inherited_flags()).has_available_flags():
            renders.append(Text.assemble(text("global flags", styler("group-label")), ":\n", flag_lines(inherited)))

        if self.has_available_subcommands():
            renders.append(text(
                'Use "%s [command] --help" for more information about a command.' % self.command_path(),
                styler("footer-section"),
            ))

        renderable = Group(*renders)
        if self.fancy:
            renderable = Panel(
                renderable,
                title=Text.assemble("[ ", f"{self.command_path()} help".upper(), " ]", style=styler("panel-title")),
                title_align="left",
            )
        console.print(renderable)

    def print_help(self):
        self._helper()

    def print_usage(self):
        self._helper(usage_only=True)

    def print_version(self):
        console = Console(file=self.out, highlight=False, soft_wrap=True)
        styles = self._palette()
        console.print(Text.assemble(
            Text(self.name, styles["program-name"] if self.colorful else ""),
            " version ",
            self._version,
        ))


def command(source=Unset, /, **options):
    """
    Create a Command or return a decorator that builds one.

    Invocation modes
    - Direct callback:
        cmd = command(func, short="...")
      The use line defaults to the function name with '_' turned into '-';
      `short` defaults to the first line of the docstring.

    - Decorator with a use line:
        @command("serve [port]", aliases=("s",))
        def serve(command, args): ...

    - Bare decorator:
        @command
        def serve(command, args): ...

    Parameters
    - source: Unset | str | Callable
    - **options: forwarded to Command (parent, aliases, args, flags hooks, ...).

    Returns
    - Command | Callable[[Callable], Command]
    """
    use = Unset
    if isinstance(source, str):
        use, source = source, Unset

    @rename("command")
    def wrapper(source, /):
        if not callable(source) and not callable(getattr(source, "__run__", None)):
            raise TypeError("@command() must be applied to a callable")
        settings = dict(options)
        if "short" not in settings and (doc := inspect.getdoc(source)):
            settings["short"] = doc.splitlines()[0]
        line = coalesce(use, getattr(source, "__name__", "").strip("_").replace("_", "-"))
        return Command(line, source, **settings)

    return wrapper(source) if source is not Unset else wrapper


def invoke(object, args=Unset, /):
    """
    Run a command, or a plain callable wrapped as one.

    args: Unset (sys.argv[1:]), a string split with shlex, or strings.
    """
    if isinstance(object, Command):
        return object.execute(args)
    if callable(object):
        return command(object).execute(args)
    raise TypeError("invoke() argument must be a command or a callable")


__all__ = (
    "Command",
    "CommandGroup",
    "command",
    "invoke",
)
