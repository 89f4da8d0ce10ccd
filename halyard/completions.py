"""
Halyard completions: the dynamic completion protocol.

Protocol
- Shell scripts re-invoke the program as `<prog> __complete <args...> <word>`
  (or `__completeNoDesc` to drop descriptions). The hidden request command
  prints one candidate per line (`value` or `value<TAB>description`), Active
  Help lines prefixed with `_activeHelp_ `, and finally `:<directive>`. A
  human-readable trailer goes to the error stream.
- get_completions(root, args) computes the same answer for programmatic
  callers, raising CommandException where the shell would see an empty list.

Directives
- ShellCompDirective is an IntFlag: ERROR, NO_SPACE, NO_FILE_COMP,
  FILTER_FILE_EXT, FILTER_DIRS, KEEP_ORDER (DEFAULT is 0).

Completers
- A completer is any object exposing `__complete__(command, args, to_complete)`
  or a plain callable with the same signature, returning
  `(completions, directive)`. fixed_completions() and no_file_completions are
  ready-made ones.

Active Help
- append_active_help(completions, text) adds a hint line.
- HALYARD_ACTIVE_HELP=0 disables hints for every program; otherwise the
  `<PROGRAM>_ACTIVE_HELP` variable is handed to completers verbatim through
  `command.active_help_config`. A value of "0" suppresses hints as well.

Diagnostics
- When BASH_COMP_DEBUG_FILE is set, debug lines are appended to that file.
"""
import os
import re
import string
from enum import IntFlag

from .args import MinimumNArgs, NoArgs, bounds
from .commands import Command
from .faults import *
from .flags import *
from .groups import adjust
from .utils import *


COMPLETE_REQUEST = "__complete"
COMPLETE_NO_DESC_REQUEST = "__completeNoDesc"
COMPLETION_COMMAND = "completion"
NO_DESCRIPTIONS_FLAG = "no-descriptions"

ACTIVE_HELP_MARKER = "_activeHelp_ "
ACTIVE_HELP_GLOBAL_VARIABLE = "HALYARD_ACTIVE_HELP"
ACTIVE_HELP_DISABLE = "0"
DEBUG_FILE_VARIABLE = "BASH_COMP_DEBUG_FILE"

SHELLS = ("bash", "zsh", "fish", "powershell")


class ShellCompDirective(IntFlag):
    """
    how the shell should treat the candidates it receives.
    """
    DEFAULT = 0
    ERROR = 1
    NO_SPACE = 2
    NO_FILE_COMP = 4
    FILTER_FILE_EXT = 8
    FILTER_DIRS = 16
    KEEP_ORDER = 32

    def describe(self):
        """Names of the bits that are set, e.g. "NO_SPACE, NO_FILE_COMP"."""
        if self.value >= 64:
            return "ERROR: unexpected directive value: %d" % self.value
        if self.value == 0:
            return "DEFAULT"
        return ", ".join(member.name for member in type(self) if member.value and member in self)


# --- completers ---------------------------------------------------------------

class Completer:
    """
    Base class for completers; subclasses override __complete__.
    """

    def __complete__(self, command, args, to_complete):
        raise NotImplementedError


class _Adapter(Completer):
    def __init__(self, callback):
        self._callback = callback

    def __complete__(self, command, args, to_complete):
        return self._callback(command, args, to_complete)

    def __repr__(self):
        return "completer(%s)" % getattr(self._callback, "__qualname__", repr(self._callback))


class FixedCompletions(Completer):
    """
    Offer the same choices every time, filtered by prefix.
    """

    def __init__(self, choices, directive=ShellCompDirective.NO_FILE_COMP):
        self._choices = tuple(choices)
        self._directive = ShellCompDirective(directive)

    def __complete__(self, command, args, to_complete):
        return [choice for choice in self._choices if choice.startswith(to_complete)], self._directive

    def __repr__(self):
        return "FixedCompletions(%r, %s)" % (self._choices, self._directive.describe())


class NoFileCompletions(Completer):
    """
    Offer nothing, and keep the shell from falling back to file names.
    """

    def __complete__(self, command, args, to_complete):
        return [], ShellCompDirective.NO_FILE_COMP

    def __repr__(self):
        return "NoFileCompletions()"


no_file_completions = NoFileCompletions()


def fixed_completions(choices, directive=ShellCompDirective.NO_FILE_COMP, /):
    return FixedCompletions(choices, directive)


def completer(object, /):
    """
    Coerce `object` into something with __complete__.
    """
    if callable(getattr(object, "__complete__", None)):
        return object
    if callable(object):
        return _Adapter(object)
    raise TypeError("completer() argument must be callable or expose __complete__")


def _call(function, command, args, to_complete):
    completions, directive = completer(function).__complete__(command, list(args), to_complete)
    return list(completions), ShellCompDirective(directive)


# --- active help --------------------------------------------------------------

def append_active_help(completions, text, /):
    """Add an Active Help line to `completions` and return it."""
    completions.append(ACTIVE_HELP_MARKER + text)
    return completions


def active_help_variable(name, /):
    """The per-program variable, e.g. "my-app" → "MY_APP_ACTIVE_HELP"."""
    return re.sub(r"[^A-Z0-9_]", "_", (name + "_ACTIVE_HELP").upper())


def active_help_config(command, /):
    """The Active Help configuration handed to the command's completers."""
    return command.active_help_config


def _configure_active_help(command):
    config = os.environ.get(ACTIVE_HELP_GLOBAL_VARIABLE, "")
    if config != ACTIVE_HELP_DISABLE:
        config = os.environ.get(active_help_variable(command.root.name), "")
    command.active_help_config = config
    command.root.active_help_config = config


# --- diagnostics --------------------------------------------------------------

def debug(message, /, *, stream=None):
    """
    Append `message` to the debug file, and optionally to `stream`.
    """
    if path := os.environ.get(DEBUG_FILE_VARIABLE):
        with open(path, "a", encoding="utf-8") as file:
            file.write(message)
    if stream is not None:
        stream.write(message)


def debugln(message, /, *, stream=None):
    debug(message + "\n", stream=stream)


# --- the completion engine ----------------------------------------------------

def _is_flag_arg(token):
    return (len(token) >= 3 and token.startswith("--")) or (
        len(token) >= 2 and token[0] == "-" and token[1] != "-"
    )


def _find_flag(command, name):
    flags = command.effective_flags()
    if len(name) == 1 and (flag := flags.shorthand_lookup(name)) is not None:
        return flag
    return flags.lookup(name)


def _flag_being_completed(command, args, word):
    """
    Work out whether `word` is the value of a flag.

    Returns (flag or None, args, word, fault or None). The previous token is
    dropped from `args` when it is the flag whose value is being completed.
    """
    if command.disable_flag_parsing:
        return None, args, word, None

    name = ""
    trimmed = args
    with_equal = False
    original = word
    if word.startswith("-"):
        if (index := word.find("=")) < 0:
            return None, args, word, None
        name = word[2:index] if word[:index].startswith("--") else word[index - 1:index]
        word = word[index + 1:]
        with_equal = True

    if not name and args and _is_flag_arg(previous := args[-1]) and "=" not in previous:
        name = previous[2:] if previous.startswith("--") else previous[-1]
        trimmed = args[:-1]

    if not name:
        return None, trimmed, word, None

    if (flag := _find_flag(command, name)) is None:
        return None, args, original, UnknownFlagError(
            "subcommand %r does not support flag %r" % (command.name, name),
            title="unknown flag",
            code=FaultCode.UNKNOWN_FLAG,
            command=command,
            flag=name,
        )
    if not with_equal and flag.no_opt_default is not None:
        # a flag without a value cannot be completed: complete nouns instead
        return None, args, word, None
    return flag, trimmed, word, None


def _flag_names(flag, word, view):
    if not flag.completable or flag.name in view.hidden:
        return []
    completions = []
    if ("--" + flag.name).startswith(word):
        completions.append("--%s\t%s" % (flag.name, flag.usage))
    if flag.shorthand and ("-" + flag.shorthand).startswith(word):
        completions.append("-%s\t%s" % (flag.shorthand, flag.usage))
    return completions


def _visible_flags(command):
    yield from command.non_inherited_flags()
    yield from command.inherited_flags()


def _required_flag_names(command, word, view):
    completions = []
    for flag in _visible_flags(command):
        if (flag.required or flag.name in view.required) and not flag.changed:
            completions.extend(_flag_names(flag, word, view))
    return completions


def _help_or_version(command):
    flags = command.effective_flags()
    for name in ("help", "version"):
        flag = flags.lookup(name)
        if flag is not None and flag.changed and flag.typename == "bool" and flag.value:
            return True
    return False


def get_completions(root, args, /):
    """
    Compute completions for a command line.

    `args` holds the words after the program name; its last element is the
    word being completed (possibly empty). Returns
    `(command, completions, directive)`.

    Raises CommandException when the words do not resolve to a command or
    contain flags the command does not know.
    """
    args = list(args)
    if not args:
        raise ValueError("get_completions() needs at least the word being completed")
    word, trimmed = args[-1], args[:-1]

    if root.traverse_children:
        command, remaining = root.traverse(trimmed)
    else:
        command, remaining = root.find(trimmed)
    _configure_active_help(command)

    if not command.disable_flag_parsing:
        command.init_default_help_flag()
        command.init_default_version_flag()

    flag, remaining, word, flag_fault = _flag_being_completed(command, remaining, word)

    # parsing with an extra "--" tells whether flags can still appear
    flag_completion = True
    if not command.disable_flag_parsing:
        try:
            command.parse_flags([*remaining, "--"])
            extended = len(command.flag_args())
        except CommandException:
            extended = -1
        command.parse_flags(remaining)
        if extended > len(command.flag_args()):
            flag_completion = False
        if flag_fault is not None and flag_completion:
            raise flag_fault

        if _help_or_version(command):
            return command, [], ShellCompDirective.NO_FILE_COMP
        remaining = command.flag_args()
    elif flag_fault is not None:
        raise flag_fault

    if flag is not None and flag_completion:
        if flag.completer is not Unset:
            completions, directive = _call(flag.completer, command, remaining, word)
            return command, completions, directive
        annotations = flag.annotations
        if FILENAME_EXT_ANNOTATION in annotations:
            if extensions := list(annotations[FILENAME_EXT_ANNOTATION]):
                return command, extensions, ShellCompDirective.FILTER_FILE_EXT
            return command, [], ShellCompDirective.DEFAULT
        if SUBDIRS_IN_DIR_ANNOTATION in annotations:
            directories = list(annotations[SUBDIRS_IN_DIR_ANNOTATION])
            return command, directories[:1] if len(directories) == 1 else [], ShellCompDirective.FILTER_DIRS
        return command, [], ShellCompDirective.DEFAULT

    parsed = command.effective_flags()
    view = adjust(command.flag_groups, parsed)

    if flag is None and word.startswith("-") and "=" not in word and flag_completion:
        completions = _required_flag_names(command, word, view)
        if not completions:
            for candidate in _visible_flags(command):
                if not candidate.changed or candidate.repeatable:
                    completions.extend(_flag_names(candidate, word, view))
        directive = ShellCompDirective.NO_FILE_COMP
        if len(completions) == 1 and completions[0].endswith("="):
            directive = ShellCompDirective.NO_SPACE
        if not command.disable_flag_parsing:
            return command, completions, directive

    completions = []
    directive = ShellCompDirective.DEFAULT

    local_set = False
    if not root.traverse_children:
        local = command.local_non_persistent_flags()
        local_set = any(candidate.changed for candidate in local)

    if not remaining and not local_set:
        for child in command.commands():
            if child.is_available_command() or child is command.help_command:
                if child.name.startswith(word):
                    completions.append("%s\t%s" % (child.name, child.short))
                directive = ShellCompDirective.NO_FILE_COMP

    completions.extend(_required_flag_names(command, word, view))

    _, maximum = bounds(command.args)
    if maximum is not None and len(remaining) >= maximum:
        return command, completions, ShellCompDirective.NO_FILE_COMP

    if command.valid_args:
        given = set(remaining)
        for valid in command.valid_args:
            value = valid.split("\t", 1)[0]
            if value.startswith(word) and (command.repeatable_args or value not in given):
                completions.append(valid)
        if completions:
            directive = ShellCompDirective.NO_FILE_COMP
        if not completions:
            completions.extend(
                alias for alias in command.arg_aliases
                if alias.startswith(word) and (command.repeatable_args or alias not in given)
            )
        return command, completions, directive

    if command.valid_args_function is not Unset:
        found, directive = _call(command.valid_args_function, command, remaining, word)
        completions.extend(found)

    return command, completions, directive


def _respond(command, args):
    """Run the completion engine for the hidden request command."""
    descriptions = command.called_as != COMPLETE_NO_DESC_REQUEST
    root = command.root
    out, err = command.out, command.err
    # a root whose only child is this command resolves as a root without children
    if all(child is command for child in root.children):
        root.remove_command(command)
    try:
        target, completions, directive = get_completions(root, args)
    except CommandException as fault:
        debugln("[Error] %s" % fault)
        target, completions, directive = root, [], ShellCompDirective.NO_FILE_COMP

    silent = active_help_config(target) == ACTIVE_HELP_DISABLE
    for completion in completions:
        if silent and completion.startswith(ACTIVE_HELP_MARKER):
            continue
        if not descriptions:
            completion = completion.split("\t", 1)[0]
        completion = completion.split("\n", 1)[0].rstrip()
        out.write(completion + "\n")
    out.write(":%d\n" % directive)
    debugln("Completion ended with directive: %s" % directive.describe(), stream=err)


def request_command():
    """The hidden `__complete` command (with its `__completeNoDesc` alias)."""
    return Command(
        "%s [command-line]" % COMPLETE_REQUEST,
        _respond,
        aliases=(COMPLETE_NO_DESC_REQUEST,),
        short="Request shell completion choices for the specified command-line",
        long="%s is a special command that is used by the shell completion logic\n"
             "to request completion choices for the specified command-line." % COMPLETE_REQUEST,
        args=MinimumNArgs(1),
        valid_args_function=no_file_completions,
        disable_flag_parsing=True,
        hidden=True,
    )


_GUIDES = {
    "bash": """Generate the autocompletion script for the bash shell.

This script depends on the 'bash-completion' package.
If it is not installed already, you can install it via your OS's package manager.

To load completions in your current shell session:
$ source <({prog} {completion} bash)

To load completions for every new session, execute once:
Linux:
$ {prog} {completion} bash > /etc/bash_completion.d/{prog}
MacOS:
$ {prog} {completion} bash > /usr/local/etc/bash_completion.d/{prog}

You will need to start a new shell for this setup to take effect.""",
    "zsh": """Generate the autocompletion script for the zsh shell.

If shell completion is not already enabled in your environment you will need
to enable it.  You can execute the following once:

$ echo "autoload -U compinit; compinit" >> ~/.zshrc

To load completions for every new session, execute once:
# Linux:
$ {prog} {completion} zsh > "${{fpath[1]}}/_{prog}"
# macOS:
$ {prog} {completion} zsh > /usr/local/share/zsh/site-functions/_{prog}

You will need to start a new shell for this setup to take effect.""",
    "fish": """Generate the autocompletion script for the fish shell.

To load completions in your current shell session:
$ {prog} {completion} fish | source

To load completions for every new session, execute once:
$ {prog} {completion} fish > ~/.config/fish/completions/{prog}.fish

You will need to start a new shell for this setup to take effect.""",
    "powershell": """Generate the autocompletion script for powershell.

To load completions in your current shell session:
PS C:\\> {prog} {completion} powershell | Out-String | Invoke-Expression

To load completions for every new session, add the output of the above command
to your powershell profile.""",
}


def completion_command(root):
    """
    The default `completion` command with one subcommand per shell.
    """
    options = root.completion_options
    offer_no_desc = not options.disable_no_desc_flag and not options.disable_descriptions

    def runner(shell):
        def run(command, args):
            descriptions = not options.disable_descriptions
            if offer_no_desc and command.flag(NO_DESCRIPTIONS_FLAG).value:
                descriptions = False
            command.out.write(generate(command.root, shell, descriptions=descriptions))
        return rename(run, "complete_" + shell)

    parent = Command(
        COMPLETION_COMMAND,
        short="Generate the autocompletion script for the specified shell",
        long="Generate the autocompletion script for %s for the specified shell.\n"
             "See each sub-command's help for details on how to use the generated script." % root.name,
        args=NoArgs(),
        valid_args_function=no_file_completions,
        hidden=options.hidden_default_command,
        group_id=root.completion_command_group_id,
    )
    for shell in SHELLS:
        child = Command(
            shell,
            runner(shell),
            short="Generate the autocompletion script for %s" % shell,
            long=_GUIDES[shell].format(prog=root.name, completion=COMPLETION_COMMAND),
            args=NoArgs(),
            valid_args_function=no_file_completions,
        )
        if offer_no_desc:
            child.flags.bool(NO_DESCRIPTIONS_FLAG, False, "disable completion descriptions")
        parent.add_command(child)
    return parent


def install(root, args=(), /):
    """
    Add the default `completion` command and, for completion requests, the
    hidden request command.

    the `completion` command is only added to roots with children. The request
    command is only attached while it is being called, and a root with no other
    children drops it again before resolving, so that such a root keeps taking
    positional arguments.
    """
    args = list(args)
    requested = bool(args) and args[0] in (COMPLETE_REQUEST, COMPLETE_NO_DESC_REQUEST)
    names = {name for child in root.children for name in (child.name, *child.aliases)}

    if (
        not root.completion_options.disable_default_command and
        root.has_subcommands() and
        COMPLETION_COMMAND not in names
    ):
        root.add_command(completion_command(root))

    attached = [child for child in root.children if child.name == COMPLETE_REQUEST and child.run is _respond]
    if requested and COMPLETE_REQUEST not in names:
        root.add_command(request_command())
    elif not requested:
        root.remove_command(*attached)


# --- scripts ------------------------------------------------------------------

class ScriptTemplate(string.Template):
    """Shell script text with `@{NAME}` placeholders, leaving `$` to the shell."""
    delimiter = "@"


def directive_values():
    return {directive.name: int(directive) for directive in ShellCompDirective if directive}


def generate(root, shell, /, **options):
    """
    Render the completion script for `shell` ("bash", "zsh", "fish" or "powershell").

    options are forwarded to the shell module (e.g. descriptions=False).
    """
    from . import bash, fish, powershell, zsh
    match shell:
        case "bash":
            return bash.generate(root, **options)
        case "zsh":
            return zsh.generate(root, **options)
        case "fish":
            return fish.generate(root, **options)
        case "powershell":
            return powershell.generate(root, **options)
    raise ValueError("unsupported shell %r, expected one of: %s" % (shell, ", ".join(SHELLS)))


__all__ = (
    "COMPLETE_REQUEST",
    "COMPLETE_NO_DESC_REQUEST",
    "ACTIVE_HELP_MARKER",
    "ShellCompDirective",
    "Completer",
    "FixedCompletions",
    "NoFileCompletions",
    "no_file_completions",
    "fixed_completions",
    "completer",
    "ScriptTemplate",
    "directive_values",
    "append_active_help",
    "active_help_variable",
    "active_help_config",
    "get_completions",
    "generate",
)
