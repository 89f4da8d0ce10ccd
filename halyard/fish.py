"""
Halyard fish adapter.

Commands, flags and valid arguments are written out as `complete` rules
guarded by subcommand-path conditions. Commands with a valid_args_function,
and flags with a registered completer or a file extension or directory
filter, ask the program at runtime through `__<prog>_perform_completion`.
Other value flags keep fish's file completion.
"""
from .completions import (
    ACTIVE_HELP_MARKER,
    COMPLETE_NO_DESC_REQUEST,
    COMPLETE_REQUEST,
    ScriptTemplate,
    active_help_variable,
    directive_values,
)
from .flags import FILENAME_EXT_ANNOTATION, SUBDIRS_IN_DIR_ANNOTATION
from .utils import *

_PREAMBLE = ScriptTemplate(r"""# fish completion for @{NAME}                                -*- shell-script -*-

function __@{VARNAME}_debug
    set -l file "$BASH_COMP_DEBUG_FILE"
    if test -n "$file"
        echo "$argv" >> $file
    end
end

function __fish_@{VARNAME}_no_subcommand --description 'Test if @{NAME} has yet to be given the subcommand'
    for i in (commandline -opc)
        if contains -- $i @{SUBCOMMANDS}
            return 1
        end
    end
    return 0
end

function __fish_@{VARNAME}_seen_subcommand_path --description 'Test whether the full path of subcommands is the current path'
    set -l cmd (commandline -opc)
    set -e cmd[1]
    set -l pattern (string replace -a " " ".+" "$argv")
    string match -r "$pattern" (string trim -- "$cmd")
end

function __fish_@{VARNAME}_seen_argument
    argparse 's/short=+' 'l/long=+' -- $argv

    set cmd (commandline -co)
    set -e cmd[1]
    for t in $cmd
        for s in $_flag_s
            if string match -qr "^-[A-z0-9]*"$s"[A-z0-9]*\$" -- $t
                return 0
            end
        end

        for l in $_flag_l
            if string match -q -- "--$l" $t
                return 0
            end
        end
    end

    return 1
end

function __@{VARNAME}_perform_completion
    __@{VARNAME}_debug "Starting __@{VARNAME}_perform_completion"

    set -l args (commandline -opc)
    # an empty last word stays a separate argument
    set -l lastArg (string escape -- (commandline -ct))

    __@{VARNAME}_debug "args: $args"
    __@{VARNAME}_debug "last arg: $lastArg"

    # fish cannot display hints
    set -l requestComp "@{ACTIVE_HELP}=0 $args[1] @{REQUEST} $args[2..-1] $lastArg"

    __@{VARNAME}_debug "Calling $requestComp"
    set -l results (eval $requestComp 2> /dev/null)

    # trailing blank lines would hide the directive
    for line in $results[-1..1]
        if test (string trim -- $line) = ""
            set results $results[1..-2]
        else
            break
        end
    end

    set -l comps $results[1..-2]
    set -l directiveLine $results[-1]

    # candidates for --flag=<TAB> must carry the flag as a prefix
    set -l flagPrefix (string match -r -- '-.*=' "$lastArg")

    __@{VARNAME}_debug "Comps: $comps"
    __@{VARNAME}_debug "DirectiveLine: $directiveLine"
    __@{VARNAME}_debug "flagPrefix: $flagPrefix"

    for comp in $comps
        printf "%s%s\n" "$flagPrefix" "$comp"
    end

    printf "%s\n" "$directiveLine"
end

function __@{VARNAME}_complete_dynamic
    set -l shellCompDirectiveError @{ERROR}
    set -l shellCompDirectiveNoFileComp @{NO_FILE_COMP}
    set -l shellCompDirectiveFilterFileExt @{FILTER_FILE_EXT}
    set -l shellCompDirectiveFilterDirs @{FILTER_DIRS}

    set -l results (__@{VARNAME}_perform_completion)
    set -l directive (string sub --start 2 -- $results[-1])
    if test -z "$directive"
        set directive 0
    end
    set -l comps
    for comp in $results[1..-2]
        if not string match -q -- "@{MARKER}*" $comp
            set -a comps $comp
        end
    end

    __@{VARNAME}_debug "directive: $directive"

    if test (math "bitand($directive, $shellCompDirectiveError)") -ne 0
        __@{VARNAME}_debug "Received error directive: aborting."
        return
    end

    if test (math "bitand($directive, $shellCompDirectiveFilterFileExt)") -ne 0
        for ext in $comps
            __fish_complete_suffix .$ext
        end
        return
    end

    if test (math "bitand($directive, $shellCompDirectiveFilterDirs)") -ne 0
        if test -n "$comps[1]"
            __fish_complete_directories $comps[1]/
        else
            __fish_complete_directories (commandline -ct)
        end
        return
    end

    for comp in $comps
        printf "%s\n" $comp
    end

    if test (count $comps) -eq 0; and test (math "bitand($directive, $shellCompDirectiveNoFileComp)") -eq 0
        __fish_complete_path (commandline -ct)
    end
end

""")


def _escape(text):
    return text.replace("\\", "\\\\").replace("'", "\\'")


def _offered(command):
    return [
        child for child in command.commands()
        if child.is_available_command() and child is not command.help_command
    ]


def _subcommand_path(command):
    return " ".join(node.name for node in command.path[1:])


def _command_condition(prefix, command):
    if command.parent is None:
        conditions = ["__fish_%s_no_subcommand" % prefix]
    else:
        conditions = ["__fish_%s_seen_subcommand_path %s" % (prefix, _subcommand_path(command))]
    for flag in command.local_non_persistent_flags().ordered():
        selector = "-l %s" % flag.name
        if flag.shorthand:
            selector = "-s %s %s" % (flag.shorthand, selector)
        conditions.append("not __fish_%s_seen_argument %s" % (prefix, selector))
    return "-n '%s'" % "; and ".join(conditions)


def _flag_condition(prefix, command):
    if command.parent is None:
        return "-n '__fish_%s_no_subcommand'" % prefix
    return "-n '__fish_%s_seen_subcommand_path %s'" % (prefix, _subcommand_path(command))


class _Writer:
    """Accumulates the `complete` rules for one program."""

    def __init__(self, root, descriptions):
        self.root = root
        self.prefix = varname(root.name)
        self.descriptions = descriptions
        self.lines = []

    def rule(self, *parts, description=""):
        line = " ".join(part for part in ("complete -c %s" % self.root.name, *parts) if part)
        if self.descriptions and description:
            line += " -d '%s'" % _escape(description)
        self.lines.append(line)

    def command(self, command):
        condition = _command_condition(self.prefix, command)
        for child in _offered(command):
            self.rule("-f", condition, "-a '%s'" % _escape(child.name), description=child.short)
        for value in (*command.valid_args, *command.arg_aliases):
            value, _, description = value.partition("\t")
            self.rule(
                "-f", condition, "-a '%s'" % _escape(value),
                description=description or "Positional Argument to %s" % command.name,
            )
        if command.valid_args_function is not Unset:
            self.rule("-f", condition, "-a '(__%s_complete_dynamic)'" % self.prefix)
        for flag in (*command.local_flags().ordered(), *command.inherited_flags().ordered()):
            if flag.completable:
                self.flag(command, flag)
        for child in _offered(command):
            self.command(child)

    def flag(self, command, flag):
        # free-form values fall back to fish's own file completion
        annotations = flag.annotations
        filtered = FILENAME_EXT_ANNOTATION in annotations or SUBDIRS_IN_DIR_ANNOTATION in annotations
        dynamic = flag.completer is not Unset or filtered
        self.rule(
            "-f" if flag.typename == "bool" or dynamic else "",
            _flag_condition(self.prefix, command),
            "" if flag.typename == "bool" else "-r",
            "-s %s" % flag.shorthand if flag.shorthand else "",
            "-l %s" % flag.name,
            "-a '(__%s_complete_dynamic)'" % self.prefix if dynamic else "",
            description=flag.usage,
        )


def generate(root, /, *, descriptions=True):
    """Render the fish script for the program rooted at `root`."""
    writer = _Writer(root, descriptions)
    writer.command(root)
    preamble = _PREAMBLE.safe_substitute(
        NAME=root.name,
        VARNAME=writer.prefix,
        SUBCOMMANDS=" ".join(child.name for child in _offered(root)),
        REQUEST=COMPLETE_REQUEST if descriptions else COMPLETE_NO_DESC_REQUEST,
        ACTIVE_HELP=active_help_variable(root.name),
        MARKER=ACTIVE_HELP_MARKER,
        **directive_values(),
    )
    return preamble + "\n".join(writer.lines) + "\n"


__all__ = (
    "generate",
)
