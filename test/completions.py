"""
Completion engine tests (candidates, directives, protocol output, Active Help).

Scope
- Validate get_completions() for subcommands, flag names, flag values,
  valid_args, completers and positional bounds.
- Validate the hidden request command prints candidates and the directive.
- Validate Active Help lines and their environment switches.

Conventions
- Test method names follow CamelCase per project convention.
- Environment-dependent tests patch os.environ with a clean mapping.
"""

from __future__ import annotations

import io
import os
import tempfile
import unittest
from unittest import TestCase, mock

from halyard import (
    Command,
    ExactArgs,
    ShellCompDirective,
    append_active_help,
    active_help_config,
    active_help_variable,
    completer,
    fixed_completions,
    get_completions,
    no_file_completions,
)
from halyard.completions import debugln
from halyard.faults import CommandException, UnknownCommandError


def noop(command, args):
    pass


def program():
    """
    root
    ├── echo (say)  --filename (yaml, yml), --theme (themes), --color, --json|--yaml
    ├── times
    ├── pick        valid args one, two
    ├── secret      hidden
    └── old         deprecated
    """
    root = Command("root", noop, out=io.StringIO(), err=io.StringIO())
    echo = Command("echo [text...]", noop, parent=root, aliases=("say",), short="Echo message")
    echo.flags.string("filename", usage="file to read")
    echo.mark_flag_filename("filename", "yaml", "yml")
    echo.flags.string("theme", usage="theme directory")
    echo.mark_flag_dirname("theme", "themes")
    echo.flags.string("color", usage="output color")
    echo.register_flag_completion("color", fixed_completions(["red", "green"]))
    echo.flags.bool("json", usage="print json")
    echo.flags.bool("yaml", usage="print yaml")
    echo.mark_flags_mutually_exclusive("json", "yaml")
    Command("times [count]", noop, parent=root, short="Times")
    Command("pick <choice>", noop, parent=root, short="Pick one", valid_args=("one\tfirst", "two\tsecond"))
    Command("secret", noop, parent=root, hidden=True)
    Command("old", noop, parent=root, deprecated="use times")
    return root


class TestSubcommandCompletion(TestCase):
    """Candidates for the next command word."""

    def testAvailableChildren(self):
        root = program()
        command, completions, directive = get_completions(root, [""])
        self.assertIs(command, root)
        self.assertEqual(completions, ["echo\tEcho message", "pick\tPick one", "times\tTimes"])
        self.assertEqual(directive, ShellCompDirective.NO_FILE_COMP)

    def testPrefix(self):
        root = program()
        _, completions, _ = get_completions(root, ["t"])
        self.assertEqual(completions, ["times\tTimes"])

    def testHelpCommandNotAdded(self):
        root = program()
        _, completions, _ = get_completions(root, ["h"])
        self.assertEqual(completions, [])

    def testLocalFlagHidesChildren(self):
        root = program()
        root.flags.bool("local")
        _, completions, _ = get_completions(root, ["--local", ""])
        self.assertEqual(completions, [])

    def testUnknownCommandRaises(self):
        root = program()
        with self.assertRaises(UnknownCommandError):
            get_completions(root, ["nope", ""])

    def testEmptyArgumentsRejected(self):
        with self.assertRaises(ValueError):
            get_completions(program(), [])


class TestFlagCompletion(TestCase):
    """Candidates for flag names and flag values."""

    def testFlagNames(self):
        root = program()
        _, completions, directive = get_completions(root, ["echo", "--f"])
        self.assertEqual(completions, ["--filename\tfile to read"])
        self.assertEqual(directive, ShellCompDirective.NO_FILE_COMP)

    def testShorthandOffered(self):
        root = program()
        _, completions, _ = get_completions(root, ["echo", "-"])
        self.assertIn("-h\thelp for echo", completions)
        self.assertIn("--help\thelp for echo", completions)

    def testFilenameExtensions(self):
        root = program()
        _, completions, directive = get_completions(root, ["echo", "--filename", ""])
        self.assertEqual(completions, ["yaml", "yml"])
        self.assertEqual(directive, ShellCompDirective.FILTER_FILE_EXT)

    def testFilenameExtensionsWithEquals(self):
        root = program()
        _, completions, directive = get_completions(root, ["say", "--filename="])
        self.assertEqual(completions, ["yaml", "yml"])
        self.assertEqual(directive, ShellCompDirective.FILTER_FILE_EXT)

    def testSubdirectory(self):
        root = program()
        _, completions, directive = get_completions(root, ["echo", "--theme", ""])
        self.assertEqual(completions, ["themes"])
        self.assertEqual(directive, ShellCompDirective.FILTER_DIRS)

    def testFlagCompleter(self):
        root = program()
        _, completions, directive = get_completions(root, ["echo", "--color", "g"])
        self.assertEqual(completions, ["green"])
        self.assertEqual(directive, ShellCompDirective.NO_FILE_COMP)

    def testMutuallyExclusiveHidesPartner(self):
        root = program()
        _, completions, _ = get_completions(root, ["echo", "--json", "--"])
        names = [completion.split("\t")[0] for completion in completions]
        self.assertNotIn("--yaml", names)
        self.assertNotIn("--json", names)
        self.assertIn("--filename", names)

    def testHelpFlagStopsCompletion(self):
        root = program()
        _, completions, directive = get_completions(root, ["echo", "--help", ""])
        self.assertEqual(completions, [])
        self.assertEqual(directive, ShellCompDirective.NO_FILE_COMP)

    def testRequiredFlagOffered(self):
        root = program()
        echo = root.children[0]
        echo.mark_flag_required("filename")
        _, completions, _ = get_completions(root, ["echo", ""])
        self.assertEqual(completions, ["--filename\tfile to read"])

    def testUnknownFlagRaises(self):
        root = program()
        with self.assertRaises(CommandException):
            get_completions(root, ["echo", "--nope", ""])


class TestArgumentCompletion(TestCase):
    """Candidates for positional arguments."""

    def testValidArgs(self):
        root = program()
        _, completions, directive = get_completions(root, ["pick", ""])
        self.assertEqual(completions, ["one\tfirst", "two\tsecond"])
        self.assertEqual(directive, ShellCompDirective.NO_FILE_COMP)

    def testValidArgsPrefix(self):
        root = program()
        _, completions, _ = get_completions(root, ["pick", "t"])
        self.assertEqual(completions, ["two\tsecond"])

    def testValidArgsSkipGiven(self):
        root = program()
        _, completions, _ = get_completions(root, ["pick", "one", ""])
        self.assertEqual(completions, ["two\tsecond"])

    def testArgAliasesFallback(self):
        root = program()
        Command("color", noop, parent=root, valid_args=("red",), arg_aliases=("crimson",))
        _, completions, _ = get_completions(root, ["color", "c"])
        self.assertEqual(completions, ["crimson"])

    def testValidArgsFunction(self):
        seen = []

        def complete(command, args, to_complete):
            seen.append((command.name, args, to_complete))
            return [name for name in ("alpha", "beta") if name.startswith(to_complete)], ShellCompDirective.NO_SPACE

        root = program()
        Command("letters", noop, parent=root, valid_args_function=complete)
        _, completions, directive = get_completions(root, ["letters", "x", "b"])
        self.assertEqual(completions, ["beta"])
        self.assertEqual(directive, ShellCompDirective.NO_SPACE)
        self.assertEqual(seen, [("letters", ["x"], "b")])

    def testBoundsStopCompletion(self):
        root = program()
        Command("single", noop, parent=root, args=ExactArgs(1), valid_args=("a", "b"))
        _, completions, directive = get_completions(root, ["single", "a", ""])
        self.assertEqual(completions, [])
        self.assertEqual(directive, ShellCompDirective.NO_FILE_COMP)

    def testNoCompletionsDefault(self):
        root = program()
        _, completions, directive = get_completions(root, ["times", ""])
        self.assertEqual(completions, [])
        self.assertEqual(directive, ShellCompDirective.DEFAULT)


class TestCompleters(TestCase):
    """Ready-made completers and coercion."""

    def testFixedCompletions(self):
        choices, directive = fixed_completions(["one", "two"]).__complete__(None, [], "o")
        self.assertEqual(choices, ["one"])
        self.assertEqual(directive, ShellCompDirective.NO_FILE_COMP)

    def testNoFileCompletions(self):
        self.assertEqual(no_file_completions.__complete__(None, [], ""), ([], ShellCompDirective.NO_FILE_COMP))

    def testCompleterWrapsCallables(self):
        wrapped = completer(lambda command, args, to_complete: ([to_complete], 0))
        self.assertEqual(wrapped.__complete__(None, [], "x"), (["x"], 0))
        self.assertIs(completer(no_file_completions), no_file_completions)

    def testCompleterRejectsOthers(self):
        with self.assertRaises(TypeError):
            completer(42)

    def testCommandRejectsBadCompleter(self):
        with self.assertRaises(TypeError):
            Command("bad", valid_args_function=42)


class TestDirective(TestCase):
    """ShellCompDirective rendering."""

    def testDescribe(self):
        self.assertEqual(ShellCompDirective.DEFAULT.describe(), "DEFAULT")
        directive = ShellCompDirective.NO_SPACE | ShellCompDirective.NO_FILE_COMP
        self.assertEqual(directive.describe(), "NO_SPACE, NO_FILE_COMP")

    def testDescribeUnexpected(self):
        self.assertEqual(ShellCompDirective(64).describe(), "ERROR: unexpected directive value: 64")

    def testValues(self):
        self.assertEqual(int(ShellCompDirective.FILTER_DIRS), 16)
        self.assertEqual(int(ShellCompDirective.KEEP_ORDER), 32)


class TestRequestCommand(TestCase):
    """The hidden `__complete` command and its output format."""

    def run_request(self, *args, root=None):
        root = root or program()
        root.execute(list(args))
        return root.out.getvalue()

    def testWithDescriptions(self):
        self.assertEqual(self.run_request("__complete", "pick", "t"), "two\tsecond\n:4\n")

    def testWithoutDescriptions(self):
        self.assertEqual(self.run_request("__completeNoDesc", "pick", "t"), "two\n:4\n")

    def testErrorGivesNoFileCompletion(self):
        self.assertEqual(self.run_request("__complete", "nope", "x"), ":4\n")

    def testHelpCommandCompletesChildren(self):
        self.assertEqual(self.run_request("__complete", "help", "e"), "echo\tEcho message\n:4\n")

    def testDirectiveTrailerOnErrorStream(self):
        root = program()
        root.execute(["__complete", "pick", ""])
        self.assertIn("Completion ended with directive: NO_FILE_COMP", root.err.getvalue())

    def testRequestCommandDetached(self):
        root = program()
        root.execute(["__complete", "pick", ""])
        root.execute(["times"])
        self.assertNotIn("__complete", [child.name for child in root.children])

    def testRootWithoutChildrenKeepsArguments(self):
        seen = []
        root = Command("solo", lambda command, args: seen.append(args))
        root.execute(["one", "two"])
        self.assertEqual(seen, [["one", "two"]])

    def testRootWithoutChildrenCompletesSecondArgument(self):
        root = Command("solo", noop, valid_args=("a", "b", "c"), out=io.StringIO(), err=io.StringIO())
        self.assertEqual(self.run_request("__complete", "a", "", root=root), "b\nc\n:4\n")
        self.assertEqual(root.children, ())

    def testRootWithoutChildrenGetsNoCompletionCommand(self):
        root = Command("solo", noop, out=io.StringIO(), err=io.StringIO())
        output = self.run_request("__complete", "", root=root)
        self.assertNotIn("completion", output)
        self.assertEqual(root.children, ())


class TestActiveHelp(TestCase):
    """Active Help lines and configuration."""

    @staticmethod
    def hinting(seen):
        def complete(command, args, to_complete):
            seen.append(active_help_config(command))
            return append_active_help(["x"], "pick something"), ShellCompDirective.NO_FILE_COMP

        root = program()
        Command("hint", noop, parent=root, valid_args_function=complete)
        return root

    def testVariableName(self):
        self.assertEqual(active_help_variable("my-app"), "MY_APP_ACTIVE_HELP")
        self.assertEqual(active_help_variable("root:colon"), "ROOT_COLON_ACTIVE_HELP")

    def testHintsPrinted(self):
        root = self.hinting([])
        with mock.patch.dict(os.environ, {}, clear=True):
            root.execute(["__complete", "hint", ""])
        self.assertEqual(root.out.getvalue(), "x\n_activeHelp_ pick something\n:4\n")

    def testProgramSwitch(self):
        seen = []
        root = self.hinting(seen)
        with mock.patch.dict(os.environ, {"ROOT_ACTIVE_HELP": "0"}, clear=True):
            root.execute(["__complete", "hint", ""])
        self.assertEqual(root.out.getvalue(), "x\n:4\n")
        self.assertEqual(seen, ["0"])

    def testGlobalSwitchWins(self):
        seen = []
        root = self.hinting(seen)
        with mock.patch.dict(os.environ, {"HALYARD_ACTIVE_HELP": "0", "ROOT_ACTIVE_HELP": "1"}, clear=True):
            root.execute(["__complete", "hint", ""])
        self.assertEqual(root.out.getvalue(), "x\n:4\n")
        self.assertEqual(seen, ["0"])

    def testConfigPassedVerbatim(self):
        seen = []
        root = self.hinting(seen)
        with mock.patch.dict(os.environ, {"ROOT_ACTIVE_HELP": "verbose"}, clear=True):
            get_completions(root, ["hint", ""])
        self.assertEqual(seen, ["verbose"])


class TestDebug(TestCase):
    """Debug lines appended to BASH_COMP_DEBUG_FILE."""

    def testDebugFile(self):
        with tempfile.TemporaryDirectory() as directory:
            path = os.path.join(directory, "debug.log")
            stream = io.StringIO()
            with mock.patch.dict(os.environ, {"BASH_COMP_DEBUG_FILE": path}):
                debugln("first")
                debugln("second", stream=stream)
            with open(path, encoding="utf-8") as file:
                self.assertEqual(file.read(), "first\nsecond\n")
            self.assertEqual(stream.getvalue(), "second\n")

    def testNoDebugFile(self):
        stream = io.StringIO()
        with mock.patch.dict(os.environ, {}, clear=True):
            debugln("quiet", stream=stream)
        self.assertEqual(stream.getvalue(), "quiet\n")


if __name__ == "__main__":
    unittest.main()
