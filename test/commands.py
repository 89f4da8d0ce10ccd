"""
Command tree tests (resolution, execution, hooks, faults).

Scope
- Validate find() and traverse() on names, aliases, prefixes and flags.
- Validate execution order of hooks and validations.
- Validate unknown/ambiguous commands and positional validators raise friendly faults.
- Validate help and version output go to the command's output stream.
- Validate command groups in help output and their declaration checks.

Conventions
- Test method names follow CamelCase per project convention.
- Trees are rebuilt per test through small factories; flags keep parse state.
"""

from __future__ import annotations

import io
import unittest
from unittest import TestCase

from halyard import Command, CommandGroup, ExactArgs, NoArgs, OnlyValidArgs, Settings, command, invoke
from halyard.faults import (
    AmbiguousCommandError,
    DeprecatedCommandWarning,
    InvalidArgCountError,
    InvalidArgValueError,
    RequiredFlagsError,
    UnknownCommandError,
    UnknownFlagError,
)


def noop(command, args):
    pass


def tree(**options):
    """root → echo (alias say) → times; root → status, stage."""
    root = Command("root", short="root command", out=io.StringIO(), err=io.StringIO(), **options)
    echo = Command("echo [text...]", noop, aliases=("say",), short="echo anything")
    times = Command("times [count]", noop, short="echo several times")
    echo.add_command(times)
    root.add_command(
        echo,
        Command("status", noop, short="show status"),
        Command("stage", noop, short="stage files", suggest_for=("add",)),
    )
    return root


class TestFind(TestCase):
    """find(): descend on names and aliases, keep flags in place."""

    def testAliasRecordsCalledAs(self):
        root = tree()
        found, remaining = root.find(["say", "hello"])
        self.assertEqual(found.name, "echo")
        self.assertEqual(found.called_as, "say")
        self.assertEqual(remaining, ["hello"])

    def testNestedCommand(self):
        root = tree()
        found, remaining = root.find(["echo", "times", "3"])
        self.assertEqual(found.command_path(), "root echo times")
        self.assertEqual(remaining, ["3"])

    def testFlagsAreSkippedAndKept(self):
        root = tree()
        root.persistent_flags.string("config")
        found, remaining = root.find(["--config", "file", "echo", "x"])
        self.assertEqual(found.name, "echo")
        self.assertEqual(remaining, ["--config", "file", "x"])

    def testRootWithoutCommand(self):
        root = tree()
        found, remaining = root.find([])
        self.assertIs(found, root)
        self.assertEqual(remaining, [])

    def testUnknownCommandSuggests(self):
        root = tree()
        with self.assertRaises(UnknownCommandError) as context:
            root.find(["ecko"])
        self.assertEqual(context.exception.options["argument"], "ecko")
        self.assertIn("echo", context.exception.options["suggestions"])

    def testSuggestFor(self):
        root = tree()
        self.assertEqual(root.suggestions_for("add"), ["stage"])

    def testSuggestionsDisabled(self):
        root = tree(disable_suggestions=True)
        self.assertEqual(root.suggestions_for("ecko"), [])

    def testPrefixMatching(self):
        root = tree()
        found, _ = root.find(["ec", "x"], Settings(prefix_matching=True))
        self.assertEqual(found.name, "echo")
        self.assertEqual(found.called_as, "echo")

    def testPrefixMatchingThroughAlias(self):
        root = tree()
        found, _ = root.find(["sa"], Settings(prefix_matching=True))
        self.assertEqual(found.name, "echo")
        self.assertEqual(found.called_as, "say")

    def testAmbiguousPrefix(self):
        root = tree()
        with self.assertRaises(AmbiguousCommandError) as context:
            root.find(["sta"], Settings(prefix_matching=True))
        self.assertEqual(set(context.exception.options["candidates"]), {"status", "stage"})

    def testPrefixMatchingOffByDefault(self):
        root = tree()
        with self.assertRaises(UnknownCommandError):
            root.find(["ec"])

    def testCaseInsensitive(self):
        root = tree()
        found, _ = root.find(["ECHO"], Settings(case_insensitive=True))
        self.assertEqual(found.name, "echo")
        self.assertEqual(found.called_as, "ECHO")

    def testExactNameBeatsAlias(self):
        root = Command("root")
        first = Command("one", noop, aliases=("two",))
        second = Command("two", noop)
        root.add_command(first, second)
        found, _ = root.find(["two"])
        self.assertIs(found, second)


class TestTraverse(TestCase):
    """traverse(): parse each level's flags on the way down."""

    def testParentFlagsAreParsed(self):
        root = tree(traverse_children=True)
        root.flags.bool("verbose")
        found, remaining = root.traverse(["--verbose", "echo", "x"])
        self.assertEqual(found.name, "echo")
        self.assertEqual(remaining, ["x"])
        self.assertTrue(root.flags.lookup("verbose").value)

    def testUnknownFlagAtTraversedLevel(self):
        root = tree(traverse_children=True)
        with self.assertRaises(UnknownFlagError):
            root.traverse(["--nope=1", "echo"])


class TestTree(TestCase):
    """Tree structure and flag visibility."""

    def testParentIsWeak(self):
        root = tree()
        echo, = (child for child in root.children if child.name == "echo")
        self.assertIs(echo.parent, root)
        self.assertEqual([node.name for node in echo.children[0].path], ["root", "echo", "times"])

    def testCycleRejected(self):
        root = tree()
        echo = root.children[0]
        with self.assertRaises(ValueError):
            echo.add_command(root)
        with self.assertRaises(ValueError):
            echo.add_command(echo)

    def testEffectiveFlagsClosestWins(self):
        root = tree()
        echo = root.children[0]
        root.persistent_flags.string("mode", "root")
        echo.flags.string("mode", "echo")
        self.assertEqual(echo.flag("mode").value, "echo")
        self.assertEqual(echo.children[0].flag("mode").value, "root")

    def testInheritedFlags(self):
        root = tree()
        echo = root.children[0]
        root.persistent_flags.bool("debug")
        root.flags.bool("local")
        self.assertIn("debug", echo.inherited_flags())
        self.assertNotIn("local", echo.effective_flags())

    def testCommandsSorted(self):
        root = tree()
        self.assertEqual([child.name for child in root.commands()], ["echo", "stage", "status"])

    def testCommandsUnsorted(self):
        root = tree(settings=Settings(command_sorting=False))
        self.assertEqual([child.name for child in root.commands()], ["echo", "status", "stage"])

    def testDecoratorFactory(self):
        root = Command("root")

        @root.command("serve [port]", aliases=("s",))
        def serve(command, args):
            """Serve the application."""

        self.assertIs(serve.parent, root)
        self.assertEqual(serve.short, "Serve the application.")
        self.assertEqual(serve.aliases, ("s",))


class TestExecute(TestCase):
    """execute(): validation and hook ordering."""

    def testRunReceivesPositionals(self):
        seen = []
        root = tree()
        Command("print [text...]", lambda command, args: seen.append((command.name, args)), parent=root)
        root.execute(["print", "a", "--", "-b"])
        self.assertEqual(seen, [("print", ["a", "-b"])])

    def testExecuteSplitsStrings(self):
        seen = []
        root = tree()
        Command("print [text...]", lambda command, args: seen.append(args), parent=root)
        root.execute("print 'a b' c")
        self.assertEqual(seen, [["a b", "c"]])

    def testHookOrder(self):
        order = []

        def record(label):
            return lambda command, args: order.append(label)

        root = Command(
            "root",
            persistent_pre_run=record("persistent-pre"),
            persistent_post_run=record("persistent-post"),
        )
        Command(
            "child",
            record("run"),
            parent=root,
            pre_run=record("pre"),
            post_run=record("post"),
        )
        root.execute(["child"])
        self.assertEqual(order, ["persistent-pre", "pre", "run", "post", "persistent-post"])

    def testClosestPersistentHookOnly(self):
        order = []
        root = Command("root", persistent_pre_run=lambda command, args: order.append("root"))
        Command(
            "child", noop, parent=root,
            persistent_pre_run=lambda command, args: order.append("child"),
        )
        root.execute(["child"])
        self.assertEqual(order, ["child"])

    def testTraverseHooks(self):
        order = []
        root = Command(
            "root",
            persistent_pre_run=lambda command, args: order.append("pre:root"),
            persistent_post_run=lambda command, args: order.append("post:root"),
            settings=Settings(traverse_hooks=True),
        )
        Command(
            "child", noop, parent=root,
            persistent_pre_run=lambda command, args: order.append("pre:child"),
            persistent_post_run=lambda command, args: order.append("post:child"),
        )
        root.execute(["child"])
        self.assertEqual(order, ["pre:root", "pre:child", "post:child", "post:root"])

    def testRequiredFlagMissing(self):
        root = tree()
        child = Command("deploy", noop, parent=root)
        child.flags.string("target")
        child.mark_flag_required("target")
        with self.assertRaises(RequiredFlagsError) as context:
            root.execute(["deploy"])
        self.assertEqual(context.exception.options["missing"], ("target",))

    def testRequiredFlagSet(self):
        root = tree()
        child = Command("deploy", noop, parent=root)
        child.flags.string("target")
        child.mark_flag_required("target")
        self.assertIs(root.execute(["deploy", "--target=prod"]), child)

    def testExactArgs(self):
        root = tree()
        Command("one <value>", noop, parent=root, args=ExactArgs(1))
        with self.assertRaises(InvalidArgCountError) as context:
            root.execute(["one", "a", "b"])
        options = context.exception.options
        self.assertEqual((options["minimum"], options["maximum"], options["received"]), (1, 1, 2))

    def testOnlyValidArgs(self):
        root = tree()
        Command(
            "pick <color>", noop, parent=root,
            args=OnlyValidArgs(), valid_args=("red\tthe color red", "blue"), arg_aliases=("crimson",),
        )
        root.execute(["pick", "red", "crimson"])
        with self.assertRaises(InvalidArgValueError):
            root.execute(["pick", "green"])

    def testNoArgs(self):
        root = tree()
        Command("quiet", noop, parent=root, args=NoArgs())
        with self.assertRaises(UnknownCommandError):
            root.execute(["quiet", "extra"])

    def testUnknownFlagCarriesCommand(self):
        root = tree()
        with self.assertRaises(UnknownFlagError) as context:
            root.execute(["status", "--nope"])
        self.assertEqual(context.exception.command.name, "status")

    def testDeprecatedCommandWarns(self):
        root = tree()
        Command("old", noop, parent=root, deprecated="use status instead")
        with self.assertWarns(DeprecatedCommandWarning):
            root.execute(["old"])

    def testHelpFlagPrintsHelp(self):
        out = io.StringIO()
        root = Command("root", out=out, colorful=False)
        Command("echo [text...]", noop, parent=root, short="echo anything")
        root.execute(["echo", "--help"])
        self.assertIn("usage", out.getvalue())
        self.assertIn("root echo [text...] [flags]", out.getvalue())

    def testHelpCommand(self):
        out = io.StringIO()
        root = Command("root", out=out, colorful=False)
        Command("echo [text...]", noop, parent=root, short="echo anything")
        root.execute(["help", "echo"])
        self.assertIn("echo anything", out.getvalue())

    def testVersionFlag(self):
        out = io.StringIO()
        root = Command("app", noop, version="1.2.3", out=out, colorful=False)
        root.execute(["--version"])
        self.assertIn("app version 1.2.3", out.getvalue())

    def testInvokeCallable(self):
        seen = []

        def greet(command, args):
            seen.append(args)

        invoke(greet, ["world"])
        self.assertEqual(seen, [["world"]])

    def testCommandDecoratorNamesFromFunction(self):
        @command
        def make_things(command, args):
            pass

        self.assertEqual(make_things.name, "make-things")


class TestCommandGroups(TestCase):
    """Titled sections of child commands."""

    def testHelpListsGroups(self):
        root = tree(colorful=False)
        root.add_group(("core", "Core Commands"), ("extra", "Extra Commands"))
        Command("build", noop, parent=root, short="build things", group_id="core")
        Command("clean", noop, parent=root, short="clean things", group_id="extra")
        root.set_help_command_group_id("extra")
        root.execute(["status"])
        root.print_help()
        output = root.out.getvalue()
        positions = [
            output.index(fragment)
            for fragment in ("Core Commands", "build", "Extra Commands", "clean", "additional commands", "status")
        ]
        self.assertEqual(positions, sorted(positions))
        self.assertNotIn("available commands", output)

    def testHelpWithoutGroups(self):
        root = tree(colorful=False)
        root.execute(["status"])
        root.print_help()
        self.assertIn("available commands", root.out.getvalue())
        self.assertNotIn("additional commands", root.out.getvalue())

    def testAllGrouped(self):
        root = Command("root", out=io.StringIO(), colorful=False)
        root.add_group(("main", "Main Commands"))
        Command("run", noop, parent=root, group_id="main")
        root.set_help_command_group_id("main")
        root.set_completion_command_group_id("main")
        root.execute(["run"])
        self.assertTrue(root.all_child_commands_have_group())
        self.assertEqual(root.help_command.group_id, "main")
        completion, = (child for child in root.children if child.name == "completion")
        self.assertEqual(completion.group_id, "main")
        root.print_help()
        self.assertNotIn("additional commands", root.out.getvalue())

    def testUndefinedGroupRejected(self):
        root = tree()
        Command("orphan", noop, parent=root, group_id="missing")
        with self.assertRaises(ValueError) as context:
            root.execute(["status"])
        self.assertIn("root orphan", str(context.exception))

    def testUndefinedNestedGroupRejected(self):
        root = tree()
        root.add_group(("core", "Core Commands"))
        echo, _ = root.find(["echo"])
        Command("loud", noop, parent=echo, group_id="core")
        with self.assertRaises(ValueError):
            root.execute(["status"])

    def testGroups(self):
        root = Command("root")
        root.add_group(CommandGroup("a", "Alpha"), ("b", "Beta"))
        self.assertEqual(root.groups, (CommandGroup("a", "Alpha"), CommandGroup("b", "Beta")))
        self.assertTrue(root.contains_group("b"))
        self.assertFalse(root.contains_group("c"))

    def testGroupFieldsMustBeStrings(self):
        with self.assertRaises(TypeError):
            Command("root").add_group(("a", 1))
        with self.assertRaises(TypeError):
            Command("root", group_id=1)


if __name__ == "__main__":
    unittest.main()
