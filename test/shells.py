"""
Shell script tests (bash, zsh, fish, powershell).

Scope
- Validate the static bash script lists commands, flags, nouns and handlers.
- Validate the protocol scripts name the program, its functions and the
  request command, and switch Active Help off where the shell cannot show it.
- Validate the `completion` command writes the script for the chosen shell.

Conventions
- Test method names follow CamelCase per project convention.
- Scripts are checked for the fragments that matter, not compared whole.
"""

from __future__ import annotations

import io
import unittest
from unittest import TestCase

from halyard import Command, CompletionOptions, NoArgs, fixed_completions, generate
from halyard.bash import generate_legacy


def noop(command, args):
    pass


CUSTOM_FUNCTION = """__root_custom_func() {
    case ${last_command} in
        root_echo)
            COMPREPLY=( "hello" )
            return
            ;;
    esac
}"""


def program(**options):
    root = Command(
        "root",
        noop,
        args=NoArgs(),
        valid_args=("pod", "node", "service", "replicationcontroller"),
        arg_aliases=("pods", "nodes", "services", "svc", "po"),
        bash_completion_function=CUSTOM_FUNCTION,
        **options,
    )
    root.flags.int("introot", shorthand="i", usage="help message for flag introot")
    root.mark_flag_required("introot")
    root.flags.string("filename", usage="file to read")
    root.mark_flag_filename("filename", "json", "yaml", "yml")
    root.flags.string("filename-ext", usage="any file")
    root.mark_flag_filename("filename-ext")
    root.flags.string("custom", usage="custom completion")
    root.mark_flag_custom("custom", "__complete_custom")
    root.flags.string("theme", usage="theme directory")
    root.mark_flag_dirname("theme", "themes")
    root.flags.string("theme-no-dir", usage="any directory")
    root.mark_flag_dirname("theme-no-dir")
    root.flags.string("color", usage="output color")
    root.register_flag_completion("color", fixed_completions(["red", "green"]))
    root.flags.bool("hidden-flag")
    root.flags.mark_hidden("hidden-flag")
    root.flags.bool("old-flag")
    root.flags.mark_deprecated("old-flag", "use --color")
    root.persistent_flags.bool("persistent", usage="everywhere")

    echo = Command(
        "echo [text...]", noop, parent=root,
        aliases=("say", "talk"), short="Echo anything",
        valid_args_function=lambda command, args, to_complete: ([], 0),
    )
    Command("times [count]", noop, parent=echo, short="Echo several times")
    Command("cmd:colon", noop, parent=root, short="Name with a colon")
    Command("gone", noop, parent=root, deprecated="do not use")
    Command("ghost", noop, parent=root, hidden=True)
    return root


class TestLegacyBash(TestCase):
    """The self-contained bash script."""

    def setUp(self):
        self.output = generate_legacy(program())

    def testFunctionNames(self):
        for fragment in (
            "_root_root_command()",
            "_root_echo()",
            "_root_echo_times()",
            "_root_cmd__colon()",
            'last_command="root_echo_times"',
        ):
            self.assertIn(fragment, self.output)

    def testCommands(self):
        self.assertIn('commands+=("echo")', self.output)
        self.assertIn('commands+=("cmd:colon")', self.output)
        self.assertIn('command_aliases+=("say")', self.output)
        self.assertIn('aliashash["talk"]="echo"', self.output)

    def testHiddenAndDeprecatedOmitted(self):
        self.assertNotIn("gone", self.output)
        self.assertNotIn("ghost", self.output)
        self.assertNotIn("hidden-flag", self.output)
        self.assertNotIn("old-flag", self.output)
        self.assertNotIn("deprecated", self.output)

    def testFlags(self):
        for fragment in (
            'flags+=("--introot=")',
            'two_word_flags+=("--introot")',
            'two_word_flags+=("-i")',
            'flags+=("--persistent")',
            'local_nonpersistent_flags+=("--introot")',
            'local_nonpersistent_flags+=("--introot=")',
            'local_nonpersistent_flags+=("-i")',
        ):
            self.assertIn(fragment, self.output)
        self.assertNotIn('two_word_flags+=("--persistent")', self.output)

    def testFlagHandlers(self):
        for fragment in (
            'flags_completion+=("__root_handle_filename_extension_flag json|yaml|yml")',
            'flags_completion+=("_filedir")',
            'flags_completion+=("__complete_custom")',
            'flags_completion+=("__root_handle_subdirs_in_dir_flag themes")',
            'flags_completion+=("_filedir -d")',
            'flags_completion+=("__root_handle_program_completion")',
        ):
            self.assertIn(fragment, self.output)

    def testRequiredFlags(self):
        self.assertIn('must_have_one_flag+=("--introot=")', self.output)
        self.assertIn('must_have_one_flag+=("-i")', self.output)

    def testNounsSorted(self):
        nouns = ["node", "pod", "replicationcontroller", "service"]
        positions = [self.output.index('must_have_one_noun+=("%s")' % noun) for noun in nouns]
        self.assertEqual(positions, sorted(positions))

    def testNounAliasesSorted(self):
        aliases = ["nodes", "po", "pods", "services", "svc"]
        positions = [self.output.index('noun_aliases+=("%s")' % alias) for alias in aliases]
        self.assertEqual(positions, sorted(positions))

    def testCompletionFunction(self):
        self.assertIn("has_completion_function=1", self.output)

    def testCustomFunction(self):
        self.assertIn(CUSTOM_FUNCTION, self.output)
        self.assertIn("__root_custom_func", self.output)
        self.assertIn("__custom_func", self.output)

    def testActiveHelpDisabled(self):
        self.assertIn("ROOT_ACTIVE_HELP=0", self.output)
        self.assertIn("__completeNoDesc", self.output)

    def testRegistration(self):
        self.assertIn("complete -o default -F __start_root root", self.output)

    def testTraverseChildrenKeepsLocalFlags(self):
        output = generate_legacy(program(traverse_children=True))
        self.assertNotIn("local_nonpersistent_flags+=", output)

    def testDisabledFlagParsing(self):
        root = Command("root")
        Command("raw", noop, parent=root, disable_flag_parsing=True)
        self.assertIn("flag_parsing_disabled=1", generate_legacy(root))


class TestProtocolScripts(TestCase):
    """Scripts that ask the program for candidates."""

    def testBash(self):
        output = generate(program(), "bash")
        self.assertIn("__root_get_completion_results", output)
        self.assertIn("complete -o default -F __start_root root", output)
        self.assertIn("__complete ${args[*]}", output)
        self.assertNotIn("_ACTIVE_HELP=0", output)

    def testBashWithoutDescriptions(self):
        output = generate(program(), "bash", descriptions=False)
        self.assertIn("__completeNoDesc ${args[*]}", output)

    def testZsh(self):
        output = generate(program(), "zsh")
        self.assertIn("#compdef root", output)
        self.assertIn("compdef _root root", output)
        self.assertNotIn("_ACTIVE_HELP=0", output)

    def testPowershell(self):
        output = generate(program(), "powershell")
        self.assertIn("Register-ArgumentCompleter", output)
        self.assertIn("-CommandName 'root'", output)
        self.assertIn("${env:ROOT_ACTIVE_HELP}=0", output)

    def testFish(self):
        output = generate(program(), "fish")
        self.assertIn("ROOT_ACTIVE_HELP=0", output)
        self.assertIn("__root_perform_completion", output)
        self.assertIn("complete -c root", output)
        self.assertIn("__complete", output)
        self.assertNotIn("__completeNoDesc", output)

    def testFishWithoutDescriptions(self):
        output = generate(program(), "fish", descriptions=False)
        self.assertIn("__completeNoDesc", output)
        self.assertNotIn("-d 'Echo anything'", output)

    def testFishRules(self):
        output = generate(program(), "fish")
        self.assertIn("-a 'echo' -d 'Echo anything'", output)
        self.assertIn("__fish_root_seen_subcommand_path echo", output)
        self.assertIn("-r -s i -l introot", output)
        self.assertIn("(__root_complete_dynamic)", output)
        self.assertNotIn("ghost", output)

    def testFishFilteredFlagsAskProgram(self):
        output = generate(program(), "fish")
        for name in ("filename", "filename-ext", "theme", "theme-no-dir", "color"):
            self.assertIn(
                "complete -c root -f -n '__fish_root_no_subcommand' -r -l %s -a '(__root_complete_dynamic)'" % name,
                output,
            )

    def testFishFreeFormFlagKeepsFiles(self):
        output = generate(program(), "fish")
        self.assertIn("complete -c root -n '__fish_root_no_subcommand' -r -l custom -d 'custom completion'", output)
        self.assertIn("complete -c root -n '__fish_root_no_subcommand' -r -s i -l introot -d", output)

    def testFishQuotesValues(self):
        root = Command("root", noop, valid_args=("it's here\tquoted", "a;b"))
        Command("run", noop, parent=root)
        output = generate(root, "fish")
        self.assertIn("-a 'it\\'s here' -d 'quoted'", output)
        self.assertIn("-a 'a;b'", output)
        self.assertIn("-a 'run'", output)

    def testVariableNames(self):
        root = Command("my-prog:tool")
        Command("run", noop, parent=root)
        fish = generate(root, "fish")
        self.assertIn("__my_prog_tool_perform_completion", fish)
        self.assertIn("complete -c my-prog:tool", fish)
        self.assertIn("MY_PROG_TOOL_ACTIVE_HELP=0", fish)
        bash = generate(root, "bash")
        self.assertIn("__start_my_prog_tool my-prog:tool", bash)

    def testUnsupportedShell(self):
        with self.assertRaises(ValueError):
            generate(program(), "tcsh")


class TestCompletionCommand(TestCase):
    """The default `completion` command."""

    def testWritesScript(self):
        out = io.StringIO()
        root = Command("root", out=out)
        Command("run", noop, parent=root)
        root.execute(["completion", "zsh"])
        self.assertIn("#compdef root", out.getvalue())

    def testNoDescriptionsFlag(self):
        out = io.StringIO()
        root = Command("root", out=out)
        Command("run", noop, parent=root)
        root.execute(["completion", "bash", "--no-descriptions"])
        self.assertIn("__completeNoDesc", out.getvalue())

    def testNotAddedWithoutChildren(self):
        root = Command("root", noop)
        root.execute([])
        self.assertEqual(root.children, ())

    def testDisabled(self):
        root = Command("root", completion_options=CompletionOptions(disable_default_command=True))
        Command("run", noop, parent=root)
        root.execute(["run"])
        self.assertNotIn("completion", [child.name for child in root.children])

    def testHidden(self):
        root = Command("root", completion_options=CompletionOptions(hidden_default_command=True))
        Command("run", noop, parent=root)
        root.execute(["run"])
        completion, = (child for child in root.children if child.name == "completion")
        self.assertFalse(completion.is_available_command())


if __name__ == "__main__":
    unittest.main()
