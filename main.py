from rich.pretty import pprint

from halyard import *

__prog__ = "harbor"


@command("harbor", short="Manage boats in a small harbor", shell=True, version="0.0.0")
def harbor(command, args):
    pprint(command)


@harbor.command("dock <boat>", aliases=("moor",), group_id="boats", valid_args=("sloop\ttwo sails", "ketch", "yawl"))
def dock(command, args):
    print("docking", *args, "at", command.flag("berth").value)


@harbor.command("sail [boat...]", group_id="boats", valid_args_function=fixed_completions(["sloop", "ketch", "yawl"]))
def sail(command, args):
    print("sailing", *args)


dock.flags.string("berth", "north", "berth to use", shorthand="b")
dock.register_flag_completion("berth", fixed_completions(["north", "south", "east"]))
harbor.add_group(("boats", "Boat Commands"))
harbor.persistent_flags.string("log", "", "log file", shorthand="l")
harbor.mark_persistent_flag_filename("log", "log", "txt")
sail.flags.bool("quiet", usage="do not shout")
sail.flags.bool("loud", usage="shout")
sail.mark_flags_mutually_exclusive("quiet", "loud")


if __name__ == '__main__':
    invoke(harbor)
