"""
Flag groups: constraints over sets of flags declared on one command.

Kinds
- required-together: if any member is set, all must be set.
- mutually-exclusive: at most one member may be set.
- one-required: at least one member must be set.
- if-present-then-required: when the first member is set, the others must be too.

A group is identified by its canonical key, the member names joined by one
space in declaration order. Validation walks the groups of the invoked command
in ascending key order (ties broken by kind in the order above) and raises the
first violation. Groups declared on other commands never apply.

For completion, groups adjust a *view* of the command instead of mutating the
tree: `adjust(groups, flags)` returns which flags should be treated as
required and which as hidden while candidates are computed.
"""
from collections import namedtuple

from .faults import *


REQUIRED_TOGETHER = "required-together"
MUTUALLY_EXCLUSIVE = "mutually-exclusive"
ONE_REQUIRED = "one-required"
IF_PRESENT_THEN_REQUIRED = "if-present-then-required"

KINDS = (REQUIRED_TOGETHER, MUTUALLY_EXCLUSIVE, ONE_REQUIRED, IF_PRESENT_THEN_REQUIRED)


class FlagGroup(namedtuple("FlagGroup", ("kind", "names"))):
    """
    one registered constraint: a kind and the ordered member names.
    """
    __slots__ = ()

    def __new__(cls, kind, names):
        if kind not in KINDS:
            raise ValueError("unknown flag group kind %r" % (kind,))
        names = tuple(names)
        if len(names) < 2:
            raise ValueError("a %s flag group needs at least two flags" % kind)
        if len(set(names)) != len(names):
            raise ValueError("flag group %r lists a flag more than once" % " ".join(names))
        return super().__new__(cls, kind, names)

    @property
    def key(self):
        return " ".join(self.names)

    def __str__(self):
        return "[%s]" % self.key


View = namedtuple("View", ("required", "hidden"))
View.__doc__ = "flag names to treat as required or hidden while completing."


def _listing(names):
    return "[%s]" % " ".join(names)


def _check(command, group, present):
    """return the fault for a violated group, or None."""
    match group.kind:
        case "required-together":
            missing = tuple(name for name in group.names if name not in present)
            if missing and len(missing) != len(group.names):
                return RequiredTogetherError(
                    "flags %s must be set together, but %s were not set" % (str(group), _listing(missing)),
                    title="flags required together",
                    code=FaultCode.FLAGS_REQUIRED_TOGETHER,
                    hint="set all of %s or none of them" % str(group),
                    command=command,
                    group=group.names,
                    missing=missing,
                    present=tuple(name for name in group.names if name in present),
                )
        case "mutually-exclusive":
            chosen = tuple(name for name in group.names if name in present)
            if len(chosen) > 1:
                return MutuallyExclusiveError(
                    "exactly one of the flags %s can be set, but %s were set" % (str(group), _listing(chosen)),
                    title="mutually exclusive flags",
                    code=FaultCode.FLAGS_MUTUALLY_EXCLUSIVE,
                    hint="keep only one of %s" % _listing(chosen),
                    command=command,
                    group=group.names,
                    present=chosen,
                )
        case "one-required":
            if not any(name in present for name in group.names):
                return OneRequiredError(
                    "at least one of the flags %s is required" % str(group),
                    title="one flag required",
                    code=FaultCode.FLAGS_ONE_REQUIRED,
                    hint="set one of %s" % str(group),
                    command=command,
                    group=group.names,
                    missing=group.names,
                )
        case "if-present-then-required":
            trigger, *dependents = group.names
            missing = tuple(name for name in dependents if name not in present)
            if trigger in present and missing:
                return IfPresentThenRequiredError(
                    "if the flag %r is set, %s must be set too, but %s were not set" % (
                        trigger, _listing(dependents), _listing(missing)
                    ),
                    title="dependent flags missing",
                    code=FaultCode.FLAGS_IF_PRESENT_THEN_REQUIRED,
                    hint="add %s or drop --%s" % (_listing(missing), trigger),
                    command=command,
                    group=group.names,
                    missing=missing,
                    present=(trigger,),
                )
    return None


def ordered(groups):
    """groups sorted by canonical key, ties broken by kind."""
    return sorted(groups, key=lambda group: (group.key, KINDS.index(group.kind)))


def validate(command, groups, flags):
    """
    raise the first violated group in canonical order.

    `flags` is the command's effective flag set; only flags present in it and
    marked changed count as set.
    """
    present = {flag.name for flag in flags.changed()}
    for group in ordered(groups):
        if (fault := _check(command, group, present)) is not None:
            raise fault


def adjust(groups, flags):
    """
    compute the completion view for the given groups.

    - required-together with any member set: every member becomes required.
    - one-required with no member set: every member becomes required.
    - mutually-exclusive with a member set: the other members become hidden.
    - if-present-then-required with the first member set: the rest become required.
    """
    present = {flag.name for flag in flags.changed()}
    required, hidden = set(), set()
    for group in ordered(groups):
        match group.kind:
            case "required-together":
                if any(name in present for name in group.names):
                    required.update(group.names)
            case "one-required":
                if not any(name in present for name in group.names):
                    required.update(group.names)
            case "mutually-exclusive":
                chosen = next((name for name in group.names if name in present), None)
                if chosen is not None:
                    hidden.update(name for name in group.names if name != chosen)
            case "if-present-then-required":
                if group.names[0] in present:
                    required.update(group.names[1:])
    return View(frozenset(required), frozenset(hidden))


__all__ = (
    "REQUIRED_TOGETHER",
    "MUTUALLY_EXCLUSIVE",
    "ONE_REQUIRED",
    "IF_PRESENT_THEN_REQUIRED",
    "FlagGroup",
)
