"""
Positional-argument validators.

A validator is any object exposing `__validate__(command, args)`; it returns
nothing when the positionals are acceptable and raises an ArgumentError (or any
CommandException) otherwise. Validators may also expose `__bounds__()`
returning `(minimum, maximum)` (either may be None); the completion engine uses
it to stop offering positional candidates once a command cannot take more.

Built-ins
- ArbitraryArgs(): anything goes.
- NoArgs(): no positionals; the first one is reported as an unknown command.
- OnlyValidArgs(): every positional must be one of the command's valid_args
  (descriptions after a tab are ignored) or arg_aliases.
- MinimumNArgs(n), MaximumNArgs(n), ExactArgs(n), RangeArgs(low, high).
- MatchAll(*validators): runs each in order, first failure wins.
- validator(callable): adapts a plain `f(command, args)` function.

legacy(command, args) is applied when a command declares no validator at all.
"""
from .faults import *
from .utils import *


def _count(command, args, minimum, maximum):
    # messages follow the validator shape: exact, range, minimum-only, maximum-only
    received = len(args)
    if minimum is not None and maximum is not None and minimum == maximum:
        message = "accepts %d arg(s), received %d" % (minimum, received)
    elif minimum is not None and maximum is not None:
        message = "accepts between %d and %d arg(s), received %d" % (minimum, maximum, received)
    elif minimum is not None:
        message = "requires at least %d arg(s), only received %d" % (minimum, received)
    else:
        message = "accepts at most %d arg(s), received %d" % (maximum, received)
    return InvalidArgCountError(
        message,
        title="wrong number of arguments",
        code=FaultCode.INVALID_ARG_COUNT,
        hint="run '%s --help' for usage" % command.command_path(),
        command=command,
        args=tuple(args),
        minimum=minimum,
        maximum=maximum,
        received=received,
    )


def _unknown(command, argument):
    suggestions = command.suggestions_for(argument)
    return UnknownCommandError(
        "unknown command %r for %r" % (argument, command.command_path()),
        title="unknown command",
        code=FaultCode.UNKNOWN_COMMAND,
        hint="run '%s --help' for usage" % command.command_path(),
        command=command,
        argument=argument,
        suggestions=tuple(suggestions),
    )


class ArgValidator:
    """
    Base class for the built-in validators; subclasses override __validate__.
    """

    def __validate__(self, command, args):
        raise NotImplementedError

    def __bounds__(self):
        return None, None

    def __repr__(self):
        return type(self).__name__ + "()"


class ArbitraryArgs(ArgValidator):
    def __validate__(self, command, args):
        return None


class NoArgs(ArgValidator):
    def __validate__(self, command, args):
        if args:
            raise _unknown(command, args[0])

    def __bounds__(self):
        return 0, 0


class OnlyValidArgs(ArgValidator):
    def __validate__(self, command, args):
        if not command.valid_args:
            return
        accepted = [valid.split("\t", 1)[0] for valid in command.valid_args]
        accepted.extend(command.arg_aliases)
        for argument in args:
            if argument not in accepted:
                raise InvalidArgValueError(
                    "invalid argument %r for %r" % (argument, command.command_path()),
                    title="invalid argument",
                    code=FaultCode.INVALID_ARG_VALUE,
                    hint="valid arguments are: %s" % ", ".join(accepted),
                    command=command,
                    argument=argument,
                    suggestions=tuple(command.suggestions_for(argument)),
                )


class _Counted(ArgValidator):
    minimum = None
    maximum = None

    def __init__(self, *bounds):
        for bound in bounds:
            if not isinstance(bound, int) or isinstance(bound, bool) or bound < 0:
                raise ValueError(f"{type(self).__name__} bounds must be non-negative integers")

    def __validate__(self, command, args):
        if self.minimum is not None and len(args) < self.minimum:
            raise _count(command, args, self.minimum, self.maximum)
        if self.maximum is not None and len(args) > self.maximum:
            raise _count(command, args, self.minimum, self.maximum)

    def __bounds__(self):
        return self.minimum, self.maximum

    def __repr__(self):
        return "%s(%s)" % (type(self).__name__, ", ".join(
            str(bound) for bound in (self.minimum, self.maximum) if bound is not None
        ))


class MinimumNArgs(_Counted):
    def __init__(self, n, /):
        super().__init__(n)
        self.minimum = n


class MaximumNArgs(_Counted):
    def __init__(self, n, /):
        super().__init__(n)
        self.maximum = n


class ExactArgs(_Counted):
    def __init__(self, n, /):
        super().__init__(n)
        self.minimum = self.maximum = n

    def __repr__(self):
        return "ExactArgs(%d)" % self.minimum


class RangeArgs(_Counted):
    def __init__(self, low, high, /):
        super().__init__(low, high)
        if low > high:
            raise ValueError("RangeArgs lower bound must not exceed the upper bound")
        self.minimum = low
        self.maximum = high


class MatchAll(ArgValidator):
    def __init__(self, *validators):
        self._validators = tuple(map(validator, validators))

    def __validate__(self, command, args):
        for each in self._validators:
            each.__validate__(command, args)

    def __bounds__(self):
        minimum, maximum = None, None
        for each in self._validators:
            low, high = bounds(each)
            if low is not None:
                minimum = low if minimum is None else max(minimum, low)
            if high is not None:
                maximum = high if maximum is None else min(maximum, high)
        return minimum, maximum

    def __repr__(self):
        return "MatchAll(%s)" % ", ".join(map(repr, self._validators))


class _Adapter(ArgValidator):
    def __init__(self, callback):
        self._callback = callback

    def __validate__(self, command, args):
        return self._callback(command, args)

    def __repr__(self):
        return "validator(%s)" % getattr(self._callback, "__qualname__", repr(self._callback))


def validator(object, /):
    """
    Coerce `object` into something with __validate__.

    objects already exposing __validate__ are returned unchanged; plain callables
    taking (command, args) are wrapped.
    """
    if callable(getattr(object, "__validate__", None)):
        return object
    if callable(object):
        return _Adapter(object)
    raise TypeError("validator() argument must be callable or expose __validate__")


def bounds(object, /):
    """Return the (minimum, maximum) a validator declares, or (None, None)."""
    if object is Unset:
        return None, None
    if callable(hook := getattr(object, "__bounds__", None)):
        return hook()
    return None, None


def legacy(command, args, /):
    """
    Rules for commands without a validator.

    - no children: anything goes.
    - root with children: a leftover positional is an unknown command.
    - non-root with children: anything goes.
    """
    if not command.has_subcommands():
        return
    if command.parent is None and args:
        raise _unknown(command, args[0])


__all__ = (
    "ArgValidator",
    "ArbitraryArgs",
    "NoArgs",
    "OnlyValidArgs",
    "MinimumNArgs",
    "MaximumNArgs",
    "ExactArgs",
    "RangeArgs",
    "MatchAll",
    "validator",
)
