"""
Argosy faults (errors, warnings and build batches) and rendering.

Scope
- FaultCode: canonical, stable numeric identifiers for every user-facing issue.
  Codes are grouped by domain to keep copy consistent and make logs/searches
  predictable.
- CommandException / CommandWarning: base types that carry message + options and
  know how to render themselves in a friendly, lowercased, and actionable way.
- BuildError: a batch of every definition problem found by finalize().
- trigger(): central entry point to surface any fault (raise, or print and exit).
- getdoc(): optional description lookup for a code from the host application.

Taxonomy
- definition-time (DefinitionError, batched into BuildError): duplicate names,
  dangling references, unregistered handlers, impossible constraints.
- parse-time usage (UsageError): unknown arguments, wrong arity, invalid
  subcommands, missing/conflicting/dependent arguments and groups.
- parse-time values (InvalidValueError, also a builtin ValueError): always
  carry the offending literal and a description of the expected shape.

Integration
- The engine raises faults; a caller (see argosy.router.invoke) renders them via
  rich and maps them to the usage exit code.
"""
import copy
import sys
import warnings
from collections import defaultdict
from enum import IntEnum
from types import MappingProxyType

from rich.console import Console, Group
from rich.panel import Panel
from rich.text import Text

from .utils import Unset

console = Console(stderr=True)


class ExitCode(IntEnum):
    """
    process exit-code convention enforced by callers (never by the engine).
    """
    SUCCESS = 0
    FAILURE = 1
    USAGE = 2


class FaultCode(IntEnum):
    """
    canonical fault codes (stable identifiers).

    grouping
    - definition (101xx)
      • DUPLICATE_NAME, DANGLING_REFERENCE, DANGLING_GROUP_REFERENCE,
        UNREGISTERED_HANDLER, IMPOSSIBLE_CONSTRAINT, CYCLIC_DEFINITION,
        POSITIONAL_ORDER
    - usage (111xx)
      • UNKNOWN_ARGUMENT, INVALID_SUBCOMMAND, WRONG_ARITY, DUPLICATED_ARGUMENT,
        MISSING_REQUIRED_ARGUMENT, MISSING_GROUP, ARGUMENT_CONFLICT,
        GROUP_CONFLICT, MISSING_DEPENDENCY
    - values (121xx)
      • INVALID_VALUE, OUT_OF_RANGE, UNKNOWN_ENUM_VARIANT
    - warnings (131xx)
      • DEPRECATED_ARGUMENT
    """
    # --- definition errors (10xxx) ---
    DUPLICATE_NAME              = 10101
    DANGLING_REFERENCE          = 10102
    DANGLING_GROUP_REFERENCE    = 10103
    UNREGISTERED_HANDLER        = 10104
    IMPOSSIBLE_CONSTRAINT       = 10105
    CYCLIC_DEFINITION           = 10106
    POSITIONAL_ORDER            = 10107

    # --- usage errors (11xxx) ---
    UNKNOWN_ARGUMENT            = 11101
    INVALID_SUBCOMMAND          = 11102
    WRONG_ARITY                 = 11111
    DUPLICATED_ARGUMENT         = 11112
    MISSING_REQUIRED_ARGUMENT   = 11121
    MISSING_GROUP               = 11122
    ARGUMENT_CONFLICT           = 11131
    GROUP_CONFLICT              = 11132
    MISSING_DEPENDENCY          = 11141

    # --- value errors (12xxx) ---
    INVALID_VALUE               = 12101
    OUT_OF_RANGE                = 12102
    UNKNOWN_ENUM_VARIANT        = 12103

    # --- warnings (13xxx) ---
    DEPRECATED_ARGUMENT         = 13101

    def normalize(self):
        """
        return a host-normalized string for this code.

        the host application can provide a __codes__ mapping in __main__
        to override numeric ids with friendlier labels. when no mapping
        is present, the numeric value is returned as a string.
        """
        return str(getattr(sys.modules.get("__main__"), "__codes__", {}).get(self, self.value))


def _styles(defaults):
    return defaultdict(str, defaults | getattr(sys.modules.get("__main__"), "__styles__", {}))


def _render(fault, styles, *, kind):
    """
    shared rich layout for errors and warnings: header, message, hint.
    """
    options = fault.options
    colorful = options.get("colorful", True)

    def text(fragment, style=""):
        if not fragment:
            return Text("")
        if isinstance(fragment, Text):
            return fragment
        return Text(str(fragment), styles[style] if colorful else "")

    prog = getattr(sys.modules.get("__main__"), "__prog__", options.get("prog", "argosy"))

    header = Text.assemble(
        "[ ",
        text(prog, "prog-name"),
        " | ",
        text(fault.code.normalize(), "code"),
        " | ",
        text(fault.title.title(), kind + "-title"),
        " ]"
    )
    message = text(fault.message, kind + "-message")
    if hint := options.get("hint"):
        body = Group(message, Text.assemble(text(" → ", "hint-arrow"), text(hint, "hint")))
    else:
        body = Group(message)

    if options.get("fancy", False):
        return Panel(body, title=header, title_align="left")
    return Group(header, body)


class CommandException(Exception):
    """
    base type for every argosy error.

    contract
    - message: a short, lowercased sentence (position-first where a position exists).
    - options: read-only keyword context (hint, input, index, suggestion, ...).
      every option is also readable as an attribute (fault.suggestion).
    - code/title: class defaults from __fault__, overridable through options.
    """
    __fault__ = (FaultCode.INVALID_VALUE, "error")

    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | Unset)
        super().__init__(message)
        self.message = message
        self.options = MappingProxyType(options)

    def __getattr__(self, name):
        if name == "options" or name.startswith("__"):
            raise AttributeError(name)
        try:
            return self.options[name]
        except KeyError:
            raise AttributeError(f"{type(self).__name__!r} has no option {name!r}") from None

    @property
    def code(self):
        return self.options.get("code", self.__fault__[0])

    @property
    def title(self):
        return self.options.get("title", self.__fault__[1])

    def __str__(self):
        return str(self.message)

    def __reduce__(self):
        return _restore, (type(self), self.message, dict(self.options))

    def __rich__(self):
        return _render(self, _styles({
            # header parts
            "prog-name": "bold #E6E6F0",
            "code": "bold #00E5FF",
            "error-title": "bold #FF4DA6",

            # body
            "error-message": "#C8C8D0",
            "hint-arrow": "#9CE19C dim",
            "hint": "italic #9CE19C",
        }), kind="error")

    def __trigger__(self):
        if not self.options.get("shell", False):
            raise self from None
        console.print(self)
        sys.exit(ExitCode.USAGE)

    def __replace__(self, *unused, **overrides):
        assert not unused, "unused arguments are not allowed"
        return type(self)(self.message, **{**self.options, **overrides})


def _restore(cls, message, options):
    return cls(message, **options)


# ── definition-time ──────────────────────────────────────────────────────────

class DefinitionError(CommandException):
    __fault__ = (FaultCode.DUPLICATE_NAME, "invalid definition")


class DuplicateNameError(DefinitionError):
    __fault__ = (FaultCode.DUPLICATE_NAME, "duplicate name")


class DanglingReferenceError(DefinitionError):
    __fault__ = (FaultCode.DANGLING_REFERENCE, "dangling reference")


class DanglingGroupReferenceError(DanglingReferenceError):
    __fault__ = (FaultCode.DANGLING_GROUP_REFERENCE, "dangling group reference")


class UnregisteredHandlerError(DefinitionError):
    __fault__ = (FaultCode.UNREGISTERED_HANDLER, "unregistered handler")


class ImpossibleConstraintError(DefinitionError):
    __fault__ = (FaultCode.IMPOSSIBLE_CONSTRAINT, "impossible constraint")


class CyclicDefinitionError(DefinitionError):
    __fault__ = (FaultCode.CYCLIC_DEFINITION, "cyclic definition")


class PositionalOrderError(DefinitionError):
    __fault__ = (FaultCode.POSITIONAL_ORDER, "positional order")


# ── parse-time usage ─────────────────────────────────────────────────────────

class UsageError(CommandException):
    __fault__ = (FaultCode.UNKNOWN_ARGUMENT, "usage error")


class UnknownArgumentError(UsageError):
    __fault__ = (FaultCode.UNKNOWN_ARGUMENT, "unknown argument")


class InvalidSubcommandError(UsageError):
    __fault__ = (FaultCode.INVALID_SUBCOMMAND, "invalid subcommand")


class WrongArityError(UsageError):
    __fault__ = (FaultCode.WRONG_ARITY, "wrong number of values")


class DuplicatedArgumentError(UsageError):
    __fault__ = (FaultCode.DUPLICATED_ARGUMENT, "duplicated argument")


class MissingRequiredArgumentError(UsageError):
    __fault__ = (FaultCode.MISSING_REQUIRED_ARGUMENT, "missing required argument")


class MissingGroupError(MissingRequiredArgumentError):
    __fault__ = (FaultCode.MISSING_GROUP, "missing required group")


class ArgumentConflictError(UsageError):
    __fault__ = (FaultCode.ARGUMENT_CONFLICT, "conflicting arguments")


class GroupConflictError(ArgumentConflictError):
    __fault__ = (FaultCode.GROUP_CONFLICT, "conflicting group members")


class MissingDependencyError(UsageError):
    __fault__ = (FaultCode.MISSING_DEPENDENCY, "missing dependency")


# ── parse-time values ────────────────────────────────────────────────────────

class InvalidValueError(CommandException, ValueError):
    """
    a literal could not be converted; options always include 'literal' and 'expected'.
    """
    __fault__ = (FaultCode.INVALID_VALUE, "invalid value")

    def __init__(self, message=Unset, /, **options):
        assert "literal" in options and "expected" in options, "value faults need 'literal' and 'expected'"
        super().__init__(message, **options)


class OutOfRangeError(InvalidValueError):
    __fault__ = (FaultCode.OUT_OF_RANGE, "value out of range")


class UnknownEnumVariantError(InvalidValueError):
    __fault__ = (FaultCode.UNKNOWN_ENUM_VARIANT, "unknown variant")


# ── warnings ─────────────────────────────────────────────────────────────────

class CommandWarning(Warning):
    __fault__ = (FaultCode.DEPRECATED_ARGUMENT, "warning")

    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | Unset)
        super().__init__(message)
        self.message = message
        self.options = MappingProxyType(options)

    code = CommandException.code
    title = CommandException.title

    def __str__(self):
        return str(self.message)

    def __rich__(self):
        return _render(self, _styles({
            # header parts
            "prog-name": "bold #E6E6F0",
            "code": "bold #FFB400",
            "warning-title": "bold #FFC2E0",

            # body
            "warning-message": "#D6D6DE",
            "hint-arrow": "#B8EFAF dim",
            "hint": "italic #B8EFAF",
        }), kind="warning")

    def __trigger__(self):
        if not self.options.get("shell", False):
            return warnings.warn(self, stacklevel=4)
        console.print(self)

    def __replace__(self, *unused, **overrides):
        assert not unused, "positional arguments are not allowed"
        return type(self)(self.message, **{**self.options, **overrides})


class DeprecatedArgumentWarning(CommandWarning):
    __fault__ = (FaultCode.DEPRECATED_ARGUMENT, "deprecated argument")


# ── batches ──────────────────────────────────────────────────────────────────

class BuildError(ExceptionGroup[DefinitionError]):
    """
    every definition problem found by a single finalize() pass.
    """

    def __new__(cls, exceptions, **options):
        return super().__new__(cls, "invalid command definition", tuple(exceptions))

    def __init__(self, exceptions, **options):
        super().__init__("invalid command definition", tuple(exceptions))
        self.options = MappingProxyType(options)

    def derive(self, exceptions):
        return type(self)(exceptions, **self.options)

    def __rich__(self):
        styles = _styles({
            "prog-name": "bold #E6E6F0",
            "title": "bold #FF4DA6",
        })
        colorful = self.options.get("colorful", True)
        prog = getattr(sys.modules.get("__main__"), "__prog__", self.options.get("prog", "argosy"))
        header = Text.assemble(
            "[ ",
            Text(str(prog), styles["prog-name"] if colorful else ""),
            " | ",
            Text(self.message.title(), styles["title"] if colorful else ""),
            " ]"
        )
        renders = [copy.replace(exception, colorful=colorful) for exception in self.exceptions]
        if self.options.get("fancy", False):
            return Panel(Group(*renders), title=header, title_align="left")
        return Group(header, *renders)

    def __trigger__(self):
        if not self.options.get("shell", False):
            raise self from None
        console.print(self)
        sys.exit(ExitCode.FAILURE)

    def __replace__(self, *unused, **overrides):
        assert not unused, "positional arguments are not allowed"
        return type(self)(self.exceptions, **{**self.options, **overrides})


def trigger(fault, /, **options):
    """
    surface a fault with the given runtime options.

    contract
    - fault must provide __trigger__ and __replace__ methods (see base classes).
    - options are merged into the fault via __replace__(**options) before triggering.
    - in shell mode, rendering happens via the rich console; otherwise errors are
      raised and warnings go through the warnings module.
    """
    if (
        not hasattr(fault, "__trigger__") or
        not callable(fault.__trigger__) or
        not hasattr(fault, "__replace__") or
        not callable(fault.__replace__)
    ):
        raise TypeError("trigger() argument must have a __trigger__ and __replace__ methods")
    copy.replace(fault, **options).__trigger__()


def getdoc(code, /):
    """
    optional documentation fetch for a fault code from a __docs__ mapping in __main__.
    """
    if not isinstance(code, FaultCode):
        raise TypeError("getdoc() argument must be a fault-code")
    return getattr(sys.modules.get("__main__"), "__docs__", {}).get(code)


__all__ = (
    "ExitCode",
    "FaultCode",
    "CommandException",
    "DefinitionError",
    "DuplicateNameError",
    "DanglingReferenceError",
    "DanglingGroupReferenceError",
    "UnregisteredHandlerError",
    "ImpossibleConstraintError",
    "CyclicDefinitionError",
    "PositionalOrderError",
    "UsageError",
    "UnknownArgumentError",
    "InvalidSubcommandError",
    "WrongArityError",
    "DuplicatedArgumentError",
    "MissingRequiredArgumentError",
    "MissingGroupError",
    "ArgumentConflictError",
    "GroupConflictError",
    "MissingDependencyError",
    "InvalidValueError",
    "OutOfRangeError",
    "UnknownEnumVariantError",
    "CommandWarning",
    "DeprecatedArgumentWarning",
    "BuildError",
    "trigger",
    "getdoc",
)
