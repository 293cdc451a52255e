"""
Argosy matcher: walk the token stream against the command tree.

State (allocated per parse call, never shared)
- path: the command nodes entered so far (root first); the last one is current.
- cursor: index of the next undone positional of the current node.
- option: the option currently consuming values, if any.
- positional: the multi-valued positional currently consuming values, if any.

Algorithm
- Flags resolve through the current node's effective-visible alias maps; an
  option then consumes following values up to its maximum arity, stopping early
  at another recognized flag, the terminator, or the end of input.
- A value seen while no option is open is first tried as a child subcommand
  name (exact match, aliases included); the switch is permanent. Otherwise it
  fills the next positional by cursor order.
- Once a trailing (greedy) positional starts, every remaining token is taken
  verbatim, flag-looking ones included.
- A help/version display flag short-circuits the walk with a DisplayRequest.

Output
- Match(path, occurrences, warnings) where occurrences maps each canonical
  argument name to its ordered Occurrence(index, literals) records.
"""
import logging
import re
from collections import namedtuple
from types import MappingProxyType

from .arguments import Flag
from .faults import *
from .router import DisplayRequest
from .tokens import LongFlag, ShortFlag, Value, Terminator, tokenize
from .utils import *

logger = logging.getLogger(__name__)

NUMBER = re.compile(r"-(\d+\.?\d*|\.\d+)([eE][-+]?\d+)?")


class Occurrence(namedtuple("Occurrence", ("index", "literals"))):
    """
    one appearance of an argument: its 1-based position and raw literals.
    """
    __slots__ = ()


class Match(namedtuple("Match", ("path", "occurrences", "warnings"))):
    __slots__ = ()

    @property
    def node(self):
        return self.path[-1]


_Pending = namedtuple("_Pending", ("argument", "alias", "index", "literals"))


def _kind(argument):
    if argument.positional:
        return "positional argument"
    return "flag" if isinstance(argument, Flag) else "option"


def _expects(arity):
    if arity.min == arity.max:
        return "exactly %d value%s" % (arity.min, "s" * (arity.min != 1))
    if arity.max is None:
        return "at least %d value%s" % (arity.min, "s" * (arity.min != 1))
    if not arity.min:
        return "at most %d value%s" % (arity.max, "s" * (arity.max != 1))
    return "between %d and %d values" % (arity.min, arity.max)


class Matcher:
    """
    single-use state machine; call run(argv) once.
    """

    def __init__(self, root):
        self.path = [root]
        self.cursor = 0
        self.option = None
        self.positional = None
        self.occurrences = {}
        self.warnings = []

    @property
    def node(self):
        return self.path[-1]

    def run(self, argv, /):
        for token in tokenize(argv):
            if self.positional and self.positional.argument.arity.greedy and not isinstance(token, Terminator):
                self.positional.literals.append(token.text)
                continue
            match token:
                case Terminator():
                    self._close_option()
                case Value():
                    self._value(token)
                case ShortFlag() if self._numeric(token):
                    self._value(Value(token.text, token.index, False))
                case LongFlag():
                    if request := self._long(token):
                        return request
                case ShortFlag():
                    if request := self._short(token):
                        return request
        self._close_option()
        self._close_positional()
        self._check_subcommand()
        return Match(
            tuple(self.path),
            MappingProxyType({name: tuple(records) for name, records in self.occurrences.items()}),
            tuple(self.warnings),
        )

    # ── values ───────────────────────────────────────────────────────────────

    def _numeric(self, token):
        """
        negative numbers are values unless some visible short alias is a digit.
        """
        return bool(NUMBER.fullmatch(token.text)) and not any(alias[1:].isdigit() for alias in self.node.shorts)

    def _value(self, token):
        if self.option:
            self.option.literals.append(token.text)
            if (maximum := self.option.argument.arity.max) is not None and len(self.option.literals) >= maximum:
                self._close_option()
            return

        if not token.escaped and (child := self.node.children.get(token.text)):
            return self._enter(child, token.index)

        if self.positional:
            self.positional.literals.append(token.text)
            if (maximum := self.positional.argument.arity.max) is not None and len(self.positional.literals) >= maximum:
                self._close_positional()
            return

        if self.cursor < len(cardinals := self.node.cardinals):
            argument = cardinals[self.cursor]
            self._deprecated(argument, argument.label, token.index)
            self.positional = _Pending(argument, argument.label, token.index, [token.text])
            if argument.arity.max == 1:
                self._close_positional()
            return

        if self.node.subcommands and not self.cursor and not token.escaped:
            suggestion = suggest(token.text, self.node.children.keys())
            if suggestion:
                hint = "did you mean %r? you can also run '%s --help' to see available subcommands" % (
                    suggestion, self.node.route
                )
            else:
                hint = "run '%s --help' to see available subcommands" % self.node.route
            raise InvalidSubcommandError(
                "unknown subcommand %r at %s position" % (token.text, ordinal(token.index)),
                input=token.text,
                index=token.index,
                suggestion=suggestion,
                choices=tuple(self.node.children.keys()),
                hint=hint,
            )

        raise UnknownArgumentError(
            "unexpected positional value %r at %s position" % (token.text, ordinal(token.index)),
            input=token.text,
            index=token.index,
            suggestion=None,
            hint="remove this extra value or run '%s --help' to see the expected usage" % self.node.route,
        )

    def _enter(self, child, index):
        self._close_positional()
        self.path.append(child)
        self.cursor = 0
        logger.debug("entered subcommand %r at %s position", child.route, ordinal(index))

    # ── flags ────────────────────────────────────────────────────────────────

    def _unknown(self, name, index):
        # any two short aliases are one edit apart: only long names get suggestions
        candidates = [
            alias for argument in self.node.visible if not argument.hidden for alias in argument.longs
        ] if name.startswith("--") else []
        if suggestion := suggest(name, candidates):
            hint = "did you mean %r? you can also run '%s --help' to see all options" % (suggestion, self.node.route)
        else:
            hint = "try '%s --help' to see all available options" % self.node.route
        return UnknownArgumentError(
            "unknown option or flag %r at %s position" % (name, ordinal(index)),
            input=name,
            index=index,
            suggestion=suggestion,
            hint=hint,
        )

    def _long(self, token):
        if (argument := self.node.longs.get(token.name)) is None:
            raise self._unknown(token.name, token.index)
        self._close_option()
        return self._accept(argument, token.name, token.index, token.value)

    def _short(self, token):
        """
        resolve a short bundle: flags chain ("-vvx"); the first value-taking
        option swallows the remainder as its attached value ("-n5", "-n=5").
        """
        name, rest, index = token.name, token.rest, token.index
        while True:
            if (argument := self.node.shorts.get(name)) is None:
                raise self._unknown(name, index)
            self._close_option()
            if not isinstance(argument, Flag):
                value = rest[1:] if rest.startswith("=") else rest
                return self._accept(argument, name, index, value if rest else None)
            if rest.startswith("="):
                return self._accept(argument, name, index, rest[1:])
            if request := self._accept(argument, name, index, None):
                return request
            if not rest:
                return None
            name, rest = "-" + rest[0], rest[1:]

    def _accept(self, argument, alias, index, value):
        if isinstance(argument, Flag):
            if argument.display:
                logger.debug("display request %r for %r", argument.display, self.node.route)
                return DisplayRequest(argument.display, tuple(self.path))
            if value is not None:
                raise WrongArityError(
                    "flag %r at %s position does not take a value" % (alias, ordinal(index)),
                    input=alias,
                    index=index,
                    hint="remove everything from '=' (for example: %s)" % alias,
                )
            self._check(argument, alias, index)
            self._store(argument, index, ())
            return None

        self._check(argument, alias, index)
        if value is None:
            self.option = _Pending(argument, alias, index, [])
            return None
        if argument.arity.min > 1:
            raise WrongArityError(
                "option %r at %s position expects %s, but an inline value supplies one" % (
                    alias, ordinal(index), _expects(argument.arity)
                ),
                input=alias,
                index=index,
                hint="pass the values after a space (for example: %s %s)" % (
                    alias, " ".join([argument.metavar] * argument.arity.min)
                ),
            )
        self._store(argument, index, (value,))
        return None

    def _check(self, argument, alias, index):
        if self.occurrences.get(argument.name) and not (argument.multiple or getattr(argument, "count", False)):
            kind = _kind(argument)
            raise DuplicatedArgumentError(
                "%s %r at %s position was already provided" % (kind, alias, ordinal(index)),
                input=alias,
                index=index,
                hint="keep a single %s; each %s can be specified only once" % (kind, kind),
            )
        self._deprecated(argument, alias, index)

    def _deprecated(self, argument, alias, index):
        if argument.deprecated and argument.name not in self.occurrences:
            kind = _kind(argument)
            if argument.positional:
                message = "positional argument from %s position is deprecated" % ordinal(index)
            else:
                message = "%s %r at %s position is deprecated" % (kind, alias, ordinal(index))
            self.warnings.append(DeprecatedArgumentWarning(
                message,
                title="deprecated %s" % kind,
                input=alias,
                index=index,
                hint="run '%s --help' to see current usage and alternatives" % self.node.route,
            ))

    def _store(self, argument, index, literals):
        self.occurrences.setdefault(argument.name, []).append(Occurrence(index, tuple(literals)))

    # ── closing ──────────────────────────────────────────────────────────────

    def _close_option(self):
        if not (pending := self.option):
            return
        self.option = None
        argument, literals = pending.argument, pending.literals
        if not literals and argument.implicit is not Unset:
            literals = [argument.implicit]
        if len(literals) < argument.arity.min:
            raise WrongArityError(
                "option %r at %s position expects %s, got %d" % (
                    pending.alias, ordinal(pending.index), _expects(argument.arity), len(literals)
                ),
                input=pending.alias,
                index=pending.index,
                hint="add the missing value%s after %s" % ("s" * (argument.arity.min > 1), pending.alias),
            )
        self._store(argument, pending.index, literals)

    def _close_positional(self):
        if not (pending := self.positional):
            return
        self.positional = None
        argument, literals = pending.argument, pending.literals
        if len(literals) < argument.arity.min:
            raise WrongArityError(
                "positional argument %r from %s position expects %s, got %d" % (
                    pending.alias, ordinal(pending.index), _expects(argument.arity), len(literals)
                ),
                input=pending.alias,
                index=pending.index,
                hint="run '%s --help' to see the expected usage" % self.node.route,
            )
        self._store(argument, pending.index, literals)
        self.cursor += 1

    def _check_subcommand(self):
        node = self.node
        if node.subcommands and node.handler is None:
            choices = tuple(child.name for child in node.subcommands)
            raise InvalidSubcommandError(
                "missing subcommand for %r" % node.route,
                input=None,
                index=None,
                suggestion=None,
                choices=choices,
                hint="choose one of: %s; run '%s --help' to see available subcommands" % (
                    ", ".join(choices), node.route
                ),
            )


def match(root, argv, /):
    """
    match a raw argument vector against a finalized command tree.

    returns
    - Match on success, or DisplayRequest when a help/version flag was seen.

    raises
    - UnknownArgumentError, InvalidSubcommandError, WrongArityError,
      DuplicatedArgumentError (first violation only).
    """
    return Matcher(root).run(argv)


__all__ = (
    "Occurrence",
    "Match",
    "Matcher",
    "match",
)
