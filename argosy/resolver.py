"""
Argosy resolver: typed values with provenance.

Sources are consulted per argument in strict priority order:

    command line → environment → configuration mapping → default

- Scalars: the first non-absent source wins.
- policy="append" (multi-valued arguments only): every supplying source is
  concatenated in the same priority order; the default is used only when no
  other source supplies anything.
- Explicit null: a configuration entry set to None stops the fallthrough, so
  the argument resolves to its absent representation even if it has a default.
- Empty environment strings count as absent.
- Multi-valued arguments: environment strings are split on the argument's
  delimiter (os.pathsep when it has none); configuration and default strings
  are split only on an explicit delimiter, otherwise they form one element.

Absent representations: False for flags, 0 for counting flags, [] for
multi-valued arguments, None otherwise.

Configuration lookup for an argument declared on node N: scopes from the
deepest matched node up to N are tried (most specific first), where the scope
of a node is config[child][grandchild]...; within a scope config[group][key] is
tried before config[key].
"""
import enum
import logging
import os
from collections import namedtuple
from collections.abc import Mapping
from types import MappingProxyType

from .arguments import Flag
from .faults import InvalidValueError
from .utils import *

logger = logging.getLogger(__name__)


class Source(enum.Enum):
    COMMAND_LINE = "command line"
    ENVIRONMENT = "environment"
    CONFIG_FILE = "config file"
    DEFAULT = "default"

    def __repr__(self):
        return "%s.%s" % (type(self).__name__, self.name)


EXPLICIT = frozenset((Source.COMMAND_LINE, Source.ENVIRONMENT, Source.CONFIG_FILE))


class ResolvedValue(namedtuple("ResolvedValue", ("value", "source", "sources"))):
    """
    final typed value of one argument.

    - source: highest-priority contributor (None when the value is absent).
    - sources: every contributor, in priority order.
    """
    __slots__ = ()

    @property
    def supplied(self):
        """
        True when an explicit source (not the default) supplied the value.
        """
        return self.source in EXPLICIT


class Resolution(namedtuple("Resolution", ("path", "values", "argv"))):
    """
    outcome of a successful parse: the routed path and every resolved value.
    """
    __slots__ = ()

    @property
    def node(self):
        return self.path[-1]

    @property
    def route(self):
        return self.node.route

    def __getitem__(self, name):
        if isinstance(name, str):
            return self.values[name].value
        return super().__getitem__(name)

    def __contains__(self, name):
        return name in self.values

    def get(self, name, default=None, /):
        try:
            return self.values[name].value
        except KeyError:
            return default

    def source(self, name, /):
        return self.values[name].source

    def namespace(self):
        """
        plain name → value dictionary (a fresh copy on every call).
        """
        return {name: resolved.value for name, resolved in self.values.items()}


def _absent(argument, parser):
    if isinstance(argument, Flag):
        return 0 if argument.count else False
    if argument.multiple:
        return []
    return parser.absent


def _reraise(error, argument, where):
    """
    rebuild a value fault with the argument and source it came from.
    """
    options = dict(error.options) | {"argument": argument.name}
    message = "invalid value %r for %s %r %s (expected %s)" % (
        options["literal"],
        "positional argument" if argument.positional else "flag" if isinstance(argument, Flag) else "option",
        argument.label,
        where,
        options["expected"],
    )
    return type(error)(message, **options)


class Resolver:
    """
    per-call resolver; see resolve().
    """

    def __init__(self, match, env, config):
        if not isinstance(env, Mapping):
            raise TypeError("resolve() 'env' must be a mapping")
        if not isinstance(config, Mapping):
            raise TypeError("resolve() 'config' must be a mapping")
        self.match = match
        self.env = env
        self.config = config

    def arguments(self):
        """
        every argument declared along the matched path, root first, in declaration order.
        """
        for node in self.match.path:
            for argument in node.arguments:
                if not argument.display:
                    yield node, argument

    # ── sources ──────────────────────────────────────────────────────────────

    def command_line(self, argument, parser):
        if not (occurrences := self.match.occurrences.get(argument.name)):
            return Unset
        if isinstance(argument, Flag):
            return len(occurrences) if argument.count else True
        values = []
        for occurrence in occurrences:
            for literal in occurrence.literals:
                try:
                    values.append(parser(literal))
                except InvalidValueError as error:
                    raise _reraise(error, argument, "at %s position" % ordinal(occurrence.index)) from None
        if argument.multiple:
            return values
        return values[0] if values else parser.absent

    def environment(self, argument, parser):
        if not argument.env or not (literal := self.env.get(argument.env)):
            return Unset
        where = "from environment variable %s" % argument.env
        try:
            if argument.multiple:
                return [parser(element) for element in literal.split(argument.delimiter or os.pathsep)]
            return parser(literal)
        except InvalidValueError as error:
            raise _reraise(error, argument, where) from None

    def configuration(self, node, argument, parser):
        scopes = []
        scope = self.config
        for step in self.match.path[1:]:
            scopes.append(scope)
            scope = scope.get(step.name) if isinstance(scope, Mapping) else None
        scopes.append(scope)
        depth = self.match.path.index(node)

        for index in range(len(scopes) - 1, depth - 1, -1):
            if not isinstance(scope := scopes[index], Mapping):
                continue
            current = self.match.path[index]
            candidates = []
            if argument.group and isinstance(section := scope.get(argument.group), Mapping):
                candidates.append(section)
            candidates.append(scope)
            for candidate in candidates:
                if argument.key not in candidate:
                    continue
                value = candidate[argument.key]
                if isinstance(value, Mapping) and argument.key in current.children:
                    continue
                if value is None:
                    return None
                return self.accept(argument, parser, value, "from config file")
        return Unset

    def default(self, argument, parser):
        if argument.default is Unset:
            return Unset
        return self.accept(argument, parser, argument.default, "from its default")

    def accept(self, argument, parser, value, where):
        """
        convert a literal or pre-typed value from config/default.

        a string given to a multi-valued argument with a delimiter is split on
        it, like an environment value.
        """
        try:
            if argument.multiple:
                if isinstance(value, str) and argument.delimiter:
                    value = value.split(argument.delimiter)
                if isinstance(value, list | tuple):
                    return [parser.accept(element) for element in value]
                return [parser.accept(value)]
            return parser.accept(value)
        except InvalidValueError as error:
            raise _reraise(error, argument, where) from None

    # ── merge ────────────────────────────────────────────────────────────────

    def resolve(self, node, argument):
        parser = node.parsers[argument.name]
        absent = _absent(argument, parser)
        supplied = []

        for source, fetch in (
            (Source.COMMAND_LINE, lambda: self.command_line(argument, parser)),
            (Source.ENVIRONMENT, lambda: self.environment(argument, parser)),
            (Source.CONFIG_FILE, lambda: self.configuration(node, argument, parser)),
        ):
            if (value := fetch()) is Unset:
                continue
            if value is None and source is Source.CONFIG_FILE:
                logger.debug("argument %r unset by explicit null in %s", argument.name, source.value)
                break
            supplied.append((source, value))
            if argument.policy != "append":
                break
        else:
            if not supplied and (value := self.default(argument, parser)) is not Unset:
                supplied.append((Source.DEFAULT, value))

        if not supplied:
            return ResolvedValue(absent, None, ())

        sources = tuple(source for source, _ in supplied)
        if argument.policy == "append":
            value = [element for _, values in supplied for element in values]
        else:
            value = supplied[0][1]
        logger.debug("argument %r resolved from %s", argument.name, ", ".join(source.value for source in sources))
        return ResolvedValue(value, sources[0], sources)

    def run(self, argv):
        values = {argument.name: self.resolve(node, argument) for node, argument in self.arguments()}
        return Resolution(self.match.path, MappingProxyType(values), tuple(argv))


def resolve(match, /, env=Unset, config=Unset, argv=()):
    """
    parse command-line literals and merge every source into a Resolution.

    raises
    - InvalidValueError (or a subclass) for the first literal that fails to
      convert, naming the argument and where the literal came from.
    """
    return Resolver(match, coalesce(env, {}), coalesce(config, {})).run(argv)


__all__ = (
    "Source",
    "ResolvedValue",
    "Resolution",
    "Resolver",
    "resolve",
)
