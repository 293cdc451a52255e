"""
Argosy definition model: finalize a builder tree into an immutable one.

finalize(command) walks the builder tree once and produces a Definition whose
nodes carry everything parsing needs, precomputed:

- longs / shorts: alias → argument maps over the effective-visible arguments
  (the node's own arguments plus every ancestor's propagated ones; propagated
  arguments are shared by reference, never copied).
- cardinals: positional arguments in declaration order.
- groups: group id → Group with its merged member names.
- references: conflicts/requires entry → the arguments it stands for.
- parsers: argument name → value parser, looked up once in the kinds registry.
- routes: command path → handler, the flat dispatch table.

Every problem found on the way is collected and raised at the end as a single
BuildError batch: duplicate names, dangling argument/group/kind references,
impossible constraint combinations, misordered positionals, cycles and leaf
commands without a handler. Parsing never reports definition problems.
"""
import inspect
import logging
from inspect import Parameter

from .arguments import Flag, Group
from .faults import *
from .kinds import registry
from .matcher import match
from .resolver import resolve
from .router import DisplayRequest, dispatch
from .utils import *
from .validator import validate

logger = logging.getLogger(__name__)


class Node:
    """
    Immutable, finalized command node.

    Highlights
    - path / route: ancestry from the root and its space-joined spelling.
    - arguments: the node's own arguments (auto help/version flags included).
    - visible: inherited propagated arguments followed by the own arguments.
    - children: subcommand name or alias → Node; subcommands: distinct children
      in declaration order.
    - handler: the registered handler or None.
    """
    name = mirror("name")
    aliases = mirror("aliases")
    descr = mirror("descr")
    version = mirror("version")
    parent = mirror("parent")
    arguments = mirror("arguments")
    inherited = mirror("inherited")
    longs = mirror("longs")
    shorts = mirror("shorts")
    cardinals = mirror("cardinals")
    groups = mirror("groups")
    named = mirror("named")
    references = mirror("references")
    parsers = mirror("parsers")
    children = mirror("children")
    subcommands = mirror("subcommands")
    handler = mirror("handler")

    @property
    def visible(self):
        return self._inherited + self._arguments

    @property
    def path(self):
        path = [node := self]
        while node._parent:
            path.append(node := node._parent)
        return tuple(reversed(path))

    @property
    def key(self):
        return tuple(node._name for node in self.path)

    @property
    def route(self):
        return " ".join(self.key)

    @property
    def leaf(self):
        return not self._subcommands

    @property
    def trailing(self):
        if self._cardinals and self._cardinals[-1].arity.greedy:
            return self._cardinals[-1]
        return None

    def __repr__(self):
        return "node(%r)" % self.route


class Definition:
    """
    Immutable, validated command tree plus its routing table.

    Safe to share across any number of (concurrent) parse calls: every call
    allocates its own matcher, resolver and validator state.
    """
    root = mirror("root")
    routes = mirror("routes")
    registry = mirror("registry")

    def __init__(self, root, routes, registry):
        self._root = root
        self._routes = routes
        self._registry = registry

    def __repr__(self):
        return "definition(%r, routes=%d)" % (self._root.name, len(self._routes))

    def nodes(self):
        """
        every node, depth-first in declaration order.
        """
        stack = [self._root]
        while stack:
            yield (node := stack.pop())
            stack.extend(reversed(node.subcommands))

    def node(self, *names):
        """
        look up a node by subcommand names (aliases accepted) below the root.
        """
        node = self._root
        for name in names:
            try:
                node = node.children[name]
            except KeyError:
                raise LookupError("no subcommand %r under %r" % (name, node.route)) from None
        return node

    def parse(self, argv=(), /, env=Unset, config=Unset):
        """
        Parse a raw argument vector (program name excluded).

        Parameters
        - argv: Iterable[str]
        - env: Mapping[str, str]; read by exact, case-sensitive names (default {}).
        - config: pre-parsed, nested key/value Mapping (default {}).

        Returns
        - Resolution, or DisplayRequest when a help/version flag was matched
          (constraint validation is skipped in that case).

        Raises
        - UsageError / InvalidValueError subclasses: the first violation only.
        """
        if isinstance(argv, str):
            raise TypeError("parse() argument must be an iterable of strings, not a string")
        argv = tuple(argv)
        result = match(self._root, argv)
        if isinstance(result, DisplayRequest):
            return result
        for warning in result.warnings:
            trigger(warning)
        resolution = resolve(result, env, config, argv)
        validate(resolution)
        return resolution

    def run(self, argv=(), /, env=Unset, config=Unset, *, cwd=Unset):
        """
        parse, then dispatch to the matched handler; returns the handler result
        (or the DisplayRequest, untouched).
        """
        result = self.parse(argv, env, config)
        if isinstance(result, DisplayRequest):
            return result
        return dispatch(self, result, cwd=cwd)


class _Builder:
    """
    single finalize() pass state.
    """

    def __init__(self, registry):
        self.registry = registry
        self.errors = []
        self.routes = {}
        self.count = 0

    def build(self, command, parent, ancestors):
        node = object.__new__(Node)
        node._name = command.name
        node._aliases = tuple(command.aliases)
        node._descr = command.descr
        node._version = command.version
        node._parent = parent
        node._handler = coalesce(command.handler)
        route = " ".join((parent.route, command.name) if parent else (command.name,))
        self.count += 1

        if parent:
            node._inherited = parent._inherited + tuple(argument for argument in parent._arguments if argument.propagate)
            lineage = {
                argument.name: argument
                for step in parent.path for argument in step._arguments if not argument.display
            }
        else:
            node._inherited = ()
            lineage = {}

        self.arguments(node, command, route, lineage)
        self.automatic(node, command, parent, lineage)
        self.cardinals(node, route)
        self.groups(node, command, route)
        self.references(node, route, parent)
        self.parsers(node, route, parent)
        self.handler(node, command, route)

        children = {}
        subcommands = []
        for child in command.children:
            if child is command or child in ancestors:
                self.errors.append(CyclicDefinitionError(
                    "command %r is mounted inside itself under %r" % (child.name, route),
                    command=child.name,
                ))
                continue
            built = self.build(child, node, ancestors + (command,))
            for name in (child.name,) + tuple(child.aliases):
                if name in children:
                    self.errors.append(DuplicateNameError(
                        "subcommand name %r is already in use in command %r" % (name, route),
                        name=name,
                    ))
                    continue
                children[name] = built
            subcommands.append(built)
        node._children = children
        node._subcommands = tuple(subcommands)

        if node._handler is not None:
            self.routes[node.key] = node._handler
        return node

    def arguments(self, node, command, route, lineage):
        own = []
        names = {}
        longs = {}
        shorts = {}
        for argument in node._inherited:
            for alias in argument.names:
                (longs if alias.startswith("--") else shorts)[alias] = argument
            names[argument.name] = argument

        for argument in command.arguments:
            if argument.name in names or argument.name in lineage:
                self.errors.append(DuplicateNameError(
                    "argument name %r in command %r is already declared%s" % (
                        argument.name, route, " by an ancestor command" if argument.name in lineage else ""
                    ),
                    name=argument.name,
                ))
                continue
            taken = [alias for alias in argument.names if alias in longs or alias in shorts]
            for alias in taken:
                self.errors.append(DuplicateNameError(
                    "option name %r in command %r is already in use" % (alias, route),
                    name=alias,
                ))
            if taken:
                continue
            for alias in argument.names:
                (longs if alias.startswith("--") else shorts)[alias] = argument
            names[argument.name] = argument
            own.append(argument)

        node._arguments = tuple(own)
        node._longs = longs
        node._shorts = shorts
        node._named = names

    def automatic(self, node, command, parent, lineage):
        """
        add --help/-h everywhere and --version/-V on a versioned root, skipping
        any alias (or canonical name) the user already took.
        """
        flags = [("help", ("--help", "-h"), "show this help message and exit")]
        if parent is None and command.version:
            flags.append(("version", ("--version", "-V"), "show the version and exit"))

        for name, aliases, descr in flags:
            if name in node._named:
                continue
            if not (aliases := [alias for alias in aliases if alias not in node._longs and alias not in node._shorts]):
                continue
            flag = Flag(*aliases, name=name, display=name, descr=descr)
            for alias in aliases:
                (node._longs if alias.startswith("--") else node._shorts)[alias] = flag
            node._named[name] = flag
            node._arguments += (flag,)

    def cardinals(self, node, route):
        cardinals = tuple(argument for argument in node._arguments if argument.positional)
        for index, argument in enumerate(cardinals):
            if argument.arity.max is None and index != len(cardinals) - 1:
                self.errors.append(PositionalOrderError(
                    "unbounded positional argument %r must be the last positional of command %r" % (argument.label, route),
                    argument=argument.name,
                ))
            if index and not cardinals[index - 1].arity.min and argument.arity.min:
                self.errors.append(PositionalOrderError(
                    "required positional argument %r cannot follow optional %r in command %r" % (
                        argument.label, cardinals[index - 1].label, route
                    ),
                    argument=argument.name,
                ))
        node._cardinals = cardinals

    def groups(self, node, command, route):
        declared = {}
        for group in command.groups:
            if group.id in declared:
                self.errors.append(DuplicateNameError(
                    "group %r is declared twice in command %r" % (group.id, route),
                    name=group.id,
                ))
                continue
            if group.id in node._named:
                self.errors.append(DuplicateNameError(
                    "group %r in command %r shares its name with an argument" % (group.id, route),
                    name=group.id,
                ))
                continue
            declared[group.id] = group

        members = {id: list(group.members) for id, group in declared.items()}
        for argument in node._arguments:
            if argument.group is None:
                continue
            if argument.group not in declared:
                self.errors.append(DanglingGroupReferenceError(
                    "argument %r in command %r joins undeclared group %r" % (argument.label, route, argument.group),
                    argument=argument.name,
                    group=argument.group,
                ))
            elif argument.name not in members[argument.group]:
                members[argument.group].append(argument.name)

        groups = {}
        for id, group in declared.items():
            for member in members[id]:
                if member not in node._named:
                    self.errors.append(DanglingGroupReferenceError(
                        "group %r in command %r names unknown argument %r" % (id, route, member),
                        group=id,
                        argument=member,
                    ))
            names = tuple(member for member in members[id] if member in node._named)
            if group.required and not names:
                self.errors.append(ImpossibleConstraintError(
                    "required group %r in command %r has no members" % (id, route),
                    group=id,
                ))
            mandatory = [
                name for name in names
                if node._named[name].required and node._named[name].default is Unset
            ]
            if not group.multiple and len(mandatory) > 1:
                self.errors.append(ImpossibleConstraintError(
                    "group %r in command %r allows one member but %s are all required" % (
                        id, route, ", ".join(map(repr, mandatory))
                    ),
                    group=id,
                ))
            groups[id] = Group(id, *names, required=group.required, multiple=group.multiple, descr=Unset if group.descr is None else group.descr)
        node._groups = groups

    def references(self, node, route, parent):
        references = dict(parent._references) if parent else {}
        for id, group in node._groups.items():
            references[id] = tuple(node._named[member] for member in group.members)
        for name, argument in node._named.items():
            references[name] = (argument,)
        node._references = references

        for argument in node._arguments:
            for field in ("conflicts", "requires"):
                for reference in getattr(argument, field):
                    if reference not in references:
                        self.errors.append(DanglingReferenceError(
                            "argument %r in command %r %s unknown argument or group %r" % (
                                argument.label, route, field, reference
                            ),
                            argument=argument.name,
                            reference=reference,
                        ))
            for reference in argument.conflicts:
                if reference == argument.name:
                    self.errors.append(ImpossibleConstraintError(
                        "argument %r in command %r conflicts with itself" % (argument.label, route),
                        argument=argument.name,
                    ))
                elif reference in argument.requires:
                    self.errors.append(ImpossibleConstraintError(
                        "argument %r in command %r both requires and conflicts with %r" % (argument.label, route, reference),
                        argument=argument.name,
                        reference=reference,
                    ))
                elif _mandatory(argument) and any(map(_mandatory, references.get(reference, ()))):
                    self.errors.append(ImpossibleConstraintError(
                        "required argument %r in command %r conflicts with required %r" % (argument.label, route, reference),
                        argument=argument.name,
                        reference=reference,
                    ))

    def parsers(self, node, route, parent):
        parsers = dict(parent._parsers) if parent else {}
        for argument in node._arguments:
            try:
                parsers[argument.name] = self.registry.lookup(argument.kind)
            except (LookupError, TypeError):
                self.errors.append(DanglingReferenceError(
                    "argument %r in command %r uses unknown value kind %r" % (argument.label, route, argument.kind),
                    argument=argument.name,
                    kind=argument.kind,
                ))
        node._parsers = {name: parsers[name] for name in node._named if name in parsers}

    def handler(self, node, command, route):
        if node._handler is None:
            if not command.children:
                self.errors.append(UnregisteredHandlerError(
                    "leaf command %r has no registered handler" % route,
                    command=route,
                ))
            return
        try:
            parameters = inspect.signature(node._handler).parameters.values()
        except (TypeError, ValueError):
            return
        for parameter in parameters:
            if parameter.kind in (Parameter.VAR_POSITIONAL, Parameter.VAR_KEYWORD):
                continue
            if parameter.default is not Parameter.empty or parameter.name == "context":
                continue
            if parameter.name not in node._named:
                self.errors.append(UnregisteredHandlerError(
                    "handler of command %r expects %r, which names no argument" % (route, parameter.name),
                    command=route,
                    parameter=parameter.name,
                ))


def _mandatory(argument):
    return argument.required and argument.default is Unset


def finalize(command, /, registry=registry):
    """
    Validate a builder tree and freeze it into a Definition.

    Raises
    - BuildError: an ExceptionGroup of every DefinitionError found.
    """
    builder = _Builder(registry)
    root = builder.build(command, None, ())
    if builder.errors:
        raise BuildError(builder.errors)
    logger.debug("finalized %r: %d commands, %d routes", root.name, builder.count, len(builder.routes))
    return Definition(root, builder.routes, registry)


__all__ = (
    "Node",
    "Definition",
    "finalize",
)
