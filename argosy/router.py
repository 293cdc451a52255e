"""
Argosy router: hand resolved values to the matched command's handler.

What this module provides
- DisplayRequest: the non-error short-circuit produced by help/version flags;
  it carries the command path that triggered it and renders itself with rich.
- Context: execution context given to handlers that ask for it (a parameter
  named 'context'): working directory, raw argv, the definition and the
  resolution.
- dispatch(definition, resolution): look up the handler registered for the
  resolved path in the definition's routing table and call it.
- invoke(object, prompt): caller-side convenience runner that owns the process
  concerns the engine does not: reading sys.argv/os.environ, rendering faults
  and display requests, and mapping them to exit codes (shell mode).

Handler binding
- Positional-only parameters and named parameters receive the value of the
  argument with the same canonical name; 'context' receives the Context; a
  **kwargs parameter receives every remaining resolved value.
"""
import inspect
import logging
import os
import shlex
import sys
import warnings
from collections import namedtuple
from collections.abc import Iterable
from inspect import Parameter

from rich.console import Console, Group
from rich.table import Table
from rich.text import Text

from .faults import *
from .utils import *

logger = logging.getLogger(__name__)


class DisplayRequest(namedtuple("DisplayRequest", ("kind", "path"))):
    """
    help/version request matched on the command line.

    - kind: "help" or "version".
    - path: the command nodes entered when the flag was seen (root first), so
      help can be scoped to the level that asked for it.
    """
    __slots__ = ()

    @property
    def node(self):
        return self.path[-1]

    @property
    def route(self):
        return self.node.route

    def __rich__(self):
        return render(self)


def _usage(node):
    parts = [node.route]
    if any(not argument.positional and not argument.hidden for argument in node.visible):
        parts.append("[OPTIONS]")
    for argument in node.cardinals:
        if argument.hidden:
            continue
        metavar = str(argument.metavar)
        if argument.arity.greedy:
            metavar = "[%s]..." % metavar
        elif argument.arity.max is None:
            metavar = ("%s..." if argument.arity.min else "[%s]...") % metavar
        elif not argument.arity.min:
            metavar = "[%s]" % metavar
        parts.append(metavar)
    if node.subcommands:
        parts.append("COMMAND" if node.handler is None else "[COMMAND]")
    return " ".join(parts)


def render(request, /, *, colorful=True):
    """
    minimal rendering: "name version" or a compact usage table for the node.
    """
    node = request.node
    style = (lambda style: style) if colorful else (lambda style: "")
    if request.kind == "version":
        root = request.path[0]
        return Text.assemble((root.name, style("bold")), " ", (root.version or "", style("cyan")))

    renderables = [Text.assemble(("usage: ", style("bold")), _usage(node))]
    if node.descr:
        renderables.append(Text(node.descr))

    table = Table(box=None, show_header=False, pad_edge=False)
    table.add_column(style=style("bold cyan"), no_wrap=True)
    table.add_column()
    for argument in node.visible:
        if argument.hidden:
            continue
        if argument.positional:
            names = str(argument.metavar)
        elif (metavar := getattr(argument, "metavar", None)) is not None:
            names = "%s %s" % (", ".join(argument.names), metavar)
        else:
            names = ", ".join(argument.names)
        details = [str(argument.descr or "")]
        if argument.env:
            details.append("[env: %s]" % argument.env)
        if isinstance(argument.default, str):
            details.append("[default: %s]" % argument.default)
        table.add_row(Text(names), Text(" ".join(detail for detail in details if detail)))
    for child in node.subcommands:
        names = ", ".join((child.name,) + tuple(child.aliases))
        table.add_row(Text(names), Text(str(child.descr or "")))
    renderables.append(table)
    return Group(*renderables)


class Context(namedtuple("Context", ("cwd", "argv", "definition", "path", "resolution"))):
    """
    execution context for handlers.
    """
    __slots__ = ()

    @property
    def node(self):
        return self.path[-1]


def _bind(handler, context, values):
    """
    map resolved values onto the handler signature; returns (args, kwargs).
    """
    args = []
    kwargs = {}
    bound = set()
    for name, parameter in inspect.signature(handler).parameters.items():
        if parameter.kind is Parameter.VAR_KEYWORD:
            kwargs.update((key, value) for key, value in values.items() if key not in bound)
            continue
        elif parameter.kind is Parameter.VAR_POSITIONAL:
            continue
        elif name == "context" and name not in values:
            value = context
        elif name in values:
            value = values[name]
        elif parameter.default is not Parameter.empty:
            continue
        else:
            raise TypeError("handler parameter %r does not name a resolved argument" % name)
        bound.add(name)
        if parameter.kind is Parameter.POSITIONAL_ONLY:
            args.append(value)
        else:
            kwargs[name] = value
    return args, kwargs


def dispatch(definition, resolution, /, *, argv=Unset, cwd=Unset):
    """
    invoke the handler registered for resolution.path and return its result.
    """
    key = tuple(node.name for node in resolution.path)
    handler = definition.routes[key]
    context = Context(
        coalesce(cwd, os.getcwd()),
        tuple(coalesce(argv, resolution.argv)),
        definition,
        resolution.path,
        resolution,
    )
    args, kwargs = _bind(handler, context, resolution.namespace())
    logger.debug("dispatching %r to %s", " ".join(key), getattr(handler, "__qualname__", handler))
    return handler(*args, **kwargs)


def _tokens(prompt):
    if prompt is Unset:
        return sys.argv[1:]
    if isinstance(prompt, str):
        return shlex.split(prompt)
    if isinstance(prompt, Iterable):
        tokens = list(prompt)
        if not all(isinstance(token, str) for token in tokens):
            raise TypeError("invoke() prompt must be a string or an iterable of strings")
        return tokens
    raise TypeError("invoke() prompt must be a string or an iterable of strings")


def invoke(object, prompt=Unset, /, *, env=Unset, config=Unset, shell=False, fancy=False, colorful=True):
    """
    Convenience runner for command builders and finalized definitions.

    Parameters
    - object: a Command builder (finalized here) or a Definition.
    - prompt: Unset → sys.argv[1:]; str → shlex.split; Iterable[str] → as is.
    - env: environment mapping (defaults to os.environ).
    - config: pre-parsed configuration mapping (defaults to {}).
    - shell: when True, faults and display requests are printed to the console
      and the process exits (0 for display, 1 for build errors, 2 for usage and
      value errors); when False they are raised/returned.
    - fancy/colorful: presentation flags forwarded to fault rendering.

    Returns
    - the handler's result, or the DisplayRequest when shell is False.
    """
    options = {"shell": shell, "fancy": fancy, "colorful": colorful}
    if hasattr(object, "finalize") and callable(object.finalize):
        try:
            object = object.finalize()
        except BuildError as error:
            trigger(error, **options)
    if not (hasattr(object, "parse") and callable(object.parse)):
        raise TypeError("invoke() argument must be a command or a definition")

    tokens = _tokens(prompt)
    result = error = None
    with warnings.catch_warnings(record=True) as captured:
        warnings.simplefilter("always", CommandWarning)
        try:
            result = object.parse(
                tokens,
                env=coalesce(env, os.environ),
                config=coalesce(config, {}),
            )
        except CommandException as exception:
            error = exception

    for warning in captured:
        if isinstance(warning.message, CommandWarning):
            trigger(warning.message, **options)
        else:
            warnings.warn_explicit(warning.message, warning.category, warning.filename, warning.lineno)
    if error is not None:
        trigger(error, **options)

    if isinstance(result, DisplayRequest):
        if not shell:
            return result
        Console().print(render(result, colorful=colorful), highlight=False)
        sys.exit(ExitCode.SUCCESS)
    return dispatch(object, result, argv=tokens)


__all__ = (
    "DisplayRequest",
    "Context",
    "render",
    "dispatch",
    "invoke",
)
