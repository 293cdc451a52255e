"""
Argosy command layer: declare command trees and finalize them.

What this module provides
- Command: a mutable builder for one node of the command tree:
  • arguments (Cardinal, Option, Flag) and argument groups,
  • child subcommands (with aliases),
  • the handler that receives resolved values once routing selects the node.

- Factories and helpers:
  • command(...): create a Command from a callable (arguments are discovered
    from its parameter defaults) or return a decorator that does so.
  • Command.command(...): same, mounting the result as a child.
  • Command.finalize(): validate the whole tree once and freeze it into an
    immutable Definition (see argosy.definition).

Quick start
    from argosy import command, Cardinal, Option, Flag, invoke

    @command(version="1.0.0")
    def tool(
        path=Cardinal("PATH", kind="path"),
        /,
        count=Option("--count", "-c", kind="uint", default="1"),
        *,
        verbose=Flag("-v", "--verbose", count=True, propagate=True),
    ):
        print(path, count, verbose)

    if __name__ == "__main__":
        invoke(tool, shell=True)

Design notes
- Builders accept configuration calls in any order; nothing is validated across
  nodes until finalize(), which reports every problem at once as a BuildError.
- A finalized Definition never observes later builder mutations.
"""
import functools
import inspect
import operator
import re
from inspect import Parameter

from .arguments import Argument, Cardinal, Option, Flag, Group
from .definition import finalize
from .kinds import registry
from .utils import *


class CommandType(type):
    """
    Metaclass that gives Command read-only introspection and stable reprs.

    Responsibilities
    - Expose selected fields as read-only properties using mirror() for all names
      listed in __introspectable__.
    - Provide stable, readable __repr__/__rich_repr__ for diagnostics and rich UI.

    Conventions
    - __typename__ is derived from the class name (camel-case split with hyphens)
      for consistent, human-friendly labels in messages.
    - __displayable__ (if set) narrows which properties are shown by __rich_repr__;
      otherwise __introspectable__ is used.
    """
    __introspectable__ = ()
    __displayable__ = Unset

    def __new__(cls, name, bases, namespace, **options):
        self = super().__new__(
            cls,
            name,
            bases,
            namespace | {
                "__typename__": re.sub(r"(?<!^)(?=[A-Z])", r"-", name).lower(),
            } | {
                name: mirror(name) for name in namespace.get("__introspectable__", ())
            },
        )

        @rename("__repr__")
        def __repr__(self):
            """
            Return a concise, stable representation with key metadata.

            Example
            - command(name='build', ...)
            """
            return f"{type(self).__typename__}({
                ", ".join(map(functools.partial(operator.mod, "%s=%r"), self.__rich_repr__()))
            })"
        self.__repr__ = __repr__

        @rename("__rich_repr__")
        def __rich_repr__(self):
            for name in coalesce(type(self).__displayable__, type(self).__introspectable__):
                yield name, getattr(self, name)
        self.__rich_repr__ = __rich_repr__

        return self


def _process_source(cls, callback):
    """
    Introspect a handler callback and materialize its argument specs.

    Responsibilities
    - Resolve each parameter's default into a spec (Cardinal, Option, or Flag)
      bound to the parameter name (the canonical argument name).
    - Enforce placement rules: cardinals are positional-only, options and flags
      are standard or keyword-only parameters.
    - A parameter named 'context' (without default) receives the execution
      context; a **kwargs parameter receives every remaining value.

    Errors
    - TypeError on non-inspectable callbacks, parameters without an argument
      default, or misplaced specs.
    """
    try:
        signature = inspect.signature(callback)
    except TypeError:
        raise TypeError(f"{cls.__typename__} 'callback' must be callable") from None
    except ValueError:
        raise ValueError(f"{cls.__typename__} 'callback' must be an inspectable callable") from None

    arguments = []
    for name, parameter in signature.parameters.items():
        if parameter.kind is Parameter.VAR_KEYWORD:
            continue
        if parameter.kind is Parameter.VAR_POSITIONAL:
            raise TypeError(f"{cls.__typename__} 'callback' parameter {name!r} cannot be variadic")
        if name == "context" and parameter.default is Parameter.empty:
            continue
        if not isinstance(argument := parameter.default, Argument):
            raise TypeError(f"{cls.__typename__} 'callback' parameter {name!r} default must be an argument spec")
        if isinstance(argument, Cardinal) and parameter.kind is not Parameter.POSITIONAL_ONLY:
            raise TypeError(f"{cls.__typename__} 'callback' cardinal at parameter {name!r}, parameter must be positional-only")
        if not isinstance(argument, Cardinal) and parameter.kind is Parameter.POSITIONAL_ONLY:
            raise TypeError(f"{cls.__typename__} 'callback' {argument.__typename__} at parameter {name!r}, parameter cannot be positional-only")
        arguments.append(argument if argument.name == name else argument.__replace__(name=name))
    return arguments


class Command(metaclass=CommandType):
    """
    Mutable builder for one command node.

    Responsibilities
    - Identity: name, aliases, description and (for the root) version.
    - Surface: arguments and groups declared on this node; arguments flagged with
      propagate=True are visible to every descendant without redeclaration.
    - Composition: children are mounted with command()/attach(); the same builder
      should not be mounted twice on one branch (finalize() reports cycles).
    - Routing: a handler is registered with handler=..., @cmd.handle, or by
      building the command from a callable with command().

    Notes
    - Every field is exposed as a read-only view; use the builder methods to
      mutate it.
    """
    __introspectable__ = (
        "name",
        "aliases",
        "descr",
        "version",
        "arguments",
        "groups",
        "children",
        "handler",
        "parent",
    )
    __displayable__ = (
        "name",
        "aliases",
        "descr",
        "version",
        "arguments",
        "children",
    )

    def __new__(
            cls,
            name,
            /,
            *arguments,
            parent=Unset,
            descr=Unset,
            version=Unset,
            aliases=(),
            groups=(),
            handler=Unset
    ):
        if not isinstance(name, str):
            raise TypeError(f"{cls.__typename__} 'name' must be a string")
        elif not (name := name.strip()):
            raise ValueError(f"{cls.__typename__} 'name' cannot be empty")
        elif name.startswith("-") or any(character.isspace() for character in name):
            raise ValueError(f"{cls.__typename__} 'name' must be a plain word (no leading dash or spaces)")
        if not isinstance(parent, Command | Unset):
            raise TypeError(f"{cls.__typename__} 'parent' must be a command")
        for field, object in (("descr", descr), ("version", version)):
            if not isinstance(object, str | Unset):
                raise TypeError(f"{cls.__typename__} {field!r} must be a string")
        if isinstance(aliases, str):
            aliases = (aliases,)
        for alias in aliases:
            if not isinstance(alias, str) or not alias.strip() or alias.startswith("-"):
                raise ValueError(f"{cls.__typename__} 'aliases' must be non-empty plain words")

        self = super().__new__(cls)
        self._name = name
        self._aliases = [alias.strip() for alias in aliases]
        self._descr = coalesce(descr)
        self._version = coalesce(version)
        self._arguments = []
        self._groups = []
        self._children = []
        self._handler = Unset
        self._parent = coalesce(parent)

        for argument in arguments:
            self.argument(argument)
        for group in groups:
            self.group(group)
        if handler is not Unset:
            self.handle(handler)
        if parent is not Unset:
            parent.attach(self)
        return self

    @property
    def root(self):
        """
        Return the topmost command in the current command hierarchy.
        """
        child, parent = self, self._parent
        while parent:
            child, parent = parent, parent._parent
        return child

    @property
    def path(self):
        """
        Return the full ancestry from root to this command as a tuple.
        """
        path = [command := self]
        while command._parent:
            path.append(command := command._parent)
        return tuple(reversed(path))

    def argument(self, argument, /):
        """
        Declare an argument spec on this node; returns the spec.
        """
        if not isinstance(argument, Argument):
            raise TypeError(f"{type(self).__typename__} arguments must be cardinals, options or flags")
        self._arguments.append(argument)
        return argument

    def group(self, id, /, *members, required=False, multiple=False, descr=Unset):
        """
        Declare an argument group on this node; accepts a Group or its fields.
        """
        if isinstance(id, Group):
            if members:
                raise TypeError(f"{type(self).__typename__} group() takes no members with a group instance")
            group = id
        else:
            group = Group(id, *members, required=required, multiple=multiple, descr=descr)
        self._groups.append(group)
        return group

    def attach(self, child, /):
        """
        Mount an existing builder as a child subcommand; returns the child.
        """
        if not isinstance(child, Command):
            raise TypeError(f"{type(self).__typename__} children must be commands")
        if child._parent is not None and child._parent is not self:
            raise ValueError(f"{type(self).__typename__} {child.name!r} is already mounted under {child._parent.name!r}")
        child._parent = self
        if child not in self._children:
            self._children.append(child)
        return child

    def handle(self, handler, /):
        """
        Register the handler for this node (decorator-friendly).

        Rules
        - Must be callable.
        - Can be set only once per command (cannot be overridden).
        """
        if not callable(handler):
            raise TypeError(f"{type(self).__typename__} handler must be callable")
        if self._handler is not Unset:
            raise TypeError(f"{type(self).__typename__} handler cannot be overridden")
        self._handler = handler
        return handler

    def command(self, source=Unset, /, *arguments, **options):
        """
        Create and mount a subcommand under this command.

        Invocation modes
        - self.command("name", *arguments, ...) → Command builder mounted here.
        - self.command(callback, ...)           → Command built from the callback.
        - @self.command(...)                    → decorator producing the latter.
        """
        if isinstance(source, str):
            return Command(source, *arguments, parent=self, **options)
        if arguments:
            raise TypeError(f"{type(self).__typename__} command() takes argument specs only with a name")
        return command(source, parent=self, **options)

    def finalize(self, /, registry=registry):
        """
        Validate this tree (rooted here) and freeze it into a Definition.

        Raises
        - BuildError: every definition problem found, batched.
        """
        return finalize(self, registry=registry)


def command(source=Unset, /, **options):
    """
    Create a Command from a callable, or return a decorator to build it later.

    Invocation modes
    - Direct callback:
        cmd = command(func, name="x", ...)
    - Decorator:
        @command(name="x", ...)
        def func(...): ...

    Behavior
    - name defaults to the callable's __name__ (underscores become dashes).
    - descr defaults to the callable's docstring.
    - Parameter defaults become the node's arguments (see _process_source) and
      the callable becomes the node's handler.
    """
    @rename("command")
    def wrapper(source, /):
        if not callable(source):
            raise TypeError("@command() must be applied to a callable")
        arguments = _process_source(Command, source)
        metadata = dict(options)
        name = metadata.pop("name", getattr(source, "__name__", Unset))
        if not isinstance(name, str):
            raise TypeError("command() 'name' must be a string")
        if "descr" not in metadata and (descr := inspect.getdoc(source)):
            metadata["descr"] = descr
        return Command(name.replace("_", "-"), *arguments, handler=source, **metadata)

    return wrapper(source) if source is not Unset else wrapper


__all__ = (
    "Command",
    "command",
)

del CommandType
