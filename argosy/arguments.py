r"""
Argosy argument specifications.

Overview
- Specs
  • Cardinal: positional, value-bearing argument (fixed/optional/variadic and greedy arity).
  • Option: named, value-bearing argument with one or more aliases (e.g., -o/--output).
  • Flag: named, presence-only switch (no payload), optionally counting (-vvv).
  • Group: a named constraint over member arguments (required / multiple-allowed).

- Arity
  • Arity(min, max, greedy) normalizes the nargs shorthand:
      0 → flag presence, N → exactly N, "?" → 0..1, "*" → 0.., "+" → 1..,
      (lo, hi) → lo..hi (hi None = unbounded), ... / "..." → trailing catch-all.

- Introspection & representation
  • ArgumentType metaclass provides stable __repr__/__rich_repr__ and exposes
    fields listed in __introspectable__ via read-only properties.
  • Specs are immutable; copy.replace(spec, name=...) builds a modified copy.

Metadata (sanitized on construction)
- Shared
  • name: canonical name; derived from the first long alias / metavar when omitted.
  • kind: value-kind descriptor looked up in the kinds registry at finalize().
  • default: literal (or already-typed) fallback value.
  • env: bound environment-variable name (exact, case-sensitive).
  • required, conflicts, requires, group, policy ("replace" | "append").
  • propagate: named arguments only; makes the argument visible to every descendant.
  • descr, hidden, deprecated: presentation metadata.
- Named (Option/Flag)
  • names validated as "-x" (short) or "--long-name" (long); duplicates rejected.

Validation highlights
- Names must match r"-[^\W_]" or r"--[^\W\d_](-?[^\W_]+)*".
- A greedy Cardinal cannot be propagated and cannot declare an env binding.
- policy="append" only makes sense for multi-valued arity; it is rejected otherwise.
"""
import functools
import operator
import re
from collections import namedtuple
from collections.abc import Iterable
from types import EllipsisType

from rich.text import Text

from .utils import *

SHORT = re.compile(r"-[^\W_]")
LONG = re.compile(r"--[^\W\d_](-?[^\W_]+)*")
POLICIES = ("replace", "append")
DISPLAYS = ("help", "version")


class Arity(namedtuple("Arity", ("min", "max", "greedy"))):
    """
    normalized arity: how many literals one occurrence consumes.
    """
    __slots__ = ()

    @classmethod
    def of(cls, nargs, /):
        match nargs:
            case Arity():
                return nargs
            case EllipsisType() | "...":
                return cls(0, None, True)
            case "?":
                return cls(0, 1, False)
            case "*":
                return cls(0, None, False)
            case "+":
                return cls(1, None, False)
            case bool():
                raise TypeError("nargs must be an integer, a string, a tuple or ellipsis")
            case int() if nargs >= 0:
                return cls(nargs, nargs, False)
            case int():
                raise ValueError("nargs must be a non-negative integer")
            case (int() as lo, None) if lo >= 0:
                return cls(lo, None, False)
            case (int() as lo, int() as hi) if 0 <= lo <= hi and hi > 0:
                return cls(lo, hi, False)
            case tuple():
                raise ValueError("nargs range must be (lo, hi) with 0 <= lo <= hi and hi > 0")
            case str():
                raise ValueError("nargs must be one of '?', '*', '+' or '...'")
        raise TypeError("nargs must be an integer, a string, a tuple or ellipsis")

    @property
    def multiple(self):
        """
        True when the resolved value is a list rather than a scalar.
        """
        return self.max is None or self.max > 1

    @property
    def unbounded(self):
        return self.max is None

    def admits(self, count, /):
        return count >= self.min and (self.max is None or count <= self.max)

    def __repr__(self):
        if self.greedy:
            return "..."
        if self.min == self.max:
            return str(self.min)
        return "%d..%s" % (self.min, "" if self.max is None else self.max)


class ArgumentType(type):
    """
    Metaclass that turns specs into introspectable, read-only descriptors.

    Responsibilities
    - Expose selected fields as read-only properties using mirror() for all
      names listed in __introspectable__.
    - Provide stable, readable __repr__/__rich_repr__ implementations for
      diagnostics.

    Conventions
    - __typename__ is derived from the class name (camel-case split with hyphens)
      and used in messages.
    - __displayable__ (if set) narrows which properties are shown by __rich_repr__;
      otherwise __introspectable__ is used.
    """
    __introspectable__ = ()
    __displayable__ = Unset

    def __new__(cls, name, bases, namespace, **options):
        introspectable = namespace.get("__introspectable__", ())
        self = super().__new__(
            cls,
            name,
            bases,
            namespace | {
                "__typename__": re.sub(r"(?<!^)(?=[A-Z])", r"-", name).lower(),
            } | {
                name: mirror(name) for name in introspectable if name not in namespace
            },
        )

        @rename("__repr__")
        def __repr__(self):
            """
            Return a concise, stable representation with key metadata.

            Example
            - option(name='port', names=('--port', '-p'), ...)
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


def _sanitize_text(cls, metadata, *names):
    """
    Internal: trim optional string/Text fields; Unset becomes None.
    """
    for name in names:
        if not isinstance(object := metadata[name], str | Text | Unset):
            raise TypeError(f"{cls.__typename__} {name!r} must be a string")
        elif isinstance(object, str) and not (object := object.strip()):
            raise ValueError(f"{cls.__typename__} {name!r} cannot be empty")
        metadata[name] = coalesce(object)


def _sanitize_references(cls, metadata, *names):
    """
    Internal: conflicts/requires are iterables of non-empty names (duplicates dropped).
    """
    for name in names:
        if isinstance(metadata[name], str):
            metadata[name] = (metadata[name],)
        if not isinstance(metadata[name], Iterable):
            raise TypeError(f"{cls.__typename__} {name!r} must be an iterable of strings")
        references = []
        for reference in metadata[name]:
            if not isinstance(reference, str):
                raise TypeError(f"{cls.__typename__} {name!r} must be an iterable of strings")
            elif not (reference := reference.strip()):
                raise ValueError(f"{cls.__typename__} {name!r} cannot contain empty names")
            elif reference not in references:
                references.append(reference)
        metadata[name] = tuple(references)


def _sanitize_metadata(cls, metadata, /):
    """
    Internal: normalize and validate metadata shared by every argument spec.

    Mutates metadata in place.

    Raises
    - TypeError: wrong types (non-string names, env, group, key, ...).
    - ValueError: empty strings or unknown policy values.
    """
    _sanitize_text(cls, metadata, "descr")

    for field in ("name", "env", "group", "key", "delimiter"):
        if not isinstance(object := metadata[field], str | Unset):
            raise TypeError(f"{cls.__typename__} {field!r} must be a string")
        elif isinstance(object, str) and not (object.strip() if field != "delimiter" else object):
            raise ValueError(f"{cls.__typename__} {field!r} cannot be empty")
        if isinstance(object, str) and field != "delimiter":
            metadata[field] = object.strip()

    if isinstance(name := metadata["name"], str) and not name.isidentifier():
        raise ValueError(f"{cls.__typename__} 'name' must be a valid identifier")

    _sanitize_references(cls, metadata, "conflicts", "requires")

    if metadata["policy"] not in POLICIES:
        raise ValueError(f"{cls.__typename__} 'policy' must be one of {', '.join(POLICIES)}")

    metadata["arity"] = Arity.of(metadata.pop("nargs"))

    if metadata["policy"] == "append" and not metadata["arity"].multiple:
        raise ValueError(f"{cls.__typename__} 'policy' append requires a multi-valued arity")


def _sanitize_named_metadata(cls, metadata, /):
    r"""
    Internal: validate and normalize aliases for named specs (Option, Flag).

    - at least one name is required.
    - short aliases match r"-[^\W_]"; long aliases r"--[^\W\d_](-?[^\W_]+)*".
    - duplicates are rejected; declaration order is preserved (the first long
      alias names the argument when no explicit name is given).
    """
    if not metadata["names"]:
        raise TypeError(f"{cls.__typename__} must specify at least one name")

    names = []
    for name in metadata["names"]:
        if not isinstance(name, str):
            raise TypeError(f"{cls.__typename__} names must be strings")
        elif not (name := name.strip()):
            raise ValueError(f"{cls.__typename__} names cannot be empty-strings")
        elif not SHORT.fullmatch(name) and not LONG.fullmatch(name):
            raise ValueError(f"{cls.__typename__} names must be valid shell-style option names (unicodes are allowed)")
        elif name in names:
            raise ValueError(f"{cls.__typename__} names cannot contain duplicates")
        names.append(name)
    metadata["names"] = tuple(names)

    if metadata["name"] is Unset:
        longs = [name for name in names if name.startswith("--")]
        metadata["name"] = identifier((longs or names)[0])


class Argument(metaclass=ArgumentType):
    """
    Common base of Cardinal, Option and Flag (the ArgumentDef of the engine).

    Instances are immutable value objects; they may be shared by several command
    nodes (a propagated argument is referenced, never copied, by descendants).
    """
    __introspectable__ = (
        "name",
        "names",
        "arity",
        "kind",
        "default",
        "env",
        "required",
        "conflicts",
        "requires",
        "group",
        "policy",
        "key",
        "delimiter",
        "propagate",
        "descr",
        "hidden",
        "deprecated",
    )
    __displayable__ = ("name", "names", "arity", "kind", "default", "env", "required")

    def _store(self, metadata, source):
        for name, object in metadata.items():
            setattr(self, "_" + name, object)
        self._source = source

    def __setattr__(self, name, value):
        if not name.startswith("_"):
            raise AttributeError(f"{type(self).__typename__} specs are read-only")
        object.__setattr__(self, name, value)

    def __replace__(self, **overrides):
        args, kwargs = self._source
        return type(self)(*args, **(kwargs | overrides))

    @property
    def shorts(self):
        return tuple(name for name in self._names if not name.startswith("--"))

    @property
    def longs(self):
        return tuple(name for name in self._names if name.startswith("--"))

    @property
    def positional(self):
        return not self._names

    @property
    def multiple(self):
        return self._arity.multiple

    @property
    def display(self):
        return getattr(self, "_display", None)

    @property
    def label(self):
        """
        how the argument is spelled in messages ('--port' or 'KEY').
        """
        if self._names:
            return (self.longs or self._names)[0]
        return coalesce(getattr(self, "_metavar", Unset), self._name.upper())


class Cardinal(Argument):
    """
    Positional, value-bearing argument specification.

    Highlights
    - Arity: fixed (int >= 1, default 1), optional single ("?"), one-or-more
      ("+"), zero-or-more ("*"), a (lo, hi) range, and trailing (Ellipsis),
      which swallows every remaining token including flag-looking ones.
    - Required by default when its arity needs at least one value.
    """
    __introspectable__ = Argument.__introspectable__ + ("metavar",)

    def __new__(
            cls,
            metavar=Unset,
            /,
            kind="text",
            nargs=1,
            default=Unset,
            env=Unset,
            required=Unset,
            conflicts=(),
            requires=(),
            group=Unset,
            policy="replace",
            descr=Unset,
            *,
            name=Unset,
            key=Unset,
            delimiter=Unset,
            hidden=False,
            deprecated=False
    ):
        source = ((metavar,) if metavar is not Unset else (), {
            "kind": kind, "nargs": nargs, "default": default, "env": env, "required": required,
            "conflicts": conflicts, "requires": requires, "group": group, "policy": policy,
            "descr": descr, "name": name, "key": key, "delimiter": delimiter,
            "hidden": hidden, "deprecated": deprecated,
        })
        metadata = {
            "metavar": metavar,
            "names": (),
            "kind": kind,
            "nargs": nargs,
            "default": default,
            "env": env,
            "conflicts": conflicts,
            "requires": requires,
            "group": group,
            "policy": policy,
            "name": name,
            "key": key,
            "delimiter": delimiter,
            "descr": descr,
            "propagate": False,
            "hidden": bool(hidden),
            "deprecated": bool(deprecated),
        }
        _sanitize_text(cls, metadata, "metavar")
        _sanitize_metadata(cls, metadata)

        if metadata["arity"].max == 0:
            raise ValueError(f"{cls.__typename__} must accept at least one value")
        if metadata["arity"].greedy and metadata["env"] is not Unset:
            raise TypeError(f"greedy {cls.__typename__} cannot be bound to an environment variable")

        if metadata["name"] is Unset:
            if metadata["metavar"] is None:
                raise TypeError(f"{cls.__typename__} needs a 'metavar' or a 'name'")
            metadata["name"] = identifier(metadata["metavar"])
        if metadata["metavar"] is None:
            metadata["metavar"] = metadata["name"].upper()

        metadata["required"] = bool(coalesce(required, metadata["arity"].min > 0))
        metadata["key"] = coalesce(metadata["key"], metadata["name"])
        metadata["delimiter"] = coalesce(metadata["delimiter"])
        metadata["env"] = coalesce(metadata["env"])
        metadata["group"] = coalesce(metadata["group"])

        self = super().__new__(cls)
        self._store(metadata, source)
        return self


class Option(Argument):
    """
    Named, value-bearing option specification.

    Highlights
    - Aliases: any mix of short ("-p") and long ("--port") names.
    - Arity: defaults to exactly one value; ranges and unbounded arities consume
      following values until satisfied, another flag, or the end of input.
    - implicit: literal used when an optional-value option ("?") is present
      without a value (e.g. --color → "auto").
    """
    __introspectable__ = Argument.__introspectable__ + ("metavar", "implicit")

    def __new__(
            cls,
            *names,
            kind="text",
            nargs=1,
            default=Unset,
            env=Unset,
            required=False,
            conflicts=(),
            requires=(),
            group=Unset,
            policy="replace",
            descr=Unset,
            name=Unset,
            key=Unset,
            metavar=Unset,
            implicit=Unset,
            delimiter=Unset,
            propagate=False,
            hidden=False,
            deprecated=False
    ):
        source = (names, {
            "kind": kind, "nargs": nargs, "default": default, "env": env, "required": required,
            "conflicts": conflicts, "requires": requires, "group": group, "policy": policy,
            "descr": descr, "name": name, "key": key, "metavar": metavar, "implicit": implicit,
            "delimiter": delimiter, "propagate": propagate, "hidden": hidden, "deprecated": deprecated,
        })
        metadata = {
            "names": names,
            "kind": kind,
            "nargs": nargs,
            "default": default,
            "env": env,
            "conflicts": conflicts,
            "requires": requires,
            "group": group,
            "policy": policy,
            "name": name,
            "key": key,
            "metavar": metavar,
            "delimiter": delimiter,
            "descr": descr,
            "propagate": bool(propagate),
            "hidden": bool(hidden),
            "deprecated": bool(deprecated),
        }
        _sanitize_text(cls, metadata, "metavar")
        _sanitize_named_metadata(cls, metadata)
        _sanitize_metadata(cls, metadata)

        if metadata["arity"].max == 0:
            raise ValueError(f"{cls.__typename__} with no values must be declared as a flag")
        if metadata["arity"].greedy:
            raise TypeError(f"{cls.__typename__} cannot be greedy; use a trailing cardinal")
        if not isinstance(implicit, str | Unset):
            raise TypeError(f"{cls.__typename__} 'implicit' must be a string")
        if implicit is not Unset and metadata["arity"].min > 0:
            raise ValueError(f"{cls.__typename__} 'implicit' needs an arity that accepts zero values")

        metadata["implicit"] = implicit
        metadata["required"] = bool(required)
        metadata["key"] = coalesce(metadata["key"], metadata["name"])
        if metadata["metavar"] is None:
            metadata["metavar"] = metadata["name"].upper()
        metadata["delimiter"] = coalesce(metadata["delimiter"])
        metadata["env"] = coalesce(metadata["env"])
        metadata["group"] = coalesce(metadata["group"])

        self = super().__new__(cls)
        self._store(metadata, source)
        return self


class Flag(Argument):
    """
    Named, presence-only switch.

    Highlights
    - Resolves to True when present (False when absent), or to the number of
      occurrences when count=True (-vvv → 3).
    - display="help" / "version" marks the flag as a display request: matching it
      short-circuits validation and routing.
    """
    __introspectable__ = Argument.__introspectable__ + ("count", "display")

    def __new__(
            cls,
            *names,
            default=Unset,
            env=Unset,
            required=False,
            conflicts=(),
            requires=(),
            group=Unset,
            descr=Unset,
            name=Unset,
            key=Unset,
            count=False,
            display=Unset,
            propagate=False,
            hidden=False,
            deprecated=False
    ):
        source = (names, {
            "default": default, "env": env, "required": required, "conflicts": conflicts,
            "requires": requires, "group": group, "descr": descr, "name": name, "key": key,
            "count": count, "display": display, "propagate": propagate, "hidden": hidden,
            "deprecated": deprecated,
        })
        metadata = {
            "names": names,
            "kind": "uint" if count else "bool",
            "nargs": 0,
            "default": default,
            "env": env,
            "conflicts": conflicts,
            "requires": requires,
            "group": group,
            "policy": "replace",
            "name": name,
            "key": key,
            "delimiter": Unset,
            "descr": descr,
            "propagate": bool(propagate),
            "hidden": bool(hidden),
            "deprecated": bool(deprecated),
        }
        _sanitize_named_metadata(cls, metadata)
        _sanitize_metadata(cls, metadata)

        if display is not Unset and display not in DISPLAYS:
            raise ValueError(f"{cls.__typename__} 'display' must be one of {', '.join(DISPLAYS)}")
        if display is not Unset and (required or count):
            raise TypeError(f"{cls.__typename__} display flags cannot be required or counting")

        metadata["count"] = bool(count)
        metadata["display"] = coalesce(display)
        metadata["required"] = bool(required)
        metadata["key"] = coalesce(metadata["key"], metadata["name"])
        metadata["delimiter"] = None
        metadata["env"] = coalesce(metadata["env"])
        metadata["group"] = coalesce(metadata["group"])

        self = super().__new__(cls)
        self._store(metadata, source)
        return self


class Group(metaclass=ArgumentType):
    """
    Named constraint over a set of arguments.

    - required: at least one member must ultimately be present.
    - multiple: more than one member may be present simultaneously.

    Members can be listed here, or join from the argument side with
    Option(..., group="id"); both declarations are merged at finalize().
    """
    __introspectable__ = ("id", "members", "required", "multiple", "descr")

    def __new__(cls, id, /, *members, required=False, multiple=False, descr=Unset):
        if not isinstance(id, str):
            raise TypeError(f"{cls.__typename__} 'id' must be a string")
        elif not (id := id.strip()):
            raise ValueError(f"{cls.__typename__} 'id' cannot be empty")
        metadata = {"members": members, "descr": descr}
        _sanitize_references(cls, metadata, "members")
        _sanitize_text(cls, metadata, "descr")

        self = super().__new__(cls)
        self._id = id
        self._members = metadata["members"]
        self._required = bool(required)
        self._multiple = bool(multiple)
        self._descr = metadata["descr"]
        return self


__all__ = (
    "Arity",
    "Argument",
    "Cardinal",
    "Option",
    "Flag",
    "Group",
)
