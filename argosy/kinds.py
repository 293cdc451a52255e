"""
Argosy value kinds: the registry that turns literal text into typed values.

Overview
- Parser: a pure converter from literal text to a typed value. On failure it
  raises InvalidValueError (or OutOfRangeError / UnknownEnumVariantError), always
  carrying the offending literal and a description of the expected shape.
- Registry: maps a kind descriptor to a parser factory. Built-in descriptors:
    "text"   → str                      (aliases: str)
    "int"    → signed integer           (aliases: int, integer(lo, hi))
    "uint"   → unsigned integer         (unsigned(lo, hi))
    "float"  → floating point           (aliases: float, floating(lo, hi))
    "bool"   → boolean flag, presence-only on the command line (aliases: bool)
    "path"   → pathlib.Path, syntactic only (aliases: pathlib.Path)
    "choice" → one of a fixed, case-sensitive set (choice(*variants), Enum types)
    "list"   → delimiter-separated list with an inner kind (delimited(inner, sep))
    "pair"   → key=value split once on the first '=' (pair(inner))
  A plain callable (e.g. a function str → T) is accepted as an ad-hoc kind.

- Custom kinds register under any hashable descriptor:
    registry.register("duration", parse_duration, expected="a duration like 30s")
  and are indistinguishable from built-ins to the rest of the engine.

Notes
- Parsers are resolved once per argument at finalize() time, so parse calls never
  consult (or mutate) the registry.
- Parser.accept(value) validates values that arrive already typed (for example
  from a pre-parsed configuration mapping); strings go through the literal path.
"""
import enum
import math
import os
import pathlib
from collections import namedtuple
from collections.abc import Mapping

from .faults import InvalidValueError, OutOfRangeError, UnknownEnumVariantError
from .utils import Unset, coalesce, suggest


class Kind(namedtuple("Kind", ("name", "params"))):
    """
    hashable, parametrized kind descriptor: Kind("int", (("lo", 1), ("hi", 9))).
    """
    __slots__ = ()

    def __new__(cls, name, /, **params):
        return super().__new__(cls, name, tuple(sorted(params.items(), key=lambda item: item[0])))

    def __repr__(self):
        if not self.params:
            return self.name
        return "%s(%s)" % (self.name, ", ".join("%s=%r" % item for item in self.params))


class Parser:
    """
    base converter.

    subclasses implement parse(literal) and may override accept(value).

    attributes
    - expected: human-readable shape used in fault messages ("an integer").
    - presence: True when the kind consumes no literal on the command line.
    - absent: the value used when no source supplies one.
    """
    expected = "a value"
    presence = False
    absent = None

    def __call__(self, literal, /):
        if not isinstance(literal, str):
            raise TypeError("parser argument must be a string")
        try:
            return self.parse(literal)
        except InvalidValueError:
            raise
        except (ValueError, TypeError, ArithmeticError) as exception:
            raise self.fault(literal, reason=str(exception)) from exception

    def parse(self, literal, /):
        raise NotImplementedError

    def accept(self, value, /):
        if isinstance(value, str):
            return self(value)
        raise self.fault(value)

    def fault(self, literal, /, cls=InvalidValueError, **options):
        return cls(
            "invalid value %r (expected %s)" % (literal, self.expected),
            literal=literal,
            expected=self.expected,
            **options
        )

    def __repr__(self):
        return "%s(expected=%r)" % (type(self).__name__, self.expected)


class TextParser(Parser):
    expected = "text"

    def parse(self, literal, /):
        return literal


class _Bounded(Parser):
    """
    numeric parsers share the closed-range check.
    """
    noun = "number"

    def __init__(self, lo=None, hi=None):
        if lo is not None and hi is not None and lo > hi:
            raise ValueError("%s range lower bound %r exceeds upper bound %r" % (self.noun, lo, hi))
        self.lo = lo
        self.hi = hi
        noun = "%s %s" % ("an" if self.noun[0] in "aeiou" else "a", self.noun)
        if lo is None and hi is None:
            self.expected = noun
        elif hi is None:
            self.expected = "%s ≥ %s" % (noun, lo)
        elif lo is None:
            self.expected = "%s ≤ %s" % (noun, hi)
        else:
            self.expected = "%s in [%s, %s]" % (noun, lo, hi)

    def bound(self, value, literal):
        if (self.lo is not None and value < self.lo) or (self.hi is not None and value > self.hi):
            raise self.fault(literal, OutOfRangeError, lo=self.lo, hi=self.hi)
        return value


class IntegerParser(_Bounded):
    noun = "integer"

    def __init__(self, lo=None, hi=None, *, signed=True):
        if not signed:
            lo = 0 if lo is None else max(0, lo)
            self.noun = "non-negative integer"
        super().__init__(lo, hi)
        self.signed = signed
        if not signed and lo == 0 and hi is None:
            self.expected = "a non-negative integer"

    def parse(self, literal, /):
        stripped = literal.strip()
        if not stripped or stripped[0] == "_" or not stripped.lstrip("+-").replace("_", "").isdecimal():
            raise self.fault(literal)
        if not self.signed and stripped.startswith("-"):
            raise self.fault(literal, OutOfRangeError, lo=self.lo, hi=self.hi)
        return self.bound(int(stripped), literal)

    def accept(self, value, /):
        if isinstance(value, str):
            return self(value)
        if isinstance(value, bool) or not isinstance(value, int):
            raise self.fault(value)
        return self.bound(value, value)


class FloatParser(_Bounded):
    noun = "number"

    def parse(self, literal, /):
        value = float(literal)
        if math.isnan(value):
            raise self.fault(literal)
        return self.bound(value, literal)

    def accept(self, value, /):
        if isinstance(value, str):
            return self(value)
        if isinstance(value, bool) or not isinstance(value, int | float):
            raise self.fault(value)
        return self.bound(float(value), value)


class BooleanParser(Parser):
    """
    presence-only on the command line; literals only come from env/config.
    """
    expected = "a boolean (true/false, yes/no, on/off, 1/0)"
    presence = True
    absent = False

    truthy = frozenset(("1", "true", "yes", "on", "y", "t"))
    falsy = frozenset(("0", "false", "no", "off", "n", "f"))

    def parse(self, literal, /):
        if (folded := literal.strip().lower()) in self.truthy:
            return True
        if folded in self.falsy:
            return False
        raise self.fault(literal)

    def accept(self, value, /):
        if isinstance(value, str):
            return self(value)
        if isinstance(value, bool):
            return value
        raise self.fault(value)


class PathParser(Parser):
    expected = "a filesystem path"

    def parse(self, literal, /):
        if not literal or "\0" in literal:
            raise self.fault(literal)
        return pathlib.Path(literal)

    def accept(self, value, /):
        if isinstance(value, str | os.PathLike):
            return self(os.fspath(value))
        raise self.fault(value)


class ChoiceParser(Parser):
    def __init__(self, variants, *, mapping=Unset):
        if not variants:
            raise ValueError("choice kind needs at least one variant")
        self.variants = tuple(variants)
        self.mapping = coalesce(mapping, {})
        self.expected = "one of: %s" % ", ".join(self.variants)

    def parse(self, literal, /):
        if literal not in self.variants:
            closest = suggest(literal, self.variants)
            raise self.fault(
                literal,
                UnknownEnumVariantError,
                variants=self.variants,
                suggestion=closest,
                hint="did you mean %r?" % closest if closest else "use one of: %s" % ", ".join(self.variants),
            )
        return self.mapping.get(literal, literal)

    def accept(self, value, /):
        if isinstance(value, enum.Enum) and value in self.mapping.values():
            return value
        if isinstance(value, str):
            return self(value)
        raise self.fault(value)


class DelimitedParser(Parser):
    def __init__(self, inner, separator=","):
        if not separator:
            raise ValueError("list kind separator cannot be empty")
        self.inner = inner
        self.separator = separator
        self.expected = "a %r-separated list of %s" % (separator, inner.expected)

    def parse(self, literal, /):
        if not literal:
            return []
        return [self.inner(element) for element in literal.split(self.separator)]

    def accept(self, value, /):
        if isinstance(value, str):
            return self(value)
        if isinstance(value, list | tuple):
            return [self.inner.accept(element) for element in value]
        raise self.fault(value)


class PairParser(Parser):
    def __init__(self, inner):
        self.inner = inner
        self.expected = "KEY=VALUE (value: %s)" % inner.expected

    def parse(self, literal, /):
        key, separator, value = literal.partition("=")
        if not separator or not key:
            raise self.fault(literal)
        return key, self.inner(value)

    def accept(self, value, /):
        if isinstance(value, str):
            return self(value)
        if isinstance(value, Mapping) and len(value) == 1:
            (key, item), = value.items()
            return str(key), self.inner.accept(item)
        if isinstance(value, list | tuple) and len(value) == 2:
            return str(value[0]), self.inner.accept(value[1])
        raise self.fault(value)


class FunctionParser(Parser):
    """
    adapts a plain converter callable (str → T) to the parser protocol.
    """

    def __init__(self, function, expected=Unset):
        if not callable(function):
            raise TypeError("function kind must be callable")
        self.function = function
        self.expected = coalesce(expected, "a valid %s" % getattr(function, "__name__", "value"))

    def parse(self, literal, /):
        return self.function(literal)

    def accept(self, value, /):
        if isinstance(value, str):
            return self(value)
        return value


# ── descriptor helpers ───────────────────────────────────────────────────────

def integer(lo=None, hi=None):
    return Kind("int", lo=lo, hi=hi)


def unsigned(lo=None, hi=None):
    return Kind("uint", lo=lo, hi=hi)


def floating(lo=None, hi=None):
    return Kind("float", lo=lo, hi=hi)


def choice(*variants):
    return Kind("choice", variants=tuple(variants))


def delimited(inner="text", separator=","):
    return Kind("list", inner=inner, separator=separator)


def pair(inner="text"):
    return Kind("pair", inner=inner)


class Registry:
    """
    descriptor → parser factory mapping.

    usage
    - registry.register(descriptor, function)                # plain str → T converter
    - registry.register(descriptor, function, expected=…)    # ... with a described shape
    - registry.register(descriptor, factory, factory=True)   # factory(**params) -> Parser
    - registry.lookup(descriptor)                            # -> Parser (cached per registry)

    descriptors may be Kind instances, strings, Python types (str, int, float,
    bool, pathlib.Path), Enum subclasses, or plain callables.
    """

    def __init__(self):
        self._factories = {}
        self._cache = {}

    @classmethod
    def default(cls):
        self = cls()
        self.register("text", TextParser)
        self.register("int", lambda lo=None, hi=None: IntegerParser(lo, hi), factory=True)
        self.register("uint", lambda lo=None, hi=None: IntegerParser(lo, hi, signed=False), factory=True)
        self.register("float", lambda lo=None, hi=None: FloatParser(lo, hi), factory=True)
        self.register("bool", BooleanParser)
        self.register("path", PathParser)
        self.register("choice", lambda variants: ChoiceParser(variants), factory=True)
        self.register("list", lambda inner="text", separator=",": DelimitedParser(self.lookup(inner), separator),
                      factory=True)
        self.register("pair", lambda inner="text": PairParser(self.lookup(inner)), factory=True)
        return self

    def register(self, descriptor, function, /, *, expected=Unset, factory=False):
        """
        bind a descriptor to a converter function, or to a parser factory.

        - a converter (str → T) is wrapped in a FunctionParser, described by
          `expected` when given.
        - with factory=True the callable receives the kind's params and must
          return a Parser. Parser subclasses are always taken as factories.
        """
        try:
            hash(descriptor)
        except TypeError:
            raise TypeError("kind descriptor must be hashable") from None
        if not callable(function):
            raise TypeError("kind converter must be callable")
        if factory or (isinstance(function, type) and issubclass(function, Parser)):
            if expected is not Unset:
                raise TypeError("'expected' only applies to converter functions, not parser factories")
            self._factories[descriptor] = function
        else:
            self._factories[descriptor] = lambda: FunctionParser(function, expected)
        self._cache.clear()
        return function

    def __contains__(self, descriptor):
        return self._normalize(descriptor) is not None

    def _normalize(self, descriptor):
        """
        map a descriptor onto (name, params) or None when unknown.
        """
        aliases = {str: "text", int: "int", float: "float", bool: "bool", pathlib.Path: "path"}
        if isinstance(descriptor, Kind):
            return (descriptor.name, dict(descriptor.params)) if descriptor.name in self._factories else None
        try:
            if descriptor in self._factories:
                return descriptor, {}
        except TypeError:
            return None
        if descriptor in aliases:
            return aliases[descriptor], {}
        if isinstance(descriptor, type) and issubclass(descriptor, enum.Enum):
            return "enum", {"type": descriptor}
        if callable(descriptor):
            return "function", {"function": descriptor}
        return None

    def lookup(self, descriptor, /):
        """
        resolve a descriptor to a ready parser; raises LookupError when unknown.

        parsers are cached on this registry until the next register() call.
        """
        try:
            return self._cache[descriptor]
        except KeyError:
            pass
        parser = self._cache[descriptor] = self._build(descriptor)
        return parser

    def _build(self, descriptor):
        if (normalized := self._normalize(descriptor)) is None:
            raise LookupError("unknown value kind %r" % (descriptor,))
        name, params = normalized
        if name == "enum":
            members = params["type"].__members__
            return ChoiceParser(tuple(members), mapping=dict(members))
        if name == "function":
            return FunctionParser(params["function"])
        parser = self._factories[name](**params)
        if not isinstance(parser, Parser):
            raise TypeError("kind factory for %r did not return a parser" % (name,))
        return parser


registry = Registry.default()


__all__ = (
    "Kind",
    "Parser",
    "TextParser",
    "IntegerParser",
    "FloatParser",
    "BooleanParser",
    "PathParser",
    "ChoiceParser",
    "DelimitedParser",
    "PairParser",
    "FunctionParser",
    "Registry",
    "registry",
    "integer",
    "unsigned",
    "floating",
    "choice",
    "delimited",
    "pair",
)
