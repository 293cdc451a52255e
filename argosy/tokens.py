"""
Argosy tokenizer: raw argument vector → structured token stream.

Rules
- "--"              → Terminator; every later argument is an escaped Value.
- "--name[=value]"  → LongFlag(name="--name", value="value" | None).
- "-abc"            → ShortFlag(name="-a", rest="bc"); whether "bc" is a bundle
                      of further flags or an attached value is decided by the
                      matcher, which knows the argument definitions.
- "-" and ""        → Value (a lone dash conventionally means stdin).
- anything else     → Value.

Tokens carry the 1-based position of the argument they came from, so every
downstream message can be position-first. No semantic validation happens here.
"""
from collections import namedtuple

TERMINATOR = "--"


class LongFlag(namedtuple("LongFlag", ("name", "value", "index", "text"))):
    __slots__ = ()

    @property
    def inline(self):
        return self.value is not None


class ShortFlag(namedtuple("ShortFlag", ("name", "rest", "index", "text"))):
    __slots__ = ()


class Value(namedtuple("Value", ("text", "index", "escaped"))):
    __slots__ = ()


class Terminator(namedtuple("Terminator", ("index",))):
    __slots__ = ()

    @property
    def text(self):
        return TERMINATOR


def tokenize(argv, /):
    """
    lazily classify every raw argument; yields LongFlag, ShortFlag, Value and
    Terminator tokens in order.
    """
    escaped = False
    for index, text in enumerate(argv, start=1):
        if not isinstance(text, str):
            raise TypeError("tokenize() argument must be an iterable of strings")
        if escaped:
            yield Value(text, index, True)
        elif text == TERMINATOR:
            escaped = True
            yield Terminator(index)
        elif text.startswith("--"):
            name, separator, value = text.partition("=")
            yield LongFlag(name, value if separator else None, index, text)
        elif text.startswith("-") and len(text) > 1:
            yield ShortFlag(text[:2], text[2:], index, text)
        else:
            yield Value(text, index, False)


__all__ = (
    "LongFlag",
    "ShortFlag",
    "Value",
    "Terminator",
    "tokenize",
)
