"""
Tokenizer behavioral tests.

Scope
- Validate the classification of raw arguments into long flags, short flags,
  values and the terminator, including positions and escaping.

Conventions
- Test method names follow CamelCase per project convention.
"""

from __future__ import annotations

import unittest
from unittest import TestCase

from argosy.tokens import LongFlag, ShortFlag, Value, Terminator, tokenize


class TestTokenize(TestCase):

    def testLongFlag(self):
        token, = tokenize(["--verbose"])
        self.assertEqual(token, LongFlag("--verbose", None, 1, "--verbose"))
        self.assertFalse(token.inline)

    def testLongFlagInlineValue(self):
        token, = tokenize(["--out=a=b"])
        self.assertEqual(token.name, "--out")
        self.assertEqual(token.value, "a=b")
        self.assertTrue(token.inline)

    def testLongFlagEmptyInlineValue(self):
        token, = tokenize(["--out="])
        self.assertEqual(token.value, "")
        self.assertTrue(token.inline)

    def testShortFlagBundle(self):
        token, = tokenize(["-vvx"])
        self.assertEqual(token, ShortFlag("-v", "vx", 1, "-vvx"))

    def testLoneDashAndEmptyAreValues(self):
        self.assertEqual(list(tokenize(["-", ""])), [Value("-", 1, False), Value("", 2, False)])

    def testTerminatorEscapesEverythingAfter(self):
        tokens = list(tokenize(["a", "--", "--x", "-y", "--"]))
        self.assertEqual(tokens, [
            Value("a", 1, False),
            Terminator(2),
            Value("--x", 3, True),
            Value("-y", 4, True),
            Value("--", 5, True),
        ])
        self.assertEqual(tokens[1].text, "--")

    def testPositionsAreOneBased(self):
        self.assertEqual([token.index for token in tokenize(["a", "-b", "--c"])], [1, 2, 3])

    def testEmptyInput(self):
        self.assertEqual(list(tokenize([])), [])

    def testNonStringRejected(self):
        with self.assertRaises(TypeError):
            list(tokenize(["ok", 1]))


if __name__ == "__main__":
    unittest.main()
