"""
Tests for the shared helpers.

This module verifies semantic guarantees of the `Unset` sentinel and helpers:
- Singleton identity, falsy semantics and representation of the sentinel.
- Copying, deep copying, pickling, and thread safety properties.
- Finality (type cannot be subclassed).
- coalesce(), mirror(), ordinal(), distance(), suggest() and identifier().
"""
import copy
import pickle
import unittest
from collections import namedtuple
from threading import Thread, Lock
from types import MappingProxyType
from unittest import TestCase

from argosy.utils import *


class TestUnset(TestCase):
    """
    Test suite for the `Unset` singleton.
    """

    def setUp(self) -> None:
        self.unset: UnsetType = UnsetType()

    def testSingleton(self) -> None:
        """
        The constructor returns the same object reference on every call.
        """
        self.assertIs(self.unset, UnsetType())
        self.assertIs(Unset, self.unset)

    def testFalsely(self) -> None:
        self.assertFalse(bool(self.unset))

    def testRepr(self) -> None:
        self.assertEqual(repr(self.unset), "Unset")

    def testNotEqualToNoneOrFalse(self) -> None:
        """
        Falsy does not imply equality with other falsy values (None/False).
        """
        self.assertNotEqual(self.unset, None)
        self.assertNotEqual(self.unset, False)  # noqa: E712

    def testCopyDeepcopyPreserveSingleton(self) -> None:
        self.assertIs(copy.copy(self.unset), self.unset)
        self.assertIs(copy.deepcopy(self.unset), self.unset)

    def testPickleRoundTrip(self) -> None:
        self.assertIs(pickle.loads(pickle.dumps(self.unset)), self.unset)

    def testThreadSafetySingleton(self) -> None:
        """
        Concurrent constructions return the same instance.
        """
        results: list[UnsetType] = []
        lock: Lock = Lock()

        def worker():
            instance = UnsetType()
            with lock:
                results.append(instance)

        threads: list[Thread] = [Thread(target=worker) for _ in range(16)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(len(results), 16)
        for instance in results:
            self.assertIs(instance, self.unset)

    def testFinalClass(self) -> None:
        with self.assertRaises(TypeError):
            type("UnsetType", (UnsetType,), {})

    def testUnionAnnotation(self) -> None:
        self.assertIsInstance(Unset, str | Unset)
        self.assertNotIsInstance("text", int | Unset)


class TestHelpers(TestCase):

    def testCoalesceReplacesOnlyUnset(self) -> None:
        self.assertEqual(coalesce(Unset, "fallback"), "fallback")
        self.assertIsNone(coalesce(Unset))
        self.assertIsNone(coalesce(None, "fallback"))
        self.assertEqual(coalesce(0, 1), 0)
        self.assertEqual(coalesce("", "fallback"), "")

    def testMirrorFreezesContainers(self) -> None:
        class Holder:
            items = mirror("items")
            table = mirror("table")
            tags = mirror("tags")
            label = mirror("label")

            def __init__(self):
                self._items = [1, 2]
                self._table = {"a": 1}
                self._tags = {"x"}
                self._label = "name"

        holder = Holder()
        self.assertEqual(holder.items, (1, 2))
        self.assertIsInstance(holder.table, MappingProxyType)
        self.assertEqual(holder.tags, frozenset({"x"}))
        self.assertEqual(holder.label, "name")
        with self.assertRaises(TypeError):
            holder.table["b"] = 2  # type: ignore[index]
        with self.assertRaises(AttributeError):
            holder.items = ()  # type: ignore[misc]

    def testMirrorKeepsNamedTuples(self) -> None:
        Pair = namedtuple("Pair", ("low", "high"))

        class Holder:
            pair = mirror("pair")

            def __init__(self):
                self._pair = Pair(1, 2)

        holder = Holder()
        self.assertIs(holder.pair, holder._pair)
        self.assertEqual(holder.pair.high, 2)

    def testMirrorRejectsNonString(self) -> None:
        with self.assertRaises(TypeError):
            mirror(1)  # type: ignore[arg-type]

    def testRenameCallable(self) -> None:
        def function():
            pass

        self.assertIs(rename(function, "renamed"), function)
        self.assertEqual(function.__name__, "renamed")
        self.assertEqual(function.__qualname__, "renamed")

    def testRenameDecorator(self) -> None:
        @rename("decorated")
        def function():
            pass

        self.assertEqual(function.__name__, "decorated")

    def testRenameArgumentCount(self) -> None:
        with self.assertRaises(TypeError):
            rename()
        with self.assertRaises(TypeError):
            rename(1, "name")

    def testOrdinalWords(self) -> None:
        self.assertEqual(ordinal(1), "first")
        self.assertEqual(ordinal(3), "third")
        self.assertEqual(ordinal(10), "tenth")

    def testOrdinalSuffixes(self) -> None:
        self.assertEqual(ordinal(11), "11th")
        self.assertEqual(ordinal(12), "12th")
        self.assertEqual(ordinal(21), "21st")
        self.assertEqual(ordinal(22), "22nd")
        self.assertEqual(ordinal(23), "23rd")
        self.assertEqual(ordinal(111), "111th")

    def testDistance(self) -> None:
        self.assertEqual(distance("--prot", "--port"), 2)
        self.assertEqual(distance("", "abc"), 3)
        self.assertEqual(distance("same", "same"), 0)
        self.assertEqual(distance("kitten", "sitting"), 3)

    def testSuggestClosest(self) -> None:
        self.assertEqual(suggest("--prot", ["--port", "--host"]), "--port")
        self.assertEqual(suggest("biuld", ["build", "test"]), "build")

    def testSuggestNothingClose(self) -> None:
        self.assertIsNone(suggest("--zzzzzz", ["--port", "--host"]))
        self.assertIsNone(suggest("x", []))

    def testSuggestTieKeepsDeclarationOrder(self) -> None:
        self.assertEqual(suggest("ab", ["aa", "bb"]), "aa")

    def testIdentifier(self) -> None:
        self.assertEqual(identifier("--dry-run"), "dry_run")
        self.assertEqual(identifier("-v"), "v")
        self.assertEqual(identifier("FILE"), "file")


if __name__ == '__main__':
    unittest.main()
