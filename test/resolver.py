"""
Resolver behavioral tests (precedence merging and provenance).

Scope
- Validate the command line → environment → config → default priority order
  and the recorded source of every value.
- Validate absent representations, explicit config nulls, empty environment
  strings and the append policy.
- Validate scoped configuration lookups (subcommand sections, group sections).
- Validate value faults naming the argument and where the literal came from.

Conventions
- Test method names follow CamelCase per project convention.
"""

from __future__ import annotations

import os
import unittest
from unittest import TestCase

from argosy import (
    Command,
    Cardinal,
    Option,
    Flag,
    Group,
    finalize,
    Source,
    InvalidValueError,
    OutOfRangeError,
)
from argosy.matcher import match
from argosy.resolver import resolve


def handler(**values):
    return values


def run(command, argv=(), env=None, config=None):
    root = finalize(command).root
    return resolve(match(root, list(argv)), env or {}, config or {}, tuple(argv))


class TestPrecedence(TestCase):

    def setUp(self):
        self.tool = Command("tool", Option("--port", "-p", kind="int", env="PORT", default="80"), handler=handler)

    def testCommandLineWins(self):
        resolution = run(self.tool, ["--port", "1"], {"PORT": "2"}, {"port": 3})
        self.assertEqual(resolution["port"], 1)
        self.assertIs(resolution.source("port"), Source.COMMAND_LINE)

    def testEnvironmentBeatsConfig(self):
        resolution = run(self.tool, [], {"PORT": "2"}, {"port": 3})
        self.assertEqual(resolution["port"], 2)
        self.assertIs(resolution.source("port"), Source.ENVIRONMENT)

    def testConfigBeatsDefault(self):
        resolution = run(self.tool, [], {}, {"port": 3})
        self.assertEqual(resolution["port"], 3)
        self.assertIs(resolution.source("port"), Source.CONFIG_FILE)

    def testDefault(self):
        resolution = run(self.tool)
        self.assertEqual(resolution["port"], 80)
        self.assertIs(resolution.source("port"), Source.DEFAULT)
        self.assertFalse(resolution.values["port"].supplied)

    def testConfigLiteralIsParsed(self):
        self.assertEqual(run(self.tool, [], {}, {"port": "4"})["port"], 4)

    def testEmptyEnvironmentIsAbsent(self):
        resolution = run(self.tool, [], {"PORT": ""})
        self.assertIs(resolution.source("port"), Source.DEFAULT)

    def testEnvironmentNamesAreCaseSensitive(self):
        self.assertEqual(run(self.tool, [], {"port": "2"})["port"], 80)

    def testExplicitNullBlocksDefault(self):
        resolution = run(self.tool, [], {}, {"port": None})
        self.assertIsNone(resolution["port"])
        self.assertIsNone(resolution.source("port"))
        self.assertEqual(resolution.values["port"].sources, ())

    def testEnvironmentBeatsExplicitNull(self):
        self.assertEqual(run(self.tool, [], {"PORT": "2"}, {"port": None})["port"], 2)


class TestAbsentValues(TestCase):

    def testAbsentRepresentations(self):
        tool = Command(
            "tool",
            Option("--name"),
            Flag("--debug"),
            Flag("-v", name="verbose", count=True),
            Option("--tag", nargs="*"),
            Cardinal("FILES", nargs="*"),
            handler=handler,
        )
        resolution = run(tool)
        self.assertIsNone(resolution["name"])
        self.assertIs(resolution["debug"], False)
        self.assertEqual(resolution["verbose"], 0)
        self.assertEqual(resolution["tag"], [])
        self.assertEqual(resolution["files"], [])
        for name in ("name", "debug", "verbose", "tag", "files"):
            self.assertIsNone(resolution.source(name))

    def testDisplayFlagsAreNotResolved(self):
        resolution = run(Command("tool", handler=handler, version="1.0"))
        self.assertNotIn("help", resolution)
        self.assertNotIn("version", resolution)


class TestFlags(TestCase):

    def testPresence(self):
        resolution = run(Command("tool", Flag("--debug"), handler=handler), ["--debug"])
        self.assertIs(resolution["debug"], True)
        self.assertIs(resolution.source("debug"), Source.COMMAND_LINE)

    def testCounting(self):
        resolution = run(Command("tool", Flag("-v", name="verbose", count=True), handler=handler), ["-vvv"])
        self.assertEqual(resolution["verbose"], 3)

    def testFlagFromEnvironment(self):
        tool = Command("tool", Flag("--debug", env="DEBUG"), Flag("-v", name="verbose", count=True, env="VERBOSE"), handler=handler)
        resolution = run(tool, [], {"DEBUG": "yes", "VERBOSE": "2"})
        self.assertIs(resolution["debug"], True)
        self.assertEqual(resolution["verbose"], 2)

    def testFlagFromConfig(self):
        resolution = run(Command("tool", Flag("--debug"), handler=handler), [], {}, {"debug": True})
        self.assertIs(resolution["debug"], True)
        self.assertIs(resolution.source("debug"), Source.CONFIG_FILE)

    def testFlagDefault(self):
        resolution = run(Command("tool", Flag("--debug", default="true"), handler=handler))
        self.assertIs(resolution["debug"], True)


class TestMultipleValues(TestCase):

    def testOccurrencesPreserveOrder(self):
        tool = Command("tool", Option("--tag", "-t", nargs="+"), handler=handler)
        self.assertEqual(run(tool, ["-t", "a", "b", "--tag", "c"])["tag"], ["a", "b", "c"])

    def testReplacePolicyUsesFirstSource(self):
        tool = Command("tool", Option("--include", nargs="*", env="INCLUDE"), handler=handler)
        resolution = run(tool, [], {"INCLUDE": os.pathsep.join(("a", "b"))}, {"include": ["c"]})
        self.assertEqual(resolution["include"], ["a", "b"])
        self.assertEqual(resolution.values["include"].sources, (Source.ENVIRONMENT,))

    def testAppendPolicyConcatenatesSources(self):
        tool = Command(
            "tool",
            Option("--tag", nargs="*", policy="append", env="TAGS", delimiter=",", default=["d"]),
            handler=handler,
        )
        resolution = run(tool, ["--tag", "a"], {"TAGS": "b1,b2"}, {"tag": ["c"]})
        self.assertEqual(resolution["tag"], ["a", "b1", "b2", "c"])
        self.assertIs(resolution.source("tag"), Source.COMMAND_LINE)
        self.assertEqual(resolution.values["tag"].sources, (Source.COMMAND_LINE, Source.ENVIRONMENT, Source.CONFIG_FILE))

    def testAppendPolicyDefaultOnlyWhenNothingSupplied(self):
        tool = Command("tool", Option("--tag", nargs="*", policy="append", default=["d"]), handler=handler)
        self.assertEqual(run(tool)["tag"], ["d"])
        self.assertEqual(run(tool, [], {}, {"tag": "c"})["tag"], ["c"])

    def testDelimitedStringsFromDefaultAndConfig(self):
        tool = Command("tool", Option("--tag", nargs="+", delimiter=",", default="x,y"), handler=handler)
        self.assertEqual(run(tool)["tag"], ["x", "y"])
        self.assertEqual(run(tool, [], {}, {"tag": "a,b,c"})["tag"], ["a", "b", "c"])
        undelimited = Command("tool", Option("--tag", nargs="+", default="x,y"), handler=handler)
        self.assertEqual(run(undelimited)["tag"], ["x,y"])

    def testTypedElements(self):
        tool = Command("tool", Cardinal("N", kind="int", nargs="+"), handler=handler)
        self.assertEqual(run(tool, ["1", "-2", "3"])["n"], [1, -2, 3])


class TestConfigScopes(TestCase):

    def setUp(self):
        self.root = Command("tool", Option("--region", propagate=True), Option("--deploy"))
        self.deploy = self.root.command(
            "deploy",
            Option("--replicas", kind="uint", default="1"),
            Option("--host", group="server"),
            groups=(Group("server"),),
            handler=handler,
        )

    def testDeepestScopeWins(self):
        config = {"region": "eu", "deploy": {"region": "us"}}
        self.assertEqual(run(self.root, ["deploy"], {}, config)["region"], "us")

    def testFallsBackToDeclaringScope(self):
        self.assertEqual(run(self.root, ["deploy"], {}, {"region": "eu"})["region"], "eu")

    def testScopesAboveDeclaringNodeAreIgnored(self):
        resolution = run(self.root, ["deploy"], {}, {"replicas": 3})
        self.assertEqual(resolution["replicas"], 1)
        self.assertIs(resolution.source("replicas"), Source.DEFAULT)

    def testGroupSectionBeforePlainKey(self):
        config = {"deploy": {"server": {"host": "a"}, "host": "b"}}
        self.assertEqual(run(self.root, ["deploy"], {}, config)["host"], "a")
        self.assertEqual(run(self.root, ["deploy"], {}, {"deploy": {"host": "b"}})["host"], "b")

    def testSubcommandSectionIsNotAValue(self):
        resolution = run(self.root, ["deploy"], {}, {"deploy": {"replicas": 2}})
        self.assertIsNone(resolution["deploy"])
        self.assertEqual(resolution["replicas"], 2)

    def testNonMappingSectionsAreSkipped(self):
        self.assertEqual(run(self.root, ["deploy"], {}, {"deploy": "oops", "region": "eu"})["region"], "eu")


class TestValueFaults(TestCase):

    def setUp(self):
        self.tool = Command(
            "tool",
            Option("--port", kind="int", env="PORT"),
            Cardinal("LEVEL", kind="uint", nargs="?"),
            handler=handler,
        )

    def testCommandLineLiteral(self):
        with self.assertRaises(InvalidValueError) as context:
            run(self.tool, ["--port", "abc"])
        error = context.exception
        self.assertEqual(str(error), "invalid value 'abc' for option '--port' at first position (expected an integer)")
        self.assertEqual(error.literal, "abc")
        self.assertEqual(error.argument, "port")

    def testPositionalLiteral(self):
        with self.assertRaises(OutOfRangeError) as context:
            run(self.tool, ["-5"])
        self.assertIn("positional argument 'LEVEL'", str(context.exception))

    def testEnvironmentLiteral(self):
        with self.assertRaises(InvalidValueError) as context:
            run(self.tool, [], {"PORT": "x"})
        self.assertEqual(
            str(context.exception),
            "invalid value 'x' for option '--port' from environment variable PORT (expected an integer)",
        )

    def testConfigValue(self):
        with self.assertRaises(InvalidValueError) as context:
            run(self.tool, [], {}, {"port": True})
        self.assertIn("from config file", str(context.exception))

    def testInvalidDefault(self):
        tool = Command("tool", Option("--port", kind="int", default="eighty"), handler=handler)
        with self.assertRaises(InvalidValueError) as context:
            run(tool)
        self.assertIn("from its default", str(context.exception))

    def testSourcesMustBeMappings(self):
        root = finalize(self.tool).root
        with self.assertRaises(TypeError):
            resolve(match(root, []), ["PORT=1"], {})
        with self.assertRaises(TypeError):
            resolve(match(root, []), {}, "config.toml")


class TestResolution(TestCase):

    def testAccessors(self):
        tool = Command("tool", Option("--port", kind="int", default="80"), Flag("--debug"), handler=handler)
        resolution = run(tool, ["--debug"])
        self.assertIn("port", resolution)
        self.assertNotIn("missing", resolution)
        self.assertEqual(resolution.get("missing", 1), 1)
        self.assertEqual(resolution.get("port"), 80)
        self.assertEqual(resolution.route, "tool")
        self.assertEqual(resolution.node.name, "tool")
        self.assertEqual(resolution.argv, ("--debug",))
        namespace = resolution.namespace()
        self.assertEqual(namespace, {"port": 80, "debug": True})
        namespace["port"] = 0
        self.assertEqual(resolution["port"], 80)

    def testValuesAreReadOnly(self):
        resolution = run(Command("tool", Flag("--debug"), handler=handler))
        with self.assertRaises(TypeError):
            resolution.values["debug"] = None

    def testEveryArgumentAlongThePath(self):
        root = Command("tool", Option("--config"))
        root.command("run", Option("--fast"), handler=handler)
        resolution = run(root, ["run"])
        self.assertEqual(set(resolution.namespace()), {"config", "fast"})


if __name__ == "__main__":
    unittest.main()
