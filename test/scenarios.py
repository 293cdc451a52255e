"""
End-to-end scenarios through the public API.

Scope
- Reference scenarios: defaults vs environment vs command line, missing
  required arguments, mutual conflicts, nested routing with positionals and
  suggestions for misspelled flags.
- Properties: empty argument vectors, command-line precedence and idempotent
  parsing.

Conventions
- Test method names follow CamelCase per project convention.
- Commands are declared with the decorator API, the way applications do.
"""

from __future__ import annotations

import unittest
from unittest import TestCase

from argosy import (
    command,
    Cardinal,
    Option,
    Flag,
    finalize,
    integer,
    Source,
    MissingRequiredArgumentError,
    ArgumentConflictError,
    UnknownArgumentError,
    InvalidSubcommandError,
)


class TestReferenceScenarios(TestCase):

    def testDefaultEnvironmentCommandLine(self):
        @command
        def serve(*, port=Option("--port", kind="uint", default="3000", env="PORT")):
            pass

        definition = finalize(serve)
        self.assertEqual(definition.parse([], env={})["port"], 3000)
        self.assertEqual(definition.parse([], env={"PORT": "9000"})["port"], 9000)
        self.assertEqual(definition.parse(["--port", "8080"], env={"PORT": "9000"})["port"], 8080)

    def testMissingRequired(self):
        @command
        def greet(*, name=Option("--name", required=True)):
            pass

        with self.assertRaises(MissingRequiredArgumentError) as context:
            finalize(greet).parse([])
        self.assertEqual(context.exception.argument, "name")
        self.assertIn("'--name'", str(context.exception))

    def testMutualConflict(self):
        @command
        def tool(*, a=Flag("--a", conflicts="b"), b=Flag("--b", conflicts="a")):
            pass

        with self.assertRaises(ArgumentConflictError) as context:
            finalize(tool).parse(["--a", "--b"])
        self.assertEqual(context.exception.arguments, ("a", "b"))
        self.assertEqual(str(context.exception), "flag '--a' cannot be used with flag '--b'")

    def testNestedRouting(self):
        @command
        def tool():
            pass

        config = tool.command("config")

        @config.command(name="set")
        def set_(key=Cardinal("KEY"), value=Cardinal("VALUE"), /):
            return key, value

        definition = finalize(tool)
        resolution = definition.parse(["config", "set", "key1", "value1"])
        self.assertEqual([node.name for node in resolution.path], ["tool", "config", "set"])
        self.assertEqual(resolution.route, "tool config set")
        self.assertEqual((resolution["key"], resolution["value"]), ("key1", "value1"))
        self.assertEqual(definition.run(["config", "set", "key1", "value1"]), ("key1", "value1"))

    def testSuggestion(self):
        @command
        def serve(*, port=Option("--port")):
            pass

        with self.assertRaises(UnknownArgumentError) as context:
            finalize(serve).parse(["--prot", "8080"])
        self.assertEqual(context.exception.suggestion, "--port")
        self.assertIn("did you mean '--port'?", context.exception.hint)


class TestProperties(TestCase):

    def setUp(self):
        @command
        def tool(
                files=Cardinal("FILES", nargs="*"),
                /,
                level=Option("--level", kind=integer(0, 9), default="6", env="LEVEL"),
                *,
                output=Option("--output", "-o"),
                force=Flag("--force", "-f"),
                verbose=Flag("-v", count=True),
                exclude=Option("--exclude", nargs="+", policy="append", env="EXCLUDE", delimiter=","),
        ):
            pass

        self.definition = finalize(tool)

    def testEmptyArgumentVector(self):
        resolution = self.definition.parse([])
        self.assertEqual(resolution.namespace(), {
            "files": [],
            "level": 6,
            "output": None,
            "force": False,
            "verbose": 0,
            "exclude": [],
        })
        self.assertEqual(resolution.source("level"), Source.DEFAULT)

    def testCommandLinePrecedence(self):
        for given, env, config in (("1", "2", 3), ("9", "0", 0), ("0", "9", None)):
            with self.subTest(given=given, env=env, config=config):
                resolution = self.definition.parse(["--level", given], env={"LEVEL": env}, config={"level": config})
                self.assertEqual(resolution["level"], int(given))
                self.assertIs(resolution.source("level"), Source.COMMAND_LINE)

    def testIdempotence(self):
        argv = ["a.txt", "-vv", "--exclude", "x", "-o", "out", "b.txt"]
        env = {"EXCLUDE": "y,z"}
        config = {"force": True}
        first = self.definition.parse(argv, env=env, config=config)
        second = self.definition.parse(argv, env=env, config=config)
        self.assertEqual(dict(first.values), dict(second.values))
        self.assertEqual(first.path, second.path)
        self.assertEqual(first["exclude"], ["x", "y", "z"])
        self.assertEqual(first["files"], ["a.txt", "b.txt"])

    def testSubcommandSuggestion(self):
        @command
        def tool():
            pass

        tool.command("status", handler=lambda: None)
        tool.command("push", handler=lambda: None)
        with self.assertRaises(InvalidSubcommandError) as context:
            finalize(tool).parse(["statsu"])
        self.assertEqual(context.exception.suggestion, "status")


if __name__ == "__main__":
    unittest.main()
