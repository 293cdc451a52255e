import datetime
import re

from rich.pretty import pprint

from argosy import *

__prog__ = "deploy"

UNITS = {"ms": "milliseconds", "s": "seconds", "m": "minutes", "h": "hours", "d": "days"}


def duration(literal):
    if not (match := re.fullmatch(r"(\d+)(ms|s|m|h|d)", literal.strip())):
        raise ValueError("malformed duration")
    return datetime.timedelta(**{UNITS[match[2]]: int(match[1])})


registry.register("duration", duration, expected="a duration such as 30s, 5m or 2h")


@command(version="1.4.0")
def deploy(
        *,
        verbose=Flag("-v", "--verbose", count=True, propagate=True, descr="increase output verbosity"),
        profile=Option("--profile", "-p", env="DEPLOY_PROFILE", default="default", propagate=True, descr="credentials profile"),
):
    """ship builds to remote environments"""


@deploy.command(aliases=("up",))
def push(
        target=Cardinal("TARGET", kind=choice("staging", "production"), descr="environment to deploy to"),
        /,
        timeout=Option("--timeout", "-t", kind="duration", default="30s", env="DEPLOY_TIMEOUT", descr="rollout timeout"),
        tags=Option("--tag", nargs="+", policy="append", env="DEPLOY_TAGS", delimiter=",", descr="release tags"),
        *,
        dry_run=Flag("--dry-run", "-n", conflicts="force", descr="print the plan without applying it"),
        force=Flag("--force", "-f", descr="skip safety checks"),
        context,
):
    """deploy the current build"""
    pprint({
        "route": context.node.route,
        "target": target,
        "timeout": timeout,
        "tags": tags,
        "dry_run": dry_run,
        "force": force,
        "verbose": context.resolution["verbose"],
        "profile": context.resolution["profile"],
    })


config = deploy.command("config", descr="inspect or change deployment settings")


@config.command(name="set")
def set_(
        key=Cardinal("KEY"),
        value=Cardinal("VALUE"),
        /,
):
    """store a setting"""
    pprint({"key": key, "value": value})


if __name__ == '__main__':
    invoke(deploy, shell=True, fancy=True, config={"push": {"tags": ["nightly"]}})
