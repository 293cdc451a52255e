"""
Argosy constraint validator.

Runs once per parse, after precedence merging, over the resolved command path.
Passes (each walks the path root → leaf, declaration order within a node):

1. conflicts     – two present arguments where either lists the other (or a
                   group containing the other) in its conflict set.
2. exclusivity   – more than one present member of a non-multiple group.
3. dependencies  – a present argument whose required co-arguments are absent.
4. required      – a required argument with no value from any source.
5. groups        – a required group with no present member.

Presence means "supplied by the command line, the environment or the config
mapping" (a flag resolved to False/0 is not present); defaults only satisfy
the required pass. The first violation is raised.
"""
import logging

from .arguments import Flag
from .faults import *
from .utils import *

logger = logging.getLogger(__name__)


def _kind(argument):
    if argument.positional:
        return "positional argument"
    return "flag" if isinstance(argument, Flag) else "option"


def _present(argument, resolved):
    if not resolved.supplied:
        return False
    if isinstance(argument, Flag):
        return bool(resolved.value)
    return True


class Validator:
    """
    per-call validator; see validate().
    """

    def __init__(self, resolution):
        self.resolution = resolution
        self.path = resolution.path
        self.present = {
            argument.name: _present(argument, resolution.values[argument.name])
            for _, argument in self.declared()
        }

    def declared(self):
        for node in self.path:
            for argument in node.arguments:
                if not argument.display:
                    yield node, argument

    def members(self, node, reference):
        """
        arguments a conflicts/requires entry stands for (a name or a group id).
        """
        return node.references[reference]

    def conflicts(self):
        for node, argument in self.declared():
            if not self.present[argument.name]:
                continue
            for reference in argument.conflicts:
                for other in self.members(node, reference):
                    if other is argument or not self.present.get(other.name, False):
                        continue
                    raise ArgumentConflictError(
                        "%s %r cannot be used with %s %r" % (_kind(argument), argument.label, _kind(other), other.label),
                        arguments=(argument.name, other.name),
                        hint="remove either %r or %r" % (argument.label, other.label),
                    )

    def exclusivity(self):
        for node in self.path:
            for group in node.groups.values():
                if group.multiple:
                    continue
                found = [member for member in group.members if self.present.get(member, False)]
                if len(found) > 1:
                    labels = [node.named[member].label for member in found]
                    raise GroupConflictError(
                        "only one of %s can be used (group %r)" % (", ".join(map(repr, labels)), group.id),
                        group=group.id,
                        arguments=tuple(found),
                        hint="keep a single member of group %r" % group.id,
                    )

    def dependencies(self):
        for node, argument in self.declared():
            if not self.present[argument.name]:
                continue
            for reference in argument.requires:
                members = self.members(node, reference)
                if any(self.present.get(other.name, False) for other in members if other is not argument):
                    continue
                if len(members) == 1:
                    missing = "%s %r" % (_kind(members[0]), members[0].label)
                else:
                    missing = "a member of group %r" % reference
                raise MissingDependencyError(
                    "%s %r requires %s" % (_kind(argument), argument.label, missing),
                    argument=argument.name,
                    dependency=reference,
                    hint="add %s or remove %r" % (missing, argument.label),
                )

    def required(self):
        for node, argument in self.declared():
            if argument.required and self.resolution.values[argument.name].source is None:
                sources = ["the command line"]
                if argument.env:
                    sources.append("environment variable %s" % argument.env)
                raise MissingRequiredArgumentError(
                    "missing required %s %r" % (_kind(argument), argument.label),
                    argument=argument.name,
                    hint="provide it through %s" % " or ".join(sources),
                )

    def groups(self):
        for node in self.path:
            for group in node.groups.values():
                if not group.required:
                    continue
                if not any(self.present.get(member, False) for member in group.members):
                    labels = [node.named[member].label for member in group.members]
                    raise MissingGroupError(
                        "one of %s is required (group %r)" % (", ".join(map(repr, labels)), group.id),
                        group=group.id,
                        arguments=tuple(group.members),
                        hint="add one of: %s" % ", ".join(labels),
                    )

    def run(self):
        self.conflicts()
        self.exclusivity()
        self.dependencies()
        self.required()
        self.groups()
        logger.debug("constraints satisfied for %r", self.resolution.route)


def validate(resolution, /):
    """
    check every constraint over the resolved path; raises the first violation.
    """
    Validator(resolution).run()


__all__ = (
    "Validator",
    "validate",
)
