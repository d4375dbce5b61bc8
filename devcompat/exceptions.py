"""Exceptions raised by the compatibility engine and its collaborators."""


class DevCompatError(Exception):
    """Base class for devcompat errors."""


class CompatibilityInputError(DevCompatError, ValueError):
    """Input the engine cannot interpret at all (e.g. specifications that are not a mapping)."""


class SchemaConflictError(DevCompatError, ValueError):
    """A different schema is already registered under the same category and version."""


class RuleProcessorError(DevCompatError):
    """A rule processor could not evaluate a rule."""
