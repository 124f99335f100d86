"""Errors raised by docker-tag-equilibrium.

Everything the command line reports to the user derives from
EquilibriumError; run.main maps it to exit code 1.
"""


class EquilibriumError(Exception):
    pass


class InputValidationError(EquilibriumError):
    """Malformed JSON, a missing input file or a document failing validation."""


class RepositoryMismatchError(EquilibriumError):
    """Expected and actual tags were fetched for different repositories."""


class CanonicalVersionLookupError(EquilibriumError):
    """A mutable tag points to a digest that no semantic tag carries."""


class RegistryError(EquilibriumError):
    """The registry could not be queried or answered with garbage."""
