"""Error hierarchy and process exit codes for the generator."""

from __future__ import annotations

from enum import IntEnum

from gogdiff_core.runtime import InvariantViolation


class ExitCode(IntEnum):
    SUCCESS = 0
    FAILURE = 1
    BAD_INVOCATION = 2
    SOURCE_POPULATION_FAILED = 3
    TARGET_POPULATION_FAILED = 4
    NO_COMMON_CONTENT = 5
    ALL_COMMON = 6


class GogdiffError(Exception):
    """Base class for generator failures."""

    exit_code: ExitCode = ExitCode.FAILURE


class PreconditionError(GogdiffError):
    """Bad input paths, unreadable files or missing stage state."""

    exit_code = ExitCode.BAD_INVOCATION


class PolicyAbort(GogdiffError):
    """A deliberate refusal to emit a useless artifact."""


class NoCommonContent(PolicyAbort):
    exit_code = ExitCode.NO_COMMON_CONTENT

    def __init__(self) -> None:
        super().__init__(
            "the trees share no identical or patchable files; not producing a delta"
        )


class AllCommon(PolicyAbort):
    exit_code = ExitCode.ALL_COMMON

    def __init__(self) -> None:
        super().__init__("the trees are identical; a delta would do nothing")


class CollaboratorFailure(GogdiffError):
    """Wraps a failing external tool with context."""

    def __init__(self, collaborator: str, operation: str, cause: Exception | str) -> None:
        self.collaborator = collaborator
        self.operation = operation
        super().__init__(f"{collaborator} {operation} failed: {cause}")
        if isinstance(cause, BaseException):
            self.__cause__ = cause


class PopulationFailure(CollaboratorFailure):
    """An installer could not materialize the source or target tree."""

    def __init__(self, side: str, cause: Exception | str) -> None:
        self.side = side
        super().__init__(f"{side} installer", "population", cause)

    @property
    def exit_code(self) -> ExitCode:  # type: ignore[override]
        if self.side == "source":
            return ExitCode.SOURCE_POPULATION_FAILED
        return ExitCode.TARGET_POPULATION_FAILED


__all__ = [
    "AllCommon",
    "CollaboratorFailure",
    "ExitCode",
    "GogdiffError",
    "InvariantViolation",
    "NoCommonContent",
    "PolicyAbort",
    "PopulationFailure",
    "PreconditionError",
]
