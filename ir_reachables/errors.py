"""
ir_reachables.errors
====================

Exception hierarchy shared by the model, the analysis and the front ends.

::

    ReachabilityError
    ├── MissingEntryError        entry function cannot be resolved
    ├── MalformedCallSiteError   inconsistent call-site operands/types
    ├── ConfigError              invalid configuration value
    └── ModelError               inconsistent program model
        └── ModelParseError      malformed S-expression model text

None of these are retried by the analysis: the computation is deterministic,
so running it again on the same input gives the same failure.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, FrozenSet, Optional

if TYPE_CHECKING:  # pragma: no cover
    from .program import CallSite, Function


class ReachabilityError(Exception):
    """Base class for every error raised by :mod:`ir_reachables`."""


class MissingEntryError(ReachabilityError):
    """The requested entry function does not exist (or has no body)."""

    def __init__(self, entry_name: str, reason: str = "not found") -> None:
        self.entry_name = entry_name
        self.reason = reason
        super().__init__(f"No function {entry_name} ({reason})")


class MalformedCallSiteError(ReachabilityError):
    """A call site violates the model's operand/type invariants.

    Attributes
    ----------
    call_site : CallSite
        The offending call site.
    reason : str
        What is inconsistent about it.
    partial : frozenset[Function]
        Functions found reachable before the violation was detected.
    """

    def __init__(
        self,
        call_site: "CallSite",
        reason: str,
        partial: FrozenSet["Function"] = frozenset(),
    ) -> None:
        self.call_site = call_site
        self.reason = reason
        self.partial = partial
        super().__init__(f"Malformed call site {call_site!r}: {reason}")


class ConfigError(ReachabilityError):
    """An option of :class:`~ir_reachables.config.ReachabilityConfig` is invalid."""


class ModelError(ReachabilityError):
    """The program model is internally inconsistent."""


class ModelParseError(ModelError):
    """A textual program model could not be read.

    ``filename`` and ``form`` point at the offending input where known.
    """

    def __init__(
        self,
        message: str,
        filename: str = "<string>",
        form: Optional[str] = None,
    ) -> None:
        self.message = message
        self.filename = filename
        self.form = form
        super().__init__(message)

    def __str__(self) -> str:
        if self.form:
            return f"{self.filename}: {self.message} (in {self.form})"
        return f"{self.filename}: {self.message}"
