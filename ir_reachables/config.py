"""
ir_reachables.config
====================

Options of a reachability run, shared by the pass driver and the CLI.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, List, Mapping, Optional, Tuple, Union

from .errors import ConfigError

_log = logging.getLogger(__name__)

REPORT_FORMATS = ("text", "json", "dot")


@dataclass(frozen=True)
class ReachabilityConfig:
    """Tuning knobs for a reachability run."""
    entry: str = "main"
    use_callgraph: bool = True
    resolve_callbacks: bool = True
    report_format: str = "text"
    color: Optional[bool] = None

    def __post_init__(self) -> None:
        if not isinstance(self.entry, str) or not self.entry:
            raise ConfigError(f"entry must be a non-empty string, got {self.entry!r}")
        for name in ("use_callgraph", "resolve_callbacks"):
            if not isinstance(getattr(self, name), bool):
                raise ConfigError(f"{name} must be a boolean")
        if self.color is not None and not isinstance(self.color, bool):
            raise ConfigError("color must be a boolean or null")
        if self.report_format not in REPORT_FORMATS:
            raise ConfigError(
                f"report_format must be one of {', '.join(REPORT_FORMATS)}, "
                f"got {self.report_format!r}"
            )

    def validate(self) -> List[str]:
        """Return a list of validation warnings (empty if valid)."""
        warnings: List[str] = []
        if not self.resolve_callbacks:
            warnings.append("resolve_callbacks is off; the result is not sound")
        return warnings

    def merged(self, **overrides: Any) -> "ReachabilityConfig":
        """Copy with every non-``None`` override applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    @classmethod
    def from_mapping(
        cls, data: Mapping[str, Any]
    ) -> Tuple["ReachabilityConfig", List[str]]:
        """Build a config from a plain mapping.

        Returns the config and warnings about keys that were ignored.
        """
        known = {f.name for f in fields(cls)}
        warnings = [f"unknown option {k!r} ignored"
                    for k in sorted(data) if k not in known]
        config = cls(**{k: v for k, v in data.items() if k in known})
        return config, warnings

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "ReachabilityConfig":
        """Read a JSON config file; warnings are logged."""
        p = Path(path)
        try:
            data = json.loads(p.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigError(f"cannot read config {p}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError(f"config {p} must contain a JSON object")
        config, warnings = cls.from_mapping(data)
        for w in warnings:
            _log.warning("ReachabilityConfig: %s", w)
        return config
