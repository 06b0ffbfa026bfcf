"""
ir_reachables.passes
====================

Pass-style driver around :class:`~ir_reachables.reachability.ReachableFunctions`.

A host pipeline calls :meth:`ReachablesPass.run` once per module.  Analysis
failures (no entry function, malformed call sites, a call graph of another
program) are logged and turned into a ``None`` result, so the dependent
phase can be skipped without bringing the host down.  The pass never
modifies the program.
"""

from __future__ import annotations

import logging
from typing import ClassVar, Optional

from .callgraph import CallGraph
from .config import ReachabilityConfig
from .errors import MalformedCallSiteError, ReachabilityError
from .program import ProgramModel
from .reachability import ReachabilityResult, ReachableFunctions

_log = logging.getLogger(__name__)


class ReachablesPass:
    """Find the functions reachable from the configured entry (``main``)."""

    name: ClassVar[str] = "reachables"
    description: ClassVar[str] = "Find main reachable functions"

    def __init__(self, config: Optional[ReachabilityConfig] = None) -> None:
        self.config = config or ReachabilityConfig()
        for w in self.config.validate():
            _log.warning("ReachabilityConfig: %s", w)
        self.last_error: Optional[Exception] = None

    def run(
        self,
        program: ProgramModel,
        callgraph: Optional[CallGraph] = None,
    ) -> Optional[ReachabilityResult]:
        self.last_error = None
        try:
            analysis = ReachableFunctions.from_config(program, self.config, callgraph)
            result = analysis.analyze(self.config.entry)
        except MalformedCallSiteError as exc:
            _log.error("%s; %d function(s) found before the failure",
                       exc, len(exc.partial))
            self.last_error = exc
            return None
        except ReachabilityError as exc:
            _log.error("%s", exc)
            self.last_error = exc
            return None

        if _log.isEnabledFor(logging.DEBUG):
            _log.debug("Functions reachable from %s are", result.entry.name)
            for f in sorted(result.reachable):
                _log.debug("+++%s", f.name)
            _log.debug("Non reachable functions")
            for f in result.unreachable:
                _log.debug("---%s", f.name)
            _log.debug("statistics: %s", result.statistics)
        return result
