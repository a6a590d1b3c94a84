"""
portfolio_optimizer/diagnostics.py
----------------------------------
Structured trace of one optimization run.

Each stage of the orchestrator records a :class:`DiagnosticEvent`
(stage name, level, message, optional data payload).  Events are kept on
the :class:`Diagnostics` object that is returned with the results, and are
also handed to a sink as they happen.  The default sink forwards them to
the standard ``logging`` module, so nothing is ever printed directly.

Usage::

    trace = Diagnostics()
    result = optimize_all_portfolios(assets, diagnostics=trace)
    for event in trace.by_stage("fallback"):
        ...

    # Or capture events somewhere else entirely:
    collected = []
    optimize_all_portfolios(assets, diagnostics=Diagnostics(sink=collected.append))
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DiagnosticEvent:
    stage: str
    level: int
    message: str
    data: Dict[str, Any] = field(default_factory=dict)


def logging_sink(event: DiagnosticEvent) -> None:
    """Forward *event* to the module logger at the event's level."""
    logger.log(event.level, "[%s] %s", event.stage, event.message)


class Diagnostics:
    """Ordered, in-memory collection of diagnostic events."""

    def __init__(self, sink: Optional[Callable[[DiagnosticEvent], None]] = logging_sink):
        self._sink = sink
        self.events: List[DiagnosticEvent] = []

    # ------------------------------------------------------------------ #
    #  Recording
    # ------------------------------------------------------------------ #

    def record(self, stage: str, message: str, level: int = logging.DEBUG, **data) -> DiagnosticEvent:
        event = DiagnosticEvent(stage=stage, level=level, message=message, data=data)
        self.events.append(event)
        if self._sink is not None:
            self._sink(event)
        return event

    def info(self, stage: str, message: str, **data) -> DiagnosticEvent:
        return self.record(stage, message, logging.INFO, **data)

    def warning(self, stage: str, message: str, **data) -> DiagnosticEvent:
        return self.record(stage, message, logging.WARNING, **data)

    # ------------------------------------------------------------------ #
    #  Querying
    # ------------------------------------------------------------------ #

    def by_stage(self, stage: str) -> List[DiagnosticEvent]:
        return [e for e in self.events if e.stage == stage]

    def has_warnings(self) -> bool:
        return any(e.level >= logging.WARNING for e in self.events)

    def to_list(self) -> List[dict]:
        return [
            {
                "stage":   e.stage,
                "level":   logging.getLevelName(e.level),
                "message": e.message,
                "data":    dict(e.data),
            }
            for e in self.events
        ]

    def __len__(self) -> int:
        return len(self.events)
