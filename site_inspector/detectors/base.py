"""
Detector contract and cooperative cancellation.

Every detector is a stateless unit ``{section, run(context)}``. The CPU-bound
``analyze`` step runs in a worker thread over the shared read-only document;
the orchestrator cancels it by setting the context's event, which the
detector observes at ``checkpoint()`` calls.
"""

from __future__ import annotations

import asyncio
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

from site_inspector.config.settings import Settings, get_settings
from site_inspector.models.schemas import (
    AnalysisOptions,
    DetectorOutcome,
    FrozenModel,
    RetrievalResult,
    SectionName,
    SectionStatus,
)
from site_inspector.services.markup_parser import ParsedDocument
from site_inspector.utils.logger import get_logger
from site_inspector.utils.retry import AppError

logger = get_logger(__name__)


# =============================================================================
# Exceptions
# =============================================================================

class DetectorFailure(AppError):
    """A detector raised; local to its section."""

    def __init__(self, section: str, message: str):
        super().__init__(f"{section}: {message}")
        self.section = section
        self.message = message


class DetectorTimeout(AppError):
    """The pipeline deadline was reached before the detector settled."""

    def __init__(self, section: str, timeout_seconds: float):
        super().__init__(f"Detector '{section}' timed out after {timeout_seconds:.2f} seconds")
        self.section = section
        self.timeout_seconds = timeout_seconds


class DetectorCancelled(AppError):
    """Raised at a checkpoint once cancellation has been signalled."""
    pass


# =============================================================================
# Context
# =============================================================================

@dataclass
class DetectorContext:
    """
    Per-detector view of one analysis run.

    The document and retrieval result are shared read-only across detectors.
    The cancellation event and the committed partial payload belong to one
    detector only.
    """
    document: ParsedDocument
    retrieval: RetrievalResult
    settings: Settings = field(default_factory=get_settings)
    options: AnalysisOptions = field(default_factory=AnalysisOptions)
    checkpoint_every: int = 100
    cancel_event: threading.Event = field(default_factory=threading.Event)
    _partial: Optional[Any] = field(default=None, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def cancel(self) -> None:
        self.cancel_event.set()

    def checkpoint(self) -> None:
        """Raise ``DetectorCancelled`` if the run has been cancelled."""
        if self.cancel_event.is_set():
            raise DetectorCancelled("cancelled at checkpoint")

    def commit(self, payload: Any) -> None:
        """Publish a complete partial payload, replacing any earlier one."""
        with self._lock:
            self._partial = payload

    @property
    def partial(self) -> Optional[Any]:
        with self._lock:
            return self._partial

    @property
    def max_components(self) -> int:
        return self.options.max_components or self.settings.max_components


# =============================================================================
# Detector Base
# =============================================================================

class Detector(ABC):
    """
    Base class for report-section detectors.

    Subclasses implement ``analyze`` as a synchronous, pure function of the
    context. ``run`` executes it off the event loop and folds every outcome,
    including exceptions, into a ``DetectorOutcome``.
    """

    section: SectionName

    @abstractmethod
    def analyze(self, context: DetectorContext) -> FrozenModel:
        """Produce this detector's section payload."""
        ...

    def status_for(self, payload: FrozenModel) -> SectionStatus:
        """Status of a payload that was produced without raising."""
        return SectionStatus.COMPLETE

    @property
    def name(self) -> str:
        return self.section.value

    async def run(self, context: DetectorContext) -> DetectorOutcome:
        """Run the detector; never raises except for task cancellation."""
        start_time = time.monotonic()
        logger.debug("Detector started", section=self.name)

        try:
            payload = await asyncio.to_thread(self.analyze, context)
        except DetectorCancelled:
            logger.info("Detector cancelled", section=self.name)
            return DetectorOutcome(
                section=self.section,
                status=SectionStatus.TIMED_OUT,
                data=context.partial,
                error=str(DetectorTimeout(self.name, time.monotonic() - start_time)),
                duration_ms=self._elapsed_ms(start_time),
            )
        except Exception as e:
            failure = DetectorFailure(self.name, f"{type(e).__name__}: {e}")
            logger.error("Detector failed", section=self.name, error=str(failure))
            return DetectorOutcome(
                section=self.section,
                status=SectionStatus.FAILED,
                data=context.partial,
                error=str(failure),
                duration_ms=self._elapsed_ms(start_time),
            )

        duration_ms = self._elapsed_ms(start_time)
        status = self.status_for(payload)
        logger.debug("Detector finished", section=self.name, status=status.value, duration_ms=duration_ms)

        return DetectorOutcome(
            section=self.section,
            status=status,
            data=payload,
            duration_ms=duration_ms,
        )

    @staticmethod
    def _elapsed_ms(start_time: float) -> int:
        return int((time.monotonic() - start_time) * 1000)
