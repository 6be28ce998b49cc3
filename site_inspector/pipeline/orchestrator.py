"""
Pipeline orchestrator using LangGraph.

Drives one analysis through Retrieving -> Parsing -> Detecting -> Aggregating
and ends in Done or Failed. Detectors run concurrently under one global
deadline; detectors still pending at the deadline are cancelled
cooperatively and reported as timed out.

Features:
    - Stateful execution with LangGraph StateGraph
    - Conditional edges from retrieval and parsing to the failure node
    - Global time budget shared by retrieval and detection
    - Fire-and-forget stage progress notifications
    - Structured logging bound to the run id
    - Step-by-step execution for testing/debugging
"""

import asyncio
import inspect
import time
from datetime import datetime, timezone
from functools import wraps
from typing import Any, Awaitable, Callable, Optional, Sequence, TypedDict, Union
from uuid import uuid4

from langgraph.graph import END, StateGraph

from site_inspector.config.settings import Settings, get_settings
from site_inspector.detectors import DEFAULT_DETECTORS
from site_inspector.detectors.base import Detector, DetectorContext, DetectorTimeout
from site_inspector.models.schemas import (
    AnalysisOptions,
    AnalysisReport,
    DetectorOutcome,
    PipelineStage,
    RetrievalResult,
    SectionName,
    SectionStatus,
    normalize_url,
)
from site_inspector.pipeline.aggregator import ReportAggregator
from site_inspector.services.markup_parser import MarkupParser, ParsedDocument
from site_inspector.services.retriever import RetrievalError, Retriever
from site_inspector.utils.logger import LogContext, configure_from_settings, get_logger
from site_inspector.utils.retry import AppError, InvalidUrlError

logger = get_logger(__name__)

ProgressCallback = Callable[[PipelineStage, str], Union[None, Awaitable[None]]]


# =============================================================================
# Pipeline State Definition (TypedDict for LangGraph)
# =============================================================================

class AnalysisStateDict(TypedDict, total=False):
    """
    State carried between graph nodes for one analysis run.

    All fields are optional to support partial state updates.
    """
    # Identifiers
    run_id: str
    url: str
    options: AnalysisOptions

    # Step outputs
    retrieval: Optional[RetrievalResult]
    document: Optional[ParsedDocument]
    outcomes: list[DetectorOutcome]
    report: Optional[AnalysisReport]

    # Status tracking
    stage: str
    error: Optional[Exception]

    # Timing
    started_at: datetime
    started_monotonic: float
    deadline: float
    step_timings: dict

    # Progress
    progress_callback: Optional[ProgressCallback]


# =============================================================================
# Error Classes
# =============================================================================

class PipelineError(AppError):
    """Base exception for non-retrieval pipeline errors."""

    def __init__(self, message: str, stage: Optional[PipelineStage] = None, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.stage = stage
        self.details = details or {}


class ParseError(PipelineError):
    """Parsing raised despite tolerant parsing."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message=message, stage=PipelineStage.PARSING, details=details)


# =============================================================================
# Decorators for Node Execution
# =============================================================================

def track_timing(func: Callable):
    """Decorator to track node execution timing."""
    @wraps(func)
    async def wrapper(self, state: AnalysisStateDict) -> dict[str, Any]:
        start_time = time.monotonic()
        node_name = func.__name__.strip("_").replace("_node", "")

        logger.debug(f"Starting node: {node_name}")

        try:
            result = await func(self, state)
        except Exception as e:
            logger.error(
                f"Node failed: {node_name}",
                duration_ms=int((time.monotonic() - start_time) * 1000),
                error=str(e),
            )
            raise

        duration_ms = int((time.monotonic() - start_time) * 1000)
        step_timings = dict(state.get("step_timings") or {})
        step_timings[node_name] = duration_ms
        result["step_timings"] = step_timings

        logger.debug(f"Completed node: {node_name}", duration_ms=duration_ms)
        return result

    return wrapper


# =============================================================================
# Main Pipeline Class
# =============================================================================

class SiteAnalyzer:
    """
    LangGraph-based website analysis pipeline.

    One instance can serve many analyses, including concurrent ones; no
    state is shared between ``analyze`` calls.

    Example:
        >>> async with SiteAnalyzer() as analyzer:
        ...     report = await analyzer.analyze("example.com")
        ...     print(report.overall_status, report.strategy_used)
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        retriever: Optional[Retriever] = None,
        parser: Optional[MarkupParser] = None,
        detectors: Optional[Sequence[Detector]] = None,
        aggregator: Optional[ReportAggregator] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ):
        """
        Initialize the analyzer.

        Args:
            settings: Application settings (uses defaults if not provided)
            retriever: Pre-configured Retriever (created if not provided)
            parser: Markup parser (default html.parser backed)
            detectors: Detectors to run, in registry order
            aggregator: Report aggregator
            progress_callback: Default callback(stage, message) for stage changes
        """
        self.settings = settings or get_settings()
        self._owns_retriever = retriever is None
        self.retriever = retriever or Retriever(self.settings)
        self.parser = parser or MarkupParser()
        self.detectors: tuple[Detector, ...] = tuple(detectors if detectors is not None else DEFAULT_DETECTORS)
        self.aggregator = aggregator or ReportAggregator()
        self.progress_callback = progress_callback

        self._callback_tasks: set[asyncio.Task] = set()
        self._graph = self._build_graph()

    async def __aenter__(self):
        """Async context manager entry."""
        await self.retriever.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    async def close(self) -> None:
        """Cancel pending progress listeners and release an owned retriever."""
        pending = list(self._callback_tasks)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._callback_tasks.clear()

        if self._owns_retriever:
            await self.retriever.close()

    def _build_graph(self):
        """
        Build the LangGraph state machine with all nodes and edges.

        Graph structure:
            retrieve --> parse --> detect --> aggregate --> END
                |          |
                +----------+--> fail --> END
        """
        graph = StateGraph(AnalysisStateDict)

        graph.add_node("retrieve", self._retrieve_node)
        graph.add_node("parse", self._parse_node)
        graph.add_node("detect", self._detect_node)
        graph.add_node("aggregate", self._aggregate_node)
        graph.add_node("fail", self._fail_node)

        graph.set_entry_point("retrieve")

        graph.add_conditional_edges(
            "retrieve",
            self._route_on_error("parse"),
            {"parse": "parse", "fail": "fail"},
        )
        graph.add_conditional_edges(
            "parse",
            self._route_on_error("detect"),
            {"detect": "detect", "fail": "fail"},
        )
        graph.add_edge("detect", "aggregate")
        graph.add_edge("aggregate", END)
        graph.add_edge("fail", END)

        return graph.compile()

    @staticmethod
    def _route_on_error(next_node: str) -> Callable[[AnalysisStateDict], str]:
        def route(state: AnalysisStateDict) -> str:
            return "fail" if state.get("error") is not None else next_node
        return route

    # =========================================================================
    # Progress
    # =========================================================================

    def _emit(self, state: AnalysisStateDict, stage: PipelineStage, message: str) -> None:
        """Notify the progress listener. Never blocks or raises."""
        logger.info("Stage changed", stage=stage.value, detail=message)
        callback = state.get("progress_callback")
        if callback is None:
            return
        try:
            result = callback(stage, message)
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._callback_tasks.add(task)
                task.add_done_callback(self._on_callback_done)
        except Exception as e:
            logger.warning("Progress callback failed", stage=stage.value, error=str(e))

    def _on_callback_done(self, task: asyncio.Task) -> None:
        self._callback_tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.warning("Progress callback failed", error=str(task.exception()))

    @staticmethod
    def _remaining(state: AnalysisStateDict) -> float:
        return max(0.0, state["deadline"] - time.monotonic())

    # =========================================================================
    # Graph Nodes
    # =========================================================================

    @track_timing
    async def _retrieve_node(self, state: AnalysisStateDict) -> dict[str, Any]:
        """Obtain raw content through the retriever's fallback chain."""
        self._emit(state, PipelineStage.RETRIEVING, f"Retrieving {state['url']}")

        try:
            retrieval = await self.retriever.retrieve(state["url"], budget_seconds=self._remaining(state))
        except RetrievalError as e:
            return {"error": e, "stage": PipelineStage.FAILED.value}

        return {"retrieval": retrieval, "stage": PipelineStage.RETRIEVING.value}

    @track_timing
    async def _parse_node(self, state: AnalysisStateDict) -> dict[str, Any]:
        """Parse the retrieved body and optionally attach linked stylesheets."""
        self._emit(state, PipelineStage.PARSING, "Parsing markup")
        retrieval = state["retrieval"]

        try:
            document = await asyncio.to_thread(self.parser.parse, retrieval.body, retrieval.final_url)
        except Exception as e:
            return {
                "error": ParseError(f"Parsing failed: {e}", details={"url": state["url"]}),
                "stage": PipelineStage.FAILED.value,
            }

        if state["options"].fetch_linked_stylesheets:
            document = await self._attach_stylesheets(state, document)

        return {"document": document, "stage": PipelineStage.PARSING.value}

    async def _attach_stylesheets(self, state: AnalysisStateDict, document: ParsedDocument) -> ParsedDocument:
        urls = document.stylesheet_urls[: self.settings.max_linked_stylesheets]
        remaining = self._remaining(state)
        if not urls or remaining <= 0:
            return document

        timeout = min(self.settings.request_timeout_seconds, remaining / 2)
        texts = await asyncio.gather(*(self.retriever.fetch_stylesheet(url, timeout=timeout) for url in urls))
        fetched = [t for t in texts if t]
        logger.debug("Linked stylesheets fetched", requested=len(urls), fetched=len(fetched))
        return document.with_stylesheets(fetched)

    @track_timing
    async def _detect_node(self, state: AnalysisStateDict) -> dict[str, Any]:
        """Run selected detectors concurrently until settled or the deadline."""
        options = state["options"]
        selected = [d for d in self.detectors if options.selects(d.section)]
        self._emit(state, PipelineStage.DETECTING, f"Running {len(selected)} detectors")

        contexts = {
            d.name: DetectorContext(
                document=state["document"],
                retrieval=state["retrieval"],
                settings=self.settings,
                options=options,
            )
            for d in selected
        }
        tasks = {
            asyncio.create_task(d.run(contexts[d.name]), name=f"detector:{d.name}"): d
            for d in selected
        }

        budget = self._remaining(state)
        done, pending = set(), set()
        if tasks:
            done, pending = await asyncio.wait(tasks, timeout=budget)

        for task in pending:
            contexts[tasks[task].name].cancel()
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            logger.warning(
                "Pipeline deadline reached",
                timed_out=sorted(tasks[t].name for t in pending),
            )

        outcomes = []
        for task, detector in tasks.items():
            context = contexts[detector.name]
            if task in pending:
                outcomes.append(DetectorOutcome(
                    section=detector.section,
                    status=SectionStatus.TIMED_OUT,
                    data=context.partial,
                    error=str(DetectorTimeout(detector.name, budget)),
                ))
            elif task.exception() is not None:
                outcomes.append(DetectorOutcome(
                    section=detector.section,
                    status=SectionStatus.FAILED,
                    data=context.partial,
                    error=f"{type(task.exception()).__name__}: {task.exception()}",
                ))
            else:
                outcomes.append(task.result())

        return {"outcomes": outcomes, "stage": PipelineStage.DETECTING.value}

    @track_timing
    async def _aggregate_node(self, state: AnalysisStateDict) -> dict[str, Any]:
        """Fold outcomes into the immutable report."""
        self._emit(state, PipelineStage.AGGREGATING, "Aggregating report")
        options = state["options"]

        report = self.aggregator.aggregate(
            run_id=state["run_id"],
            url=state["url"],
            retrieval=state["retrieval"],
            outcomes=state.get("outcomes", []),
            requested=[s for s in SectionName if options.selects(s)],
            started_at=state["started_at"],
            started_monotonic=state["started_monotonic"],
        )
        return {"report": report, "stage": PipelineStage.DONE.value}

    @track_timing
    async def _fail_node(self, state: AnalysisStateDict) -> dict[str, Any]:
        """Terminal failure; no report is produced."""
        error = state.get("error")
        self._emit(state, PipelineStage.FAILED, str(error))
        logger.error("Analysis failed", error=str(error), error_type=type(error).__name__)
        return {"stage": PipelineStage.FAILED.value}

    # =========================================================================
    # Public API
    # =========================================================================

    def _initial_state(
        self,
        url: str,
        options: Optional[Union[AnalysisOptions, dict]] = None,
        progress_callback: Optional[ProgressCallback] = None,
        run_id: Optional[str] = None,
    ) -> AnalysisStateDict:
        try:
            normalized = normalize_url(url)
        except ValueError as e:
            raise InvalidUrlError(str(e)) from e

        if options is None:
            options = AnalysisOptions()
        elif isinstance(options, dict):
            options = AnalysisOptions.model_validate(options)

        budget = (
            options.timeout_ms / 1000
            if options.timeout_ms is not None
            else self.settings.pipeline_timeout_seconds
        )
        started_monotonic = time.monotonic()

        return {
            "run_id": run_id or str(uuid4()),
            "url": normalized,
            "options": options,
            "retrieval": None,
            "document": None,
            "outcomes": [],
            "report": None,
            "stage": PipelineStage.IDLE.value,
            "error": None,
            "started_at": datetime.now(timezone.utc),
            "started_monotonic": started_monotonic,
            "deadline": started_monotonic + budget,
            "step_timings": {},
            "progress_callback": progress_callback or self.progress_callback,
        }

    async def analyze(
        self,
        url: str,
        options: Optional[Union[AnalysisOptions, dict]] = None,
        progress_callback: Optional[ProgressCallback] = None,
        run_id: Optional[str] = None,
    ) -> AnalysisReport:
        """
        Analyze a website.

        Args:
            url: Target URL; normalized and validated before any network work
            options: Per-call options (budget, detector subset, component cap)
            progress_callback: Overrides the default stage listener for this call
            run_id: Optional run ID for log correlation

        Returns:
            AnalysisReport; always produced once retrieval succeeds

        Raises:
            InvalidUrlError: If the URL fails validation
            RetrievalError: If every retrieval strategy failed
            PipelineError: For any other unrecoverable failure
        """
        initial_state = self._initial_state(url, options, progress_callback, run_id)

        with LogContext(run_id=initial_state["run_id"], url=initial_state["url"]):
            logger.info("Starting analysis")

            try:
                final_state = await self._graph.ainvoke(initial_state)
            except AppError:
                raise
            except Exception as e:
                logger.error("Analysis failed with unexpected error", error=str(e))
                raise PipelineError(
                    message=f"Unexpected pipeline error: {e}",
                    details={"run_id": initial_state["run_id"], "url": initial_state["url"]},
                ) from e

            error = final_state.get("error")
            if error is not None:
                raise error

            report = final_state.get("report")
            if report is None:
                raise PipelineError(
                    message="Pipeline completed but no report was generated",
                    stage=PipelineStage.AGGREGATING,
                    details={"run_id": initial_state["run_id"]},
                )

            self._emit(final_state, PipelineStage.DONE, f"Analysis {report.overall_status}")
            logger.info(
                "Analysis completed",
                overall_status=report.overall_status,
                strategy=report.strategy_used,
                duration_ms=report.duration_ms,
                step_timings=final_state.get("step_timings", {}),
            )
            return report

    async def run_step(self, step_name: str, state: AnalysisStateDict) -> AnalysisStateDict:
        """
        Execute a single pipeline step (for testing/debugging).

        Args:
            step_name: Name of the step to execute
            state: Current pipeline state

        Returns:
            Updated pipeline state
        """
        node_methods = {
            "retrieve": self._retrieve_node,
            "parse": self._parse_node,
            "detect": self._detect_node,
            "aggregate": self._aggregate_node,
            "fail": self._fail_node,
        }

        if step_name not in node_methods:
            raise ValueError(f"Unknown step: {step_name}")

        result = await node_methods[step_name](state)
        return {**state, **result}


# =============================================================================
# Convenience Functions
# =============================================================================

async def analyze(
    url: str,
    options: Optional[Union[AnalysisOptions, dict]] = None,
    settings: Optional[Settings] = None,
    progress_callback: Optional[ProgressCallback] = None,
) -> AnalysisReport:
    """
    Convenience function to run a single analysis.

    Args:
        url: Target URL
        options: Per-call options
        settings: Optional settings override
        progress_callback: Optional stage listener

    Returns:
        AnalysisReport
    """
    settings = settings or get_settings()
    configure_from_settings(settings)

    async with SiteAnalyzer(settings=settings, progress_callback=progress_callback) as analyzer:
        return await analyzer.analyze(url, options)
