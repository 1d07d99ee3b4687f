"""Orchestration of a translation run over a source tree."""

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Set

from rich.progress import Progress

from codeport.core.errors import AuthError, DiscoveryError, InvalidPathError, UnreadableFileError
from codeport.core.loader import discover_sources, load_unit
from codeport.core.mirror import PathMirror
from codeport.core.progress import RunProgress
from codeport.core.translation import create_translator
from codeport.core.translation.interface import (
    ModelInterface,
    TranslationRequest,
    TranslationResult,
)
from codeport.core.translation.requests import RequestBuilder
from codeport.core.types import (
    Failure,
    FailedUnit,
    FailureKind,
    PlannedUnit,
    RunOptions,
    RunPlan,
    RunState,
    RunSummary,
    TranslationUnit,
    UnitReport,
)
from codeport.core.writer import ResultWriter
from codeport.utils.logging import bind_run_context, clear_run_context, get_logger

logger = get_logger(__name__)


@dataclass
class PendingUnit:
    """A loaded unit waiting for dispatch."""

    index: int  # Position in discovery order
    unit: TranslationUnit
    destination: Path


@dataclass
class Discovery:
    """Result of the discovery phase."""

    pending: List[PendingUnit]
    reports: List[Optional[UnitReport]]  # One slot per discovered file


def _failed_report(path: Path, kind: FailureKind, message: str) -> UnitReport:
    return UnitReport(source_path=path, outcome=Failure(kind=kind, message=message))


class Orchestrator:
    """Drives one run: discovery, bounded dispatch, drain and summary."""

    def __init__(
        self,
        source_path: Path,
        destination_path: Path,
        options: RunOptions,
        translator: Optional[ModelInterface] = None,
        progress: Optional[Progress] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            source_path: Source file or directory
            destination_path: Destination directory
            options: Run options
            translator: Client for the completion service; only needed to dispatch
            progress: Optional Rich progress bar
            cancel_event: Set to stop submitting new units
        """
        self.source_path = Path(source_path).absolute()
        self.destination_path = Path(destination_path).absolute()
        self.options = options
        self.translator = translator
        self.cancel_event = cancel_event
        self.mirror = PathMirror(self.source_path, self.destination_path, options.target_suffix)
        self.builder = RequestBuilder(
            options.source_language,
            options.target_language,
            options.chunk_size,
        )
        self.writer = ResultWriter(self.mirror)
        self.state = RunState.DISCOVERING
        self._progress_display = progress
        self._progress: Optional[RunProgress] = None
        self._tasks: List["asyncio.Task[None]"] = []
        self._committing: Set["asyncio.Task[None]"] = set()
        self._auth_failure: Optional[Failure] = None

    def _transition(self, state: RunState) -> None:
        logger.info("Run state changed", previous=self.state.value, state=state.value)
        self.state = state

    @property
    def cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()

    async def discover(self) -> Discovery:
        """Enumerate, map and load every source file.

        Raises:
            DiscoveryError: If the tree cannot be enumerated or the destination
                is not a directory
        """
        if self.destination_path.exists() and not self.destination_path.is_dir():
            raise DiscoveryError(f"{self.destination_path}: Not a directory")

        sources = await asyncio.to_thread(
            discover_sources, self.source_path, self.options.source_suffixes
        )

        pending: List[PendingUnit] = []
        reports: List[Optional[UnitReport]] = [None] * len(sources)
        claimed: Dict[Path, Path] = {}  # Destination -> first source mapped onto it

        for index, path in enumerate(sources):
            try:
                relative = self.mirror.relative_path(path)
                destination = self.mirror.destination_for(path)
                if destination in claimed:
                    # e.g. util.c and util.h both map to util.php
                    raise InvalidPathError(
                        f"{path} maps to {destination}, already the destination of {claimed[destination]}",
                        path=path,
                    )
                claimed[destination] = path
                unit = await load_unit(path, relative)
            except InvalidPathError as e:
                logger.warning("Skipping invalid path", path=str(path), error=str(e))
                reports[index] = _failed_report(path, FailureKind.INVALID_PATH, str(e))
                continue
            except UnreadableFileError as e:
                logger.warning("Skipping unreadable file", path=str(path), error=str(e))
                reports[index] = _failed_report(path, FailureKind.UNREADABLE, str(e))
                continue
            pending.append(PendingUnit(index=index, unit=unit, destination=destination))

        return Discovery(pending=pending, reports=reports)

    async def _call(self, request: TranslationRequest, slots: asyncio.Semaphore) -> TranslationResult:
        if self.translator is None:
            raise ValueError("No translator configured for this run")
        async with slots:
            return await self.translator.translate(request)

    def _fail_fast(self, failure: Failure) -> None:
        """Stop the run after the first authentication failure.

        Units already writing their file are left to finish, so no file
        appears after `run` has raised.
        """
        if self._auth_failure is not None:
            return
        self._auth_failure = failure
        logger.error("Authentication failed, aborting run", error=failure.message)
        current = asyncio.current_task()
        for task in self._tasks:
            if task is not current and not task.done() and task not in self._committing:
                task.cancel()

    async def _translate(
        self,
        pending: PendingUnit,
        request_slots: asyncio.Semaphore,
    ) -> Optional[UnitReport]:
        """Translate and write one unit; None when the run was aborted."""
        requests = self.builder.build(pending.unit)
        results = await asyncio.gather(
            *(self._call(request, request_slots) for request in requests)
        )

        auth = next(
            (
                result.outcome
                for result in results
                if isinstance(result.outcome, Failure) and result.outcome.kind == FailureKind.AUTH
            ),
            None,
        )
        if auth is not None:
            self._fail_fast(auth)
            return None
        if self._auth_failure is not None:
            return None

        current = asyncio.current_task()
        self._committing.add(current)
        try:
            return await self.writer.commit(pending.unit, pending.destination, results)
        finally:
            self._committing.discard(current)

    async def _process(
        self,
        pending: PendingUnit,
        reports: List[Optional[UnitReport]],
        request_slots: asyncio.Semaphore,
    ) -> None:
        try:
            report = await self._translate(pending, request_slots)
        except Exception as e:
            logger.exception("Unit failed unexpectedly", path=str(pending.unit.source_path))
            report = _failed_report(
                pending.unit.source_path,
                FailureKind.SERVICE,
                f"{type(e).__name__}: {e}",
            )
        if report is None:
            return

        reports[pending.index] = report
        if self._progress is not None:
            self._progress.update(report)

    async def dispatch(self, discovery: Discovery) -> None:
        """Submit units to the worker pool until done, cancelled or aborted."""
        self._transition(RunState.DISPATCHING)

        unit_slots = asyncio.Semaphore(self.options.concurrency)
        request_slots = asyncio.Semaphore(self.options.concurrency)

        for pending in discovery.pending:
            await unit_slots.acquire()
            if self.cancelled or self._auth_failure is not None:
                unit_slots.release()
                if self.cancelled:
                    logger.warning("Run cancelled, no new units will be submitted")
                break
            task = asyncio.create_task(self._process(pending, discovery.reports, request_slots))
            # Released on completion, failure or cancellation alike
            task.add_done_callback(lambda _: unit_slots.release())
            self._tasks.append(task)

    async def drain(self) -> None:
        """Wait for all in-flight units."""
        self._transition(RunState.DRAINING)
        results = await asyncio.gather(*self._tasks, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                raise result

    async def run(self) -> RunSummary:
        """Execute the run.

        Returns:
            Summary of the run

        Raises:
            DiscoveryError: If the source tree cannot be enumerated
            AuthError: If the service rejects the credentials
        """
        bind_run_context(source=str(self.source_path), destination=str(self.destination_path))
        try:
            discovery = await self.discover()
            self._progress = RunProgress(len(discovery.reports), self._progress_display)
            for report in discovery.reports:
                if report is not None:
                    self._progress.update(report)

            try:
                await self.dispatch(discovery)
            finally:
                await self.drain()

            if self._auth_failure is not None:
                raise AuthError(self._auth_failure.message)

            for pending in discovery.pending:
                if discovery.reports[pending.index] is None:
                    report = _failed_report(
                        pending.unit.source_path,
                        FailureKind.CANCELLED,
                        "Run cancelled before the unit was submitted",
                    )
                    discovery.reports[pending.index] = report
                    self._progress.update(report)

            self._transition(RunState.DONE)
            return self._summarize([report for report in discovery.reports if report is not None])
        finally:
            clear_run_context()

    def _summarize(self, final: List[UnitReport]) -> RunSummary:
        failed = [
            FailedUnit(path=report.source_path, kind=report.outcome.kind, message=report.outcome.message)
            for report in final
            if isinstance(report.outcome, Failure)
        ]
        summary = RunSummary(
            total_units=len(final),
            succeeded=sum(1 for report in final if report.succeeded),
            failed=failed,
            written=[report.destination_path for report in final if report.destination_path],
            tokens_used=sum(report.tokens_used for report in final),
            cost=sum(report.cost for report in final),
            time_taken=self._progress.time_taken if self._progress else 0.0,
        )
        logger.info(
            "Run finished",
            total=summary.total_units,
            succeeded=summary.succeeded,
            failed=len(summary.failed),
        )
        return summary


async def run(
    source_path: Path,
    destination_path: Path,
    api_key: Optional[str],
    options: Optional[RunOptions] = None,
    *,
    translator: Optional[ModelInterface] = None,
    progress: Optional[Progress] = None,
    cancel_event: Optional[asyncio.Event] = None,
) -> RunSummary:
    """Translate a source file or tree into the destination directory.

    Args:
        source_path: Source file or directory
        destination_path: Destination directory, created if missing
        api_key: API key for the completion service
        options: Run options; defaults apply when omitted
        translator: Client to use instead of one built from the options
        progress: Optional Rich progress bar
        cancel_event: Set to stop submitting new units

    Returns:
        Summary of the run

    Raises:
        DiscoveryError: If the source tree cannot be enumerated
        AuthError: If the service rejects the credentials
    """
    options = options or RunOptions()
    if translator is None:
        translator = create_translator(options, api_key)

    orchestrator = Orchestrator(
        source_path,
        destination_path,
        options,
        translator,
        progress=progress,
        cancel_event=cancel_event,
    )
    return await orchestrator.run()


async def plan(
    source_path: Path,
    destination_path: Path,
    options: Optional[RunOptions] = None,
) -> RunPlan:
    """Work out what a run would do without calling the completion service.

    Raises:
        DiscoveryError: If the source tree cannot be enumerated
    """
    options = options or RunOptions()
    orchestrator = Orchestrator(
        source_path,
        destination_path,
        options,
    )
    discovery = await orchestrator.discover()

    units = [
        PlannedUnit(
            source_path=pending.unit.source_path,
            destination_path=pending.destination,
            size_bytes=pending.unit.size_bytes,
            requests=len(orchestrator.builder.build(pending.unit)),
        )
        for pending in discovery.pending
    ]
    failed = [
        FailedUnit(path=report.source_path, kind=report.outcome.kind, message=report.outcome.message)
        for report in discovery.reports
        if report is not None and isinstance(report.outcome, Failure)
    ]
    return RunPlan(units=units, failed=failed)
