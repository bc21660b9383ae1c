"""Orchestrates an import: permission → scan → resolve → assemble → review → commit."""

import asyncio
import logging
from datetime import date
from typing import Iterable, List, Optional, Set

from schengen_tracker.assemble.dedup import find_conflict
from schengen_tracker.assemble.trip_assembler import ResolvedSignal, assemble_candidates
from schengen_tracker.config import CALENDAR_MERGE_TOLERANCE_DAYS, PHOTO_MERGE_TOLERANCE_DAYS
from schengen_tracker.errors import Cancelled, InvalidTransition, PermissionDenied
from schengen_tracker.extract.base import CancelToken, ProgressCallback, SignalCollector
from schengen_tracker.ledger import TripLedger
from schengen_tracker.models import (
    CandidateTrip,
    CommitResult,
    FailedCandidate,
    ImportPhase,
    ImportProgress,
    RawSignal,
    SessionState,
    SignalKind,
    SkippedCandidate,
)
from schengen_tracker.normalize.country_resolver import CountryResolver

logger = logging.getLogger(__name__)


class ImportSession:
    """One import run for one user and one source.

    States: idle → permission_pending → scanning → reviewing → committing →
    complete. Any failure lands in error (retry with another scan); a
    cancelled scan or review goes back to idle and drops partial results.
    """

    def __init__(
        self,
        user_id: str,
        ledger: TripLedger,
        collector: SignalCollector,
        resolver: Optional[CountryResolver] = None,
        photo_tolerance: int = PHOTO_MERGE_TOLERANCE_DAYS,
        calendar_tolerance: int = CALENDAR_MERGE_TOLERANCE_DAYS,
    ):
        self.user_id = user_id
        self.ledger = ledger
        self.collector = collector
        self.resolver = resolver or CountryResolver()
        self.photo_tolerance = photo_tolerance
        self.calendar_tolerance = calendar_tolerance

        self.state = SessionState.IDLE
        self.candidates: List[CandidateTrip] = []
        self.selected: Set[str] = set()
        self.last_error: Optional[BaseException] = None
        self.result: Optional[CommitResult] = None

    # ------------------------------------------------------------------
    # State handling
    # ------------------------------------------------------------------

    def _require(self, *states: SessionState):
        if self.state not in states:
            allowed = ", ".join(s.value for s in states)
            raise InvalidTransition(f"Session is {self.state.value}; expected one of: {allowed}")

    def _fail(self, exc: BaseException):
        self.state = SessionState.ERROR
        self.last_error = exc
        self.candidates = []
        self.selected = set()

    def reset(self):
        """Back to idle from review, completion or error."""
        self._require(SessionState.REVIEWING, SessionState.COMPLETE, SessionState.ERROR, SessionState.IDLE)
        self.state = SessionState.IDLE
        self.candidates = []
        self.selected = set()
        self.last_error = None
        self.result = None

    def cancel_review(self):
        self._require(SessionState.REVIEWING)
        self.reset()

    # ------------------------------------------------------------------
    # Scanning
    # ------------------------------------------------------------------

    async def _resolve(
        self,
        signals: List[RawSignal],
        on_progress: Optional[ProgressCallback],
        cancel: CancelToken,
    ) -> List[ResolvedSignal]:
        """Resolve each signal's country. Photos need one success per day, so
        later photos of an already-resolved day skip the geocoder."""
        signals = sorted(signals, key=lambda s: s.capture_date)
        total = len(signals)
        batch = self.collector.batch_size
        resolved_days: Set[date] = set()
        pairs: List[ResolvedSignal] = []

        if on_progress:
            on_progress(ImportProgress(0, total, ImportPhase.GEOCODING))

        for i, sig in enumerate(signals, start=1):
            if sig.kind == SignalKind.PHOTO and sig.capture_date in resolved_days:
                pairs.append((sig, None))
            else:
                country = await self.resolver.resolve(sig)
                if country is None:
                    logger.debug("Dropping unresolved %s signal %s", sig.kind.value, sig.source_id)
                elif sig.kind == SignalKind.PHOTO:
                    resolved_days.add(sig.capture_date)
                pairs.append((sig, country))

            if i % batch == 0:
                if on_progress:
                    on_progress(ImportProgress(i, total, ImportPhase.GEOCODING))
                cancel.raise_if_cancelled()

        if on_progress:
            on_progress(ImportProgress(total, total, ImportPhase.GEOCODING))
        return pairs

    async def scan(
        self,
        start: date,
        end: date,
        on_progress: Optional[ProgressCallback] = None,
        cancel: Optional[CancelToken] = None,
    ) -> List[CandidateTrip]:
        """Scan [start, end] and move to review. Returns the candidates."""
        self._require(SessionState.IDLE, SessionState.ERROR)
        if end < start:
            raise ValueError("scan end date is before start date")
        cancel = cancel or CancelToken()
        self.last_error = None
        self.result = None

        self.state = SessionState.PERMISSION_PENDING
        try:
            await self.collector.ensure_permission()
        except PermissionDenied as exc:
            logger.info("Permission denied for %s import", self.collector.kind.value)
            self._fail(exc)
            raise

        self.state = SessionState.SCANNING
        logger.info("Scanning %s from %s to %s", self.collector.kind.value, start, end)
        try:
            signals = [
                sig async for sig in self.collector.scan(start, end, on_progress, cancel)
            ]
            logger.info("  Collected %d %s signals", len(signals), self.collector.kind.value)

            pairs = await self._resolve(signals, on_progress, cancel)
            logger.info(
                "  Resolved countries (geocoder calls: %d, cached: %d)",
                self.resolver.provider_calls, self.resolver.cache_hits,
            )

            if on_progress:
                on_progress(ImportProgress(0, len(pairs), ImportPhase.GROUPING))
            candidates = assemble_candidates(pairs, self.photo_tolerance, self.calendar_tolerance)
            if on_progress:
                on_progress(ImportProgress(len(candidates), len(candidates), ImportPhase.COMPLETE))
        except Cancelled:
            logger.info("Scan cancelled; discarding partial results")
            self.state = SessionState.IDLE
            self.candidates = []
            self.selected = set()
            raise
        except Exception as exc:
            logger.exception("Scan failed")
            self._fail(exc)
            raise

        logger.info("  Assembled %d candidate trips", len(candidates))
        self.candidates = candidates
        self.selected = {c.id for c in candidates if c.is_schengen}
        self.state = SessionState.REVIEWING
        return candidates

    def scan_in_background(self, start: date, end: date,
                           on_progress: Optional[ProgressCallback] = None,
                           cancel: Optional[CancelToken] = None) -> "asyncio.Task[List[CandidateTrip]]":
        """Schedule `scan` on the running loop and return the task."""
        return asyncio.ensure_future(self.scan(start, end, on_progress, cancel))

    # ------------------------------------------------------------------
    # Review
    # ------------------------------------------------------------------

    def _known_ids(self, ids: Iterable[str]) -> Set[str]:
        ids = set(ids)
        unknown = ids - {c.id for c in self.candidates}
        if unknown:
            raise KeyError(f"Unknown candidate ids: {', '.join(sorted(unknown))}")
        return ids

    def select(self, ids: Iterable[str]):
        self._require(SessionState.REVIEWING)
        self.selected |= self._known_ids(ids)

    def deselect(self, ids: Iterable[str]):
        self._require(SessionState.REVIEWING)
        self.selected -= self._known_ids(ids)

    @property
    def selected_candidates(self) -> List[CandidateTrip]:
        return [c for c in self.candidates if c.id in self.selected]

    # ------------------------------------------------------------------
    # Commit
    # ------------------------------------------------------------------

    async def commit(self, selected_ids: Optional[Iterable[str]] = None) -> CommitResult:
        """Write selected candidates to the ledger, each on its own.

        Duplicates and cross-source overlaps are skipped, errors are
        collected; one bad candidate never aborts the rest.
        """
        self._require(SessionState.REVIEWING)
        if selected_ids is not None:
            self.selected = self._known_ids(selected_ids)
        chosen = self.selected_candidates

        self.state = SessionState.COMMITTING
        result = CommitResult()
        try:
            async with self.ledger.transaction(self.user_id) as writer:
                for candidate in chosen:
                    conflict = find_conflict(writer.snapshot(), candidate)
                    if conflict is not None:
                        result.skipped.append(SkippedCandidate(
                            candidate_id=candidate.id,
                            reason=conflict.reason,
                            existing_trip_id=conflict.existing_trip_id,
                        ))
                        continue
                    try:
                        result.inserted.append(writer.add(candidate.to_trip()))
                    except Exception as exc:
                        logger.warning("Could not insert candidate %s: %s", candidate.id, exc)
                        result.failed.append(FailedCandidate(candidate_id=candidate.id, error=str(exc)))
        except Exception as exc:
            logger.exception("Commit failed")
            self._fail(exc)
            raise

        logger.info(
            "Commit for %s: %d inserted, %d skipped, %d failed",
            self.user_id, len(result.inserted), len(result.skipped), len(result.failed),
        )
        self.result = result
        self.state = SessionState.COMPLETE
        return result
