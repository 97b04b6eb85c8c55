"""Protected rewrite pipeline: protect, call, verify, retry by segment, or revert.

Each job walks a small state machine::

    PENDING -> PROTECTING -> CALLING -> VERIFYING -> ACCEPTED
                                            |
                                            +-> SEGMENTED_RETRY -> VERIFYING_RETRY -> ACCEPTED | REVERTED

A job that cannot be verified keeps its original text. Service failures revert
straight from CALLING; unexpected exceptions end in ERRORED.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from .cadence import CadencePass
from .protection import (
    PLACEHOLDER_PATTERN,
    ProtectedText,
    Signature,
    compute_signature,
    protect,
    split_protected_spans,
)
from .rewrite_client import RewriteLevel, RewriteService

logger = logging.getLogger(__name__)

_WORD = re.compile(r"[A-Za-z]{2,}")
_EDGES = re.compile(r"^(\s*)(.*?)(\s*)$", re.DOTALL)


class RewriteState(str, Enum):
    PENDING = "pending"
    PROTECTING = "protecting"
    CALLING = "calling"
    VERIFYING = "verifying"
    SEGMENTED_RETRY = "segmented-retry"
    VERIFYING_RETRY = "verifying-retry"
    ACCEPTED = "accepted"
    REVERTED = "reverted"
    ERRORED = "errored"


TERMINAL_STATES = (RewriteState.ACCEPTED, RewriteState.REVERTED, RewriteState.ERRORED)
FAILED_STATES = (RewriteState.REVERTED, RewriteState.ERRORED)


@dataclass
class RewriteJob:
    """One section's worth of prose to paraphrase."""

    section_id: str
    text: str
    level: RewriteLevel = RewriteLevel.LIGHT
    context: Optional[str] = None
    section_name: str = ""

    def __post_init__(self) -> None:
        self.level = RewriteLevel.parse(self.level)


@dataclass
class RewriteResult:
    job: RewriteJob
    output: str
    state: RewriteState
    reason: Optional[str] = None
    trace: List[RewriteState] = field(default_factory=list)
    cadence_applied: bool = False

    @property
    def status(self) -> str:
        return self.state.value

    @property
    def accepted(self) -> bool:
        return self.state is RewriteState.ACCEPTED

    @property
    def failed(self) -> bool:
        return self.state in FAILED_STATES


@dataclass
class RewriteReport:
    """Results of a pass in job order, plus the jobs a cancellation left unstarted."""

    results: List[RewriteResult] = field(default_factory=list)
    pending: List[RewriteJob] = field(default_factory=list)
    cancelled: bool = False

    @property
    def failed_ids(self) -> List[str]:
        return [result.job.section_id for result in self.results if result.failed]

    def texts(self) -> Dict[str, str]:
        """Section id -> text to use (rewritten, or original when not accepted)."""
        texts = {result.job.section_id: result.output for result in self.results}
        for job in self.pending:
            texts.setdefault(job.section_id, job.text)
        return texts

    def result_for(self, section_id: str) -> Optional[RewriteResult]:
        for result in self.results:
            if result.job.section_id == section_id:
                return result
        return None

    def merged(self, retry: "RewriteReport") -> "RewriteReport":
        replacements = {result.job.section_id: result for result in retry.results}
        results = [replacements.get(result.job.section_id, result) for result in self.results]
        return RewriteReport(results=results, pending=list(self.pending), cancelled=retry.cancelled)


class CancellationToken:
    """Cooperative cancellation flag, checked between jobs."""

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


ProgressCallback = Callable[[int, int, RewriteJob], None]


class ProtectedRewritePipeline:
    """Runs rewrite jobs through the external service without losing protected spans."""

    def __init__(
        self,
        service: RewriteService,
        cadence: Optional[CadencePass] = None,
        min_segment_words: int = 3,
    ) -> None:
        self.service = service
        self.cadence = cadence
        self.min_segment_words = min_segment_words

    def run(
        self,
        jobs: Sequence[RewriteJob],
        cancel_token: Optional[CancellationToken] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> RewriteReport:
        report = RewriteReport()
        total = len(jobs)
        for index, job in enumerate(jobs, start=1):
            if cancel_token is not None and cancel_token.cancelled:
                report.pending = list(jobs[index - 1:])
                report.cancelled = True
                logger.info("Rewrite cancelled before section %d of %d", index, total)
                break
            logger.info("Rewriting section %d of %d (%s)", index, total, job.section_name or job.section_id)
            if progress is not None:
                progress(index, total, job)
            report.results.append(self.rewrite(job))
        return report

    def retry_failed(
        self,
        report: RewriteReport,
        cancel_token: Optional[CancellationToken] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> RewriteReport:
        jobs = [result.job for result in report.results if result.failed]
        if not jobs:
            return report
        return report.merged(self.run(jobs, cancel_token, progress))

    def rewrite(self, job: RewriteJob) -> RewriteResult:
        trace = [RewriteState.PENDING]
        try:
            return self._rewrite(job, trace)
        except Exception as exc:
            logger.exception("Rewrite of section %s failed unexpectedly", job.section_id)
            trace.append(RewriteState.ERRORED)
            return RewriteResult(
                job=job,
                output=job.text,
                state=RewriteState.ERRORED,
                reason=f"unexpected error: {exc}",
                trace=trace,
            )

    def _rewrite(self, job: RewriteJob, trace: List[RewriteState]) -> RewriteResult:
        if not job.text.strip():
            trace.append(RewriteState.ACCEPTED)
            return RewriteResult(job, job.text, RewriteState.ACCEPTED, None, trace)

        trace.append(RewriteState.PROTECTING)
        protected = protect(job.text)
        expected = compute_signature(job.text)

        trace.append(RewriteState.CALLING)
        try:
            response = self.service.rewrite(protected.masked, job.level, job.context)
        except Exception as exc:
            return self._revert(job, trace, f"service error: {exc}")

        trace.append(RewriteState.VERIFYING)
        restored, problem = self._verify(protected, response, expected)
        if problem is None:
            return self._accept(job, trace, restored, expected)

        trace.append(RewriteState.SEGMENTED_RETRY)
        retried, retry_problem = self._segmented_retry(job)
        if retried is None:
            return self._revert(job, trace, f"{problem}; segmented retry: {retry_problem}")

        trace.append(RewriteState.VERIFYING_RETRY)
        retry_problem = self._check_retry(job.text, retried, expected)
        if retry_problem is None:
            return self._accept(job, trace, retried, expected)
        return self._revert(job, trace, f"{problem}; segmented retry: {retry_problem}")

    @staticmethod
    def _verify(
        protected: ProtectedText, response: Optional[str], expected: Signature
    ) -> Tuple[str, Optional[str]]:
        if not response or not response.strip():
            return "", "empty response"
        restored = protected.restore(response)
        changes = expected.diff(compute_signature(restored))
        if changes:
            return restored, f"signature mismatch: {', '.join(changes)}"
        unknown = protected.unknown_placeholders(response)
        if unknown:
            return restored, f"unknown placeholders: {', '.join(unknown)}"
        altered = protected.altered_placeholders(response)
        if altered:
            return restored, f"protected spans altered: {', '.join(altered)}"
        return restored, None

    @staticmethod
    def _check_retry(original: str, output: str, expected: Signature) -> Optional[str]:
        if not output.strip():
            return "empty response"
        changes = expected.diff(compute_signature(output))
        if changes:
            return ", ".join(changes)
        if len(PLACEHOLDER_PATTERN.findall(output)) != len(PLACEHOLDER_PATTERN.findall(original)):
            return "unexpected placeholders"
        return None

    def _segmented_retry(self, job: RewriteJob) -> Tuple[Optional[str], Optional[str]]:
        """Rewrite only the prose between protected spans; protected spans pass through."""
        pieces: List[str] = []
        attempted = 0
        rewritten = 0
        last_error: Optional[str] = None
        for span in split_protected_spans(job.text):
            if span.protected or len(_WORD.findall(span.text)) < self.min_segment_words:
                pieces.append(span.text)
                continue
            leading, core, trailing = _EDGES.match(span.text).groups()
            attempted += 1
            try:
                response = self.service.rewrite(core, job.level, job.context)
            except Exception as exc:
                last_error = str(exc)
                pieces.append(span.text)
                continue
            if response and response.strip() and response.strip() != core:
                rewritten += 1
                pieces.append(f"{leading}{response.strip()}{trailing}")
            else:
                pieces.append(span.text)

        if attempted == 0:
            return None, "no rewritable prose between protected spans"
        if rewritten == 0:
            if last_error is not None:
                return None, f"service error: {last_error}"
            return None, "no segment changed"
        return "".join(pieces), None

    def _accept(
        self, job: RewriteJob, trace: List[RewriteState], output: str, expected: Signature
    ) -> RewriteResult:
        trace.append(RewriteState.ACCEPTED)
        result = RewriteResult(job, output, RewriteState.ACCEPTED, trace=trace)
        if self.cadence is not None:
            adjusted = self._apply_cadence(output, job.section_name, expected)
            if adjusted is not None and adjusted != output:
                result.output = adjusted
                result.cadence_applied = True
        return result

    def _apply_cadence(self, text: str, section_name: str, expected: Signature) -> Optional[str]:
        masked = protect(text)
        adjusted = self.cadence.apply(masked.masked, section_name)
        if masked.altered_placeholders(adjusted) or masked.unknown_placeholders(adjusted):
            logger.debug("Discarding cadence pass for %s: placeholders changed", section_name)
            return None
        restored = masked.restore(adjusted)
        if compute_signature(restored) != expected:
            logger.debug("Discarding cadence pass for %s: signature changed", section_name)
            return None
        return restored

    @staticmethod
    def _revert(job: RewriteJob, trace: List[RewriteState], reason: str) -> RewriteResult:
        logger.warning("Keeping original text for section %s: %s", job.section_id, reason)
        trace.append(RewriteState.REVERTED)
        return RewriteResult(job, job.text, RewriteState.REVERTED, reason, trace)


__all__ = [
    "CancellationToken",
    "ProtectedRewritePipeline",
    "RewriteJob",
    "RewriteReport",
    "RewriteResult",
    "RewriteState",
]
