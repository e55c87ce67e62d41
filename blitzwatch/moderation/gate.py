"""
Moderation gate between user input and publication.

Reports naming a civilian patrol car are held until the user confirms the
license plate warning. Chat messages containing disallowed language are
rejected outright; accepted messages are still redacted before storage.
"""

import inspect
import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Union

from blitzwatch.core.errors import (
    BlitzWatchError,
    ModerationBlocked,
    ModerationPending,
    ValidationError,
)
from blitzwatch.crowdsource.feed import CommunityFeed
from blitzwatch.crowdsource.lifecycle import ReportLifecycle
from blitzwatch.crowdsource.models import ChatMessage, Report, ReportInput, ReportKind
from blitzwatch.moderation import plates, profanity

logger = logging.getLogger(__name__)


class SubmissionState(Enum):
    """States of a single report submission attempt."""
    IDLE = "idle"
    SCANNING = "scanning"
    CLEAN = "clean"
    FLAGGED = "flagged"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    SUBMITTING = "submitting"
    SUBMITTED = "submitted"
    FAILED = "failed"


@dataclass
class DetectionResult:
    """Plates found in a description, pending the user's answer."""
    plates: List[str] = field(default_factory=list)
    acknowledged: bool = False

    @property
    def formatted(self) -> List[str]:
        return [plates.format_plate(p) for p in self.plates]


ConfirmCallback = Callable[[DetectionResult], Union[bool, Awaitable[bool]]]


class ReportSubmission:
    """
    One attempt to publish a report.

    IDLE -> SCANNING -> CLEAN -> SUBMITTING, or
    SCANNING -> FLAGGED -> AWAITING_CONFIRMATION -> CONFIRMED -> SUBMITTING
    (CANCELLED returns to IDLE). SUBMITTING ends in SUBMITTED or FAILED,
    and FAILED returns to IDLE with the input kept for another try.
    """

    def __init__(self, lifecycle: ReportLifecycle, report_input: ReportInput):
        self.lifecycle = lifecycle
        self.report_input = report_input
        self.state = SubmissionState.IDLE
        self.history: List[SubmissionState] = [SubmissionState.IDLE]
        self.detection: Optional[DetectionResult] = None
        self.report: Optional[Report] = None

    def _transition(self, state: SubmissionState) -> None:
        logger.debug(f"Submission {self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)

    def _require(self, *states: SubmissionState) -> None:
        if self.state not in states:
            raise RuntimeError(f"Invalid submission state: {self.state.value}")

    def scan(self) -> Optional[DetectionResult]:
        """
        Look for license plates in the description.

        Only civilian patrol reports are scanned.

        Returns:
            DetectionResult if plates were found, otherwise None
        """
        self._require(SubmissionState.IDLE)
        self._transition(SubmissionState.SCANNING)

        found: List[str] = []
        if self.report_input.kind == ReportKind.CIVILIAN_PATROL:
            found = plates.extract_plates(self.report_input.description)

        if not found:
            self._transition(SubmissionState.CLEAN)
            return None

        self.detection = DetectionResult(plates=found)
        self._transition(SubmissionState.FLAGGED)
        self._transition(SubmissionState.AWAITING_CONFIRMATION)
        logger.info(f"License plate detected, awaiting confirmation: {found}")
        return self.detection

    def confirm(self) -> None:
        """Accept the plate warning ("Ich bin sicher")."""
        self._require(SubmissionState.AWAITING_CONFIRMATION)
        self.detection.acknowledged = True

        if not self.report_input.license_plate:
            self.report_input = replace(
                self.report_input,
                license_plate=plates.format_plate(self.detection.plates[0]),
            )
        self._transition(SubmissionState.CONFIRMED)

    def cancel(self) -> None:
        """Decline the plate warning; nothing is stored."""
        self._require(SubmissionState.AWAITING_CONFIRMATION)
        self.detection = None
        self._transition(SubmissionState.CANCELLED)
        self._transition(SubmissionState.IDLE)
        logger.info("Report submission cancelled at plate warning")

    async def submit(self) -> Report:
        """
        Publish the report if moderation allows it.

        Raises:
            ModerationPending: a plate warning has not been answered yet
            ValidationError: street is blank
            StoreError: the store failed; the submission is back in IDLE
        """
        if self.state == SubmissionState.IDLE:
            if not (self.report_input.street or "").strip():
                raise ValidationError("street", "Bitte geben Sie die Straße ein.")
            self.scan()

        if self.state == SubmissionState.AWAITING_CONFIRMATION:
            raise ModerationPending(self.detection)

        self._require(SubmissionState.CLEAN, SubmissionState.CONFIRMED)
        self._transition(SubmissionState.SUBMITTING)

        try:
            self.report = await self.lifecycle.create(self.report_input)
        except BlitzWatchError:
            self._transition(SubmissionState.FAILED)
            self.detection = None
            self._transition(SubmissionState.IDLE)
            raise

        self._transition(SubmissionState.SUBMITTED)
        self.detection = None
        return self.report


class ModerationGate:
    """
    Gate all user text before it reaches the store.

    Combines plate detection with user confirmation for reports and the
    profanity filter for chat messages.
    """

    def __init__(
        self,
        lifecycle: ReportLifecycle,
        feed: Optional[CommunityFeed] = None
    ):
        self.lifecycle = lifecycle
        self.feed = feed

    def begin_report(self, report_input: ReportInput) -> ReportSubmission:
        """Start a submission attempt for a report."""
        return ReportSubmission(self.lifecycle, report_input)

    async def submit_report(
        self,
        report_input: ReportInput,
        confirm: Optional[ConfirmCallback] = None
    ) -> Optional[Report]:
        """
        Run a complete submission, asking ``confirm`` if plates are found.

        Args:
            report_input: User input
            confirm: Called with the DetectionResult; returns True to proceed.
                Without it a detection raises ModerationPending.

        Returns:
            Created report, or None if the user declined the warning
        """
        submission = self.begin_report(report_input)

        try:
            return await submission.submit()
        except ModerationPending as pending:
            if confirm is None:
                raise
            answer = confirm(pending.detection)
            if inspect.isawaitable(answer):
                answer = await answer

        if not answer:
            submission.cancel()
            return None

        submission.confirm()
        return await submission.submit()

    def check_message(self, text: Optional[str]) -> str:
        """
        Screen a chat message.

        Returns:
            Redacted text, safe to store

        Raises:
            ValidationError: text is blank
            ModerationBlocked: text contains disallowed language
        """
        if not text or not text.strip():
            raise ValidationError("text")

        if profanity.contains_disallowed(text):
            logger.warning("Chat message rejected by profanity filter")
            raise ModerationBlocked(
                "Ihre Nachricht enthält unangemessene Wörter. "
                "Bitte formulieren Sie höflich."
            )

        return profanity.redact(text)

    async def send_message(self, text: Optional[str], author_id: Optional[str]) -> ChatMessage:
        """Screen a chat message and post it to the community feed."""
        if self.feed is None:
            raise RuntimeError("ModerationGate has no community feed")

        filtered = self.check_message(text)
        return await self.feed.post(author_id, filtered)
