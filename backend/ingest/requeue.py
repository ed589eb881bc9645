"""
Re-queue policy for failed matches.

The worker never retries a failed fetch on its own. Whether a failed match
becomes eligible again is decided here, explicitly: either never (an
operator re-queues it) or while it has failed fewer than N times.
"""
from __future__ import annotations

import abc

from shared.config import Settings
from shared.models.enums import ProcessingStatus, RejectionReason, VerificationStatus
from shared.models.orm import MatchORM

from verifier.state_machine import resolve_processing


def reset_for_requeue(match: MatchORM) -> None:
    """
    Make a match eligible for the worker again.

    Rejections are cleared back to PENDING for re-review. An administrator
    verification is kept: the match only needs its data repopulated.
    """
    match.processing_status = resolve_processing(
        match.processing_status, ProcessingStatus.NOT_PROCESSED
    ).value
    if match.verification_status != VerificationStatus.VERIFIED.value:
        match.verification_status = VerificationStatus.PENDING.value
    match.rejection_reason = RejectionReason.NONE.value
    match.claimed_at = None


class RequeuePolicy(abc.ABC):
    @abc.abstractmethod
    def should_requeue(self, match: MatchORM) -> bool:
        """Called after a match has been marked failed."""
        ...


class ManualRequeuePolicy(RequeuePolicy):
    """Failed matches stay failed until an operator re-queues them."""

    def should_requeue(self, match: MatchORM) -> bool:
        return False


class MaxFailuresRequeuePolicy(RequeuePolicy):
    """Re-queue until the match has failed `max_failures` times."""

    def __init__(self, max_failures: int) -> None:
        if max_failures < 1:
            raise ValueError("max_failures must be at least 1")
        self.max_failures = max_failures

    def should_requeue(self, match: MatchORM) -> bool:
        return (match.failure_count or 0) < self.max_failures


def policy_from_settings(settings: Settings) -> RequeuePolicy:
    if settings.requeue_max_failures > 0:
        return MaxFailuresRequeuePolicy(settings.requeue_max_failures)
    return ManualRequeuePolicy()
