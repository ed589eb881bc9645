"""
Verification and processing state machine.

Single source of truth for which status moves are legal. The worker and the
entity stores go through `resolve`, `resolve_match` and `resolve_processing`
rather than assigning statuses ad hoc, so the transition tables here can be
tested without a database.
"""
from __future__ import annotations

from typing import Union

from shared.models.enums import ProcessingStatus, RejectionReason, VerificationStatus

VERIFICATION_TRANSITIONS: dict[VerificationStatus, frozenset[VerificationStatus]] = {
    VerificationStatus.PENDING: frozenset(
        {VerificationStatus.PRE_VERIFIED, VerificationStatus.REJECTED, VerificationStatus.VERIFIED}
    ),
    # Administrator confirmation, outside the pipeline.
    VerificationStatus.PRE_VERIFIED: frozenset({VerificationStatus.VERIFIED}),
    # Re-review, outside the pipeline.
    VerificationStatus.REJECTED: frozenset({VerificationStatus.PENDING}),
    # Re-entering the pipeline for data population keeps the verification.
    VerificationStatus.VERIFIED: frozenset({VerificationStatus.VERIFIED}),
}

# Every status may go back to NOT_PROCESSED: that is the re-queue hook.
PROCESSING_TRANSITIONS: dict[ProcessingStatus, frozenset[ProcessingStatus]] = {
    ProcessingStatus.NOT_PROCESSED: frozenset(
        {
            ProcessingStatus.NOT_PROCESSED,
            ProcessingStatus.FETCHING,
            ProcessingStatus.MATERIALIZED,
            ProcessingStatus.FAILED,
        }
    ),
    # FETCHING -> FETCHING is a re-claim once the previous claim's lease expired.
    ProcessingStatus.FETCHING: frozenset(
        {
            ProcessingStatus.NOT_PROCESSED,
            ProcessingStatus.FETCHING,
            ProcessingStatus.MATERIALIZED,
            ProcessingStatus.FAILED,
        }
    ),
    # MATERIALIZED -> MATERIALIZED is a resume after a crash before the verdict was written.
    ProcessingStatus.MATERIALIZED: frozenset(
        {
            ProcessingStatus.NOT_PROCESSED,
            ProcessingStatus.FETCHING,
            ProcessingStatus.MATERIALIZED,
            ProcessingStatus.DONE,
            ProcessingStatus.FAILED,
        }
    ),
    ProcessingStatus.DONE: frozenset({ProcessingStatus.NOT_PROCESSED}),
    ProcessingStatus.FAILED: frozenset({ProcessingStatus.NOT_PROCESSED}),
}


class InvalidTransitionError(ValueError):
    def __init__(self, current: object, target: object) -> None:
        super().__init__(f"illegal status transition {current} -> {target}")
        self.current = current
        self.target = target


def can_transition(current: VerificationStatus, target: VerificationStatus) -> bool:
    return target in VERIFICATION_TRANSITIONS.get(current, frozenset())


def can_transition_processing(current: ProcessingStatus, target: ProcessingStatus) -> bool:
    return target in PROCESSING_TRANSITIONS.get(current, frozenset())


def resolve_processing(
    current: Union[ProcessingStatus, str], target: ProcessingStatus
) -> ProcessingStatus:
    """
    Validate a processing status move. `current` may be the raw column value.
    Raises InvalidTransitionError when the table does not allow it.
    """
    current = ProcessingStatus(current)
    if not can_transition_processing(current, target):
        raise InvalidTransitionError(current, target)
    return target


def resolve(prior: VerificationStatus, passed: bool) -> VerificationStatus:
    """
    Verification status after automation checks.

    A VERIFIED entity stays VERIFIED whatever the verdict. Any other prior
    status than PENDING means the entity should not have been evaluated.
    """
    if prior == VerificationStatus.VERIFIED:
        return VerificationStatus.VERIFIED
    target = VerificationStatus.PRE_VERIFIED if passed else VerificationStatus.REJECTED
    if not can_transition(prior, target):
        raise InvalidTransitionError(prior, target)
    return target


def resolve_match(
    prior: VerificationStatus, reason: RejectionReason
) -> tuple[VerificationStatus, RejectionReason]:
    """Status and reason to persist for a match given the engine's first failing reason."""
    status = resolve(prior, reason == RejectionReason.NONE)
    if status != VerificationStatus.REJECTED:
        return status, RejectionReason.NONE
    return status, reason
