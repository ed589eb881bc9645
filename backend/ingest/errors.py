"""Ingestion error hierarchy.

Every error here is non-fatal: the worker catches it at the per-match
boundary, marks the match failed, and keeps polling.
"""

from __future__ import annotations


class IngestError(Exception):
    """Base exception for ingestion failures."""

    outcome = "failed"


class SourceUnavailableError(IngestError):
    """Raised when the external source has no data for a match (not found or transient failure)."""

    outcome = "source_unavailable"

    def __init__(self, osu_match_id: int, detail: str = "") -> None:
        self.osu_match_id = osu_match_id
        self.detail = detail
        super().__init__(f"match {osu_match_id} unavailable from source: {detail or 'no data'}")


class MaterializationError(IngestError):
    """Raised when a source payload is malformed or missing required fields."""

    outcome = "invalid_payload"
