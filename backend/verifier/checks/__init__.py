"""
Automation checks, one ordered tuple per entity type.

A check takes one entity and returns the RejectionReason it fails with, or
None when it passes. Checks never do I/O and never mutate the entity; the
engine evaluates them in tuple order and keeps the first failure.
"""
from verifier.checks.games import GAME_CHECKS
from verifier.checks.matches import MATCH_CHECKS
from verifier.checks.scores import SCORE_CHECKS

__all__ = ["GAME_CHECKS", "MATCH_CHECKS", "SCORE_CHECKS"]
