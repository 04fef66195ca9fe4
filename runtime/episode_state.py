from enum import Enum


class EpisodeStatus(str, Enum):
    """
    Persisted episode lifecycle.
    """

    # Nothing generated yet
    PENDING = "PENDING"

    # Pipeline currently running for this episode
    GENERATING = "GENERATING"

    # Contract satisfied, content assembled; readable immediately, review pending
    DRAFT = "DRAFT"

    # Passed downstream review
    COMPLETED = "COMPLETED"

    # Contract never satisfied; accepted with a remediation note
    DEGRADED = "DEGRADED"

    # Transport / assembly failure; needs intervention
    FAILED = "FAILED"

    # Operator took over; batches skip it
    MANUAL_OVERRIDE = "MANUAL_OVERRIDE"


# Statuses that count as "passed validation" for batch progress
VALIDATED_STATUSES = frozenset({EpisodeStatus.DRAFT, EpisodeStatus.COMPLETED})
