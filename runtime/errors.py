"""
Pipeline error taxonomy.

StructuralViolation is recoverable inside the retry escalation.
Everything else is fatal for the episode (TransportFailure, AssemblyFailure)
or for the batch (BatchIntegrityViolation).
"""

from typing import List, Optional


class PipelineError(Exception):
    """Base class for errors raised by the generation pipeline."""


class ContractError(ValueError):
    """Contract construction rejected (no mandatory slot, bad minimum length)."""


class StructuralViolation(PipelineError):
    """Generated content does not satisfy the slot contract."""

    def __init__(self, message: str, violations: Optional[List[str]] = None):
        super().__init__(message)
        self.violations = list(violations or [])


class SlotDecodeError(StructuralViolation):
    """Generator answered, but the answer is not a decodable slot object."""


class SlotValidationError(StructuralViolation):
    """Decoded slots failed the structural validator."""


class TransportFailure(PipelineError):
    """Generator unreachable or failed at the transport level. Never retried structurally."""


class AssemblyFailure(PipelineError):
    """Nothing usable to assemble. Fatal for the episode."""


class BatchIntegrityViolation(PipelineError):
    """An episode was about to be counted complete without passing validation."""


class BatchStateError(PipelineError):
    """Illegal batch control transition (pause a stopped batch, resume an idle one...)."""


class EpisodeStateError(PipelineError):
    """Operation not allowed for the episode's current status."""

