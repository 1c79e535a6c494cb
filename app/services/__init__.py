"""Model generation and sequencing services."""

from app.services.generator import (
    ERROR_PREFIX,
    LangChainResponseGenerator,
    ModelBackendError,
    ModelResponseGenerator,
)
from app.services.sequencer import (
    ModelSequencer,
    SequenceResult,
    SequenceState,
    StepResult,
    StepStatus,
)

__all__ = [
    "ERROR_PREFIX",
    "LangChainResponseGenerator",
    "ModelBackendError",
    "ModelResponseGenerator",
    "ModelSequencer",
    "SequenceResult",
    "SequenceState",
    "StepResult",
    "StepStatus",
]
