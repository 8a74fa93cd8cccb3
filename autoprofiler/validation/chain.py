"""
autoprofiler/validation/chain.py

TraceValidationChain runs validators in a fixed order; the first failure
aborts the run and reaches the caller unchanged.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Sequence, Tuple, Union

from autoprofiler.contracts.samples import SampleActivity
from autoprofiler.validation.validators import (
    ActivityListValidator,
    AlwaysPassValidator,
    ConvertTraceValidator,
    TraceValidationContext,
    TraceValidator,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValidationResult:
    validated_samples: List[SampleActivity] = field(default_factory=list)
    is_trace_valid: bool = False

    def to_dict(self):
        return {
            "validated_samples": [s.to_dict() for s in self.validated_samples],
            "is_trace_valid": self.is_trace_valid,
        }


class TraceValidationChain:
    """An immutable, ordered sequence of validators."""

    def __init__(self, validators: Sequence[TraceValidator]):
        self._validators: Tuple[TraceValidator, ...] = tuple(validators)

    @property
    def validators(self) -> Tuple[TraceValidator, ...]:
        return self._validators

    def validate(self, samples: Sequence[SampleActivity]) -> ValidationResult:
        """
        Run every validator in order.

        Raises ValidationFailedError from the first validator that fails.
        """
        current: List[SampleActivity] = list(samples)
        for validator in self._validators:
            logger.debug(f"[ValidationChain] Running {validator.name} on {len(current)} samples")
            current = validator.validate(current)

        logger.debug(f"[ValidationChain] Done. {len(current)}/{len(samples)} samples validated")
        return ValidationResult(validated_samples=current, is_trace_valid=True)


class TraceValidatorFactory:
    """Builds the chain for one trace file."""

    def __init__(self, enabled: bool = True):
        self.enabled = enabled

    def create(self, trace_file_path: Union[str, Path]) -> TraceValidationChain:
        if not self.enabled:
            return TraceValidationChain([AlwaysPassValidator()])

        context = TraceValidationContext(Path(trace_file_path))
        return TraceValidationChain([
            ConvertTraceValidator(context),
            ActivityListValidator(context),
        ])
