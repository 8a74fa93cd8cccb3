"""
autoprofiler/samples/container.py

Per-session store of completed operations.

Each operation name (case-insensitive) gets its own ValueBucketer keyed by
duration in milliseconds; every bucket keeps a single representative. The
result is a small, duration-stratified sample set per operation.
"""

import logging
import threading
from typing import Dict, List, Optional

from autoprofiler.contracts.samples import SampleActivity
from autoprofiler.samples.bucket import SampleActivityBucket
from autoprofiler.samples.bucketer import ValueBucketer

logger = logging.getLogger(__name__)


class SampleActivityContainer:

    def __init__(self, precision: float = 0.1, minimum_value: float = 1.0):
        self.precision = precision
        self.minimum_value = minimum_value
        self._operations: Dict[str, ValueBucketer[SampleActivityBucket]] = {}
        self._lock = threading.Lock()

    @property
    def operation_names(self) -> List[str]:
        return list(self._operations.keys())

    def _bucketer_for(self, operation_name: str) -> ValueBucketer[SampleActivityBucket]:
        key = (operation_name or "").casefold()
        bucketer = self._operations.get(key)
        if bucketer is None:
            with self._lock:
                bucketer = self._operations.get(key)
                if bucketer is None:
                    bucketer = ValueBucketer(
                        SampleActivityBucket,
                        precision=self.precision,
                        minimum_value=self.minimum_value,
                    )
                    self._operations[key] = bucketer
        return bucketer

    def add_sample(self, sample: SampleActivity) -> bool:
        bucketer = self._bucketer_for(sample.operation_name)
        duration_ms = sample.duration_ms
        logger.debug(f"[SampleContainer] {sample.operation_name} duration(ms): {duration_ms}")
        bucketer.get(duration_ms).add(sample)
        return True

    def get_activities(self) -> List[SampleActivity]:
        """Flatten every bucket's representative into one list."""
        samples: List[SampleActivity] = []

        def _collect(_value: float, bucket: Optional[SampleActivityBucket]) -> bool:
            if bucket is not None:
                samples.extend(bucket.samples)
            return True

        with self._lock:
            bucketers = list(self._operations.values())
        for bucketer in bucketers:
            bucketer.for_each(_collect)
        return samples

    def __len__(self) -> int:
        return len(self.get_activities())


class SampleActivityContainerFactory:
    """One fresh container per capture session."""

    def __init__(self, precision: float = 0.1, minimum_value: float = 1.0):
        self.precision = precision
        self.minimum_value = minimum_value

    def create(self) -> SampleActivityContainer:
        return SampleActivityContainer(precision=self.precision, minimum_value=self.minimum_value)
