"""
autoprofiler/samples/bucketer.py

ValueBucketer groups floating point values into logarithmic buckets.

With precision p and minimum value m, bucket N holds values in
[m * (1+p)**N, m * (1+p)**(N+1)). At p=0.1 durations spanning several
orders of magnitude land in a few dozen buckets.

Example (m=1.0, p=0.1):
    1.0  .. 1.1   -> bucket 0 (anything <= m is bucket 0 too)
    1.1  .. 1.21  -> bucket 1
    1.21 .. 1.331 -> bucket 2
"""

import logging
import math
import threading
from typing import Callable, Generic, List, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

B = TypeVar("B")

# Storage is allocated in blocks around the first bucket hit
_HEADROOM = 8
_INITIAL_SLOTS = 16


class ValueBucketer(Generic[B]):
    """
    Sparse, lazily growing array of buckets.

    Only the contiguous range of bucket indexes seen so far has storage,
    offset by `smallest_index`. The offset and the list are published
    together as one tuple. Lookups of buckets that already exist read that
    tuple without locking; creating a bucket or growing the storage swaps in
    a new tuple under the lock.
    """

    def __init__(
        self,
        bucket_factory: Callable[[], B],
        precision: float = 0.1,
        minimum_value: float = 1.0,
    ):
        if not 0 < precision < 1:
            raise ValueError(f"precision must be in (0, 1), got {precision}")
        if minimum_value <= 0:
            raise ValueError(f"minimum_value must be positive, got {minimum_value}")

        self.precision = precision
        self.minimum_value = minimum_value
        self._log_one_plus_precision = math.log(1 + precision)
        self._bucket_factory = bucket_factory

        self._lock = threading.Lock()
        # (smallest_index, slots)
        self._storage: Optional[Tuple[int, List[Optional[B]]]] = None

    @property
    def smallest_index(self) -> int:
        storage = self._storage
        return storage[0] if storage is not None else 0

    @property
    def capacity(self) -> int:
        storage = self._storage
        return len(storage[1]) if storage is not None else 0

    def get_bucket_index(self, value: float) -> int:
        if value <= self.minimum_value:
            return 0
        return int(math.floor(math.log(value / self.minimum_value) / self._log_one_plus_precision))

    def get(self, value: float) -> B:
        """Bucket for `value`, created on first use."""
        index = self.get_bucket_index(value)
        bucket = self.get_by_index(index)
        bucket.bucket_index = index
        return bucket

    def get_by_index(self, index: int) -> B:
        storage = self._storage
        if storage is not None:
            smallest, values = storage
            slot = index - smallest
            if 0 <= slot < len(values):
                bucket = values[slot]
                if bucket is not None:
                    return bucket

        with self._lock:
            slot, values = self._expand(index)
            bucket = values[slot]
            if bucket is None:
                bucket = values[slot] = self._bucket_factory()
        return bucket

    def for_each(self, action: Callable[[float, Optional[B]], bool]) -> None:
        """
        Call action(canonical_value, bucket) for every storage slot, lowest first.

        Slots that were allocated but never used pass None. Iteration stops
        as soon as action returns False.
        """
        storage = self._storage
        if storage is None:
            return
        smallest, values = storage

        value = self.get_bucket_value(smallest)
        one_plus_precision = 1 + self.precision
        for bucket in values:
            if not action(value, bucket):
                return
            value *= one_plus_precision

    def round_to_bucket_minimum(self, value: float) -> float:
        return self.minimum_value * math.exp(self._log_one_plus_precision * self.get_bucket_index(value))

    def round_to_bucket_value(self, value: float) -> float:
        """Canonical value of the bucket holding `value`: halfway into the bucket."""
        return self.round_to_bucket_minimum(value) * (1 + self.precision / 2)

    def bucket_size(self, value: float) -> float:
        return self.round_to_bucket_minimum(value) * self.precision

    def get_bucket_value(self, bucket_index: int) -> float:
        """Canonical value of bucket `bucket_index`. Inverse of get_bucket_index."""
        return (
            self.minimum_value
            * math.exp(self._log_one_plus_precision * bucket_index)
            * (1 + self.precision / 2)
        )

    def _expand(self, index: int) -> Tuple[int, List[Optional[B]]]:
        """Make room for bucket `index`; returns its slot and list. Caller holds the lock."""
        if self._storage is None:
            smallest = max(0, index - _HEADROOM)
            values: List[Optional[B]] = [None] * _INITIAL_SLOTS
            self._storage = (smallest, values)
            logger.debug(f"[ValueBucketer] Allocated {_INITIAL_SLOTS} slots from bucket {smallest}")
            return index - smallest, values

        smallest, values = self._storage
        slot = index - smallest
        if slot < 0:
            new_smallest = min(0, index - _HEADROOM)
            values = [None] * (smallest - new_smallest) + values
            self._storage = (new_smallest, values)
            return index - new_smallest, values

        if slot < len(values):
            return slot, values

        new_len = max(slot + _HEADROOM, len(values) * 5 // 4)
        values = values + [None] * (new_len - len(values))
        self._storage = (smallest, values)
        logger.debug(f"[ValueBucketer] Grew storage to {new_len} slots")
        return slot, values
