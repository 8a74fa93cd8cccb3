"""
autoprofiler/samples/bucket.py

A bucket keeps one representative sample chosen by min-hash.

Among all samples offered to a bucket, the one whose correlation key has
the smallest normalized djb2 hash wins. The choice depends only on the set
of samples offered, never on arrival order, so two runs over the same
traffic keep the same representatives.
"""

import threading
from typing import List, Optional, Tuple

from autoprofiler.contracts.samples import SampleActivity
from autoprofiler.utils.hashing import normalized_hash

_Rank = Tuple[float, Tuple[str, ...]]


class SampleActivityBucket:

    def __init__(self):
        self.bucket_index = 0
        self._lock = threading.Lock()
        self._sample: Optional[SampleActivity] = None
        self._rank: Optional[_Rank] = None

    @property
    def sample(self) -> Optional[SampleActivity]:
        return self._sample

    @property
    def samples(self) -> List[SampleActivity]:
        sample = self._sample
        return [sample] if sample is not None else []

    @staticmethod
    def rank(sample: SampleActivity) -> _Rank:
        # Equal hashes fall back to the identity tuple so the winner stays order independent.
        return normalized_hash(sample.correlation_key or ""), sample.identity

    def add(self, sample: SampleActivity) -> bool:
        """Offer a sample. Returns True when it became the representative."""
        rank = self.rank(sample)
        with self._lock:
            if self._rank is None or rank < self._rank:
                self._sample = sample
                self._rank = rank
                return True
        return False

    def __repr__(self) -> str:
        return f"<SampleActivityBucket index={self.bucket_index} sample={self._sample!r}>"
