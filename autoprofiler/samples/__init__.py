from .bucket import SampleActivityBucket
from .bucketer import ValueBucketer
from .container import SampleActivityContainer, SampleActivityContainerFactory

__all__ = [
    "SampleActivityBucket",
    "ValueBucketer",
    "SampleActivityContainer",
    "SampleActivityContainerFactory",
]
