"""High-level exports for the sheetfetch workflows."""

from .acquire import Acquirer, acquire
from .acquire_config import DEFAULT_CONFIG, AcquireConfig
from .models import (
    AcquisitionRequest,
    AcquisitionResult,
    ArtifactRecord,
    StrategyName,
)
from .paths import resolve, source_id_from_url
from .validator import validate

__all__ = [
    "DEFAULT_CONFIG",
    "AcquireConfig",
    "Acquirer",
    "AcquisitionRequest",
    "AcquisitionResult",
    "ArtifactRecord",
    "StrategyName",
    "acquire",
    "resolve",
    "source_id_from_url",
    "validate",
]
