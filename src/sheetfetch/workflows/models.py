"""Value types shared by the acquisition engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from ..core.keys import (
    K_ATTEMPTS,
    K_DETAIL,
    K_ELAPSED_MS,
    K_ERROR,
    K_KIND,
    K_OK,
    K_PATH,
    K_SIZE_BYTES,
    K_SOURCE_STRATEGY,
    K_STATUS,
    K_STRATEGY,
)


class StrategyName(str, Enum):
    DIRECT_REPLAY = "direct_replay"
    NATIVE_EVENT = "native_event"
    VIEWER = "viewer"
    RESOURCE_URL = "resource_url"
    HTTP_REPLICATION = "http_replication"


class DiscoveryMethod(str, Enum):
    EMBED = "embed"
    FRAME = "frame"
    OBJECT = "object"
    HYPERLINK = "hyperlink"


class FailureKind(str, Enum):
    TIMEOUT = "timeout"
    VALIDATION_FAILED = "validation_failed"
    TRANSPORT_ERROR = "transport_error"
    MISSING_FORM_FIELD = "missing_form_field"
    UNEXPECTED = "unexpected"


@dataclass(frozen=True)
class AcquisitionRequest:
    """What to name the artifact and where to put it."""

    classification_tags: Tuple[str, ...]
    destination_root: Path
    source_identifier: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "classification_tags", tuple(self.classification_tags))
        object.__setattr__(self, "destination_root", Path(self.destination_root))


@dataclass(frozen=True)
class Success:
    data: bytes = field(repr=False)
    content_type: str = ""

    @property
    def byte_length(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class NotApplicable:
    reason: str


@dataclass(frozen=True)
class Failed:
    kind: FailureKind
    reason: str


StrategyOutcome = Union[Success, NotApplicable, Failed]


@dataclass(frozen=True)
class FormSnapshot:
    """Read-only view of a form's ``name -> value`` pairs."""

    fields: Mapping[str, str]

    def __post_init__(self) -> None:
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))

    def get(self, name: str) -> Optional[str]:
        return self.fields.get(name)

    def missing(self, *required: str) -> List[str]:
        return [name for name in required if not self.fields.get(name)]

    def is_complete(self, id_field: str, token_field: str) -> bool:
        return not self.missing(id_field, token_field)

    def as_dict(self) -> Dict[str, str]:
        return dict(self.fields)


@dataclass(frozen=True)
class ExtractedResourceReference:
    url: str
    method: DiscoveryMethod


@dataclass(frozen=True)
class ArtifactRecord:
    path: Path
    size_bytes: int
    source_strategy: StrategyName

    def to_dict(self) -> Dict[str, Any]:
        return {
            K_PATH: str(self.path),
            K_SIZE_BYTES: self.size_bytes,
            K_SOURCE_STRATEGY: self.source_strategy.value,
        }


@dataclass(frozen=True)
class AttemptRecord:
    """Log line for one strategy attempt inside an acquisition."""

    strategy: StrategyName
    status: str
    detail: str = ""
    kind: Optional[FailureKind] = None
    elapsed_ms: int = 0

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            K_STRATEGY: self.strategy.value,
            K_STATUS: self.status,
            K_ELAPSED_MS: self.elapsed_ms,
        }
        if self.kind is not None:
            payload[K_KIND] = self.kind.value
        if self.detail:
            payload[K_DETAIL] = self.detail
        return payload


@dataclass(frozen=True)
class AcquisitionResult:
    """Result of ``Acquirer.acquire``; ``record`` is set only on success."""

    ok: bool
    path: Path
    record: Optional[ArtifactRecord] = None
    attempts: Tuple[AttemptRecord, ...] = ()
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            K_OK: self.ok,
            K_PATH: str(self.path),
            K_SOURCE_STRATEGY: self.record.source_strategy.value if self.record else None,
            K_SIZE_BYTES: self.record.size_bytes if self.record else None,
            K_ATTEMPTS: [attempt.to_dict() for attempt in self.attempts],
            K_ERROR: self.error,
        }


__all__ = [
    "AcquisitionRequest",
    "AcquisitionResult",
    "ArtifactRecord",
    "AttemptRecord",
    "DiscoveryMethod",
    "ExtractedResourceReference",
    "Failed",
    "FailureKind",
    "FormSnapshot",
    "NotApplicable",
    "StrategyName",
    "StrategyOutcome",
    "Success",
]
