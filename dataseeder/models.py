"""
Shared data model for the import and export engines.
"""

import dataclasses
import enum
from typing import Any, Dict, List, Optional

# Seed file sections
SEED_CONFIG = "seedConfig"
SEED_DATA = "seedData"

# Every container is partitioned on this field
PARTITION_KEY_FIELD = "pk"
DEFAULT_PARTITION_KEY_PATH = f"/{PARTITION_KEY_FIELD}"

# Fields starting with this prefix are managed by Cosmos DB (_rid, _etag, _ts, ...)
SYSTEM_FIELD_PREFIX = "_"


@dataclasses.dataclass
class SeedDocument:
    """A document read from a seed file."""

    id: str
    partition_key_value: Optional[str]
    payload: Dict[str, Any]
    container: Optional[str] = None

    @property
    def effective_partition_key(self) -> str:
        return self.partition_key_value or self.id

    @property
    def has_explicit_partition_key(self) -> bool:
        return bool(self.partition_key_value)


@dataclasses.dataclass
class ContainerSpec:
    name: str
    partition_key_path: str = DEFAULT_PARTITION_KEY_PATH
    needs_explicit_partition_key: bool = False

    @property
    def partition_strategy(self) -> str:
        if self.needs_explicit_partition_key:
            return "with explicit partition keys"
        return "using document ID as partition key"


@dataclasses.dataclass(frozen=True)
class PartitionKeyRange:
    """
    A server-reported sub-range of a container's partition key space.

    feed_range is the opaque scope the SDK uses to restrict a query to this range.
    """

    id: str
    min_inclusive: str
    max_exclusive: str
    feed_range: Optional[Dict[str, Any]] = dataclasses.field(
        default=None, compare=False, hash=False
    )


@dataclasses.dataclass
class DocumentPage:
    documents: List[Dict[str, Any]]
    continuation_token: Optional[str]
    request_charge: float


class ExportOutcome(enum.Enum):
    EXPORTED = "exported"
    UPDATED = "updated"
    SKIPPED = "skipped"


@dataclasses.dataclass
class ExportCounts:
    exported: int = 0
    updated: int = 0
    skipped: int = 0
    ru_consumed: float = 0.0

    @property
    def processed(self) -> int:
        return self.exported + self.updated + self.skipped

    def record(self, outcome: ExportOutcome):
        if outcome is ExportOutcome.EXPORTED:
            self.exported += 1
        elif outcome is ExportOutcome.UPDATED:
            self.updated += 1
        else:
            self.skipped += 1
