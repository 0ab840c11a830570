"""
Discovery data model

Candidates come out of extraction strategies unvalidated; records come out of
the normalizer and are what buckets, payloads and the cache hold.
"""

import time
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Dict, List, Optional, Any, Iterator

# Sentinel title used while a record only has a cover so far
PLACEHOLDER_TITLE = 'Loading...'

DEFAULT_STATUS = 'Ongoing'

# Fields the merger may fill in on an existing record
MERGEABLE_FIELDS = ('title', 'cover_url', 'status', 'rank')


@dataclass
class ExtractionCandidate:
    source_url: str
    title: Optional[str] = None
    cover_url: Optional[str] = None
    status: Optional[str] = None
    rank: Optional[int] = None


@dataclass
class NormalizedRecord:
    source_url: str
    title: str
    cover_url: Optional[str] = None
    status: Optional[str] = None
    rank: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'title': self.title,
            'sourceUrl': self.source_url,
            'coverUrl': self.cover_url or '',
            'status': self.status or DEFAULT_STATUS,
        }
        if self.rank is not None:
            data['rank'] = self.rank
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'NormalizedRecord':
        return cls(
            source_url=data['sourceUrl'],
            title=data['title'],
            cover_url=data.get('coverUrl') or None,
            status=data.get('status') or None,
            rank=data.get('rank'),
        )


def is_empty_value(name: str, value: Any) -> bool:
    """A field counts as empty when missing, blank, or the placeholder title."""
    if value is None:
        return True
    if isinstance(value, str):
        if not value.strip():
            return True
        if name == 'title' and value == PLACEHOLDER_TITLE:
            return True
    return False


class DiscoveryBucket:
    """Named, ordered, duplicate-free sequence of records keyed by source URL."""

    def __init__(self, name: str, records: Optional[List[NormalizedRecord]] = None):
        self.name = name
        self._records: List[NormalizedRecord] = []
        self._positions: Dict[str, int] = {}
        for record in records or []:
            self.add(record)

    def _reindex(self) -> None:
        self._positions = {r.source_url: i for i, r in enumerate(self._records)}

    def add(self, record: NormalizedRecord) -> None:
        """Append, or fill the gaps of the record already holding this URL."""
        from merger import fill_gaps
        position = self._positions.get(record.source_url)
        if position is None:
            self._positions[record.source_url] = len(self._records)
            self._records.append(record)
        else:
            self._records[position] = fill_gaps(self._records[position], record)

    def extend(self, records: List[NormalizedRecord]) -> None:
        for record in records:
            self.add(record)

    def sort_by_rank(self) -> None:
        # Unranked records keep their relative order after ranked ones
        self._records.sort(key=lambda r: (r.rank is None, r.rank or 0))
        self._reindex()

    def truncate(self, cap: Optional[int]) -> None:
        if cap is not None and cap >= 0:
            self._records = self._records[:cap]
            self._reindex()

    @property
    def records(self) -> List[NormalizedRecord]:
        return list(self._records)

    def urls(self) -> List[str]:
        return [r.source_url for r in self._records]

    def to_list(self) -> List[Dict[str, Any]]:
        return [r.to_dict() for r in self._records]

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[NormalizedRecord]:
        return iter(list(self._records))

    def __repr__(self) -> str:
        return f"DiscoveryBucket({self.name!r}, {len(self._records)} records)"


@dataclass
class DiscoveryPayload:
    buckets: Dict[str, DiscoveryBucket] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)

    def bucket(self, name: str) -> DiscoveryBucket:
        if name not in self.buckets:
            self.buckets[name] = DiscoveryBucket(name)
        return self.buckets[name]

    def is_empty(self) -> bool:
        return all(len(b) == 0 for b in self.buckets.values())

    def __getitem__(self, name: str) -> List[Dict[str, Any]]:
        return self.buckets[name].to_list()

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {name: bucket.to_list() for name, bucket in self.buckets.items()}
        data['timestamp'] = self.timestamp
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DiscoveryPayload':
        payload = cls(timestamp=data.get('timestamp') or time.time())
        for name, items in data.items():
            if name == 'timestamp' or not isinstance(items, list):
                continue
            payload.buckets[name] = DiscoveryBucket(
                name, [NormalizedRecord.from_dict(item) for item in items]
            )
        return payload


class SyncStatus(Enum):
    IDLE = 'idle'
    RUNNING = 'running'
    COMPLETED = 'completed'
    FAILED = 'failed'
    CANCELLED = 'cancelled'


@dataclass
class SyncState:
    status: SyncStatus = SyncStatus.IDLE
    current_task: str = ''
    completed_count: int = 0
    total_count: int = 0
    error: Optional[str] = None

    def as_progress(self) -> Dict[str, Any]:
        return {'task': self.current_task, 'current': self.completed_count, 'total': self.total_count}


@dataclass
class ChapterLink:
    title: str
    url: str
    date: Optional[str] = None


@dataclass
class SeriesDetails:
    title: str
    source_url: str
    cover_url: str = ''
    author: str = 'Unknown'
    status: str = 'Unknown'
    summary: str = ''
    category: str = 'Manhwa'
    chapters: List[ChapterLink] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['sourceUrl'] = data.pop('source_url')
        data['coverUrl'] = data.pop('cover_url')
        return data
