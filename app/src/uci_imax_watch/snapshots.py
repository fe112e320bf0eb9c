import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Sequence

from .errors import StorageError
from .models import BlobInfo, DiffPart, Showing
from .storage import BlobStore
from .time_utils import key_timestamp

Selection = Callable[[Sequence[BlobInfo]], Optional[tuple[BlobInfo, BlobInfo]]]


def snapshot_key(prefix: str, now: datetime | None = None) -> str:
    return f"{prefix}/scraped-data_{key_timestamp(now)}.json"


def diff_key(prefix: str, now: datetime | None = None) -> str:
    return f"{prefix}/differences_{key_timestamp(now)}.json"


def _dump(payload: list) -> bytes:
    return json.dumps(payload, ensure_ascii=False, indent=2).encode("utf-8")


def save_snapshot(store: BlobStore, key: str, showings: Sequence[Showing]) -> None:
    store.put(key, _dump([s.to_dict() for s in showings]))
    logging.getLogger(__name__).info("snapshot_saved key=%s showings=%s", key, len(showings))


def load_snapshot(store: BlobStore, key: str) -> list[Showing]:
    raw = store.get(key)
    try:
        data = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise StorageError(f"snapshot {key} is not valid JSON: {exc}") from exc
    if not isinstance(data, list):
        raise StorageError(f"snapshot {key} is not a JSON array")
    return [Showing.from_dict(item) for item in data if isinstance(item, dict)]


def save_diff(store: BlobStore, key: str, parts: Sequence[DiffPart]) -> None:
    store.put(key, _dump([p.to_dict() for p in parts]))
    logging.getLogger(__name__).info("diff_saved key=%s parts=%s", key, len(parts))


def select_latest_two(listing: Sequence[BlobInfo]) -> Optional[tuple[BlobInfo, BlobInfo]]:
    """Return ``(latest, previous)`` by modification time, or None when
    fewer than two objects exist. Equal times are ordered by key; snapshot
    keys embed their write time."""
    ordered = sorted(listing, key=lambda b: (b.last_modified, b.key), reverse=True)
    if len(ordered) < 2:
        return None
    return ordered[0], ordered[1]


def sweep(
    store: BlobStore,
    prefix: str,
    max_age: timedelta,
    now: datetime | None = None,
) -> int:
    """Delete objects under ``prefix`` last modified before ``now - max_age``."""
    logger = logging.getLogger(__name__)
    now = now or datetime.now(timezone.utc)
    cutoff = now - max_age
    deleted = 0
    for blob in store.list(prefix):
        if blob.last_modified < cutoff:
            store.delete(blob.key)
            deleted += 1
    logger.info(
        "retention_sweep prefix=%s deleted=%s cutoff=%s",
        prefix,
        deleted,
        cutoff.isoformat(),
    )
    return deleted
