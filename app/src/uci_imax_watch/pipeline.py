import asyncio
import logging
from datetime import datetime, timedelta, timezone
from time import perf_counter
from typing import Callable

from .differ import changed_parts, count_changes, diff_showings, has_changes
from .errors import ExtractionMiss, StorageError
from .extractor import collect_script_text, extract_block
from .fetcher import PageFetcher
from .interpreter import interpret
from .models import RunResult, Showing
from .normalizer import normalize
from .notifier import Notifier
from .snapshots import (
    Selection,
    diff_key,
    load_snapshot,
    save_diff,
    save_snapshot,
    select_latest_two,
    snapshot_key,
    sweep,
)
from .storage import BlobStore


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_schedule(html: str, start_marker: str, end_marker: str) -> list[Showing]:
    """Page markup to showings: script text, marker block, literal data, flat rows."""
    logger = logging.getLogger(__name__)
    script_text = collect_script_text(html)
    block = extract_block(script_text, start_marker, end_marker)
    if block is None:
        raise ExtractionMiss(start_marker, end_marker)
    logger.info("schedule_block_found chars=%s", len(block))
    bindings = interpret(block)
    return normalize(bindings["days"])


async def _compare_latest(
    cfg,
    logger: logging.Logger,
    store: BlobStore,
    notifier: Notifier,
    select: Selection,
    now: datetime,
    result: RunResult,
) -> None:
    listing = await asyncio.to_thread(store.list, cfg.snapshot_prefix)
    pair = select(listing)
    if pair is None:
        logger.info("compare_skipped reason=not_enough_snapshots snapshots=%s", len(listing))
        return
    latest, previous = pair
    logger.info("compare previous=%s latest=%s", previous.key, latest.key)

    previous_showings, latest_showings = await asyncio.gather(
        asyncio.to_thread(load_snapshot, store, previous.key),
        asyncio.to_thread(load_snapshot, store, latest.key),
    )
    parts = diff_showings(previous_showings, latest_showings)
    result.compared = True
    result.added, result.removed = count_changes(parts)
    logger.info(
        "diff added_count=%s removed_count=%s parts=%s",
        result.added,
        result.removed,
        len(parts),
    )
    if not has_changes(parts):
        logger.info("no_differences")
        return

    key = diff_key(cfg.diff_prefix, now)
    await asyncio.to_thread(save_diff, store, key, changed_parts(parts))
    result.diff_key = key

    try:
        outcome = await asyncio.to_thread(notifier.send, cfg.notification_message)
    except Exception:
        logger.exception("notify_failed")
    else:
        result.notified = outcome.delivered


async def run_watch_job(
    cfg,
    logger: logging.Logger,
    store: BlobStore,
    fetcher: PageFetcher,
    notifier: Notifier,
    select: Selection = select_latest_two,
    clock: Callable[[], datetime] = _utcnow,
) -> RunResult:
    """One run: fetch, parse, persist the snapshot, compare the two newest
    snapshots, persist the diff and notify on change, then sweep old files.

    Any WatchError before the snapshot is written leaves storage untouched.
    """
    result = RunResult()
    start_ts = perf_counter()

    html = await fetcher.fetch(cfg.page_url)
    showings = parse_schedule(html, cfg.start_marker, cfg.end_marker)
    result.showings_found = len(showings)

    now = clock()
    key = snapshot_key(cfg.snapshot_prefix, now)
    await asyncio.to_thread(save_snapshot, store, key, showings)
    result.snapshot_key = key

    await _compare_latest(cfg, logger, store, notifier, select, now, result)

    max_age = timedelta(seconds=cfg.retention_seconds)
    for prefix in (cfg.snapshot_prefix, cfg.diff_prefix):
        try:
            result.deleted += await asyncio.to_thread(sweep, store, prefix, max_age, clock())
        except StorageError:
            logger.exception("retention_sweep_failed prefix=%s", prefix)

    logger.info(
        "watch_job_done duration_ms=%s showings=%s added=%s removed=%s notified=%s deleted=%s",
        int((perf_counter() - start_ts) * 1000),
        result.showings_found,
        result.added,
        result.removed,
        result.notified,
        result.deleted,
    )
    return result
