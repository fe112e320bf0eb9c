import asyncio
import json
import logging
import os
import sys
import time
from dataclasses import asdict
from datetime import datetime, timedelta, timezone
from pathlib import Path
from time import perf_counter

from .config import load_config
from .fetcher import PlaywrightPageFetcher
from .logging_utils import new_run_id, set_run_id, setup_logging
from .notifier import build_notifier
from .pipeline import run_watch_job
from .storage import build_store
from .time_utils import format_duration


def _write_status(path: Path, payload: dict, logger: logging.Logger) -> None:
    try:
        tmp = path.with_suffix(path.suffix + ".tmp")
        tmp.write_text(json.dumps(payload, ensure_ascii=False, indent=2), "utf-8")
        tmp.replace(path)
    except OSError:
        logger.exception("status_write_failed path=%s", path)


def run_once(cfg, logger: logging.Logger, store, fetcher, notifier) -> dict:
    """Run one job and return its status entry; never raises."""
    run_id = new_run_id()
    set_run_id(run_id)
    started = datetime.now(timezone.utc)
    logger.info("watch_job_start run_at=%s url=%s", started.isoformat(), cfg.page_url)
    start_ts = perf_counter()

    status = {"run_id": run_id, "status": "ok", "started_at": started.isoformat()}
    try:
        result = asyncio.run(run_watch_job(cfg, logger, store, fetcher, notifier))
        status.update(asdict(result))
    except Exception as exc:
        status["status"] = "error"
        status["error"] = {"type": type(exc).__name__, "message": str(exc)}
        logger.exception("watch_job_failed")

    duration_seconds = perf_counter() - start_ts
    status["finished_at"] = datetime.now(timezone.utc).isoformat()
    status["duration_seconds"] = duration_seconds
    status["duration_human"] = format_duration(duration_seconds)
    logger.info(
        "watch_job_end status=%s duration_human=%s",
        status["status"],
        status["duration_human"],
    )
    _write_status(cfg.out_dir / "status.json", {"watch_job": status}, logger)
    return status


def main() -> None:
    setup_logging(os.getenv("LOG_LEVEL", "INFO"))
    logger = logging.getLogger(__name__)

    cfg = load_config()
    logger.info(
        "config page_url=%s storage_backend=%s snapshot_prefix=%s diff_prefix=%s retention_seconds=%s interval_seconds=%s",
        cfg.page_url,
        cfg.storage_backend,
        cfg.snapshot_prefix,
        cfg.diff_prefix,
        cfg.retention_seconds,
        cfg.run_interval_seconds,
    )

    store = build_store(cfg, logger)
    fetcher = PlaywrightPageFetcher(cfg.user_agent, cfg.fetch_timeout_ms)
    notifier = build_notifier(cfg, logger)

    try:
        if cfg.run_interval_seconds <= 0:
            status = run_once(cfg, logger, store, fetcher, notifier)
            if status["status"] != "ok":
                sys.exit(1)
            return

        while True:
            run_once(cfg, logger, store, fetcher, notifier)
            next_run = datetime.now(timezone.utc) + timedelta(seconds=cfg.run_interval_seconds)
            logger.info(
                "scheduler_sleep seconds=%s next_run_at=%s",
                cfg.run_interval_seconds,
                next_run.isoformat(),
            )
            time.sleep(cfg.run_interval_seconds)
    finally:
        store.close()


if __name__ == "__main__":
    main()
