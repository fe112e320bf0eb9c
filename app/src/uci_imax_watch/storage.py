import logging
import os
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath

import redis

from .errors import StorageError
from .models import BlobInfo


class BlobStore:
    def put(self, key: str, data: bytes) -> None:
        raise NotImplementedError

    def get(self, key: str) -> bytes:
        raise NotImplementedError

    def list(self, prefix: str) -> list[BlobInfo]:
        """Objects under ``prefix``, newest first."""
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError

    def close(self) -> None:
        return None


def _newest_first(items: list[BlobInfo]) -> list[BlobInfo]:
    return sorted(items, key=lambda b: b.last_modified, reverse=True)


class LocalBlobStore(BlobStore):
    """Objects as files below ``root``; ``a/b.json`` maps to ``root/a/b.json``."""

    def __init__(self, root: Path, logger: logging.Logger | None = None) -> None:
        self._root = Path(root)
        self._logger = logger or logging.getLogger(__name__)
        try:
            self._root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"cannot create storage root {self._root}: {exc}") from exc

    def _path(self, key: str) -> Path:
        parts = PurePosixPath(key).parts
        if not parts or key.startswith("/") or ".." in parts:
            raise StorageError(f"invalid key {key!r}")
        return self._root.joinpath(*parts)

    def put(self, key: str, data: bytes) -> None:
        path = self._path(key)
        tmp = path.with_suffix(path.suffix + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_bytes(data)
            tmp.replace(path)
        except OSError as exc:
            raise StorageError(f"put failed key={key}: {exc}") from exc
        self._logger.debug("blob_put key=%s bytes=%s", key, len(data))

    def get(self, key: str) -> bytes:
        try:
            return self._path(key).read_bytes()
        except OSError as exc:
            raise StorageError(f"get failed key={key}: {exc}") from exc

    def list(self, prefix: str) -> list[BlobInfo]:
        items: list[BlobInfo] = []
        try:
            for path in self._root.rglob("*"):
                if not path.is_file() or path.name.endswith(".tmp"):
                    continue
                key = path.relative_to(self._root).as_posix()
                if not key.startswith(prefix):
                    continue
                mtime = path.stat().st_mtime
                items.append(
                    BlobInfo(key=key, last_modified=datetime.fromtimestamp(mtime, timezone.utc))
                )
        except OSError as exc:
            raise StorageError(f"list failed prefix={prefix}: {exc}") from exc
        return _newest_first(items)

    def delete(self, key: str) -> None:
        try:
            os.remove(self._path(key))
        except FileNotFoundError:
            return
        except OSError as exc:
            raise StorageError(f"delete failed key={key}: {exc}") from exc
        self._logger.debug("blob_deleted key=%s", key)


def _glob_escape(value: str) -> str:
    return "".join("\\" + c if c in "*?[]\\" else c for c in value)


class RedisBlobStore(BlobStore):
    """One hash per object holding the body and its write time."""

    def __init__(self, redis_url: str, logger: logging.Logger, namespace: str = "uci-imax:blob:") -> None:
        self._logger = logger
        self._namespace = namespace
        try:
            self._client = redis.Redis.from_url(
                redis_url,
                socket_connect_timeout=2,
                socket_timeout=5,
            )
            self._client.ping()
        except redis.RedisError as exc:
            raise StorageError(f"redis unavailable: {exc}") from exc

    def _name(self, key: str) -> str:
        return self._namespace + key

    def put(self, key: str, data: bytes) -> None:
        now = datetime.now(timezone.utc).timestamp()
        try:
            self._client.hset(self._name(key), mapping={"body": data, "last_modified": repr(now)})
        except redis.RedisError as exc:
            raise StorageError(f"put failed key={key}: {exc}") from exc
        self._logger.debug("blob_put key=%s bytes=%s", key, len(data))

    def get(self, key: str) -> bytes:
        try:
            body = self._client.hget(self._name(key), "body")
        except redis.RedisError as exc:
            raise StorageError(f"get failed key={key}: {exc}") from exc
        if body is None:
            raise StorageError(f"get failed key={key}: not found")
        return body

    def list(self, prefix: str) -> list[BlobInfo]:
        pattern = _glob_escape(self._name(prefix)) + "*"
        try:
            names = list(self._client.scan_iter(match=pattern, count=500))
            pipe = self._client.pipeline()
            for name in names:
                pipe.hget(name, "last_modified")
            stamps = pipe.execute()
        except redis.RedisError as exc:
            raise StorageError(f"list failed prefix={prefix}: {exc}") from exc

        items: list[BlobInfo] = []
        for name, stamp in zip(names, stamps):
            if stamp is None:
                continue
            key = name.decode("utf-8")[len(self._namespace):]
            items.append(
                BlobInfo(key=key, last_modified=datetime.fromtimestamp(float(stamp), timezone.utc))
            )
        return _newest_first(items)

    def delete(self, key: str) -> None:
        try:
            self._client.delete(self._name(key))
        except redis.RedisError as exc:
            raise StorageError(f"delete failed key={key}: {exc}") from exc
        self._logger.debug("blob_deleted key=%s", key)

    def close(self) -> None:
        try:
            self._client.close()
        except Exception:
            self._logger.debug("store_close_failed", exc_info=True)


def build_store(config, logger: logging.Logger) -> BlobStore:
    backend = getattr(config, "storage_backend", "local")
    if backend == "redis":
        redis_url = getattr(config, "redis_url", None)
        if not redis_url:
            raise StorageError("STORAGE_BACKEND=redis but REDIS_URL is empty")
        logger.info("store_backend=redis redis_url=%s", redis_url)
        return RedisBlobStore(redis_url, logger)

    logger.info("store_backend=local root=%s", config.storage_dir)
    return LocalBlobStore(config.storage_dir, logger)
