"""JSON persistence for the ad store and the ranked digest.

Both files are replaced atomically (temp file in the same directory, fsync,
``os.replace``), so readers never observe a half-written file. The store is
single-writer: hold ``store_lock`` for the whole load/merge/save cycle.
"""

from __future__ import annotations

import fcntl
import json
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from .logging import jlog
from .models import Digest, Store, StoreEntry

DEFAULT_DATA_DIR = Path("data")
STORE_FILENAME = "store.json"
DIGEST_FILENAME = "top24.json"


class PersistenceError(RuntimeError):
    """Raised when the store or digest cannot be written."""


def _read_json(path: Path) -> Any:
    with open(path, encoding="utf-8") as fh:
        return json.load(fh)


def load_store(path: str | os.PathLike[str]) -> Store:
    """Load the store; a missing or corrupt file yields an empty store."""

    path = Path(path)
    try:
        raw = _read_json(path)
    except FileNotFoundError:
        return {}
    except (OSError, ValueError) as exc:
        jlog("warning", event="store_load_failed", path=str(path), error=str(exc))
        return {}
    if not isinstance(raw, dict):
        jlog("warning", event="store_load_failed", path=str(path), error="top-level value is not an object")
        return {}

    store: Store = {}
    skipped = 0
    for key, value in raw.items():
        try:
            store[str(key)] = StoreEntry.from_dict(value)
        except ValueError:
            skipped += 1
    if skipped:
        jlog("warning", event="store_entries_skipped", path=str(path), skipped=skipped)
    return store


def load_digest(path: str | os.PathLike[str]) -> Digest | None:
    path = Path(path)
    try:
        return Digest.from_dict(_read_json(path))
    except FileNotFoundError:
        return None
    except (OSError, TypeError, ValueError) as exc:
        jlog("warning", event="digest_load_failed", path=str(path), error=str(exc))
        return None


def _write_temp(path: Path, payload: Any) -> str:
    """Write ``payload`` to a synced temp file beside ``path``; returns its name."""

    if path.is_dir():
        raise PersistenceError(f"failed to write {path}: target is a directory")
    tmp_name: str | None = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "w", encoding="utf-8", dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp", delete=False
        ) as tmp:
            tmp_name = tmp.name
            json.dump(payload, tmp, ensure_ascii=False, indent=2)
            tmp.flush()
            os.fsync(tmp.fileno())
        return tmp_name
    except (OSError, TypeError, ValueError) as exc:
        _discard(tmp_name)
        raise PersistenceError(f"failed to write {path}: {exc}") from exc


def _discard(tmp_name: str | None) -> None:
    if tmp_name and os.path.exists(tmp_name):
        os.unlink(tmp_name)


def _replace_all(pending: list[tuple[str, Path]]) -> None:
    try:
        for tmp_name, path in pending:
            os.replace(tmp_name, path)
    except OSError as exc:
        for tmp_name, _ in pending:
            _discard(tmp_name)
        raise PersistenceError(f"failed to replace {path}: {exc}") from exc


def atomic_write_json(path: str | os.PathLike[str], payload: Any) -> None:
    path = Path(path)
    _replace_all([(_write_temp(path, payload), path)])


def _store_payload(store: Store) -> dict[str, Any]:
    return {key: entry.to_dict() for key, entry in store.items()}


def save_store(path: str | os.PathLike[str], store: Store) -> None:
    atomic_write_json(path, _store_payload(store))
    jlog("info", event="store_saved", path=str(path), size=len(store))


def save_digest(path: str | os.PathLike[str], digest: Digest) -> None:
    atomic_write_json(path, digest.to_dict())
    jlog("info", event="digest_saved", path=str(path), count=digest.count)


def save_run(
    store_path: str | os.PathLike[str],
    store: Store,
    digest_path: str | os.PathLike[str],
    digest: Digest,
) -> None:
    """Write store and digest together.

    Both temp files are written and synced before either target is replaced,
    so a failure while serializing or writing leaves both previous files as
    they were.
    """

    store_path, digest_path = Path(store_path), Path(digest_path)
    store_tmp = _write_temp(store_path, _store_payload(store))
    try:
        digest_tmp = _write_temp(digest_path, digest.to_dict())
    except PersistenceError:
        _discard(store_tmp)
        raise
    # the store goes last; it is what the next run reads
    _replace_all([(digest_tmp, digest_path), (store_tmp, store_path)])
    jlog("info", event="store_saved", path=str(store_path), size=len(store))
    jlog("info", event="digest_saved", path=str(digest_path), count=digest.count)


@contextmanager
def store_lock(path: str | os.PathLike[str]) -> Iterator[None]:
    """Hold an exclusive lock next to the store file; blocks while another run holds it."""

    lock_path = Path(f"{path}.lock")
    try:
        lock_path.parent.mkdir(parents=True, exist_ok=True)
        lock = open(lock_path, "a+")
    except OSError as exc:
        raise PersistenceError(f"cannot open lock file {lock_path}: {exc}") from exc
    with lock:
        fcntl.flock(lock, fcntl.LOCK_EX)
        try:
            yield
        finally:
            fcntl.flock(lock, fcntl.LOCK_UN)


__all__ = [
    "DEFAULT_DATA_DIR",
    "DIGEST_FILENAME",
    "STORE_FILENAME",
    "PersistenceError",
    "atomic_write_json",
    "load_digest",
    "load_store",
    "save_digest",
    "save_run",
    "save_store",
    "store_lock",
]
