# storefront/database.py
"""
Durable local storage for the client core, shaped like a browser's
localStorage: string values under string keys.

FileStorage keeps the key/value pairs in a small CSV table (columns
`key`, `value`) and takes a file lock around every write so two processes
sharing the file never corrupt it. Each read goes back to the file, so a
write made by another process shows up on the next read; nothing merges
concurrent writers (last write wins).

Usage:
    from storefront.database import FileStorage, dump_record, load_record
    storage = FileStorage()
    storage.set_item("cart-storage", dump_record({"items": []}))
    state = load_record(storage.get_item("cart-storage"))
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

import pandas as pd
from filelock import FileLock

from storefront.config import settings

logger = logging.getLogger(__name__)

COLUMNS = ["key", "value"]


class StorageAdapter(Protocol):
    def get_item(self, key: str) -> Optional[str]:
        ...

    def set_item(self, key: str, value: str) -> None:
        ...

    def remove_item(self, key: str) -> None:
        ...


class MemoryStorage:
    """Dict-backed storage; nothing survives the process."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._data[key] = str(value)

    def remove_item(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self):
        return list(self._data.keys())


class FileStorage:
    """
    CSV-backed key/value storage inside data_dir. Values are kept as strings;
    callers serialize structured state themselves (see dump_record).
    """

    def __init__(self, data_dir: Optional[Path] = None, filename: Optional[str] = None):
        self.data_dir = Path(data_dir if data_dir is not None else settings.DATA_DIR)
        self.path = self.data_dir / (filename or settings.STORAGE_FILE)

    def _lock(self) -> FileLock:
        return FileLock(str(self.path) + ".lock")

    def _read_df(self) -> pd.DataFrame:
        if not self.path.exists():
            return pd.DataFrame(columns=COLUMNS)
        try:
            df = pd.read_csv(self.path, dtype=str, keep_default_na=False)
        except (pd.errors.EmptyDataError, pd.errors.ParserError) as exc:
            logger.warning("Unreadable storage file %s, treating it as empty: %s", self.path, exc)
            return pd.DataFrame(columns=COLUMNS)
        if df.empty or not set(COLUMNS).issubset(df.columns):
            return pd.DataFrame(columns=COLUMNS)
        return df

    def _write_df_nolock(self, df: pd.DataFrame) -> None:
        """
        Write the table WITHOUT acquiring the file lock.
        Use this only when the caller already holds the lock.
        The table goes to a sibling temp file first and is then swapped in,
        so readers never see a half-written file.
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        df.to_csv(tmp_path, index=False, columns=COLUMNS)
        os.replace(tmp_path, self.path)

    def get_item(self, key: str) -> Optional[str]:
        df = self._read_df()
        if df.empty:
            return None
        mask = df["key"] == str(key)
        if not mask.any():
            return None
        return str(df[mask].iloc[-1]["value"])

    def set_item(self, key: str, value: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self._lock():
            df = self._read_df()
            df = df[df["key"] != str(key)]
            row = pd.DataFrame([{"key": str(key), "value": str(value)}])
            df = pd.concat([df, row], ignore_index=True, sort=False)
            self._write_df_nolock(df)

    def remove_item(self, key: str) -> None:
        if not self.path.exists():
            return
        with self._lock():
            df = self._read_df()
            remaining = df[df["key"] != str(key)]
            if len(remaining) == len(df):
                return
            self._write_df_nolock(remaining)

    def keys(self):
        return list(self._read_df()["key"])


def dump_record(state: Dict[str, Any], version: Optional[int] = None) -> str:
    """Serialize state into the versioned {"state", "version"} wrapper."""
    if version is None:
        version = settings.CART_STORAGE_VERSION
    return json.dumps({"state": state, "version": int(version)}, ensure_ascii=False)


def load_record(raw: Optional[str], version: Optional[int] = None) -> Optional[Dict[str, Any]]:
    """
    Inverse of dump_record. Returns None when nothing usable is stored: missing
    key, undecodable JSON, a different version, or a state that is not a mapping.
    """
    if not raw:
        return None
    if version is None:
        version = settings.CART_STORAGE_VERSION
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Discarding undecodable persisted record")
        return None
    if not isinstance(parsed, dict):
        logger.warning("Discarding persisted record with unexpected shape")
        return None
    stored_version = parsed.get("version", 0)
    if stored_version != version:
        logger.warning("Discarding persisted record (version %s, expected %s)", stored_version, version)
        return None
    state = parsed.get("state")
    if not isinstance(state, dict):
        return None
    return state
