"""Ordered key-value store on SQLite with atomic conditional multi-key commits."""

import asyncio
import functools
import json
import sqlite3
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Sequence, Tuple, Union

from common.logging_config import get_logger
from imagevault.config import KV_VALUE_LIMIT
from imagevault.database import get_db_connection
from imagevault.exceptions import StorageError, ValueTooLargeError

logger = get_logger(__name__)

KeyPart = Union[str, int]
Key = Tuple[KeyPart, ...]

ENCODING_BYTES = "bytes"
ENCODING_JSON = "json"


@dataclass(frozen=True)
class KVEntry:
    """
    A key with its stored value; value and versionstamp are None when the key is absent.
    """
    key: Key
    value: Any
    versionstamp: Optional[int]


def encode_key(key: Sequence[KeyPart]) -> str:
    """
    Encode a key tuple into its stored text form.

    Args:
        key: Non-empty tuple of str/int parts

    Returns:
        JSON array text

    Raises:
        TypeError: If a key part is not str or int
    """
    if not key:
        raise TypeError("Key must have at least one part")
    for part in key:
        if isinstance(part, bool) or not isinstance(part, (str, int)):
            raise TypeError(f"Unsupported key part {part!r}")
    return json.dumps(list(key), separators=(",", ":"))


def decode_key(raw: str) -> Key:
    return tuple(json.loads(raw))


def _key_sort_order(key: Key):
    return tuple((0, part, "") if isinstance(part, int) else (1, 0, part) for part in key)


def encode_value(value: Any) -> Tuple[bytes, str]:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value), ENCODING_BYTES
    return json.dumps(value, separators=(",", ":")).encode("utf-8"), ENCODING_JSON


def decode_value(raw: bytes, encoding: str) -> Any:
    if encoding == ENCODING_BYTES:
        return bytes(raw)
    return json.loads(bytes(raw).decode("utf-8"))


class AtomicOperation:
    """
    Batch of checks and mutations applied in one transaction.

    commit() returns False, writing nothing, when any check fails. A check
    with versionstamp None asserts that the key does not exist.
    """

    def __init__(self, store: "KVStore"):
        self._store = store
        self._checks: List[Tuple[str, Optional[int]]] = []
        self._mutations: List[Tuple[str, Optional[bytes], Optional[str]]] = []

    def check(self, key: Key, versionstamp: Optional[int]) -> "AtomicOperation":
        self._checks.append((encode_key(key), versionstamp))
        return self

    def set(self, key: Key, value: Any) -> "AtomicOperation":
        raw, encoding = self._store._encode_checked(key, value)
        self._mutations.append((encode_key(key), raw, encoding))
        return self

    def delete(self, key: Key) -> "AtomicOperation":
        self._mutations.append((encode_key(key), None, None))
        return self

    async def commit(self) -> bool:
        return await self._store._run(self._commit_sync)

    def _commit_sync(self) -> bool:
        with self._store._connection() as conn:
            cursor = conn.cursor()
            cursor.execute("BEGIN IMMEDIATE")
            try:
                for raw_key, expected in self._checks:
                    cursor.execute("SELECT versionstamp FROM kv WHERE key = ?", (raw_key,))
                    row = cursor.fetchone()
                    current = row["versionstamp"] if row is not None else None
                    if current != expected:
                        conn.rollback()
                        logger.debug(f"Atomic check failed [key={raw_key}]")
                        return False

                if self._mutations:
                    versionstamp = KVStore._next_versionstamp(cursor)
                    for raw_key, raw_value, encoding in self._mutations:
                        KVStore._apply(cursor, raw_key, raw_value, encoding, versionstamp)

                conn.commit()
                return True
            except BaseException:
                conn.rollback()
                raise


class KVStore:
    """
    Ordered-key store with per-value size limit and atomic conditional writes.

    Every blocking SQLite call runs on the loop's default executor.
    """

    def __init__(self, db_path: Optional[str] = None, value_limit: int = KV_VALUE_LIMIT):
        self.db_path = db_path
        self.value_limit = value_limit

    def atomic(self) -> AtomicOperation:
        return AtomicOperation(self)

    async def get(self, key: Key) -> KVEntry:
        entries = await self.get_many([key])
        return entries[0]

    async def get_many(self, keys: Sequence[Key]) -> List[KVEntry]:
        """
        Read several keys in one connection.

        Args:
            keys: Keys to read

        Returns:
            One KVEntry per key, in the order given
        """
        raw_keys = [encode_key(key) for key in keys]
        rows = await self._run(self._get_many_sync, raw_keys)
        return [
            KVEntry(key=tuple(key), value=value, versionstamp=versionstamp)
            for key, (value, versionstamp) in zip(keys, rows)
        ]

    async def set(self, key: Key, value: Any) -> int:
        """
        Write a single value.

        Returns:
            Versionstamp assigned to the write
        """
        raw, encoding = self._encode_checked(key, value)
        return await self._run(self._set_sync, encode_key(key), raw, encoding)

    async def delete(self, key: Key) -> None:
        await self._run(self._delete_sync, encode_key(key))

    async def list(self, prefix: Key) -> List[KVEntry]:
        """
        List entries whose key starts with prefix, ordered by key.
        """
        raw_prefix = encode_key(prefix)[:-1] + ","
        rows = await self._run(self._list_sync, raw_prefix)
        entries = [
            KVEntry(key=decode_key(raw_key), value=decode_value(raw, encoding), versionstamp=versionstamp)
            for raw_key, raw, encoding, versionstamp in rows
        ]
        entries.sort(key=lambda entry: _key_sort_order(entry.key))
        return entries

    def _encode_checked(self, key: Key, value: Any) -> Tuple[bytes, str]:
        raw, encoding = encode_value(value)
        if len(raw) > self.value_limit:
            raise ValueTooLargeError(
                f"Value for key {list(key)} is {len(raw)} bytes, limit is {self.value_limit}"
            )
        return raw, encoding

    def _connection(self):
        return get_db_connection(self.db_path)

    async def _run(self, func: Callable, *args):
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, functools.partial(func, *args))
        except sqlite3.Error as e:
            logger.error(f"KV store operation failed: {e}", exc_info=True)
            raise StorageError(f"Key-value store unavailable: {e}") from e

    def _get_many_sync(self, raw_keys: List[str]) -> List[Tuple[Any, Optional[int]]]:
        with self._connection() as conn:
            cursor = conn.cursor()
            results = []
            for raw_key in raw_keys:
                cursor.execute(
                    "SELECT value, encoding, versionstamp FROM kv WHERE key = ?",
                    (raw_key,)
                )
                row = cursor.fetchone()
                if row is None:
                    results.append((None, None))
                else:
                    results.append((decode_value(row["value"], row["encoding"]), row["versionstamp"]))
            return results

    def _set_sync(self, raw_key: str, raw_value: bytes, encoding: str) -> int:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute("BEGIN IMMEDIATE")
            try:
                versionstamp = self._next_versionstamp(cursor)
                self._apply(cursor, raw_key, raw_value, encoding, versionstamp)
                conn.commit()
                return versionstamp
            except BaseException:
                conn.rollback()
                raise

    def _delete_sync(self, raw_key: str) -> None:
        with self._connection() as conn:
            conn.execute("DELETE FROM kv WHERE key = ?", (raw_key,))
            conn.commit()

    def _list_sync(self, raw_prefix: str) -> List[Tuple[str, bytes, str, int]]:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT key, value, encoding, versionstamp
                FROM kv
                WHERE substr(key, 1, ?) = ?
                """,
                (len(raw_prefix), raw_prefix)
            )
            return [
                (row["key"], row["value"], row["encoding"], row["versionstamp"])
                for row in cursor.fetchall()
            ]

    @staticmethod
    def _next_versionstamp(cursor: sqlite3.Cursor) -> int:
        cursor.execute("UPDATE kv_version SET current = current + 1 WHERE id = 1")
        cursor.execute("SELECT current FROM kv_version WHERE id = 1")
        return cursor.fetchone()["current"]

    @staticmethod
    def _apply(
        cursor: sqlite3.Cursor,
        raw_key: str,
        raw_value: Optional[bytes],
        encoding: Optional[str],
        versionstamp: int,
    ) -> None:
        if raw_value is None:
            cursor.execute("DELETE FROM kv WHERE key = ?", (raw_key,))
            return
        cursor.execute(
            """
            INSERT INTO kv (key, value, encoding, versionstamp)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET
                value = excluded.value,
                encoding = excluded.encoding,
                versionstamp = excluded.versionstamp
            """,
            (raw_key, sqlite3.Binary(raw_value), encoding, versionstamp)
        )
