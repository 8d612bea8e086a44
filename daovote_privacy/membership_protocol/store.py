"""
Local persistence for member credentials and completed actions.

Records are keyed by ``(group_id, identity)``. They hold secret material and
are never transmitted; file-backed stores write with mode 0600.
"""

from __future__ import annotations

import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Dict, Optional, Protocol, Set, Tuple

import cbor2

from .types import Credentials

logger = logging.getLogger(__name__)

RECORD_VERSION = 1


def credential_key(group_id: int, identity: str) -> str:
    return f"voting_registration_{group_id}_{identity}"


def action_key(group_id: int, identity: str) -> str:
    return f"actions_{group_id}_{identity}"


class CredentialStore(Protocol):
    def get(self, group_id: int, identity: str) -> Optional[Credentials]: ...

    def put(self, group_id: int, identity: str, credentials: Credentials) -> None: ...

    def delete(self, group_id: int, identity: str) -> None: ...


class ActionLog(Protocol):
    def has_acted(self, group_id: int, identity: str, context_id: int) -> bool: ...

    def record(self, group_id: int, identity: str, context_id: int) -> None: ...


class MemoryCredentialStore:
    def __init__(self) -> None:
        self._records: Dict[str, Credentials] = {}
        self._lock = threading.Lock()

    def get(self, group_id: int, identity: str) -> Optional[Credentials]:
        with self._lock:
            return self._records.get(credential_key(group_id, identity))

    def put(self, group_id: int, identity: str, credentials: Credentials) -> None:
        credentials.validate()
        with self._lock:
            self._records[credential_key(group_id, identity)] = credentials

    def delete(self, group_id: int, identity: str) -> None:
        with self._lock:
            self._records.pop(credential_key(group_id, identity), None)


class MemoryActionLog:
    def __init__(self) -> None:
        self._actions: Set[Tuple[int, str, int]] = set()
        self._lock = threading.Lock()

    def has_acted(self, group_id: int, identity: str, context_id: int) -> bool:
        with self._lock:
            return (group_id, identity, context_id) in self._actions

    def record(self, group_id: int, identity: str, context_id: int) -> None:
        with self._lock:
            self._actions.add((group_id, identity, context_id))


class _CborDirectory:
    """One CBOR file per key, replaced atomically on write."""

    def __init__(self, base_dir: str | Path):
        self.base_dir = Path(base_dir)

    def path_for(self, key: str) -> Path:
        return self.base_dir / f"{key}.cbor"

    def read(self, key: str) -> Optional[dict]:
        path = self.path_for(key)
        try:
            blob = path.read_bytes()
        except FileNotFoundError:
            return None
        payload = cbor2.loads(blob)
        if not isinstance(payload, dict):
            raise ValueError(f"corrupt record: {path}")
        if payload.get("v") != RECORD_VERSION:
            raise ValueError(f"unsupported record version in {path}")
        return payload

    def write(self, key: str, payload: dict) -> None:
        self.base_dir.mkdir(parents=True, exist_ok=True)
        blob = cbor2.dumps({"v": RECORD_VERSION, **payload})
        fd, tmp_name = tempfile.mkstemp(dir=self.base_dir, prefix=".tmp-", suffix=".cbor")
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(blob)
                handle.flush()
                os.fsync(handle.fileno())
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self.path_for(key))
        except BaseException:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise

    def remove(self, key: str) -> None:
        try:
            self.path_for(key).unlink()
        except FileNotFoundError:
            pass


class FileCredentialStore:
    """Credential records persisted as CBOR files under ``base_dir``."""

    def __init__(self, base_dir: str | Path):
        self._dir = _CborDirectory(base_dir)

    @property
    def base_dir(self) -> Path:
        return self._dir.base_dir

    def get(self, group_id: int, identity: str) -> Optional[Credentials]:
        """Stored credentials, or None when missing or unreadable (they can be re-derived)."""
        key = credential_key(group_id, identity)
        try:
            payload = self._dir.read(key)
            if payload is None:
                return None
            return Credentials.from_record(payload)
        except (cbor2.CBORDecodeError, ValueError, KeyError, TypeError) as exc:
            logger.warning("ignoring unreadable credential record %s: %s", self._dir.path_for(key), exc)
            return None

    def put(self, group_id: int, identity: str, credentials: Credentials) -> None:
        credentials.validate()
        self._dir.write(credential_key(group_id, identity), credentials.to_record())
        logger.debug("stored credentials for group %s", group_id)

    def delete(self, group_id: int, identity: str) -> None:
        self._dir.remove(credential_key(group_id, identity))


class FileActionLog:
    """Completed single-use contexts per ``(group_id, identity)``."""

    def __init__(self, base_dir: str | Path):
        self._dir = _CborDirectory(base_dir)
        self._lock = threading.Lock()

    def has_acted(self, group_id: int, identity: str, context_id: int) -> bool:
        payload = self._dir.read(action_key(group_id, identity))
        if payload is None:
            return False
        return context_id in payload.get("contexts", [])

    def record(self, group_id: int, identity: str, context_id: int) -> None:
        key = action_key(group_id, identity)
        with self._lock:
            payload = self._dir.read(key) or {}
            contexts = set(payload.get("contexts", []))
            contexts.add(context_id)
            self._dir.write(key, {"contexts": sorted(contexts)})
