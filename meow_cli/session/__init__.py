"""Named chat sessions persisted as a single JSON document.

File shape::

    {"current": "default", "chats": {"default": [<message>, ...]}}

A legacy file holding a bare message array is upgraded to a store with a
single ``default`` chat.
"""

import copy
import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ValidationError

from meow_cli.exceptions import (
    SessionError,
    SessionExistsError,
    SessionImportError,
    SessionNotFoundError,
)
from meow_cli.logging import get_logger

log = get_logger(__name__)

DEFAULT_SESSION = "default"


@dataclass
class ChatSession:
    """A named conversation, without the system message."""

    name: str
    messages: list[dict[str, Any]] = field(default_factory=list)

    def replace_messages(self, messages: list[dict[str, Any]]) -> None:
        """Overwrite the whole history."""
        self.messages = [dict(msg) for msg in messages]


class StoreSnapshot(BaseModel):
    """Serialized form of the whole store."""

    current: str = DEFAULT_SESSION
    chats: dict[str, list[dict[str, Any]]]


def _normalize_name(name: str) -> str:
    cleaned = str(name or "").strip()
    if not cleaned:
        raise SessionError("Session name must not be empty")
    return cleaned


class SessionStore:
    """Mapping of session name to ChatSession plus a current pointer."""

    def __init__(self, path: Path | str | None = None, autosave: bool = True):
        """Initialize an empty store.

        Args:
            path: JSON file backing the store; None keeps it in memory only
            autosave: Save after every mutating operation when a path is set
        """
        self.path = Path(path).expanduser() if path else None
        self.autosave = autosave
        self._chats: dict[str, ChatSession] = {}
        self._current = DEFAULT_SESSION
        self._ensure_current()

    @classmethod
    def load(cls, path: Path | str, autosave: bool = True) -> "SessionStore":
        """Load the store from disk, accepting the legacy bare-array shape."""
        path = Path(path).expanduser()
        store = cls(path=path, autosave=autosave)
        if not path.exists():
            return store

        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
            snapshot = cls._parse_blob(raw, allow_legacy=True)
        except (OSError, json.JSONDecodeError, SessionImportError) as e:
            backup = path.with_name(path.name + ".bak")
            log.warning("Session file unreadable, starting empty", path=str(path), backup=str(backup), error=str(e))
            try:
                path.replace(backup)
            except OSError as backup_error:
                log.debug("Could not back up session file", error=str(backup_error))
            return store

        store._apply_snapshot(snapshot)
        log.debug("Sessions loaded", path=str(path), count=len(store._chats), current=store._current)
        return store

    @staticmethod
    def _parse_blob(raw: Any, allow_legacy: bool = False) -> StoreSnapshot:
        if allow_legacy and isinstance(raw, list):
            log.info("Upgrading legacy session history", messages=len(raw))
            raw = {"current": DEFAULT_SESSION, "chats": {DEFAULT_SESSION: raw}}
        if not isinstance(raw, dict) or not isinstance(raw.get("chats"), dict):
            raise SessionImportError("Session data must contain a 'chats' mapping")
        try:
            return StoreSnapshot.model_validate(raw)
        except ValidationError as e:
            raise SessionImportError(f"Invalid session data: {e}") from e

    def _apply_snapshot(self, snapshot: StoreSnapshot) -> None:
        # The system message comes from the active profile at send time.
        self._chats = {
            name: ChatSession(
                name=name,
                messages=[copy.deepcopy(msg) for msg in messages if msg.get("role") != "system"],
            )
            for name, messages in snapshot.chats.items()
        }
        self._current = snapshot.current
        self._ensure_current()

    def _ensure_current(self) -> None:
        """Point `current` at an existing chat, creating `default` if needed."""
        if self._current in self._chats:
            return
        log.debug("Repairing current session pointer", current=self._current)
        self._current = DEFAULT_SESSION
        self._chats.setdefault(DEFAULT_SESSION, ChatSession(name=DEFAULT_SESSION))

    def _changed(self) -> None:
        if self.autosave and self.path is not None:
            self.save()

    @property
    def current(self) -> str:
        """Name of the active session."""
        self._ensure_current()
        return self._current

    @property
    def current_session(self) -> ChatSession:
        return self._chats[self.current]

    def list_names(self) -> list[str]:
        """Session names in sorted order."""
        return sorted(self._chats)

    def __contains__(self, name: object) -> bool:
        return name in self._chats

    def __len__(self) -> int:
        return len(self._chats)

    def _get_or_create(self, name: str) -> tuple[ChatSession, bool]:
        key = _normalize_name(name)
        session = self._chats.get(key)
        if session is not None:
            return session, False
        session = ChatSession(name=key)
        self._chats[key] = session
        log.info("Created session", name=key)
        return session, True

    def get(self, name: str) -> ChatSession:
        """Return a session, creating it on first reference."""
        session, created = self._get_or_create(name)
        if created:
            self._changed()
        return session

    def create(self, name: str) -> ChatSession:
        """Create a new empty session.

        Raises:
            SessionExistsError if the name is taken
        """
        key = _normalize_name(name)
        if key in self._chats:
            raise SessionExistsError(key)
        session = ChatSession(name=key)
        self._chats[key] = session
        log.info("Created session", name=key)
        self._changed()
        return session

    def switch(self, name: str) -> ChatSession:
        """Make an existing session current.

        Raises:
            SessionNotFoundError if the name is absent
        """
        key = _normalize_name(name)
        if key not in self._chats:
            raise SessionNotFoundError(key)
        self._current = key
        self._changed()
        return self._chats[key]

    def delete(self, name: str) -> None:
        """Delete a session; deleting the current one moves to the first remaining name."""
        key = _normalize_name(name)
        if key not in self._chats:
            raise SessionNotFoundError(key)
        del self._chats[key]
        if key == self._current:
            remaining = sorted(self._chats)
            self._current = remaining[0] if remaining else DEFAULT_SESSION
            self._ensure_current()
        log.info("Deleted session", name=key, current=self._current)
        self._changed()

    def clear(self, name: str | None = None) -> ChatSession:
        """Empty a session's history in place."""
        key = self.current if name is None else _normalize_name(name)
        session = self._chats.get(key)
        if session is None:
            raise SessionNotFoundError(key)
        session.messages.clear()
        self._changed()
        return session

    def rename(self, old: str, new: str) -> ChatSession:
        """Rename a session, keeping its history and current status."""
        old_key, new_key = _normalize_name(old), _normalize_name(new)
        if old_key not in self._chats:
            raise SessionNotFoundError(old_key)
        if new_key in self._chats:
            raise SessionExistsError(new_key)
        session = self._chats.pop(old_key)
        session.name = new_key
        self._chats[new_key] = session
        if self._current == old_key:
            self._current = new_key
        self._changed()
        return session

    def commit(self, name: str, messages: list[dict[str, Any]]) -> None:
        """Overwrite a session's history with a completed conversation."""
        session, _ = self._get_or_create(name)
        session.replace_messages(messages)
        self._changed()

    def export(self) -> dict[str, Any]:
        """Whole-store JSON-compatible snapshot."""
        return {
            "current": self.current,
            "chats": {name: copy.deepcopy(s.messages) for name, s in self._chats.items()},
        }

    def import_(self, blob: Any) -> None:
        """Replace the whole store from a snapshot.

        Raises:
            SessionImportError if the blob lacks a `chats` mapping
        """
        snapshot = self._parse_blob(blob)
        self._apply_snapshot(snapshot)
        log.info("Sessions imported", count=len(self._chats), current=self._current)
        self._changed()

    def export_to_file(self, path: Path | str) -> Path:
        target = Path(path).expanduser()
        self._write_json(target, self.export())
        return target

    def import_from_file(self, path: Path | str) -> None:
        source = Path(path).expanduser()
        try:
            blob = json.loads(source.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise SessionImportError(f"Cannot read {source}: {e}") from e
        self.import_(blob)

    @staticmethod
    def _write_json(target: Path, data: dict[str, Any]) -> None:
        """Write JSON atomically (temp file + replace)."""
        target.parent.mkdir(parents=True, exist_ok=True)
        tmp = target.with_name(target.name + ".tmp")
        tmp.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
        os.replace(tmp, target)

    def save(self) -> None:
        """Persist the store to its backing file."""
        if self.path is None:
            return
        self._write_json(self.path, self.export())
