"""Persistence for profiles and per-profile practice state."""

from __future__ import annotations

import json
import logging
import sqlite3
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Protocol

from .errors import StorageUnavailable

SCHEMA_VERSION = 1

logger = logging.getLogger("verbtrainer.progress")


@dataclass(frozen=True)
class Profile:
    """User profile record."""

    id: int
    name: str


class KeyValueStore(Protocol):
    """Key-value storage for JSON-serializable values."""

    def get(self, key: str, default: Any = None) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...

    def remove(self, key: str) -> None: ...

    def clear(self) -> None: ...


class MemoryKeyValueStore:
    """Process-local store, used for tests and as a fallback."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._values: dict[str, str] = {}
        for key, value in (initial or {}).items():
            self.set(key, value)

    def get(self, key: str, default: Any = None) -> Any:
        raw = self._values.get(key)
        if raw is None:
            return default
        return json.loads(raw)

    def set(self, key: str, value: Any) -> None:
        # Round-trip through JSON so values behave like persisted ones.
        self._values[key] = json.dumps(value)

    def remove(self, key: str) -> None:
        self._values.pop(key, None)

    def clear(self) -> None:
        self._values.clear()


class NullKeyValueStore:
    """Store for contexts without persistent storage: reads return defaults, writes do nothing."""

    def get(self, key: str, default: Any = None) -> Any:
        return default

    def set(self, key: str, value: Any) -> None:
        return None

    def remove(self, key: str) -> None:
        return None

    def clear(self) -> None:
        return None


class ProgressStore:
    """Database access layer for profiles and their saved state."""

    def __init__(self, db_path: Path | str) -> None:
        """Initialize database and schema."""
        if isinstance(db_path, Path):
            db_path.parent.mkdir(parents=True, exist_ok=True)
            target = str(db_path)
        else:
            target = db_path
        try:
            self._conn = sqlite3.connect(target)
        except sqlite3.Error as exc:
            raise StorageUnavailable(f"Could not open progress database: {exc}") from exc
        self._conn.row_factory = sqlite3.Row
        self._apply_migrations()

    def _apply_migrations(self) -> None:
        """Apply forward-only schema migrations to latest version."""
        current = int(self._conn.execute("PRAGMA user_version").fetchone()[0])
        if current > SCHEMA_VERSION:
            raise RuntimeError(f"Database schema version {current} is newer than supported {SCHEMA_VERSION}.")

        with self._conn:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS schema_migrations (
                    version INTEGER PRIMARY KEY,
                    applied_at TEXT NOT NULL
                )
                """)

        for version in range(current + 1, SCHEMA_VERSION + 1):
            if version == 1:
                self._migrate_to_v1()
            with self._conn:
                self._conn.execute(f"PRAGMA user_version = {version}")
                self._conn.execute(
                    "INSERT OR REPLACE INTO schema_migrations (version, applied_at) VALUES (?, ?)",
                    (version, datetime.now(UTC).isoformat()),
                )

    def _migrate_to_v1(self) -> None:
        """Create profile and settings tables."""
        with self._conn:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS profiles (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL UNIQUE,
                    created_at TEXT NOT NULL
                )
                """)
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS settings (
                    profile_id INTEGER NOT NULL,
                    key TEXT NOT NULL,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    PRIMARY KEY (profile_id, key)
                )
                """)

    def list_profiles(self) -> list[Profile]:
        """Return profiles ordered by name."""
        rows = self._conn.execute("SELECT id, name FROM profiles ORDER BY name").fetchall()
        return [Profile(id=int(row["id"]), name=str(row["name"])) for row in rows]

    def create_profile(self, name: str) -> Profile:
        """Create a new profile."""
        now = datetime.now(UTC).isoformat()
        with self._conn:
            cursor = self._conn.execute(
                "INSERT INTO profiles (name, created_at) VALUES (?, ?)",
                (name, now),
            )
        row_id = cursor.lastrowid
        if row_id is None:
            raise RuntimeError("Could not create profile.")
        return Profile(id=int(row_id), name=name)

    def get_profile(self, profile_id: int) -> Profile | None:
        """Get one profile by id."""
        row = self._conn.execute("SELECT id, name FROM profiles WHERE id = ?", (profile_id,)).fetchone()
        if row is None:
            return None
        return Profile(id=int(row["id"]), name=str(row["name"]))

    def delete_profile(self, profile_id: int) -> bool:
        """Delete profile and all associated settings."""
        with self._conn:
            self._conn.execute("DELETE FROM settings WHERE profile_id = ?", (profile_id,))
            cursor = self._conn.execute("DELETE FROM profiles WHERE id = ?", (profile_id,))
        return cursor.rowcount > 0

    def for_profile(self, profile_id: int) -> ProfileStore:
        """Return the key-value view of one profile's settings."""
        return ProfileStore(self, profile_id)

    def read_value(self, profile_id: int, key: str) -> str | None:
        """Return the raw JSON text stored under a key."""
        try:
            row = self._conn.execute(
                "SELECT value FROM settings WHERE profile_id = ? AND key = ?",
                (profile_id, key),
            ).fetchone()
        except sqlite3.Error as exc:
            raise StorageUnavailable(f"Could not read '{key}': {exc}") from exc
        if row is None:
            return None
        return str(row["value"])

    def write_value(self, profile_id: int, key: str, raw: str) -> None:
        """Insert or replace the raw JSON text for a key."""
        now = datetime.now(UTC).isoformat()
        try:
            with self._conn:
                self._conn.execute(
                    """
                    INSERT INTO settings (profile_id, key, value, updated_at)
                    VALUES (?, ?, ?, ?)
                    ON CONFLICT(profile_id, key) DO UPDATE SET
                        value = excluded.value,
                        updated_at = excluded.updated_at
                    """,
                    (profile_id, key, raw, now),
                )
        except sqlite3.Error as exc:
            raise StorageUnavailable(f"Could not write '{key}': {exc}") from exc

    def delete_value(self, profile_id: int, key: str) -> None:
        """Remove one key."""
        try:
            with self._conn:
                self._conn.execute("DELETE FROM settings WHERE profile_id = ? AND key = ?", (profile_id, key))
        except sqlite3.Error as exc:
            raise StorageUnavailable(f"Could not remove '{key}': {exc}") from exc

    def clear_values(self, profile_id: int) -> None:
        """Remove every key of a profile."""
        try:
            with self._conn:
                self._conn.execute("DELETE FROM settings WHERE profile_id = ?", (profile_id,))
        except sqlite3.Error as exc:
            raise StorageUnavailable(f"Could not clear settings: {exc}") from exc

    def close(self) -> None:
        """Close db connection."""
        self._conn.close()

    def __del__(self) -> None:  # pragma: no cover
        """Best-effort connection cleanup."""
        try:
            self.close()
        except Exception:
            pass


class ProfileStore:
    """Key-value store scoped to one profile of a `ProgressStore`."""

    def __init__(self, store: ProgressStore, profile_id: int) -> None:
        self._store = store
        self.profile_id = profile_id

    def get(self, key: str, default: Any = None) -> Any:
        raw = self._store.read_value(self.profile_id, key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except ValueError:
            # Not JSON: hand back the stored text as-is.
            return raw

    def set(self, key: str, value: Any) -> None:
        self._store.write_value(self.profile_id, key, json.dumps(value))

    def remove(self, key: str) -> None:
        self._store.delete_value(self.profile_id, key)

    def clear(self) -> None:
        self._store.clear_values(self.profile_id)


class StorageKeys:
    """Keys used for saved practice state."""

    SELECTED_VERBS = "selectedVerbs"
    TOTAL_SCORE = "totalScore"
    TOTAL_ATTEMPTS = "totalAttempts"
    ANSWERED_CORRECTLY = "answeredCorrectly"
    SHOW_TRANSLATION = "showTranslation"
    SHOW_CONJUGATIONS = "showConjugations"

    ALL = (SELECTED_VERBS, TOTAL_SCORE, TOTAL_ATTEMPTS, ANSWERED_CORRECTLY, SHOW_TRANSLATION, SHOW_CONJUGATIONS)


@dataclass(frozen=True)
class SavedProgress:
    """Score counters and mastered pairs."""

    total_score: int
    total_attempts: int
    answered_correctly: list[str]


@dataclass(frozen=True)
class UiPreferences:
    """Display toggles."""

    show_translation: bool
    show_conjugations: bool


class UserSettings:
    """Typed access to saved practice state.

    Storage failures never reach callers. The first failure is logged and the
    rest of the run continues against an in-memory store.
    """

    def __init__(self, store: KeyValueStore | None = None) -> None:
        self._store: KeyValueStore = store if store is not None else NullKeyValueStore()
        self.degraded = False

    def _get(self, key: str, default: Any) -> Any:
        try:
            return self._store.get(key, default)
        except StorageUnavailable as exc:
            self._degrade(exc)
            return self._store.get(key, default)

    def _set(self, key: str, value: Any) -> None:
        try:
            self._store.set(key, value)
        except StorageUnavailable as exc:
            self._degrade(exc)
            self._store.set(key, value)

    def _remove(self, key: str) -> None:
        try:
            self._store.remove(key)
        except StorageUnavailable as exc:
            self._degrade(exc)
            self._store.remove(key)

    def _degrade(self, exc: StorageUnavailable) -> None:
        logger.warning("Progress storage unavailable, keeping progress in memory only: %s", exc)
        self._store = MemoryKeyValueStore()
        self.degraded = True

    def get_selected_verbs(self) -> list[str] | None:
        """Return saved verb selection, or None when never saved."""
        value = self._get(StorageKeys.SELECTED_VERBS, None)
        if not isinstance(value, list):
            return None
        return [str(item) for item in value]

    def save_selected_verbs(self, verbs: list[str]) -> None:
        """Save verb selection."""
        self._set(StorageKeys.SELECTED_VERBS, list(verbs))

    def get_progress(self) -> SavedProgress:
        """Load score counters and mastered pairs."""
        answered = self._get(StorageKeys.ANSWERED_CORRECTLY, [])
        return SavedProgress(
            total_score=_coerce_count(self._get(StorageKeys.TOTAL_SCORE, 0)),
            total_attempts=_coerce_count(self._get(StorageKeys.TOTAL_ATTEMPTS, 0)),
            answered_correctly=[str(item) for item in answered] if isinstance(answered, list) else [],
        )

    def save_progress(self, progress: SavedProgress) -> None:
        """Save score counters and mastered pairs."""
        self._set(StorageKeys.TOTAL_SCORE, progress.total_score)
        self._set(StorageKeys.TOTAL_ATTEMPTS, progress.total_attempts)
        self._set(StorageKeys.ANSWERED_CORRECTLY, list(progress.answered_correctly))

    def reset_progress(self) -> None:
        """Zero score counters and forget mastered pairs."""
        self.save_progress(SavedProgress(total_score=0, total_attempts=0, answered_correctly=[]))

    def get_ui_preferences(self) -> UiPreferences:
        """Load display toggles."""
        return UiPreferences(
            show_translation=bool(self._get(StorageKeys.SHOW_TRANSLATION, False)),
            show_conjugations=bool(self._get(StorageKeys.SHOW_CONJUGATIONS, False)),
        )

    def save_ui_preferences(self, preferences: UiPreferences) -> None:
        """Save display toggles."""
        self._set(StorageKeys.SHOW_TRANSLATION, preferences.show_translation)
        self._set(StorageKeys.SHOW_CONJUGATIONS, preferences.show_conjugations)

    def clear_all(self) -> None:
        """Remove only this application's keys."""
        for key in StorageKeys.ALL:
            self._remove(key)


def _coerce_count(value: object) -> int:
    """Coerce a stored counter to a non-negative int."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int | float):
        return max(0, int(value))
    if isinstance(value, str):
        try:
            return max(0, int(value))
        except ValueError:
            return 0
    return 0
