"""
JSON-file document stores.

Each store is a single JSON object mapping record keys to documents.
Writes go to a temporary file that then replaces the original, so a
crash mid-write never leaves a truncated store behind.
"""

import asyncio
import json
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Generic, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from steam_news_relay.contracts.subscriptions import GameSubscription, UserNotificationProfile
from steam_news_relay.logger import get_logger

M = TypeVar("M", bound=BaseModel)

SUBSCRIPTIONS_FILE = "game_subscriptions.json"
USERS_FILE = "users.json"


class DocumentFile(Generic[M]):
    """A JSON object of documents validated against one model."""

    def __init__(self, path: Path, model: type[M]) -> None:
        self.path = path
        self._model = model
        self._logger = get_logger(__name__, component="json_store", file=str(path))
        self.lock = asyncio.Lock()

    def read_raw(self) -> dict[str, Any]:
        """Load the documents without validation."""
        if not self.path.exists():
            return {}
        with self.path.open(encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"{self.path} does not contain a JSON object")
        return data

    def read(self) -> dict[str, M]:
        """
        Load and validate all documents.

        Documents that fail validation are logged and left out.
        """
        records: dict[str, M] = {}
        for key, doc in self.read_raw().items():
            try:
                records[key] = self._model.model_validate(doc)
            except PydanticValidationError as e:
                self._logger.warning(
                    "Skipping malformed document",
                    key=key,
                    errors=e.error_count(),
                )
        return records

    def upsert(self, key: str, record: M) -> None:
        """Replace one document, leaving every other document untouched."""
        documents = self.read_raw()
        documents[key] = record.model_dump(mode="json")
        self.write_raw(documents)

    def remove(self, key: str) -> bool:
        documents = self.read_raw()
        if documents.pop(key, None) is None:
            return False
        self.write_raw(documents)
        return True

    def write_raw(self, documents: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(f"{self.path.name}.tmp")
        with tmp_path.open("w", encoding="utf-8") as f:
            json.dump(documents, f, indent=2, sort_keys=True, default=str)
        tmp_path.replace(self.path)


class JsonGameSubscriptionStore:
    """GameSubscriptionStore persisted to `<data_dir>/game_subscriptions.json`."""

    def __init__(self, data_dir: Path) -> None:
        self._file: DocumentFile[GameSubscription] = DocumentFile(
            data_dir / SUBSCRIPTIONS_FILE, GameSubscription
        )

    @property
    def path(self) -> Path:
        return self._file.path

    async def list_all(self) -> list[GameSubscription]:
        return list(self._file.read().values())

    async def get(self, game_id: str) -> GameSubscription | None:
        return self._file.read().get(game_id)

    async def save(self, record: GameSubscription) -> None:
        async with self._file.lock:
            current = self._file.read().get(record.game_id)
            if current is not None:
                record.advance_watermark(current.last_news_watermark)
            record.updated_at = datetime.now(timezone.utc)
            self._file.upsert(record.game_id, record)

    async def advance_watermark(self, game_id: str, timestamp: int) -> bool:
        async with self._file.lock:
            record = self._file.read().get(game_id)
            if record is None or not record.advance_watermark(timestamp):
                return False
            self._file.upsert(game_id, record)
            return True

    async def delete(self, game_id: str) -> bool:
        async with self._file.lock:
            return self._file.remove(game_id)

    async def delete_where_empty(self) -> int:
        async with self._file.lock:
            raw = self._file.read_raw()
            # Missing or empty subscriber lists both count as orphans;
            # documents that are not objects are left for manual repair
            orphans = [
                key
                for key, doc in raw.items()
                if isinstance(doc, dict) and not doc.get("subscribers")
            ]
            if orphans:
                for key in orphans:
                    del raw[key]
                self._file.write_raw(raw)
            return len(orphans)


class JsonUserDirectory:
    """UserDirectory persisted to `<data_dir>/users.json`."""

    def __init__(self, data_dir: Path) -> None:
        self._file: DocumentFile[UserNotificationProfile] = DocumentFile(
            data_dir / USERS_FILE, UserNotificationProfile
        )

    @property
    def path(self) -> Path:
        return self._file.path

    async def get(self, user_id: str) -> UserNotificationProfile | None:
        return self._file.read().get(user_id)

    async def save(self, profile: UserNotificationProfile) -> None:
        async with self._file.lock:
            self._file.upsert(profile.user_id, profile)

    async def list_all(self) -> list[UserNotificationProfile]:
        return list(self._file.read().values())

    async def find_eligible_by_ids(self, user_ids: Iterable[str]) -> list[UserNotificationProfile]:
        profiles = self._file.read()
        return [
            profiles[user_id]
            for user_id in user_ids
            if user_id in profiles and profiles[user_id].is_eligible
        ]

    async def touch_last_checked(self, user_id: str, when: datetime | None = None) -> None:
        async with self._file.lock:
            profile = self._file.read().get(user_id)
            if profile is None:
                return
            profile.last_checked = when or datetime.now(timezone.utc)
            self._file.upsert(user_id, profile)
