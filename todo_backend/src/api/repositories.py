from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from threading import RLock
from typing import Any, Dict, List, Mapping, Optional

from bson import ObjectId
from bson.errors import InvalidId

from .errors import MalformedIdentifierError
from .models import TodoEntity
from .schemas import TodoCreate
from .settings import Settings, get_settings

# Fields a client may change through an update
UPDATABLE_FIELDS = ("title", "description", "completed", "archived")


# PUBLIC_INTERFACE
def parse_object_id(todo_id: str) -> ObjectId:
    """
    Parse a path identifier into an ObjectId.

    Raises:
        MalformedIdentifierError: if the value is not a 24-character hex string.
    """
    try:
        return ObjectId(todo_id)
    except (InvalidId, TypeError) as exc:
        raise MalformedIdentifierError() from exc


# PUBLIC_INTERFACE
class Repository(ABC):
    """Abstract repository contract for todo storage backends."""

    @abstractmethod
    def create(self, data: TodoCreate) -> TodoEntity:
        """Persist a normalized TodoCreate and return the stored entity."""

    @abstractmethod
    def get(self, todo_id: str) -> Optional[TodoEntity]:
        """Return a TodoEntity by id, or None if not found."""

    @abstractmethod
    def update(self, todo_id: str, fields: Mapping[str, Any]) -> Optional[TodoEntity]:
        """Apply the given fields atomically. Return the updated entity or None if not found."""

    @abstractmethod
    def delete(self, todo_id: str) -> Optional[TodoEntity]:
        """Delete a TodoEntity by id. Return the deleted snapshot or None if not found."""

    @abstractmethod
    def list(self) -> List[TodoEntity]:
        """Return every TodoEntity, newest first."""

    def connect(self) -> Dict[str, Any]:
        """
        Establish (or verify) connectivity to the backing store.

        Returns a small description of the store for logging.
        """
        return {"backend": "memory"}

    def close(self) -> None:
        """Release resources held by the repository."""


class InMemoryRepository(Repository):
    """
    Thread-safe in-memory repository suitable for testing and local runs.

    Identifiers are real ObjectIds so malformed ids behave as they do against MongoDB.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._items: dict[str, TodoEntity] = {}

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)

    def create(self, data: TodoCreate) -> TodoEntity:
        now = self._now()
        entity: TodoEntity = {
            "id": str(ObjectId()),
            "title": data.title or "",
            "description": data.description or "",
            "completed": bool(data.completed),
            "archived": False,
            "created_at": now,
            "updated_at": now,
        }
        with self._lock:
            self._items[entity["id"]] = entity
        return entity.copy()

    def get(self, todo_id: str) -> Optional[TodoEntity]:
        key = str(parse_object_id(todo_id))
        with self._lock:
            item = self._items.get(key)
            return None if item is None else item.copy()

    def update(self, todo_id: str, fields: Mapping[str, Any]) -> Optional[TodoEntity]:
        key = str(parse_object_id(todo_id))
        with self._lock:
            existing = self._items.get(key)
            if existing is None:
                return None

            updated = existing.copy()
            for name in UPDATABLE_FIELDS:
                if name in fields:
                    updated[name] = fields[name]  # type: ignore[literal-required]
            updated["updated_at"] = self._now()

            self._items[key] = updated
            return updated.copy()

    def delete(self, todo_id: str) -> Optional[TodoEntity]:
        key = str(parse_object_id(todo_id))
        with self._lock:
            removed = self._items.pop(key, None)
            return None if removed is None else removed.copy()

    def list(self) -> List[TodoEntity]:
        with self._lock:
            # ObjectIds grow monotonically, so they order todos created within the same tick
            items = sorted(
                self._items.values(),
                key=lambda t: (t["created_at"], ObjectId(t["id"])),
                reverse=True,
            )
            return [t.copy() for t in items]


# PUBLIC_INTERFACE
def get_repository(settings: Optional[Settings] = None) -> Repository:
    """
    Factory to return the configured repository based on settings.
    - mongo: MongoRepository (pymongo client, connects lazily)
    - memory: InMemoryRepository
    """
    settings = settings or get_settings()
    if settings.persistence_backend == "memory":
        return InMemoryRepository()

    from .db import MongoRepository

    return MongoRepository.from_settings(settings)
