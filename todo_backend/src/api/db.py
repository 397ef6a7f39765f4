from __future__ import annotations

import logging
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Dict, List, Mapping, Optional

from pymongo import DESCENDING, MongoClient, ReturnDocument, monitoring
from pymongo.collection import Collection
from pymongo.errors import ConfigurationError

from .models import TodoEntity
from .repositories import UPDATABLE_FIELDS, Repository, parse_object_id
from .schemas import TodoCreate
from .settings import Settings

logger = logging.getLogger(__name__)

DEFAULT_DATABASE = "todo-backend"
COLLECTION = "todos"


class ConnectionEventLogger(monitoring.ServerListener):
    """
    Log server state transitions reported by the driver's monitor threads.
    """

    def opened(self, event: monitoring.ServerOpeningEvent) -> None:
        logger.debug("Monitoring MongoDB server %s:%s", *event.server_address)

    def description_changed(self, event: monitoring.ServerDescriptionChangedEvent) -> None:
        was_known = event.previous_description.is_server_type_known
        is_known = event.new_description.is_server_type_known
        if is_known and not was_known:
            logger.info("MongoDB connected: %s:%s", *event.server_address)
        elif was_known and not is_known:
            logger.warning("MongoDB connection lost: %s:%s", *event.server_address)
        if event.new_description.error is not None and not is_known:
            logger.error("MongoDB connection error: %s", event.new_description.error)

    def closed(self, event: monitoring.ServerClosedEvent) -> None:
        logger.info("MongoDB disconnected: %s:%s", *event.server_address)


class MongoRepository(Repository):
    """
    MongoDB repository implementing the Repository interface.

    Each operation is a single-document command, so MongoDB's per-document
    atomicity covers every request.
    """

    def __init__(
        self,
        client: Optional[MongoClient] = None,
        database: Optional[str] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings
        self._database = database
        self._lock = Lock()
        self._client: Optional[MongoClient] = None
        self._db: Any = None
        self._collection: Any = None
        if client is not None:
            self._bind(client)

    @classmethod
    def from_settings(cls, settings: Settings) -> "MongoRepository":
        """
        Build a repository whose client is created on first use.

        Nothing here touches the network, so an unresolvable `mongodb+srv://`
        host cannot stop the app from starting; the failure surfaces from
        connect() or from the first request instead.
        """
        return cls(settings=settings)

    def _bind(self, client: MongoClient) -> None:
        self._client = client
        self._db = client.get_default_database(default=self._database or DEFAULT_DATABASE)
        self._collection = self._db[COLLECTION]

    def _build_client(self) -> MongoClient:
        settings = self._settings
        if settings is None:
            raise ConfigurationError("MongoRepository needs a client or settings")
        # SRV URLs are resolved here, so this can raise ConfigurationError
        return MongoClient(
            settings.mongo_url,
            connectTimeoutMS=settings.mongo_connect_timeout_ms,
            socketTimeoutMS=settings.mongo_socket_timeout_ms,
            serverSelectionTimeoutMS=settings.mongo_server_selection_timeout_ms,
            tz_aware=True,
            event_listeners=[ConnectionEventLogger()],
        )

    def _todos(self) -> Collection:
        if self._collection is None:
            with self._lock:
                if self._collection is None:
                    self._bind(self._build_client())
        return self._collection

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)

    def _doc_to_entity(self, doc: Mapping[str, Any]) -> TodoEntity:
        # fall back to the ObjectId's embedded timestamp for documents written without one
        created_at = doc.get("createdAt") or doc["_id"].generation_time
        return {
            "id": str(doc["_id"]),
            "title": str(doc.get("title", "")),
            "description": doc.get("description") or "",
            "completed": bool(doc.get("completed", False)),
            # documents written before the archive flag existed
            "archived": bool(doc.get("archived", False)),
            "created_at": created_at,
            "updated_at": doc.get("updatedAt") or created_at,
        }

    def connect(self) -> Dict[str, Any]:
        collection = self._todos()
        self._client.admin.command("ping")  # type: ignore[union-attr]
        collection.create_index([("createdAt", DESCENDING)])
        return {
            "backend": "mongo",
            "database": self._db.name,
            "address": self._client.address,  # type: ignore[union-attr]
        }

    def close(self) -> None:
        if self._client is not None:
            self._client.close()

    def create(self, data: TodoCreate) -> TodoEntity:
        now = self._now()
        doc: Dict[str, Any] = {
            "title": data.title or "",
            "description": data.description or "",
            "completed": bool(data.completed),
            "archived": False,
            "createdAt": now,
            "updatedAt": now,
        }
        result = self._todos().insert_one(doc)
        doc["_id"] = result.inserted_id
        return self._doc_to_entity(doc)

    def get(self, todo_id: str) -> Optional[TodoEntity]:
        oid = parse_object_id(todo_id)
        doc = self._todos().find_one({"_id": oid})
        return self._doc_to_entity(doc) if doc else None

    def update(self, todo_id: str, fields: Mapping[str, Any]) -> Optional[TodoEntity]:
        oid = parse_object_id(todo_id)
        changes = {name: fields[name] for name in UPDATABLE_FIELDS if name in fields}
        changes["updatedAt"] = self._now()
        doc = self._todos().find_one_and_update(
            {"_id": oid},
            {"$set": changes},
            return_document=ReturnDocument.AFTER,
        )
        return self._doc_to_entity(doc) if doc else None

    def delete(self, todo_id: str) -> Optional[TodoEntity]:
        oid = parse_object_id(todo_id)
        doc = self._todos().find_one_and_delete({"_id": oid})
        return self._doc_to_entity(doc) if doc else None

    def list(self) -> List[TodoEntity]:
        cursor = self._todos().find().sort([("createdAt", DESCENDING), ("_id", DESCENDING)])
        return [self._doc_to_entity(doc) for doc in cursor]
