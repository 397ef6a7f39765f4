from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from bson import ObjectId
from pymongo import DESCENDING, ReturnDocument

from src.api.db import COLLECTION, DEFAULT_DATABASE, MongoRepository
from src.api.errors import MalformedIdentifierError
from src.api.schemas import TodoCreate
from src.api.settings import get_settings

CREATED = datetime(2025, 1, 25, 10, 15, 30, tzinfo=timezone.utc)


@pytest.fixture
def collection():
    return MagicMock(name="collection")


@pytest.fixture
def client(collection):
    client = MagicMock(name="client")
    client.get_default_database.return_value.__getitem__.return_value = collection
    return client


@pytest.fixture
def repo(client):
    return MongoRepository(client)


def make_doc(**overrides):
    doc = {
        "_id": ObjectId(),
        "title": "Stored",
        "description": "",
        "completed": False,
        "archived": False,
        "createdAt": CREATED,
        "updatedAt": CREATED,
    }
    doc.update(overrides)
    return doc


def test_uses_default_database_and_collection(client):
    MongoRepository(client)
    client.get_default_database.assert_called_once_with(default=DEFAULT_DATABASE)
    client.get_default_database.return_value.__getitem__.assert_called_once_with(COLLECTION)


def test_create_inserts_full_document(repo, collection):
    new_id = ObjectId()
    collection.insert_one.return_value.inserted_id = new_id

    todo = repo.create(TodoCreate(title="Buy milk"))

    (doc,), _ = collection.insert_one.call_args
    assert doc["title"] == "Buy milk"
    assert doc["description"] == ""
    assert doc["completed"] is False
    assert doc["archived"] is False
    assert doc["createdAt"] == doc["updatedAt"]
    assert todo["id"] == str(new_id)
    assert todo["created_at"] == doc["createdAt"]


def test_get_queries_by_object_id(repo, collection):
    doc = make_doc()
    collection.find_one.return_value = doc

    todo = repo.get(str(doc["_id"]))

    collection.find_one.assert_called_once_with({"_id": doc["_id"]})
    assert todo["id"] == str(doc["_id"])
    assert todo["title"] == "Stored"


def test_get_missing_returns_none(repo, collection):
    collection.find_one.return_value = None
    assert repo.get(str(ObjectId())) is None


def test_malformed_id_never_reaches_the_driver(repo, collection):
    with pytest.raises(MalformedIdentifierError):
        repo.get("not-an-id")
    with pytest.raises(MalformedIdentifierError):
        repo.update("not-an-id", {"title": "x"})
    with pytest.raises(MalformedIdentifierError):
        repo.delete("not-an-id")
    collection.find_one.assert_not_called()
    collection.find_one_and_update.assert_not_called()
    collection.find_one_and_delete.assert_not_called()


def test_update_sets_only_present_fields(repo, collection):
    doc = make_doc(completed=False)
    collection.find_one_and_update.return_value = doc

    repo.update(str(doc["_id"]), {"completed": False, "ignored": 1})

    args, kwargs = collection.find_one_and_update.call_args
    assert args[0] == {"_id": doc["_id"]}
    changes = args[1]["$set"]
    assert changes["completed"] is False
    assert "ignored" not in changes
    assert "title" not in changes
    assert "updatedAt" in changes
    assert kwargs["return_document"] is ReturnDocument.AFTER


def test_delete_returns_snapshot(repo, collection):
    doc = make_doc(title="Gone")
    collection.find_one_and_delete.return_value = doc
    removed = repo.delete(str(doc["_id"]))
    assert removed["title"] == "Gone"


def test_list_sorts_newest_first(repo, collection):
    docs = [make_doc(title="B"), make_doc(title="A")]
    collection.find.return_value.sort.return_value = iter(docs)

    todos = repo.list()

    collection.find.return_value.sort.assert_called_once_with([("createdAt", DESCENDING), ("_id", DESCENDING)])
    assert [t["title"] for t in todos] == ["B", "A"]


def test_legacy_document_without_archive_flag(repo, collection):
    doc = make_doc()
    del doc["archived"]
    del doc["updatedAt"]
    collection.find_one.return_value = doc

    todo = repo.get(str(doc["_id"]))

    assert todo["archived"] is False
    assert todo["updated_at"] == CREATED


def test_connect_pings_and_indexes(repo, client, collection):
    info = repo.connect()
    client.admin.command.assert_called_once_with("ping")
    collection.create_index.assert_called_once_with([("createdAt", DESCENDING)])
    assert info["backend"] == "mongo"


def test_close_closes_client(repo, client):
    repo.close()
    client.close.assert_called_once_with()


def test_from_settings_defers_client_until_first_use(monkeypatch, client):
    factory = MagicMock(return_value=client)
    monkeypatch.setattr("src.api.db.MongoClient", factory)
    monkeypatch.setenv("MONGO_URL", "mongodb+srv://user:pw@cluster0.example.net/todo")

    repo = MongoRepository.from_settings(get_settings())
    factory.assert_not_called()

    repo.list()
    repo.list()
    factory.assert_called_once()
    assert factory.call_args.args[0] == "mongodb+srv://user:pw@cluster0.example.net/todo"
    assert factory.call_args.kwargs["tz_aware"] is True


def test_close_before_first_use_is_a_no_op(monkeypatch):
    factory = MagicMock()
    monkeypatch.setattr("src.api.db.MongoClient", factory)
    MongoRepository.from_settings(get_settings()).close()
    factory.assert_not_called()


def test_document_without_created_at_uses_id_timestamp(repo, collection):
    doc = make_doc()
    del doc["createdAt"]
    del doc["updatedAt"]
    collection.find_one.return_value = doc

    todo = repo.get(str(doc["_id"]))

    assert todo["created_at"] == doc["_id"].generation_time
    assert todo["updated_at"] == todo["created_at"]
