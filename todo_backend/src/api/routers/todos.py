from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request, status

from ..errors import NotFoundError, ValidationError, store_errors
from ..repositories import Repository
from ..schemas import ErrorEnvelope, TodoCreate, TodoEnvelope, TodoListEnvelope, TodoOut, TodoUpdate
from ..utils import envelope

logger = logging.getLogger(__name__)

router = APIRouter(tags=["todos"])

_ERROR_RESPONSES: Dict[Any, Dict[str, Any]] = {
    400: {"model": ErrorEnvelope, "description": "Invalid ID format or invalid request body"},
    404: {"model": ErrorEnvelope, "description": "Todo not found"},
    500: {"model": ErrorEnvelope, "description": "Store failure"},
}


def _get_repo(request: Request) -> Repository:
    """
    Dependency returning the repository injected into the app by create_app().
    """
    return request.app.state.repository


def _require_title(value: Any) -> str:
    title = value.strip() if isinstance(value, str) else ""
    if not title:
        raise ValidationError("Todo title (title) is required.")
    return title


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=TodoListEnvelope,
    summary="List Todos",
    description="Return every todo, newest first, with the total count.",
    responses={500: _ERROR_RESPONSES[500]},
)
def list_todos(repo: Repository = Depends(_get_repo)) -> Dict[str, Any]:
    """
    List all todos ordered by creation time, most recent first.
    """
    with store_errors("fetching the todo list"):
        items = repo.list()
    return envelope(
        "Fetched the todo list successfully.",
        data=[TodoOut(**it) for it in items],  # type: ignore[arg-type]
        count=len(items),
    )


# PUBLIC_INTERFACE
@router.get(
    "/{todo_id}",
    response_model=TodoEnvelope,
    summary="Get Todo",
    description="Get a single Todo item by ID.",
    responses=_ERROR_RESPONSES,
)
def get_todo(todo_id: str, repo: Repository = Depends(_get_repo)) -> Dict[str, Any]:
    """
    Retrieve a single Todo item by its ID.
    """
    with store_errors("fetching the todo"):
        item = repo.get(todo_id)
    if item is None:
        raise NotFoundError()
    return envelope("Fetched the todo successfully.", data=TodoOut(**item))  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=TodoEnvelope,
    status_code=status.HTTP_201_CREATED,
    summary="Create Todo",
    description="Create a new Todo item and return the stored resource.",
    responses={400: _ERROR_RESPONSES[400], 500: _ERROR_RESPONSES[500]},
)
def create_todo(payload: TodoCreate, repo: Repository = Depends(_get_repo)) -> Dict[str, Any]:
    """
    Create a new Todo. The title is checked before the store is touched;
    description defaults to "" and completed to false.
    """
    title = _require_title(payload.title)
    normalized = TodoCreate(
        title=title,
        description=payload.description or "",
        completed=bool(payload.completed),
    )
    with store_errors("creating the todo"):
        created = repo.create(normalized)
    logger.debug("Created todo %s", created["id"])
    return envelope("Todo created.", data=TodoOut(**created))  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.put(
    "/{todo_id}",
    response_model=TodoEnvelope,
    summary="Update Todo",
    description=(
        "Partially update a Todo item. Only keys present in the body are changed, "
        "so false and empty-string values are applied too."
    ),
    responses=_ERROR_RESPONSES,
)
def update_todo(todo_id: str, payload: TodoUpdate, repo: Repository = Depends(_get_repo)) -> Dict[str, Any]:
    """
    Apply the fields present in the body in one atomic store update.
    """
    fields = payload.model_dump(include=payload.model_fields_set)
    if not fields:
        raise ValidationError(
            "Provide at least one field to update (title, description, completed, archived)."
        )

    if "title" in fields:
        fields["title"] = _require_title(fields["title"])
    if "description" in fields and fields["description"] is None:
        fields["description"] = ""
    for flag in ("completed", "archived"):
        if flag in fields and fields[flag] is None:
            raise ValidationError(f"'{flag}' must be true or false.")

    with store_errors("updating the todo"):
        updated = repo.update(todo_id, fields)
    if updated is None:
        raise NotFoundError()
    return envelope("Todo updated.", data=TodoOut(**updated))  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.delete(
    "/{todo_id}",
    response_model=TodoEnvelope,
    summary="Delete Todo",
    description="Delete a Todo item by ID and return the deleted snapshot.",
    responses=_ERROR_RESPONSES,
)
def delete_todo(todo_id: str, repo: Repository = Depends(_get_repo)) -> Dict[str, Any]:
    """
    Delete a Todo. Returns 200 with the removed item, 404 if not found.
    """
    with store_errors("deleting the todo"):
        removed = repo.delete(todo_id)
    if removed is None:
        raise NotFoundError()
    return envelope("Todo deleted.", data=TodoOut(**removed))  # type: ignore[arg-type]
