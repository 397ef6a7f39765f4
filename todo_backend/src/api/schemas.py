from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


# PUBLIC_INTERFACE
class TodoCreate(BaseModel):
    """
    Schema for creating a new Todo item.

    Every field is optional at the schema level so that a missing or blank
    title is answered by the router with a 400 envelope instead of a raw
    validation error.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Buy groceries",
                "description": "Milk, eggs, bread",
                "completed": False,
            }
        }
    )

    title: Optional[str] = Field(default=None, description="Short title for the todo item (required)")
    description: Optional[str] = Field(default=None, description="Optional detailed description")
    completed: Optional[bool] = Field(default=None, description="Completion status flag")


# PUBLIC_INTERFACE
class TodoUpdate(BaseModel):
    """
    Schema for updating an existing Todo item.
    All fields are optional; only keys present in the request body are applied,
    including falsy values such as false or "".
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Buy groceries and supplies",
                "completed": True,
                "archived": False,
            }
        }
    )

    title: Optional[str] = Field(default=None, description="Short title for the todo item")
    description: Optional[str] = Field(default=None, description="Optional detailed description")
    completed: Optional[bool] = Field(default=None, description="Completion status flag")
    archived: Optional[bool] = Field(default=None, description="Archive flag")


# PUBLIC_INTERFACE
class TodoOut(BaseModel):
    """
    Schema returned by the API for a Todo item.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "id": "665f1c2e9b1e8a3d4c5b6a79",
                "title": "Buy groceries",
                "description": "Milk, eggs, bread",
                "completed": False,
                "archived": False,
                "createdAt": "2025-01-25T10:15:30.123000Z",
                "updatedAt": "2025-01-26T09:00:00.000000Z",
            }
        },
    )

    id: str = Field(..., description="Store-assigned identifier (24-character hex ObjectId)")
    title: str = Field(..., description="Short title for the todo item")
    description: str = Field(default="", description="Detailed description")
    completed: bool = Field(..., description="Completion status flag")
    archived: bool = Field(default=False, description="Archive flag")
    created_at: datetime = Field(..., alias="createdAt", description="Creation timestamp")
    updated_at: datetime = Field(..., alias="updatedAt", description="Last update timestamp")


class TodoEnvelope(BaseModel):
    """Envelope wrapping a single Todo."""

    success: bool = True
    message: str
    data: TodoOut


class TodoListEnvelope(BaseModel):
    """Envelope wrapping the full Todo list."""

    success: bool = True
    message: str
    count: int
    data: List[TodoOut]


class ErrorEnvelope(BaseModel):
    """Envelope returned for every failed request."""

    success: bool = False
    message: str
    error: Optional[str] = None
