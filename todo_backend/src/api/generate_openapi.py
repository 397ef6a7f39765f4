"""
Utility script to generate and write the OpenAPI schema for the FastAPI app.

The schema is built from an app wired to an in-memory repository, so no
database is needed to export it.

Usage:
    python -m src.api.generate_openapi [output_path]

Notes:
- The script ensures every tag from openapi_tags is present in the schema.
- Default output path is relative to the container root: interfaces/openapi.json
"""
from __future__ import annotations

import json
import logging
import os
import sys
from typing import Any, Dict, Optional

from .main import create_app, openapi_tags
from .repositories import InMemoryRepository

logger = logging.getLogger(__name__)


def _default_path() -> str:
    script_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))  # .../src
    container_root = os.path.dirname(script_dir)
    return os.path.join(container_root, "interfaces", "openapi.json")


# PUBLIC_INTERFACE
def generate_openapi(out_path: Optional[str] = None) -> str:
    """Generate the OpenAPI schema file and return the written file path."""
    schema: Dict[str, Any] = create_app(repository=InMemoryRepository()).openapi()
    known = {tag.get("name") for tag in schema.get("tags") or []}
    schema["tags"] = (schema.get("tags") or []) + [t for t in openapi_tags if t["name"] not in known]

    path = out_path or _default_path()
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(schema, f, indent=2, ensure_ascii=False)
    logger.info("Wrote OpenAPI schema to: %s", path)
    return path


def main() -> None:
    generate_openapi(sys.argv[1] if len(sys.argv) > 1 else None)


if __name__ == "__main__":
    main()
