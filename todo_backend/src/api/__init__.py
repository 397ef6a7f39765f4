"""
Todo backend package.

The FastAPI application lives in `src.api.main` (`app`, or `create_app()` to
build one around a specific repository); `python -m src.api` starts the server.
"""
