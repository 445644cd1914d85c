"""Emoji Maker — FastAPI REST API layer.

Modules
-------
main
    Application factory with all route handlers and the ``main()`` CLI
    entry point.
models
    Pydantic models for API request and response validation.
gallery_store
    Gallery filtering and pagination helpers.
"""
