"""
CloudMart Functions — Application Package Initializer
======================================================

What: Marks the `cloudmart` directory as a Python package.
Who:  Imported by uvicorn (cloudmart.main:app), the Azure Functions entry
      point (function_app.py) and pytest.

Architecture Note:
    Each storefront endpoint is a thin pipeline over four layers:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │  Decode → Validate (services)       │  ← raw body to typed value
    ├─────────────────────────────────────┤
    │  Dispatcher → Response Mapper       │  ← one storage call, one Outcome
    ├─────────────────────────────────────┤
    │  Storage Backends (Azure SDKs)      │  ← Tables, Queues, Blobs, Files
    └─────────────────────────────────────┘

    Backends are abstract (storage/base.py), so the dispatcher and routes
    are tested against in-memory fakes.
"""

__version__ = "1.0.0"
