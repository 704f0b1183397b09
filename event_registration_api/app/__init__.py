"""
Application package.

``main`` assembles the FastAPI application.  The rest is organised in
layers: ``core`` (configuration, database, errors, identity, locks),
``schemas`` (pydantic models), ``services`` (business logic and
storage adapters) and ``api`` (versioned HTTP routers).
"""
