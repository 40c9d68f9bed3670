"""Business logic layer for files app.

This package contains the owner-scoped file repository:
- save, update and remove of project files and user files
- metadata listings with deferred content
- content retrieval checked against the owner

All business logic should be implemented here, separate from
models (data layer) and infrastructure (external systems).
"""
