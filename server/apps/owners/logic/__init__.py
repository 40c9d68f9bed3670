"""Business logic layer for owners app.

Resolving external identifiers to owner entries and enforcing
their uniqueness lives here, separate from the models.
"""
