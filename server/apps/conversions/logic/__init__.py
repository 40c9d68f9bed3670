"""Business logic layer for conversions app.

Registry of available conversions and dispatch of stored files
to the conversion engine.
"""
