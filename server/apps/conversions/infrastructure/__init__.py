"""Infrastructure layer for conversions app.

HTTP client of the external conversion engine.
"""
