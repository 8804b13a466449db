# src/edushield/__init__.py
"""EduShield school-records core."""

__version__ = "0.1.0"
