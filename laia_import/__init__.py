"""LAIA spreadsheet import pipeline.

Parses an uploaded environmental aspects/impacts spreadsheet, validates the
rows, auto-creates missing sectors and commits the records with per-row
partial-failure accounting.
"""

__version__ = "0.1.0"
