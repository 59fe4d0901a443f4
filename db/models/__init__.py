"""
Model package exports.

Import all SQLAlchemy models here so metadata registration and Alembic
autogeneration work without extra imports.
"""

from db.models.import_log import ImportLog, ImportRunStatus
from db.models.report import Report

__all__ = [
    "ImportLog",
    "ImportRunStatus",
    "Report",
]
