"""
app/repositories package marker.
"""

from app.repositories.import_log_repository import ImportLogRepository
from app.repositories.report_repository import ReportRepository

__all__ = [
    "ImportLogRepository",
    "ReportRepository",
]
