"""Failure report rendering."""

from .report_generator import ReportGenerator, detect_test_type, iso_timestamp, report_base_name

__all__ = [
    "ReportGenerator",
    "detect_test_type",
    "iso_timestamp",
    "report_base_name",
]
