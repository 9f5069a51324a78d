"""
Request filters shared by every report endpoint
"""

from pydantic import BaseModel, Field
from typing import Optional
import logging
import re

logger = logging.getLogger(__name__)

# Leading integer of the parameter, so "2023abc" and "2024.5" read as years
YEAR_PREFIX = re.compile(r"\s*([+-]?\d+)")


class ReportFilters(BaseModel):
    """Year and salesperson filters of a report request"""
    annee: Optional[int] = Field(None, description="Year filter, None for every year")
    commercial: Optional[str] = Field(None, description="Salesperson id, None or 'all' for every salesperson")


def parse_annee(annee: Optional[str]) -> Optional[int]:
    """
    Parse the year query parameter

    The year is read from the leading digits of the value. Absent, empty,
    zero or non-numeric values mean "no year filter" rather than a client
    error.
    """
    if annee is None:
        return None

    match = YEAR_PREFIX.match(annee)
    if match is None:
        logger.debug(f"Ignoring invalid year filter: {annee!r}")
        return None

    return int(match.group(1)) or None


def report_filters(annee: Optional[str] = None, commercial: Optional[str] = None) -> ReportFilters:
    """FastAPI dependency reading the ``annee`` and ``commercial`` query parameters"""
    return ReportFilters(annee=parse_annee(annee), commercial=commercial or None)
