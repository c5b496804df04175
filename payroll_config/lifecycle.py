"""
Configuration lifecycle status.

Statutory configuration sets are append-only.  A regulatory change is a new
file with a higher version and a new effective date; the previous set stays
on disk for recalculation of earlier periods.  Only PUBLISHED sets are
preferred when more than one set covers a date.
"""

from enum import Enum, unique


@unique
class ConfigStatus(str, Enum):
    """Lifecycle status for a configuration set."""

    DRAFT = "draft"
    REVIEWED = "reviewed"
    PUBLISHED = "published"
    SUPERSEDED = "superseded"
