"""
Inspection workflow types and data classes
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class InspectionStatus(str, Enum):
    """Inspection status of one team at one event"""
    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    INCOMPLETE = "INCOMPLETE"
    PASSED = "PASSED"

    @property
    def code(self) -> str:
        return STATUS_CODES[self]

    @property
    def label(self) -> str:
        return STATUS_LABELS[self]

    @classmethod
    def coerce(cls, raw) -> 'InspectionStatus':
        """Read a stored status; anything unrecognised counts as NOT_STARTED."""
        try:
            return cls(raw)
        except ValueError:
            return cls.NOT_STARTED


STATUS_CODES = {
    InspectionStatus.NOT_STARTED: "0",
    InspectionStatus.IN_PROGRESS: "1",
    InspectionStatus.INCOMPLETE: "2",
    InspectionStatus.PASSED: "3",
}

STATUS_LABELS = {
    InspectionStatus.NOT_STARTED: "Not Started",
    InspectionStatus.IN_PROGRESS: "In Progress",
    InspectionStatus.INCOMPLETE: "Incomplete",
    InspectionStatus.PASSED: "Passed",
}

VALID_STATUSES = frozenset(status.value for status in InspectionStatus)


class HistoryAction(str, Enum):
    """Action tags written to inspection_history"""
    STATUS_CHANGE = "STATUS_CHANGE"
    LEAD_OVERRIDE = "LEAD_OVERRIDE"


@dataclass(frozen=True)
class InspectionProgress:
    """Required-item completion counts for one team"""
    completed_required: int
    missing_required: int
    total_required: int

    @property
    def is_complete(self) -> bool:
        return self.missing_required == 0

    def to_dict(self) -> dict:
        return {
            'completedRequired': self.completed_required,
            'missingRequired': self.missing_required,
            'totalRequired': self.total_required,
        }


@dataclass(frozen=True)
class TeamIdentity:
    """Canonical team shape, whichever table layout it was read from"""
    team_number: int
    team_name: str
    organization_school: str = ''
    city: str = ''
    country: str = ''

    def to_dict(self) -> dict:
        return {
            'teamNumber': self.team_number,
            'teamName': self.team_name,
            'organizationSchool': self.organization_school,
            'city': self.city,
            'country': self.country,
        }

    def search_text(self) -> str:
        return (
            f'{self.team_number} {self.team_name} {self.organization_school} '
            f'{self.city} {self.country}'
        ).lower()


def matches_search(team: TeamIdentity, search: Optional[str]) -> bool:
    """Trimmed, case-insensitive substring match; a blank search matches all."""
    needle = (search or '').strip().lower()
    return not needle or needle in team.search_text()
