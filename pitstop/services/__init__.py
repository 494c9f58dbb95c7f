"""
Business logic services

    checklist           checklist definition and progress counts
    team_directory      team identity resolution and roster writes
    inspection_service  inspection state machine and status views
    user_accounts       console accounts and role assignments
"""
from .checklist import Checklist, calculate_progress
from .inspection_service import InspectionService, ensure_inspection
from .inspection_types import HistoryAction, InspectionProgress, InspectionStatus, TeamIdentity
from .team_directory import EventTeamService, TeamSource, TEAM_SOURCES, resolve_teams
from .user_accounts import UserAccountService

__all__ = [
    'Checklist',
    'calculate_progress',
    'InspectionService',
    'ensure_inspection',
    'HistoryAction',
    'InspectionProgress',
    'InspectionStatus',
    'TeamIdentity',
    'EventTeamService',
    'TeamSource',
    'TEAM_SOURCES',
    'resolve_teams',
    'UserAccountService',
]
