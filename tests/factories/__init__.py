"""
Data factories for test data generation.

Factories use factory-boy to create realistic test data with sensible defaults.
All factories support async creation via create_async() method.

Usage:
    from tests.factories import TeamFactory, TaskFactory

    # Create team
    team = await TeamFactory.create_async(db_session, created_by="user-1")

    # Create task
    task = await TaskFactory.create_async(db_session, user_id="user-1")
"""

from tests.factories.organization import OrganizationFactory
from tests.factories.organization_member import OrganizationMemberFactory
from tests.factories.task import TaskFactory
from tests.factories.team import TeamFactory
from tests.factories.team_invite import TeamInviteFactory
from tests.factories.team_member import TeamMemberFactory

__all__ = [
    "OrganizationFactory",
    "OrganizationMemberFactory",
    "TaskFactory",
    "TeamFactory",
    "TeamInviteFactory",
    "TeamMemberFactory",
]
