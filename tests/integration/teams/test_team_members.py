"""
Integration tests for team membership.

Tests:
- POST /api/teams/join - Join by code
- GET /api/teams/{team_id}/members - List members
- PATCH /api/teams/{team_id}/members/{user_id} - Change role
- DELETE /api/teams/{team_id}/members/{user_id} - Remove member
- POST /api/teams/{team_id}/leave - Leave team
- POST /api/teams/{team_id}/invites, POST /api/teams/invites/accept
"""

from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from simplr.models.team import Team
from simplr.models.team_member import TeamMember
from tests.helpers import make_auth_headers
from tests.factories import TeamFactory, TeamInviteFactory, TeamMemberFactory


@pytest.mark.asyncio
class TestJoinTeam:
    """Test POST /api/teams/join"""

    async def test_join_with_code(self, client: AsyncClient, team, outsider_headers):
        response = await client.post("/api/teams/join", headers=outsider_headers, json={"join_code": team.join_code})

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == team.id
        assert data["user_role"] == "member"
        assert data["member_count"] == 4

    async def test_join_twice(self, client: AsyncClient, team, member_headers):
        response = await client.post("/api/teams/join", headers=member_headers, json={"join_code": team.join_code})

        assert response.status_code == 409
        assert response.json()["detail"] == "You are already a member of this team"

    async def test_join_full_team(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        team,
        outsider_headers
    ):
        team.max_members = 3
        await db_session.commit()

        response = await client.post("/api/teams/join", headers=outsider_headers, json={"join_code": team.join_code})

        assert response.status_code == 409
        assert response.json()["detail"] == "Team is at maximum capacity"

    async def test_join_invalid_code(self, client: AsyncClient, outsider_headers):
        response = await client.post("/api/teams/join", headers=outsider_headers, json={"join_code": "NOPE42"})

        assert response.status_code == 404
        assert response.json()["detail"] == "Invalid join code or team not found"


@pytest.mark.asyncio
class TestListMembers:
    """Test GET /api/teams/{team_id}/members"""

    async def test_list_members(self, client: AsyncClient, team, member_headers):
        response = await client.get(f"/api/teams/{team.id}/members", headers=member_headers)

        assert response.status_code == 200
        roles = {m["user_id"]: m["role"] for m in response.json()}
        assert roles == {"user-owner": "owner", "user-admin": "admin", "user-member": "member"}

    async def test_outsider_cannot_list_members(self, client: AsyncClient, team, outsider_headers):
        response = await client.get(f"/api/teams/{team.id}/members", headers=outsider_headers)

        assert response.status_code == 403


@pytest.mark.asyncio
class TestUpdateMemberRole:
    """Test PATCH /api/teams/{team_id}/members/{user_id}"""

    async def test_owner_promotes_member(self, client: AsyncClient, team, auth_headers):
        response = await client.patch(
            f"/api/teams/{team.id}/members/user-member",
            headers=auth_headers,
            json={"role": "admin"},
        )

        assert response.status_code == 200
        assert response.json()["role"] == "admin"

    async def test_admin_cannot_grant_owner(self, client: AsyncClient, team, admin_headers):
        response = await client.patch(
            f"/api/teams/{team.id}/members/user-member",
            headers=admin_headers,
            json={"role": "owner"},
        )

        assert response.status_code == 403

    async def test_admin_cannot_demote_owner(self, client: AsyncClient, team, admin_headers):
        response = await client.patch(
            f"/api/teams/{team.id}/members/user-owner",
            headers=admin_headers,
            json={"role": "member"},
        )

        assert response.status_code == 403

    async def test_owner_cannot_change_own_role(self, client: AsyncClient, team, auth_headers):
        response = await client.patch(
            f"/api/teams/{team.id}/members/user-owner",
            headers=auth_headers,
            json={"role": "admin"},
        )

        assert response.status_code == 403

    async def test_member_cannot_change_roles(self, client: AsyncClient, team, member_headers):
        response = await client.patch(
            f"/api/teams/{team.id}/members/user-admin",
            headers=member_headers,
            json={"role": "member"},
        )

        assert response.status_code == 403

    async def test_unknown_member(self, client: AsyncClient, team, auth_headers):
        response = await client.patch(
            f"/api/teams/{team.id}/members/nobody",
            headers=auth_headers,
            json={"role": "admin"},
        )

        assert response.status_code == 404

    async def test_invalid_role(self, client: AsyncClient, team, auth_headers):
        response = await client.patch(
            f"/api/teams/{team.id}/members/user-member",
            headers=auth_headers,
            json={"role": "viewer"},
        )

        assert response.status_code == 422


@pytest.mark.asyncio
class TestRemoveMember:
    """Test DELETE /api/teams/{team_id}/members/{user_id}"""

    async def test_admin_removes_member(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        team,
        admin_headers
    ):
        response = await client.delete(f"/api/teams/{team.id}/members/user-member", headers=admin_headers)

        assert response.status_code == 204
        remaining = await db_session.execute(
            select(TeamMember.user_id).filter(TeamMember.team_id == team.id)
        )
        assert sorted(remaining.scalars().all()) == ["user-admin", "user-owner"]

    async def test_admin_cannot_remove_owner(self, client: AsyncClient, team, admin_headers):
        response = await client.delete(f"/api/teams/{team.id}/members/user-owner", headers=admin_headers)

        assert response.status_code == 403

    async def test_owner_cannot_remove_self(self, client: AsyncClient, team, auth_headers):
        response = await client.delete(f"/api/teams/{team.id}/members/user-owner", headers=auth_headers)

        assert response.status_code == 403

    async def test_member_cannot_remove_members(self, client: AsyncClient, team, member_headers):
        response = await client.delete(f"/api/teams/{team.id}/members/user-admin", headers=member_headers)

        assert response.status_code == 403


@pytest.mark.asyncio
class TestLeaveTeam:
    """Test POST /api/teams/{team_id}/leave"""

    async def test_member_leaves(self, client: AsyncClient, team, member_headers):
        response = await client.post(f"/api/teams/{team.id}/leave", headers=member_headers)

        assert response.status_code == 204
        follow_up = await client.get(f"/api/teams/{team.id}", headers=member_headers)
        assert follow_up.status_code == 403

    async def test_owner_with_members_cannot_leave(self, client: AsyncClient, team, auth_headers):
        response = await client.post(f"/api/teams/{team.id}/leave", headers=auth_headers)

        assert response.status_code == 403
        assert response.json()["detail"] == "Cannot leave team as owner. Transfer ownership or delete the team."

    async def test_sole_owner_leaving_deletes_team(self, client: AsyncClient, db_session: AsyncSession):
        solo = await TeamFactory.create_async(db_session, created_by="solo-owner")
        await TeamMemberFactory.create_async(db_session, team_id=solo.id, user_id="solo-owner", role="owner")
        await db_session.commit()
        team_id = solo.id

        response = await client.post(f"/api/teams/{team_id}/leave", headers=make_auth_headers("solo-owner"))

        assert response.status_code == 204
        result = await db_session.execute(select(Team.id).filter(Team.id == team_id))
        assert result.first() is None

    async def test_outsider_cannot_leave(self, client: AsyncClient, team, outsider_headers):
        response = await client.post(f"/api/teams/{team.id}/leave", headers=outsider_headers)

        assert response.status_code == 404


@pytest.mark.asyncio
class TestInvites:
    """Test team invites."""

    async def test_admin_creates_invite(self, client: AsyncClient, team, admin_headers):
        response = await client.post(
            f"/api/teams/{team.id}/invites",
            headers=admin_headers,
            json={"email": "New.Person@Example.com"},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["team_id"] == team.id
        assert data["invited_by"] == "user-admin"
        assert data["email"] == "new.person@example.com"
        assert data["used_at"] is None
        assert len(data["join_code"]) == 6

    async def test_member_cannot_invite(self, client: AsyncClient, team, member_headers):
        response = await client.post(f"/api/teams/{team.id}/invites", headers=member_headers, json={})

        assert response.status_code == 403

    async def test_accept_invite(self, client: AsyncClient, team, admin_headers, outsider_headers):
        invite = await client.post(f"/api/teams/{team.id}/invites", headers=admin_headers, json={})
        code = invite.json()["join_code"]

        response = await client.post("/api/teams/invites/accept", headers=outsider_headers, json={"join_code": code})

        assert response.status_code == 200
        assert response.json()["id"] == team.id
        assert response.json()["user_role"] == "member"

        members = await client.get(f"/api/teams/{team.id}/members", headers=outsider_headers)
        outsider = next(m for m in members.json() if m["user_id"] == "user-outsider")
        assert outsider["invited_by"] == "user-admin"

    async def test_invite_is_single_use(self, client: AsyncClient, team, admin_headers, outsider_headers):
        invite = await client.post(f"/api/teams/{team.id}/invites", headers=admin_headers, json={})
        code = invite.json()["join_code"]
        await client.post("/api/teams/invites/accept", headers=outsider_headers, json={"join_code": code})

        response = await client.post(
            "/api/teams/invites/accept",
            headers=make_auth_headers("user-latecomer"),
            json={"join_code": code},
        )

        assert response.status_code == 409
        assert response.json()["detail"] == "Invite has already been used"

    async def test_expired_invite(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        team,
        outsider_headers
    ):
        invite = await TeamInviteFactory.create_async(
            db_session,
            team_id=team.id,
            expires_at=datetime.now(timezone.utc) - timedelta(days=1),
        )
        await db_session.commit()

        response = await client.post(
            "/api/teams/invites/accept",
            headers=outsider_headers,
            json={"join_code": invite.join_code},
        )

        assert response.status_code == 409
        assert response.json()["detail"] == "Invite has expired"

    async def test_unknown_invite(self, client: AsyncClient, outsider_headers):
        response = await client.post("/api/teams/invites/accept", headers=outsider_headers, json={"join_code": "XXXXXX"})

        assert response.status_code == 404
