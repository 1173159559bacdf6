"""
Permission system for role-based access control (RBAC).

Defines team roles, the per-request permission context and pure decision
functions for team administration, task operations and UI gating.
No function here performs I/O; a missing role denies everything except
actions on personal tasks.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Sequence


class TeamRole(str, Enum):
    """Roles for team members, ordered owner > admin > member"""
    OWNER = "owner"      # Created the team, full control
    ADMIN = "admin"      # Manages members, settings and tasks
    MEMBER = "member"    # Works on tasks

    @property
    def rank(self) -> int:
        return ROLE_HIERARCHY[self]


ROLE_HIERARCHY: Dict[TeamRole, int] = {
    TeamRole.MEMBER: 1,
    TeamRole.ADMIN: 2,
    TeamRole.OWNER: 3,
}

ROLE_DESCRIPTIONS: Dict[TeamRole, str] = {
    TeamRole.OWNER: "Full access to all team features and settings",
    TeamRole.ADMIN: "Can manage members, tasks, and team settings",
    TeamRole.MEMBER: "Can create and manage tasks, view team information",
}

MANAGER_ROLES = frozenset({TeamRole.OWNER, TeamRole.ADMIN})


@dataclass(frozen=True)
class MemberRef:
    """Minimal view of a team member the engine needs"""
    user_id: str
    role: TeamRole


@dataclass(frozen=True)
class TaskRef:
    """Minimal view of a task the engine needs"""
    is_team_task: bool = False
    assigned_to: Optional[str] = None


@dataclass(frozen=True)
class PermissionContext:
    """
    Ephemeral context built per request from session state.

    Attributes:
        current_user_role: Role of the caller in the team, None if not a member
        current_user_id: Caller id, None if anonymous
        team: Team the decision is about (any object, not inspected)
        team_members: Members of that team
    """
    current_user_role: Optional[TeamRole] = None
    current_user_id: Optional[str] = None
    team: Any = None
    team_members: Sequence[MemberRef] = field(default_factory=tuple)

    def find_member(self, user_id: str) -> Optional[MemberRef]:
        for member in self.team_members:
            if member.user_id == user_id:
                return member
        return None


def _as_role(role: Any) -> Optional[TeamRole]:
    if role is None or isinstance(role, TeamRole):
        return role
    try:
        return TeamRole(role)
    except ValueError:
        return None


def to_member_ref(member: Any) -> MemberRef:
    """Accept ORM rows, schemas or MemberRef alike"""
    if isinstance(member, MemberRef):
        return member
    return MemberRef(user_id=member.user_id, role=_as_role(member.role))


def get_permission_context(
    current_user_id: Optional[str],
    current_team: Any,
    team_members: Sequence[Any],
) -> PermissionContext:
    """
    Build the permission context from the current user, team and members.

    Without a user or a team only the user id is carried, so every team
    check fails.
    """
    if not current_user_id or current_team is None:
        return PermissionContext(current_user_id=current_user_id)

    members = tuple(to_member_ref(m) for m in team_members)
    current_member = next((m for m in members if m.user_id == current_user_id), None)

    return PermissionContext(
        current_user_role=current_member.role if current_member else None,
        current_user_id=current_user_id,
        team=current_team,
        team_members=members,
    )


def has_role_or_higher(user_role: Optional[TeamRole], required_role: TeamRole) -> bool:
    """Check if a role ranks at or above another"""
    role = _as_role(user_role)
    if role is None:
        return False
    return role.rank >= _as_role(required_role).rank


def _is_manager(context: PermissionContext) -> bool:
    return context.current_user_role in MANAGER_ROLES


def _to_task_ref(task: Any) -> TaskRef:
    if isinstance(task, TaskRef):
        return task
    return TaskRef(
        is_team_task=bool(getattr(task, "is_team_task", False)),
        assigned_to=getattr(task, "assigned_to", None),
    )


# ==================== Team permissions ====================

def can_update_team(context: PermissionContext) -> bool:
    return _is_manager(context)


def can_delete_team(context: PermissionContext) -> bool:
    return context.current_user_role == TeamRole.OWNER


def can_manage_settings(context: PermissionContext) -> bool:
    return _is_manager(context)


def can_invite_members(context: PermissionContext) -> bool:
    return _is_manager(context)


def can_remove_members(context: PermissionContext) -> bool:
    return _is_manager(context)


def can_update_member_roles(context: PermissionContext) -> bool:
    return _is_manager(context)


def can_remove_specific_member(context: PermissionContext, target_user_id: str) -> bool:
    """
    Check if the caller may remove one particular member.

    Owners cannot remove themselves; admins cannot remove owners.
    """
    if not can_remove_members(context):
        return False

    if context.current_user_id == target_user_id and context.current_user_role == TeamRole.OWNER:
        return False

    if context.current_user_role == TeamRole.ADMIN:
        target = context.find_member(target_user_id)
        if target is not None and target.role == TeamRole.OWNER:
            return False

    return True


def can_update_specific_member_role(
    context: PermissionContext,
    target_user_id: str,
    new_role: TeamRole,
) -> bool:
    """
    Check if the caller may give a member a new role.

    Owners cannot change their own role; admins can neither touch owners
    nor hand out the owner role.
    """
    if not can_update_member_roles(context):
        return False

    if context.current_user_id == target_user_id and context.current_user_role == TeamRole.OWNER:
        return False

    if context.current_user_role == TeamRole.ADMIN:
        target = context.find_member(target_user_id)
        if (target is not None and target.role == TeamRole.OWNER) or _as_role(new_role) == TeamRole.OWNER:
            return False

    return True


def can_view_team(context: PermissionContext) -> bool:
    return context.current_user_role is not None


def can_leave_team(context: PermissionContext) -> bool:
    # Owners transfer ownership or delete the team instead
    if context.current_user_role is None:
        return False
    return context.current_user_role != TeamRole.OWNER


# ==================== Task permissions ====================

def can_create_tasks(context: PermissionContext) -> bool:
    return context.current_user_role is not None


def can_view_task(context: PermissionContext, task: Any) -> bool:
    ref = _to_task_ref(task)
    if not ref.is_team_task:
        # Personal tasks are already scoped to their owner by the store
        return True
    return context.current_user_role is not None


def _is_assignee_or_manager(context: PermissionContext, ref: TaskRef) -> bool:
    if context.current_user_role is None:
        return False
    if ref.assigned_to is not None and ref.assigned_to == context.current_user_id:
        return True
    return _is_manager(context)


def can_edit_task(context: PermissionContext, task: Any) -> bool:
    ref = _to_task_ref(task)
    if not ref.is_team_task:
        return True
    return _is_assignee_or_manager(context, ref)


def can_delete_task(context: PermissionContext, task: Any) -> bool:
    ref = _to_task_ref(task)
    if not ref.is_team_task:
        return True
    return _is_assignee_or_manager(context, ref)


def can_complete_task(context: PermissionContext, task: Any) -> bool:
    ref = _to_task_ref(task)
    if not ref.is_team_task:
        return True
    return _is_assignee_or_manager(context, ref)


def can_assign_task(context: PermissionContext, task: Any) -> bool:
    ref = _to_task_ref(task)
    if not ref.is_team_task:
        return False
    return _is_manager(context)


# ==================== UI gating ====================

def show_team_settings(context: PermissionContext) -> bool:
    return can_manage_settings(context)


def show_member_management(context: PermissionContext) -> bool:
    return can_remove_members(context) or can_update_member_roles(context)


def show_invite_button(context: PermissionContext) -> bool:
    return can_invite_members(context)


def show_delete_team_button(context: PermissionContext) -> bool:
    return can_delete_team(context)


def show_task_actions(context: PermissionContext, task: Any) -> bool:
    return can_edit_task(context, task) or can_delete_task(context, task)


def show_assignment_controls(context: PermissionContext, task: Any) -> bool:
    return can_assign_task(context, task)


def permission_summary(context: PermissionContext) -> Dict[str, Any]:
    """Team and UI flags for the caller, for clients that gate rendering"""
    return {
        "role": context.current_user_role.value if context.current_user_role else None,
        "can_update_team": can_update_team(context),
        "can_delete_team": can_delete_team(context),
        "can_manage_settings": can_manage_settings(context),
        "can_invite_members": can_invite_members(context),
        "can_remove_members": can_remove_members(context),
        "can_update_member_roles": can_update_member_roles(context),
        "can_view_team": can_view_team(context),
        "can_leave_team": can_leave_team(context),
        "can_create_tasks": can_create_tasks(context),
        "show_team_settings": show_team_settings(context),
        "show_member_management": show_member_management(context),
        "show_invite_button": show_invite_button(context),
        "show_delete_team_button": show_delete_team_button(context),
    }

