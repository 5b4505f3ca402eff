"""
Discord Permissions Module

Gates the mutating slash commands (event lifecycle, roster, raglist,
clan-only mode). A member passes when they hold the Administrator or
Manage Server permission, or one of the configured admin role ids.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

import discord
from discord import app_commands

from shared.logging.logger import get_logger

log = get_logger("discord.permissions", runtime="discord")


class PermissionResult:
    """
    Structured permission check result.
    """

    def __init__(
        self,
        allowed: bool,
        *,
        reason: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        self.allowed = allowed
        self.reason = reason
        self.metadata = metadata or {}

    def __bool__(self) -> bool:
        return self.allowed


class DiscordPermissionResolver:
    """
    Central permission resolver. Accepts raw ids and permission flags so it
    can be exercised without live Discord objects.
    """

    def __init__(self, admin_role_ids: Optional[Iterable[int]] = None):
        self._admin_role_ids = {int(r) for r in (admin_role_ids or [])}

    @property
    def admin_role_ids(self) -> frozenset:
        return frozenset(self._admin_role_ids)

    def check_admin(
        self,
        *,
        user_id: int,
        is_administrator: bool = False,
        can_manage_guild: bool = False,
        user_roles: Optional[Iterable[int]] = None,
    ) -> PermissionResult:
        if is_administrator or can_manage_guild:
            return PermissionResult(True, metadata={"via": "guild_permissions"})

        matched = self._admin_role_ids.intersection(int(r) for r in (user_roles or []))
        if matched:
            return PermissionResult(True, metadata={"via": "role", "roles": sorted(matched)})

        log.debug(f"Admin check denied for user {user_id}")
        return PermissionResult(False, reason="Administrator permission required")

    def check_member(self, member: Any) -> PermissionResult:
        perms = getattr(member, "guild_permissions", None)
        roles = [role.id for role in getattr(member, "roles", [])]
        return self.check_admin(
            user_id=getattr(member, "id", 0),
            is_administrator=bool(perms and perms.administrator),
            can_manage_guild=bool(perms and perms.manage_guild),
            user_roles=roles,
        )


def require_admin(resolver: Optional[DiscordPermissionResolver] = None):
    """app_commands check for admin-only slash commands."""
    resolver = resolver or DiscordPermissionResolver()

    async def predicate(interaction: discord.Interaction) -> bool:
        result = resolver.check_member(interaction.user)
        if not result:
            raise app_commands.CheckFailure(result.reason or "Not permitted")
        return True

    return app_commands.check(predicate)
