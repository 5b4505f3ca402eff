"""Boundary helpers turning handler results into Discord responses."""

from __future__ import annotations

from typing import Any, Dict

import discord

from services.discord.embeds import board_embed, error_embed, info_embed, success_embed


def result_embed(result: Dict[str, Any], *, success_style: bool = False) -> discord.Embed:
    if not result.get("ok"):
        return error_embed(f"❌ {result['title']}", result.get("description") or None)
    if "rows" in result:
        return board_embed(result["title"], result["rows"], score=result["score"])
    build = success_embed if success_style else info_embed
    return build(result["title"], result.get("description") or None)


async def respond(
    interaction: discord.Interaction,
    result: Dict[str, Any],
    *,
    ephemeral: bool = False,
    success_style: bool = False,
) -> None:
    embed = result_embed(result, success_style=success_style)
    await interaction.followup.send(embed=embed, ephemeral=ephemeral or not result.get("ok"))
