from __future__ import annotations

import asyncio
from datetime import datetime
import logging
from typing import Any

import discord
from discord.ext import commands

from egghead.llm.errors import EggheadError, error_messages


async def notify_admin_error(
    discord_bot: discord.Client,
    config: dict[str, Any],
    error: Exception,
    context: str = "",
) -> None:
    """
    Send a concise error notification to all configured admins.
    """
    admin_ids = (config.get("permissions") or {}).get("users", {}).get("admin_ids", [])
    if not admin_ids:
        return

    admin_msg, _ = error_messages(error)
    msg = (
        "🥚 **Egghead Error Notification**\n"
        f"⏰ Time: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}\n"
        f"📝 Context: {context}\n\nError: {admin_msg}"
    )
    for admin_id in admin_ids:
        try:
            user = discord_bot.get_user(admin_id) or await discord_bot.fetch_user(admin_id)
            await user.send(msg)
        except discord.DiscordException as e:
            logging.warning("Could not notify admin %s: %s", admin_id, e)


def is_expected_failure(error: Exception) -> bool:
    """Backend hiccups the user should hear about, as opposed to bugs."""
    return isinstance(error, (EggheadError, asyncio.TimeoutError))


async def handle_command_error(
    ctx: commands.Context,
    error: Exception,
    discord_bot: discord.Client,
    config: dict[str, Any],
) -> None:
    """
    Standard handler for prefix command errors.
    """
    if isinstance(error, commands.CommandNotFound):
        return
    if isinstance(error, (commands.MissingRequiredArgument, commands.BadArgument)):
        await ctx.reply(f"⚠️ {error}. See `{ctx.clean_prefix}help`.")
        return

    original = getattr(error, "original", error)
    command = getattr(ctx.command, "name", "unknown")
    admin_msg, user_msg = error_messages(original)

    if is_expected_failure(original):
        logging.warning("Command '%s' failed: %s", command, admin_msg)
    else:
        logging.error("Command '%s' crashed", command, exc_info=original)
        await notify_admin_error(discord_bot, config, original, f"Command error: {command}")

    try:
        await ctx.reply(user_msg)
    except discord.DiscordException:
        logging.warning("Could not deliver error reply for '%s'", command)
