"""
Discord surface for Egghead.

Translates Discord messages into dispatcher calls and relays the resulting
strings back. Every command runs in its own task (discord.py dispatches each
event as a coroutine), so a slow backend only holds up the command that
asked for it.
"""

from __future__ import annotations

import logging
from typing import Any

import discord
from discord.ext import commands

from egghead.blog.scheduler import BlogScheduler
from egghead.dispatch import Dispatcher
from egghead.llm.chat import ChatRequest
from egghead.llm.errors import format_user_friendly_error

from .errors import handle_command_error, is_expected_failure, notify_admin_error

MAX_MESSAGE_LENGTH = 2000
DEFAULT_STATUS = "e.help | the world's smartest computer"


def split_message(text: str, limit: int = MAX_MESSAGE_LENGTH) -> list[str]:
    """Split text into Discord-sized chunks, preferring line breaks."""
    chunks: list[str] = []
    remaining = text
    while len(remaining) > limit:
        cut = remaining.rfind("\n", 0, limit)
        if cut <= 0:
            cut = limit
        chunks.append(remaining[:cut])
        remaining = remaining[cut:].lstrip("\n")
    if remaining:
        chunks.append(remaining)
    return chunks


async def reply_in_parts(message: discord.Message, text: str) -> None:
    chunks = split_message(text) or ["(No response)"]
    for chunk in chunks:
        await message.reply(chunk, mention_author=False)


async def image_attachments(message: discord.Message) -> list[bytes]:
    return [
        await a.read()
        for a in message.attachments
        if a.content_type and a.content_type.startswith("image")
    ]


async def previous_message(ctx: commands.Context) -> discord.Message | None:
    return next(iter([m async for m in ctx.channel.history(before=ctx.message, limit=1)]), None)


def create_bot(config: dict[str, Any], dispatcher: Dispatcher, scheduler: BlogScheduler | None = None) -> commands.Bot:
    intents = discord.Intents.default()
    intents.message_content = True
    intents.dm_messages = True
    activity = discord.CustomActivity(name=(config.get("status_message") or DEFAULT_STATUS)[:128])
    bot = commands.Bot(
        command_prefix=dispatcher.command_prefix,
        intents=intents,
        activity=activity,
        help_command=None,
        case_insensitive=True,
    )

    # ── Hooks & events ──────────────────────────────────────────────────────

    @bot.before_invoke
    async def count_command(ctx: commands.Context) -> None:
        name = ctx.command.qualified_name if ctx.command else "unknown"
        await dispatcher.counter.increment(name)
        logging.info("Running command '%s' invoked by '%s'", name, ctx.author)

    @bot.event
    async def on_ready() -> None:
        logging.info("%s is connected!", bot.user)
        if scheduler is not None and not scheduler.running:
            scheduler.start()

    @bot.event
    async def on_command_error(ctx: commands.Context, error: Exception) -> None:
        await handle_command_error(ctx, error, bot, config)

    @bot.event
    async def on_message(message: discord.Message) -> None:
        if message.author.bot:
            return
        if message.content.startswith(dispatcher.command_prefix):
            await bot.process_commands(message)
            return
        if bot.user is None or bot.user not in message.mentions:
            return

        prompt = message.content.replace(bot.user.mention, "").replace(f"<@!{bot.user.id}>", "").strip()
        history = []
        if ref := message.reference:
            parent = ref.cached_message
            if parent is None and ref.message_id:
                try:
                    parent = await message.channel.fetch_message(ref.message_id)
                except discord.HTTPException:
                    logging.warning("Could not fetch replied-to message %s", ref.message_id)
            if parent is not None and parent.content:
                history.append(parent.content)

        request = ChatRequest(prompt=prompt, history=history, images=await image_attachments(message))
        try:
            async with message.channel.typing():
                reply = await dispatcher.ask(request)
        except Exception as e:  # noqa: BLE001
            if is_expected_failure(e):
                logging.warning("Mention reply failed: %s", e)
            else:
                logging.exception("Mention reply crashed")
                await notify_admin_error(bot, config, e, f"Mention in #{getattr(message.channel, 'name', 'DM')}")
            await message.reply(format_user_friendly_error(e), mention_author=False)
            return
        await reply_in_parts(message, reply)

    # ── Commands ────────────────────────────────────────────────────────────

    @bot.command(name="help")
    async def help_command(ctx: commands.Context) -> None:
        await ctx.reply(dispatcher.help_text())

    @bot.command(name="ask")
    async def ask_command(ctx: commands.Context, *, prompt: str) -> None:
        request = ChatRequest(prompt=prompt, images=await image_attachments(ctx.message))
        async with ctx.typing():
            reply = await dispatcher.ask(request)
        await reply_in_parts(ctx.message, reply)

    @bot.command(name="magic")
    async def magic_command(ctx: commands.Context, *, question: str = "") -> None:
        async with ctx.typing():
            reply = await dispatcher.magic(question)
        await reply_in_parts(ctx.message, reply)

    @bot.command(name="react")
    async def react_command(ctx: commands.Context, temperature: float = 1.0) -> None:
        prev = await previous_message(ctx)
        if prev is None:
            await ctx.reply("Nothing to react to.")
            return
        request = ChatRequest(prompt=prev.content, images=await image_attachments(prev))
        async with ctx.typing():
            reply = await dispatcher.react(request, temperature)
        await reply_in_parts(ctx.message, reply)

    @bot.command(name="read")
    async def read_command(ctx: commands.Context, lines: int = 10) -> None:
        lines = max(1, min(lines, 100))
        history = [m.content async for m in ctx.channel.history(before=ctx.message, limit=lines)]
        async with ctx.typing():
            reply = await dispatcher.read(history[::-1])
        await reply_in_parts(ctx.message, reply)

    @bot.command(name="voices")
    async def voices_command(ctx: commands.Context, *, query: str = "") -> None:
        async with ctx.typing():
            reply = await dispatcher.voices(query)
        await reply_in_parts(ctx.message, reply)

    @bot.command(name="say")
    async def say_command(ctx: commands.Context, *, voice: str) -> None:
        prev = await previous_message(ctx)
        async with ctx.typing():
            reply = await dispatcher.say(voice, prev.content if prev else "")
        await ctx.reply(reply)

    @bot.command(name="news", aliases=sorted(dispatcher.feeds))
    async def news_command(ctx: commands.Context, feed: str | None = None) -> None:
        key = feed or (ctx.invoked_with if ctx.invoked_with in dispatcher.feeds else "world")
        async with ctx.typing():
            reply = await dispatcher.headline(key.lower())
        await reply_in_parts(ctx.message, reply)

    @bot.command(name="wiki")
    async def wiki_command(ctx: commands.Context, *, article: str = "") -> None:
        async with ctx.typing():
            reply = await dispatcher.wiki(article or None)
        await reply_in_parts(ctx.message, reply)

    @bot.command(name="hn")
    async def hn_command(ctx: commands.Context) -> None:
        async with ctx.typing():
            reply = await dispatcher.hn()
        await ctx.reply(reply)

    @bot.command(name="blog")
    async def blog_command(ctx: commands.Context, n: int = 3) -> None:
        async with ctx.typing():
            reply = await dispatcher.blog(n)
        await reply_in_parts(ctx.message, reply)

    @bot.command(name="posts")
    async def posts_command(ctx: commands.Context, n: int = 3) -> None:
        await reply_in_parts(ctx.message, await dispatcher.blog_latest(n))

    @bot.command(name="stats")
    async def stats_command(ctx: commands.Context) -> None:
        await ctx.reply(await dispatcher.stats())

    return bot
