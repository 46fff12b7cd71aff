"""
Command Controller
Handles Discord bot commands for session tracking, stats and guild settings
"""

import logging
from typing import Optional

import discord
from discord.ext import commands

from controllers.tracking_view import TrackingView, view_for
from models.tracking import SessionStatus
from services.concurrency_manager import UserRateLimiter
from services.errors import ChannelRestrictedError, RateLimitedError, TrackingError
from services.guild_settings_service import GuildSettings, GuildSettingsService
from services.live_status_service import LiveStatusService, render_live_status
from services.session_service import (
    LifecycleResult,
    PauseResult,
    ResumeResult,
    SessionService,
    StartResult,
    StopResult,
    TrackingAction,
)
from services.stats_service import StatsService
from utils.message_utils import format_detailed_duration, format_duration, send_message

logger = logging.getLogger("onoff-tracker")

MAX_LEADERBOARD_LIMIT = 20
GENERIC_ERROR = "❌ Something went wrong. Please try again."


class CommandController:
    """Controller for handling Discord bot commands"""

    def __init__(self,
                 bot: commands.Bot,
                 session_service: SessionService,
                 stats_service: StatsService,
                 settings_service: GuildSettingsService,
                 live_status_service: Optional[LiveStatusService] = None,
                 user_rate_limiter: Optional[UserRateLimiter] = None,
                 leaderboard_default_limit: int = 10):
        """
        Initialize the command controller.

        Args:
            bot: Discord bot instance
            session_service: Lifecycle operations on tracking sessions
            stats_service: User totals, leaderboards and open sessions
            settings_service: Per-guild settings
            live_status_service: Live status message updater
            user_rate_limiter: Per-user command throttle
            leaderboard_default_limit: Leaderboard size when none is given
        """
        self.bot = bot
        self.session_service = session_service
        self.stats_service = stats_service
        self.settings_service = settings_service
        self.live_status_service = live_status_service
        self.user_rate_limiter = user_rate_limiter
        self.leaderboard_default_limit = leaderboard_default_limit

        self._register_commands()

    @property
    def prefix(self) -> str:
        prefix = getattr(self.bot, "command_prefix", "!")
        return prefix if isinstance(prefix, str) else "!"

    def _register_commands(self):
        """Register all bot commands"""
        @self.bot.command(name="start", help="Start tracking your time")
        async def start(ctx):
            await self.handle_action(ctx, TrackingAction.START)

        @self.bot.command(name="pause", help="Pause your running session")
        async def pause(ctx):
            await self.handle_action(ctx, TrackingAction.PAUSE)

        @self.bot.command(name="resume", help="Resume your paused session")
        async def resume(ctx):
            await self.handle_action(ctx, TrackingAction.RESUME)

        @self.bot.command(name="stop", help="Stop your session")
        async def stop(ctx):
            await self.handle_action(ctx, TrackingAction.STOP)

        @self.bot.command(name="stats", help="Show tracking stats for you or another member")
        async def stats(ctx, member: discord.Member = None):
            await self.show_stats(ctx, member)

        @self.bot.command(name="leaderboard", help="Show the server leaderboard")
        async def leaderboard(ctx, limit: int = None):
            await self.show_leaderboard(ctx, limit)

        @self.bot.command(name="status", help="Show who is tracking time right now")
        async def status(ctx):
            await self.show_status(ctx)

        @self.bot.group(name="settings", invoke_without_command=True)
        @commands.guild_only()
        @commands.has_permissions(administrator=True)
        async def settings(ctx):
            await self.show_settings(ctx)

        # Group checks do not run before subcommands when invoke_without_command is set
        @settings.command(name="channel")
        @commands.guild_only()
        @commands.has_permissions(administrator=True)
        async def settings_channel(ctx, channel: discord.TextChannel = None):
            await self.set_tracking_channel(ctx, channel)

        @settings.command(name="live")
        @commands.guild_only()
        @commands.has_permissions(administrator=True)
        async def settings_live(ctx, channel: discord.TextChannel = None):
            await self.set_live_channel(ctx, channel)

        @settings.command(name="notifications")
        @commands.guild_only()
        @commands.has_permissions(administrator=True)
        async def settings_notifications(ctx, state: str):
            await self.set_notifications(ctx, state)

        @self.bot.event
        async def on_command_error(ctx, error):
            await self.on_command_error(ctx, error)

    def register_persistent_views(self):
        """Let buttons on earlier replies keep working after a restart"""
        self.bot.add_view(TrackingView(self))

    # Session lifecycle

    async def _execute(self, action: TrackingAction, user_id: str, guild_id: str, channel_id):
        """
        Run an action after the throttle and channel checks.

        Raises:
            TrackingError: If the action is refused or fails
        """
        if self.user_rate_limiter and not await self.user_rate_limiter.acquire(user_id):
            raise RateLimitedError(f"User {user_id} is rate limited")

        settings = await self.settings_service.get_settings(guild_id)
        if not settings.is_tracking_allowed(channel_id):
            raise ChannelRestrictedError(settings.tracking_channel_id)

        result = await self.session_service.dispatch(action, user_id, guild_id)
        return settings, result

    async def handle_action(self, ctx, action: TrackingAction):
        """Run a lifecycle action for the invoking user"""
        if ctx.guild is None:
            await ctx.send("Time tracking only works inside a server.")
            return

        user_id = str(ctx.author.id)
        guild_id = str(ctx.guild.id)
        try:
            settings, result = await self._execute(action, user_id, guild_id, ctx.channel.id)
        except TrackingError as e:
            logger.info(f"{action.value} rejected for user {user_id} in guild {guild_id}: {e}")
            await ctx.send(f"⚠️ {e.user_message}")
            return

        await ctx.send(self.describe_result(result), view=view_for(self, result))
        await self._notify(ctx.author, ctx.channel, settings, result)
        if self.live_status_service:
            await self.live_status_service.refresh(guild_id)

    async def handle_interaction(self, interaction: discord.Interaction, action: TrackingAction):
        """Run a lifecycle action for whoever pressed a tracking button"""
        if interaction.guild is None:
            await interaction.response.send_message("Time tracking only works inside a server.", ephemeral=True)
            return

        user_id = str(interaction.user.id)
        guild_id = str(interaction.guild_id)
        try:
            settings, result = await self._execute(action, user_id, guild_id, interaction.channel_id)
        except TrackingError as e:
            logger.info(f"{action.value} button rejected for user {user_id} in guild {guild_id}: {e}")
            await interaction.response.send_message(f"⚠️ {e.user_message}", ephemeral=True)
            return

        view = view_for(self, result)
        if view is None:
            await interaction.response.send_message(self.describe_result(result), ephemeral=True)
        else:
            await interaction.response.send_message(self.describe_result(result), view=view, ephemeral=True)
        await self._notify(interaction.user, interaction.channel, settings, result)
        if self.live_status_service:
            await self.live_status_service.refresh(guild_id)

    def describe_result(self, result: LifecycleResult) -> str:
        """Reply shown to the user after a lifecycle action"""
        match result:
            case StartResult(is_new=True):
                return (
                    "🕒 **Tracking started!**\n"
                    f"Use `{self.prefix}pause` to take a break or `{self.prefix}stop` to finish."
                )
            case StartResult(is_new=False):
                state = "paused" if result.session.status is SessionStatus.PAUSED else "running"
                return (
                    f"⚠️ You already have an active session ({state}, "
                    f"{format_duration(result.current_duration_ms)} so far)."
                )
            case PauseResult():
                return (
                    f"⏸️ **Session paused** at {format_duration(result.duration_ms)}.\n"
                    f"Use `{self.prefix}resume` to continue."
                )
            case ResumeResult():
                return (
                    f"▶️ **Session resumed.** "
                    f"{format_duration(result.total_duration_so_far_ms)} tracked so far."
                )
            case StopResult():
                return f"🔴 **Session stopped!** You tracked **{format_detailed_duration(result.duration_ms)}**."
        raise TypeError(f"Unexpected lifecycle result: {result!r}")

    async def _notify(self, member, origin, settings: GuildSettings, result: LifecycleResult):
        """Announce sessions going online/offline in the tracking channel"""
        name = member.display_name
        if isinstance(result, StartResult) and result.is_new and settings.show_online_messages:
            text = f"🟢 **{name}** is now online!"
        elif isinstance(result, StopResult) and settings.show_offline_messages:
            text = f"🔴 **{name}** is now offline after **{format_detailed_duration(result.duration_ms)}**!"
        else:
            return

        channel = origin
        if settings.tracking_channel_id and str(origin.id) != settings.tracking_channel_id:
            channel = self.bot.get_channel(int(settings.tracking_channel_id)) or origin
        await send_message(channel, text)

    # Stats

    async def show_stats(self, ctx, member=None):
        """Show totals for a member (defaults to the author)"""
        if ctx.guild is None:
            await ctx.send("Stats are only available inside a server.")
            return

        target = member or ctx.author
        try:
            stats = await self.stats_service.get_user_stats(str(target.id), str(ctx.guild.id))
        except TrackingError as e:
            await ctx.send(f"❌ {e.user_message}")
            return

        if stats.sessions_count == 0:
            await ctx.send(f"📊 {target.display_name} has no tracked sessions yet.")
            return

        lines = [
            f"📊 **Stats for {target.display_name}**",
            f"Total time: **{format_detailed_duration(stats.total_active_time_ms)}**",
            f"Sessions: **{stats.sessions_count}**",
        ]
        if stats.last_activity_at:
            lines.append(f"Last active: <t:{int(stats.last_activity_at.timestamp())}:R>")
        await ctx.send("\n".join(lines))

    async def show_leaderboard(self, ctx, limit: Optional[int] = None):
        """Show the top users of the guild"""
        if ctx.guild is None:
            await ctx.send("The leaderboard is only available inside a server.")
            return

        limit = max(1, min(limit or self.leaderboard_default_limit, MAX_LEADERBOARD_LIMIT))
        try:
            entries = await self.stats_service.get_leaderboard(str(ctx.guild.id), limit)
        except TrackingError as e:
            await ctx.send(f"❌ {e.user_message}")
            return

        if not entries:
            await ctx.send("📊 No tracking data for this server yet!")
            return

        lines = ["🏆 **Leaderboard**"]
        for rank, entry in enumerate(entries, start=1):
            sessions = f"{entry.sessions_count} session{'s' if entry.sessions_count != 1 else ''}"
            lines.append(f"{rank}. <@{entry.user_id}> - {format_duration(entry.total_active_time_ms)} ({sessions})")
        await send_message(ctx.channel, "\n".join(lines))

    async def show_status(self, ctx):
        """Show every open session in the guild"""
        if ctx.guild is None:
            await ctx.send("Status is only available inside a server.")
            return
        try:
            snapshots = await self.stats_service.get_open_sessions(str(ctx.guild.id))
        except TrackingError as e:
            await ctx.send(f"❌ {e.user_message}")
            return
        await ctx.send(render_live_status(snapshots, self.prefix))

    # Settings

    async def show_settings(self, ctx):
        settings = await self.settings_service.get_settings(str(ctx.guild.id))
        tracking = f"<#{settings.tracking_channel_id}>" if settings.tracking_channel_id else "any channel"
        live = f"<#{settings.live_channel_id}>" if settings.live_channel_id else "disabled"
        notifications = "on" if settings.show_online_messages or settings.show_offline_messages else "off"
        await ctx.send(
            "⚙️ **Settings**\n"
            f"Tracking channel: {tracking}\n"
            f"Live channel: {live}\n"
            f"Notifications: {notifications}"
        )

    async def set_tracking_channel(self, ctx, channel=None):
        """Restrict tracking commands to one channel, or lift the restriction"""
        await self.settings_service.update_settings(
            str(ctx.guild.id), tracking_channel_id=channel.id if channel else None
        )
        if channel:
            await ctx.send(f"✅ Time tracking commands now only work in {channel.mention}.")
        else:
            await ctx.send("✅ Channel restriction removed. Tracking works in every channel.")

    async def set_live_channel(self, ctx, channel=None):
        """Choose where the live status message is kept"""
        guild_id = str(ctx.guild.id)
        if channel is None:
            if self.live_status_service:
                await self.live_status_service.remove(guild_id)
            await self.settings_service.update_settings(guild_id, live_channel_id=None, live_message_id=None)
            await ctx.send("✅ Live status message disabled.")
            return

        await self.settings_service.update_settings(guild_id, live_channel_id=channel.id, live_message_id=None)
        await ctx.send(f"✅ Live status will be shown in {channel.mention}.")
        if self.live_status_service:
            await self.live_status_service.refresh(guild_id)

    async def set_notifications(self, ctx, state: str):
        """Turn online/offline announcements on or off"""
        state = state.lower()
        if state not in ("on", "off"):
            await ctx.send(f"Usage: `{self.prefix}settings notifications <on|off>`")
            return
        enabled = state == "on"
        await self.settings_service.update_settings(
            str(ctx.guild.id), show_online_messages=enabled, show_offline_messages=enabled
        )
        await ctx.send(f"✅ Notifications turned {state}.")

    async def on_command_error(self, ctx, error):
        """Handle command errors"""
        if isinstance(error, commands.CommandNotFound):
            return
        if isinstance(error, commands.NoPrivateMessage):
            await ctx.send("❌ This command only works inside a server.")
            return
        if isinstance(error, (commands.MissingPermissions, commands.CheckFailure)):
            await ctx.send("❌ You need Administrator permissions to use this command.")
            return
        if isinstance(error, (commands.BadArgument, commands.MissingRequiredArgument)):
            await ctx.send(f"❌ Invalid arguments. See `{self.prefix}help {ctx.command}`.")
            return

        original = getattr(error, "original", error)
        if isinstance(original, TrackingError):
            await ctx.send(f"❌ {original.user_message}")
            return

        logger.error(f"Command error: {error}")
        await ctx.send(GENERIC_ERROR)
