"""
On-Off Tracker
Discord bot tracking per-user online/offline sessions in guilds
Serves health checks and read-only stats over HTTP alongside the bot
"""

import asyncio
import logging
import os
from dataclasses import dataclass, field
from typing import Optional

import discord
import uvicorn
from discord.ext import commands
from tortoise import Tortoise

from controllers.command_controller import CommandController
from controllers.stats_controller import create_app
from services.concurrency_manager import RateLimitConfig, UserRateLimiter
from services.guild_settings_service import GuildSettingsService
from services.live_status_service import LiveStatusConfig, LiveStatusService
from services.session_service import SessionService
from services.session_store import InMemorySessionStore, SessionStore
from services.stats_service import StatsService
from services.tortoise_session_store import TortoiseSessionStore

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("onoff-tracker")

IN_MEMORY_DATABASE = "memory"


@dataclass
class TrackerConfig:
    """Process-wide configuration read from the environment"""
    bot_token: Optional[str] = None
    database_url: str = "sqlite://data/onoff.sqlite3"
    command_prefix: str = "!"
    port: int = 8004
    leaderboard_default_limit: int = 10
    live_status: LiveStatusConfig = field(default_factory=LiveStatusConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)

    @classmethod
    def from_env(cls) -> "TrackerConfig":
        return cls(
            bot_token=os.getenv("DISCORD_BOT_TOKEN"),
            database_url=os.getenv("DATABASE_URL", "sqlite://data/onoff.sqlite3"),
            command_prefix=os.getenv("COMMAND_PREFIX", "!"),
            port=int(os.getenv("PORT", "8004")),
            leaderboard_default_limit=int(os.getenv("LEADERBOARD_DEFAULT_LIMIT", "10")),
            live_status=LiveStatusConfig(
                refresh_interval_seconds=int(os.getenv("LIVE_REFRESH_SECONDS", "60"))
            ),
            rate_limit=RateLimitConfig(
                max_requests_per_second=float(os.getenv("RATE_LIMIT_RPS", "2")),
                burst_limit=int(os.getenv("BURST_LIMIT", "5"))
            ),
        )


@dataclass
class Services:
    store: SessionStore
    session_service: SessionService
    stats_service: StatsService
    settings_service: GuildSettingsService
    user_rate_limiter: UserRateLimiter


async def init_db(config: TrackerConfig):
    """Initialise Tortoise; settings always persist, sessions unless in-memory is requested"""
    db_url = config.database_url
    if db_url == IN_MEMORY_DATABASE:
        db_url = "sqlite://:memory:"
    elif db_url.startswith("sqlite://") and not db_url.startswith("sqlite://:memory:"):
        directory = os.path.dirname(db_url[len("sqlite://"):])
        if directory:
            os.makedirs(directory, exist_ok=True)

    await Tortoise.init(
        db_url=db_url,
        modules={"models": ["models.orm"]},
        use_tz=True,
        timezone="UTC"
    )
    await Tortoise.generate_schemas(safe=True)
    logger.info(f"Database initialised ({db_url.split('://', 1)[0]})")


async def initialize_services(config: TrackerConfig) -> Services:
    """Initialize all services once"""
    await init_db(config)

    if config.database_url == IN_MEMORY_DATABASE:
        store = InMemorySessionStore()
        logger.warning("Using in-memory session store - sessions are lost on restart")
    else:
        store = TortoiseSessionStore()

    return Services(
        store=store,
        session_service=SessionService(store),
        stats_service=StatsService(store),
        settings_service=GuildSettingsService(),
        user_rate_limiter=UserRateLimiter(config.rate_limit),
    )


def create_discord_bot(config: TrackerConfig, services: Services) -> commands.Bot:
    """Create and configure the Discord bot with its controllers"""
    intents = discord.Intents.default()
    intents.message_content = True
    intents.members = True

    bot = commands.Bot(
        command_prefix=config.command_prefix,
        intents=intents,
        description='On-Off Tracker - tracks who is online in your server'
    )

    live_status_service = LiveStatusService(
        bot,
        services.stats_service,
        services.settings_service,
        config.live_status,
        command_prefix=config.command_prefix
    )
    command_controller = CommandController(
        bot,
        services.session_service,
        services.stats_service,
        services.settings_service,
        live_status_service=live_status_service,
        user_rate_limiter=services.user_rate_limiter,
        leaderboard_default_limit=config.leaderboard_default_limit
    )

    @bot.event
    async def on_ready():
        """Bot is ready and connected to Discord"""
        logger.info(f"Bot logged in as {bot.user.name} ({bot.user.id})")
        command_controller.register_persistent_views()
        if not live_status_service.running:
            await live_status_service.start()
        await live_status_service.refresh_all()
        logger.info("On-Off Tracker is ready!")

    bot.live_status_service = live_status_service
    return bot


def bot_status_reporter(config: TrackerConfig, get_bot):
    def report() -> dict:
        bot = get_bot()
        return {
            "bot_enabled": bool(config.bot_token),
            "bot_ready": bool(bot and not bot.is_closed() and bot.is_ready()),
        }
    return report


async def shutdown(services: Optional[Services], bot: Optional[commands.Bot]):
    """Graceful shutdown"""
    if bot is not None:
        live_status_service = getattr(bot, "live_status_service", None)
        if live_status_service:
            await live_status_service.stop()
        if not bot.is_closed():
            await bot.close()
    if services is not None:
        await services.store.close()
    await Tortoise.close_connections()
    logger.info("Shutdown complete")


async def main():
    """Main entry point"""
    config = TrackerConfig.from_env()
    services = await initialize_services(config)
    bot = None

    app = create_app(services.stats_service, bot_status_reporter(config, lambda: bot))
    # Same event loop as the bot so routes can share the database connections
    server = uvicorn.Server(uvicorn.Config(app, host="0.0.0.0", port=config.port, log_level="info"))
    server_task = asyncio.create_task(server.serve())

    try:
        if not config.bot_token:
            logger.warning("DISCORD_BOT_TOKEN not set - Discord bot features disabled")
            logger.info("On-Off Tracker running in HTTP mode (health and stats endpoints active)")
            await server_task
            return

        logger.info("Starting On-Off Tracker...")
        bot = create_discord_bot(config, services)
        await bot.start(config.bot_token)
    finally:
        server.should_exit = True
        await shutdown(services, bot)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
