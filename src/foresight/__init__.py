"""
Foresight - a crowd prediction game for Twitch chat, built with TwitchIO.

Chat members ask yes/no questions with a deadline, everyone votes, the
asker resolves the outcome, and correct voters earn XP on a shared
leaderboard.
"""

__version__ = "1.0.0"
__all__ = ["main"]


def main() -> None:
    """Entry point for the prediction bot."""
    import asyncio
    import signal
    import sys

    from foresight.bot import ForesightBot
    from foresight.config import load_config
    from foresight.utils.logging import get_logger, setup_logging

    # Load configuration
    try:
        config = load_config()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config)
    logger = get_logger(__name__)

    logger.info("Starting Foresight v%s", __version__)

    bot = ForesightBot(config)

    # Handle graceful shutdown
    def signal_handler(sig: int, frame: object) -> None:
        logger.info("Received shutdown signal, stopping bot...")
        asyncio.create_task(bot.close())

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        bot.run()
    except KeyboardInterrupt:
        logger.info("Bot stopped by user")
    except Exception as e:
        logger.exception("Bot crashed with error: %s", e)
        sys.exit(1)
    finally:
        logger.info("Bot shutdown complete")
