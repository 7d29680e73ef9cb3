"""
update_pipeline — aiogram bot

Protected commands go through the pipeline; /start and /help stay public.

Environment:
    TG_BOT_TOKEN  Telegram bot token (required)
    API_URL       Backend base URL used for user lookups
"""

import asyncio
import os

from aiogram import Bot, Dispatcher, F, Router
from aiogram.filters import Command, CommandStart
from aiogram.types import CallbackQuery, Message

from update_pipeline import HttpUserLookup, PipelineSettings, build_pipeline
from update_pipeline.integrations.aiogram import AiogramNotifier, PipelineMiddleware
from update_pipeline.logging import configure_logging, get_logger

logger = get_logger(__name__)

public = Router(name="public")
protected = Router(name="protected")


@public.message(CommandStart())
async def start(message: Message) -> None:
    await message.answer("Welcome! Use /profile or /balance once registered.")


@public.message(Command("help"))
async def help_command(message: Message) -> None:
    await message.answer("/profile, /balance, /help")


@protected.message(Command("profile"))
async def profile(message: Message, pipeline_user) -> None:
    await message.answer(f"{pipeline_user.first_name} ({pipeline_user.role or 'user'})")


@protected.message(Command("balance"))
@protected.callback_query(F.data == "balance")
async def balance(event: Message | CallbackQuery, pipeline_user) -> None:
    balance = (pipeline_user.model_extra or {}).get("balance", 0)
    target = event.message if isinstance(event, CallbackQuery) else event
    await target.answer(f"Balance: {balance}")


async def main() -> None:
    settings = PipelineSettings.from_env()
    configure_logging(settings.log_level, json_logs=settings.json_logs)

    token = os.getenv("TG_BOT_TOKEN", "").strip()
    if not token:
        raise RuntimeError("TG_BOT_TOKEN is not set")

    async with HttpUserLookup.from_settings(settings) as lookup:
        pipeline = await build_pipeline(settings, lookup=lookup, notifier=AiogramNotifier())
        middleware = PipelineMiddleware(pipeline)
        protected.message.middleware(middleware)
        protected.callback_query.middleware(middleware)

        dp = Dispatcher()
        dp.include_router(public)
        dp.include_router(protected)

        bot = Bot(token=token)
        async with pipeline:
            logger.info("bot_starting", stages=pipeline.list_stages())
            await dp.start_polling(bot, allowed_updates=dp.resolve_used_update_types())


if __name__ == "__main__":
    asyncio.run(main())
