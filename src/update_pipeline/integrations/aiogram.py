"""aiogram 3 transport adapter.

Register :class:`PipelineMiddleware` as an inner middleware on the routers
whose handlers need throttling and authorization::

    router = Router()
    pipeline = await build_pipeline(settings, lookup=lookup, notifier=AiogramNotifier())
    router.message.middleware(PipelineMiddleware(pipeline))
    router.callback_query.middleware(PipelineMiddleware(pipeline))

The aiogram handler becomes the business handler of each dispatch; the
resolved user is exposed to it as ``data["pipeline_user"]``.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

try:
    from aiogram import BaseMiddleware
    from aiogram.dispatcher.event.bases import CancelHandler, SkipHandler
    from aiogram.exceptions import TelegramAPIError
    from aiogram.types import CallbackQuery, Message, TelegramObject
except ImportError as exc:
    raise ImportError(
        "The aiogram integration requires the 'aiogram' package. "
        "Install it with: pip install update-pipeline[aiogram]"
    ) from exc

from update_pipeline.context import Update
from update_pipeline.logging import get_logger

if TYPE_CHECKING:
    from update_pipeline.context import PipelineContext
    from update_pipeline.dispatcher import Dispatcher
    from update_pipeline.notices import Notice

logger = get_logger(__name__)

AiogramHandler = Callable[[TelegramObject, dict[str, Any]], Awaitable[Any]]


def event_kind(event: TelegramObject) -> str:
    if isinstance(event, CallbackQuery):
        return "callback_query"
    if isinstance(event, Message):
        return "message"
    return type(event).__name__.lower()


class AiogramNotifier:
    """Replies in the chat the update came from.

    Messages are answered directly; callback queries are answered through
    the message their button belongs to, and the query itself is answered
    so the client stops its loading indicator.
    """

    async def reply(self, update: Update, notice: Notice) -> None:
        event = update.payload
        if isinstance(event, CallbackQuery):
            await self._close_callback(update, event)
            target = event.message
        else:
            target = event

        if target is None or not hasattr(target, "answer"):
            logger.warning(
                "notice_undeliverable",
                identity=update.identity,
                kind=update.kind,
                notice=notice.kind.value,
            )
            return

        await target.answer(notice.text)

    async def _close_callback(self, update: Update, query: CallbackQuery) -> None:
        try:
            await query.answer()
        except TelegramAPIError as e:
            # already answered or expired
            logger.debug("callback_answer_failed", identity=update.identity, error=str(e))


class PipelineMiddleware(BaseMiddleware):
    """Routes every aiogram event through a pipeline :class:`Dispatcher`.

    Events that carry no user (channel posts, service updates) bypass the
    pipeline, as there is no identity to limit or authorize.
    """

    def __init__(self, dispatcher: Dispatcher) -> None:
        self._dispatcher = dispatcher

    async def __call__(
        self,
        handler: AiogramHandler,
        event: TelegramObject,
        data: dict[str, Any],
    ) -> Any:
        user = data.get("event_from_user")
        if user is None:
            return await handler(event, data)

        raw_update = data.get("event_update")
        update = Update(
            identity=str(user.id),
            payload=event,
            kind=event_kind(event),
            update_id=getattr(raw_update, "update_id", None),
        )

        result: Any = None
        flow_control: SkipHandler | CancelHandler | None = None

        async def run_handler(context: PipelineContext) -> None:
            nonlocal result, flow_control
            data["pipeline_user"] = context.user
            try:
                result = await handler(event, data)
            except (SkipHandler, CancelHandler) as e:
                # aiogram routing signals, not faults
                flow_control = e

        await self._dispatcher.dispatch(update, run_handler)
        if flow_control is not None:
            raise flow_control
        return result
