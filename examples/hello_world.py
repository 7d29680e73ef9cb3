"""
update_pipeline — Hello World

Every update runs through error containment, rate limiting and the
auth gate.  The first stage that short-circuits replies once and stops
the chain; only active users reach the business handler.
"""

import asyncio

from update_pipeline import PipelineSettings, Update, UserRecord, build_pipeline
from update_pipeline.logging import configure_logging

# ─── Collaborators (plain objects, no framework imports) ───


class InMemoryUsers:
    def __init__(self) -> None:
        self._users = {
            "100": UserRecord(id="u100", telegramId="100", firstName="Alice", isActive=True),
            "200": UserRecord(id="u200", telegramId="200", firstName="Bob", isActive=True),
            "666": UserRecord(id="u666", telegramId="666", firstName="Mallory", isActive=False),
        }

    async def find_user_by_identity(self, identity: str) -> UserRecord | None:
        return self._users.get(identity)


class PrintNotifier:
    async def reply(self, update, notice) -> None:
        print(f"  [reply to {update.identity}] {notice.text}")


async def show_balance(context) -> None:
    if context.update.payload == "/crash":
        raise RuntimeError("balance service unavailable")
    print(f"  Balance for {context.user.first_name}: 0.00")


async def main():
    configure_logging("WARNING")

    # ──────────────────────────────────────
    #  1. Build the canonical chain
    # ──────────────────────────────────────
    settings = PipelineSettings(window_seconds=60, max_requests=3)
    pipeline = await build_pipeline(
        settings,
        lookup=InMemoryUsers(),
        notifier=PrintNotifier(),
        handler=show_balance,
    )

    async with pipeline:
        # ──────────────────────────────────────
        #  2. Active user
        # ──────────────────────────────────────
        print("=== Active user ===\n")
        outcome = await pipeline.dispatch(Update(identity="100", payload="/balance"))
        print(f"  Outcome: {outcome.kind.value}")

        # ──────────────────────────────────────
        #  3. Unregistered and blocked users
        # ──────────────────────────────────────
        print("\n=== Unregistered / blocked ===\n")
        for identity in ("999", "666"):
            outcome = await pipeline.dispatch(Update(identity=identity, payload="/balance"))
            print(f"  {identity}: {outcome.kind.value}")

        # ──────────────────────────────────────
        #  4. Rate limit exhaustion
        # ──────────────────────────────────────
        print("\n=== Rate limit exhaustion ===\n")
        for i in range(4):
            outcome = await pipeline.dispatch(Update(identity="200", payload="/balance"))
            print(f"  Request #{i + 1}: {outcome.kind.value}")

        # ──────────────────────────────────────
        #  5. Handler fault is contained
        # ──────────────────────────────────────
        print("\n=== Handler fault ===\n")
        outcome = await pipeline.dispatch(Update(identity="100", payload="/crash"))
        print(f"  Outcome: {outcome.kind.value} ({outcome.error})")

    print("\nPipeline JSON: ", pipeline.export())


if __name__ == "__main__":
    asyncio.run(main())
