"""
Background task: reap federation tokens whose TTL has elapsed.

Runs inside the API process (the in-memory store is process-local), started
on application startup and cancelled on shutdown.
"""

from __future__ import annotations

import asyncio

import structlog

from docsign_federation.services.token_store import TokenStore

log = structlog.get_logger()


async def sweep_expired_tokens(store: TokenStore) -> int:
    """Run one sweep. Returns the number of tokens removed."""
    removed = await store.sweep()
    if removed:
        log.info("token_sweep.removed", count=removed)
    return removed


async def run_token_sweeper(store: TokenStore, interval_seconds: float) -> None:
    """Sweep every `interval_seconds` until cancelled."""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await sweep_expired_tokens(store)
        except Exception:
            log.exception("token_sweep.failed")


def start_token_sweeper(store: TokenStore, interval_seconds: float) -> asyncio.Task:
    return asyncio.create_task(run_token_sweeper(store, interval_seconds), name="token-sweeper")


async def stop_token_sweeper(task: asyncio.Task | None) -> None:
    if task is None:
        return
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
