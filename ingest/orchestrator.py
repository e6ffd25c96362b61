from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from typing import Protocol

import httpx

from app.settings import Settings
from ingest.errors import FetchError, IngestError, RefreshError
from ingest.fetch import fetch_text
from ingest.incremental import filter_new, latest_source_updated_at
from ingest.models import FeedConfig, FeedResult, ParsedIncident, RunSummary
from ingest.parsers.dispatch import parse_feed


logger = logging.getLogger(__name__)

NO_ACTIVE_FEEDS = "No active feeds found"


class IncidentStore(Protocol):
    def list_active_feeds(self) -> list[FeedConfig]: ...

    def update_last_seen(self, feed_id: str, timestamp: datetime) -> None: ...

    def upsert(self, incidents: list[ParsedIncident]) -> int: ...

    def refresh_read_model(self) -> None: ...

    def record_feed_success(self, slug: str, *, fetch_ms: int) -> None: ...

    def record_feed_error(
        self, slug: str, *, error: str, status_code: int | None, fetch_ms: int | None
    ) -> None: ...


class FeedStage(StrEnum):
    FETCHING = "fetching"
    PARSING = "parsing"
    FILTERING = "filtering"
    PERSISTING = "persisting"
    DONE = "done"


SleepFn = Callable[[float], Awaitable[None]]


class FeedOrchestrator:
    """Runs every active feed through fetch, parse, filter and persist.

    Feeds are processed one at a time with a fixed pause in between. A
    failure in one feed is recorded in the run summary and the run moves on.
    """

    def __init__(
        self,
        store: IncidentStore,
        settings: Settings,
        *,
        client: httpx.AsyncClient | None = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self.store = store
        self.settings = settings
        self._client = client
        self._sleep = sleep

    @property
    def tolerance(self) -> timedelta:
        return timedelta(minutes=self.settings.watermark_tolerance_minutes)

    async def process_all_feeds(self) -> RunSummary:
        logger.info("starting government feeds processing")
        feeds = self.store.list_active_feeds()
        if not feeds:
            logger.warning("no active feeds found")
            return RunSummary(errors=[NO_ACTIVE_FEEDS])

        logger.info("processing %d active feeds", len(feeds))
        summary = RunSummary(processed_feeds=len(feeds))
        if self._client is not None:
            await self._process_sequentially(self._client, feeds, summary)
        else:
            async with httpx.AsyncClient(follow_redirects=True) as client:
                await self._process_sequentially(client, feeds, summary)

        try:
            self.store.refresh_read_model()
        except RefreshError as e:
            logger.warning("read model refresh failed, serving stale data: %s", e)

        logger.info(
            "government feeds processing complete: %d incidents from %d feeds, %d errors",
            summary.total_incidents,
            summary.processed_feeds,
            len(summary.errors),
        )
        return summary

    async def _process_sequentially(
        self, client: httpx.AsyncClient, feeds: list[FeedConfig], summary: RunSummary
    ) -> None:
        for index, feed in enumerate(feeds):
            result = await self.process_feed(client, feed)
            summary.results.append(result)
            summary.total_incidents += result.incidents
            summary.errors.extend(result.errors)
            if index < len(feeds) - 1 and self.settings.inter_feed_delay_seconds > 0:
                await self._sleep(self.settings.inter_feed_delay_seconds)

    async def process_feed(
        self, client: httpx.AsyncClient, feed: FeedConfig
    ) -> FeedResult:
        stage = FeedStage.FETCHING
        started = time.monotonic()
        fetch_ms: int | None = None
        logger.info("processing feed %s (%s)", feed.slug, feed.url)
        try:
            fetched_at = datetime.now(tz=UTC)
            content = await fetch_text(
                client,
                url=feed.url,
                user_agent=self.settings.user_agent,
                timeout_seconds=self.settings.fetch_timeout_seconds,
            )
            fetch_ms = int((time.monotonic() - started) * 1000)

            stage = FeedStage.PARSING
            parsed = parse_feed(content, feed, fetched_at=fetched_at)

            stage = FeedStage.FILTERING
            new_items = filter_new(parsed, feed, tolerance=self.tolerance)

            stage = FeedStage.PERSISTING
            saved = self.store.upsert(new_items)
            latest = latest_source_updated_at(parsed)
            if latest is not None:
                self.store.update_last_seen(feed.id, latest)

            stage = FeedStage.DONE
            self.store.record_feed_success(feed.slug, fetch_ms=fetch_ms)
            if new_items:
                logger.info(
                    "%s: %d/%d new incidents processed", feed.slug, saved, len(new_items)
                )
            else:
                logger.info("%s: no new incidents since last check", feed.slug)
            return FeedResult(feed=feed.slug, incidents=saved)
        except Exception as e:
            return self._fail(feed, stage, e, fetch_ms)

    def _fail(
        self,
        feed: FeedConfig,
        stage: FeedStage,
        error: Exception,
        fetch_ms: int | None,
    ) -> FeedResult:
        message = f"Failed to process {feed.slug}: {error}"
        if isinstance(error, IngestError):
            logger.error("%s (while %s)", message, stage)
        else:
            logger.exception("%s (while %s)", message, stage)
        status_code = error.status_code if isinstance(error, FetchError) else None
        try:
            self.store.record_feed_error(
                feed.slug,
                error=f"{stage}:{error}",
                status_code=status_code,
                fetch_ms=fetch_ms,
            )
        except Exception:
            logger.exception("could not record failure for feed %s", feed.slug)
        return FeedResult(feed=feed.slug, incidents=0, errors=[message])
