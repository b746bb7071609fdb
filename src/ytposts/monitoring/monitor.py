"""Periodic detection sweeps across all watched channels.

One sweep reads every watch, groups the watches by YouTube channel so each
channel is fetched once, and hands new posts to the notifier. Sweeps never
overlap: a trigger that arrives while a sweep is running is skipped.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections import defaultdict
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from ytposts.constants import DEFAULT_AVATAR_URL, DEFAULT_CHECK_INTERVAL_MINUTES
from ytposts.errors import ChannelCheckError, StoreError
from ytposts.logging import get_logger, log_context
from ytposts.monitoring.models import Detection, Notifier, PostNotification, SweepReport
from ytposts.utils import timed_operation

if TYPE_CHECKING:
    from ytposts.channels import ChannelDirectory, ChannelTarget
    from ytposts.monitoring.detector import ChangeDetector, PostStore
    from ytposts.storage.posts import WatchRecord
    from ytposts.youtube.models import ExtractionResult
    from ytposts.youtube.service import ChannelPostsService

log = get_logger("ytposts.monitoring.monitor")


def group_watches(watches: list[WatchRecord]) -> dict[str, list[WatchRecord]]:
    """Group watches by YouTube channel id, dropping exact duplicates."""
    grouped: dict[str, list[WatchRecord]] = defaultdict(list)
    for watch in watches:
        bucket = grouped[watch.youtube_channel_id]
        if watch not in bucket:
            bucket.append(watch)
    return dict(grouped)


class PostMonitor:
    """Runs detection sweeps on a timer.

    Typical flow::

        monitor = PostMonitor(channels=..., service=..., store=..., detector=...,
                              notifier=...)
        monitor.start()
        ...
        await monitor.stop()
    """

    def __init__(
        self,
        *,
        channels: ChannelDirectory,
        service: ChannelPostsService,
        store: PostStore,
        detector: ChangeDetector,
        notifier: Notifier | None = None,
        interval_seconds: float = DEFAULT_CHECK_INTERVAL_MINUTES * 60,
    ) -> None:
        self._channels = channels
        self._service = service
        self._store = store
        self._detector = detector
        self._notifier = notifier
        self._interval = interval_seconds
        self._sweep_lock = asyncio.Lock()
        self._task: asyncio.Task[None] | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def sweep_in_progress(self) -> bool:
        return self._sweep_lock.locked()

    def start(self) -> None:
        """Schedule periodic sweeps on the running event loop."""
        if self.is_running:
            log.warning("monitor_already_running")
            return
        self._task = asyncio.create_task(self._run_loop(), name="ytposts-monitor")
        log.info("monitor_started", interval_seconds=self._interval)

    async def stop(self) -> None:
        """Cancel the periodic task and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        log.info("monitor_stopped")

    async def _run_loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.check_for_new_posts()
            except Exception:
                log.exception("sweep_crashed")

    # ------------------------------------------------------------------
    # Sweeps
    # ------------------------------------------------------------------

    async def check_for_new_posts(self) -> SweepReport | None:
        """Run one sweep. Returns ``None`` if another sweep is in progress."""
        if self.sweep_in_progress:
            log.warning("sweep_skipped_already_running")
            return None

        async with self._sweep_lock:
            report = SweepReport()
            with log_context(sweep_started_at=report.started_at.isoformat()):
                return await self._run_sweep(report)

    async def _run_sweep(self, report: SweepReport) -> SweepReport:
        async with timed_operation("sweep_finished", log=log):
            await self._sweep(report)
            report.finished_at = datetime.now(UTC)
        log.info(
            "sweep_summary",
            channels_checked=report.channels_checked,
            new_posts=len(report.new_posts),
            failures=len(report.failures),
        )
        return report

    async def _sweep(self, report: SweepReport) -> None:
        try:
            watches = await self._store.list_watches()
        except StoreError as exc:
            log.error("list_watches_failed", error=str(exc))
            report.failures["*"] = str(exc)
            return

        if not watches:
            log.info("no_channels_watched")
            return

        grouped = group_watches(watches)
        log.info("sweep_started", watches=len(watches), channels=len(grouped))

        for channel_id, channel_watches in grouped.items():
            report.channels_checked += 1
            channel = self._channels.get(channel_id)
            with log_context(channel_id=channel_id, handle=channel.handle if channel else None):
                detection = await self._check_isolated(channel_id, channel_watches, report)
            if detection is not None and detection.is_new:
                report.new_posts.append(detection.post.id)

    async def _check_isolated(
        self,
        channel_id: str,
        watches: list[WatchRecord],
        report: SweepReport,
    ) -> Detection | None:
        """Run :meth:`check_channel`, recording any failure in *report*."""
        try:
            return await self.check_channel(channel_id, watches)
        except ChannelCheckError as exc:
            log.error("channel_check_failed", stage=exc.stage, error=str(exc))
            report.failures[channel_id] = f"{exc.stage}: {exc}"
        except StoreError as exc:
            log.error("channel_check_failed", stage="store", error=str(exc))
            report.failures[channel_id] = f"store: {exc}"
        except Exception as exc:
            log.exception("channel_check_crashed")
            report.failures[channel_id] = f"unexpected: {exc}"
        return None

    async def check_channel(
        self,
        channel_id: str,
        watches: list[WatchRecord] | None = None,
    ) -> Detection | None:
        """Fetch, detect and notify for a single channel.

        Args:
            channel_id: YouTube channel id.
            watches: Delivery targets; looked up in storage when omitted.

        Raises:
            ChannelCheckError: If the channel cannot be fetched or notified.
            StoreError: If the stored state cannot be read.
        """
        channel = self._channels.get(channel_id)
        if channel is None:
            log.warning("channel_not_configured", channel_id=channel_id)
            return None

        log.info("checking_channel", channel_id=channel_id, handle=channel.handle)
        result = await self._service.fetch_channel_posts(channel.handle)
        if not result.success:
            raise ChannelCheckError(
                channel_id,
                "fetch",
                f"{channel.handle}: {result.error or 'unknown error'} (tried {result.tried_urls})",
            )
        if not result.posts:
            log.info(
                "no_posts_found",
                channel_id=channel_id,
                handle=channel.handle,
                diagnostic=result.diagnostic,
            )
            return None

        detection = await self._detector.detect(channel_id, result)
        if detection is None or not detection.is_new:
            return detection

        if watches is None:
            watches = await self._store.get_watchers(channel_id)
        event = self._build_notification(channel, result, detection, watches)
        await self._dispatch(event)
        return detection

    def _build_notification(
        self,
        channel: ChannelTarget,
        result: ExtractionResult,
        detection: Detection,
        watches: list[WatchRecord],
    ) -> PostNotification:
        extracted_avatar = result.channel.avatar_url if result.channel else None
        return PostNotification(
            channel_id=channel.id,
            channel_display_name=channel.display_name,
            channel_avatar_url=channel.avatar_url or extracted_avatar or DEFAULT_AVATAR_URL,
            channel_url=channel.url,
            post=detection.post,
            watchers=list(watches),
        )

    async def _dispatch(self, event: PostNotification) -> None:
        if not event.watchers:
            log.info("new_post_without_watchers", channel_id=event.channel_id)
            return
        if self._notifier is None:
            log.warning("notifier_not_configured", channel_id=event.channel_id)
            return
        try:
            delivered = await self._notifier.notify(event)
        except Exception as exc:
            raise ChannelCheckError(event.channel_id, "notify", str(exc)) from exc
        log.info(
            "notification_sent",
            channel_id=event.channel_id,
            post_id=event.post.id,
            delivered=delivered,
            watchers=len(event.watchers),
        )

