"""
Download service for podcast episodes.

This module downloads queued episodes into memory, stores them through the
repository and reports clear results.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from tqdm import tqdm

from .downloader import CancellationToken, DownloadProgress, ProgressSink
from .errors import PodcastSyncError
from .models import Episode, Podcast
from .repository import SubscriptionRepository
from .subscriptions import Subscriptions


@dataclass
class DownloadResult:
    """Result of a download operation."""

    success: bool
    file_path: Optional[str] = None
    error: Optional[str] = None
    was_cached: bool = False


@dataclass
class DownloadSummary:
    """Summary of multiple download operations."""

    successful: int
    skipped: int
    failed: int
    results: list[DownloadResult]

    @classmethod
    def from_results(cls, results: list[DownloadResult]) -> "DownloadSummary":
        """Create summary from list of results."""
        successful = sum(1 for r in results if r.success and not r.was_cached)
        skipped = sum(1 for r in results if r.was_cached)
        failed = sum(1 for r in results if not r.success)

        return cls(
            successful=successful,
            skipped=skipped,
            failed=failed,
            results=results,
        )


class TqdmProgress:
    """Progress sink that drives a tqdm bar for one download."""

    def __init__(self, description: str):
        self.bar = tqdm(
            total=None,
            unit="B",
            unit_scale=True,
            desc=description,
            leave=False,
        )
        self._last = 0

    def __call__(self, progress: DownloadProgress) -> None:
        if progress.total_bytes and self.bar.total != progress.total_bytes:
            self.bar.total = progress.total_bytes
            self.bar.refresh()
        self.bar.update(progress.bytes_received - self._last)
        self._last = progress.bytes_received

    def close(self) -> None:
        """Close the underlying bar."""
        self.bar.close()


class EpisodeDownloader:
    """Service for downloading podcast episodes."""

    def __init__(self, repository: SubscriptionRepository):
        """Initialize with the repository that stores downloaded files."""
        self.repository = repository
        self.logger = logging.getLogger(__name__)

    def download_episode(
        self,
        podcast: Podcast,
        episode: Episode,
        progress: Optional[ProgressSink] = None,
        cancellation: Optional[CancellationToken] = None,
    ) -> DownloadResult:
        """Download a single episode and store it on disk."""
        if episode.downloaded and self.repository.storage.file_exists(
            episode.local_file_path
        ):
            self.logger.debug("Episode already exists: %s", episode.title)
            return DownloadResult(
                success=True,
                file_path=episode.local_file_path,
                was_cached=True,
            )

        try:
            episode.download(progress, cancellation)
            file_path = self.repository.store_episode_media(podcast, episode)
        except PodcastSyncError as e:
            self.logger.error(
                "Download error for episode %s: %s", episode.title, e
            )
            return DownloadResult(success=False, error=str(e))
        finally:
            episode.release_media()

        if file_path:
            return DownloadResult(success=True, file_path=file_path)
        return DownloadResult(
            success=False, error=f"Failed to store {episode.title}"
        )

    def download_pending(
        self,
        subscriptions: Subscriptions,
        max_count: int = 0,
        show_progress: bool = True,
        cancellation: Optional[CancellationToken] = None,
    ) -> DownloadSummary:
        """Download every episode queued for download, in order."""
        episodes = subscriptions.pending_downloads(max_count)
        if not episodes:
            self.logger.info("No episodes to download")
            return DownloadSummary.from_results([])

        self.logger.info(
            "Starting batch download of %d episodes", len(episodes)
        )
        results: List[DownloadResult] = []
        for i, episode in enumerate(episodes, 1):
            podcast = subscriptions.podcast_for_episode(episode)
            if podcast is None:
                self.logger.warning(
                    "Episode '%s' has no podcast, skipping", episode.title
                )
                results.append(
                    DownloadResult(success=False, error="Unknown podcast")
                )
                continue

            sink = None
            if show_progress:
                title_short = episode.title[:30]
                sink = TqdmProgress(
                    f"Episode {i}/{len(episodes)}: {title_short}..."
                )
            try:
                result = self.download_episode(
                    podcast, episode, sink, cancellation
                )
            finally:
                if sink is not None:
                    sink.close()
            results.append(result)

            if result.success:
                if result.was_cached:
                    self.logger.debug("Skipped existing: %s", episode.title)
                else:
                    self.logger.info("Downloaded: %s", episode.title)
            else:
                self.logger.error(
                    "Failed: %s - %s", episode.title, result.error
                )
            if cancellation is not None and cancellation.cancelled:
                self.logger.warning("Batch download cancelled")
                break

        summary = DownloadSummary.from_results(results)
        self._log_download_results(summary)
        return summary

    def remove_episodes(self, episodes: List[Episode]) -> int:
        """Delete the local files of episodes; returns how many succeeded."""
        removed = 0
        for episode in episodes:
            if self.repository.delete_episode_media(episode):
                removed += 1
                self.logger.info("Removed local file for %s", episode.title)
        return removed

    def _log_download_results(self, summary: DownloadSummary) -> None:
        """Log the download results summary."""
        self.logger.info(
            "Download results: %d successful, %d skipped, %d failed",
            summary.successful,
            summary.skipped,
            summary.failed,
        )
