"""
Command-line interface for podcast subscriptions.
"""

import argparse
import logging
import sys
from typing import List, Optional

from . import downloader
from .config import Settings, load_settings
from .episode_downloader import EpisodeDownloader
from .errors import PodcastSyncError
from .parser import PodcastParser
from .repository import SubscriptionRepository
from .storage import Storage
from .subscriptions import RefreshStatus, Subscriptions
from .utils import format_bytes

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_OFFLINE = 2
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="podcast-sync",
        description="Subscribe to podcast feeds and download episodes",
    )
    parser.add_argument(
        "--data-dir",
        help="Data directory (default: $PODCAST_DATA_DIRECTORY)",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging"
    )
    commands = parser.add_subparsers(dest="command", required=True)

    add = commands.add_parser("add", help="Subscribe to a feed URL")
    add.add_argument("feed_url", help="URL of the podcast RSS feed")

    opml = commands.add_parser("import-opml", help="Subscribe from OPML")
    opml.add_argument("opml_file", help="Path to an OPML file")

    refresh = commands.add_parser("refresh", help="Refresh all feeds")
    refresh.add_argument(
        "--episode-artwork",
        action="store_true",
        help="Use per-episode artwork when feeds provide it",
    )
    refresh.add_argument(
        "--keep",
        type=int,
        default=None,
        help="Shrink each podcast to this many episodes before refreshing",
    )
    refresh.add_argument(
        "--prepend",
        action="store_true",
        help="Insert new episodes at the top of the list",
    )

    commands.add_parser("list", help="List podcasts and episodes")

    download = commands.add_parser(
        "download", help="Download episodes queued for download"
    )
    download.add_argument(
        "--max", type=int, default=0, help="Download at most N episodes"
    )
    download.add_argument(
        "--no-progress", action="store_true", help="Disable progress bars"
    )
    download.add_argument(
        "--queue-latest",
        type=int,
        default=0,
        metavar="N",
        help="First queue the N most recent episodes of each podcast",
    )

    cleanup = commands.add_parser(
        "cleanup", help="Delete local files of finished episodes"
    )
    cleanup.add_argument(
        "--keep",
        type=int,
        default=0,
        help="Only clean podcasts with more than this many finished episodes",
    )
    return parser


def _cmd_add(
    args: argparse.Namespace,
    subscriptions: Subscriptions,
    settings: Settings,
) -> int:
    if subscriptions.has_feed(args.feed_url):
        print(f"Already subscribed to {args.feed_url}")
        return EXIT_OK
    podcast = subscriptions.parser.from_feed(
        args.feed_url, settings.max_episodes
    )
    subscriptions.add_podcast(podcast)
    print(f"Subscribed to {podcast.title} ({podcast.episode_count} episodes)")
    return EXIT_OK


def _cmd_import_opml(
    args: argparse.Namespace,
    subscriptions: Subscriptions,
    settings: Settings,
) -> int:
    with open(args.opml_file, "rb") as f:
        skipped = subscriptions.import_from_opml(
            f,
            progress=lambda title: print(f"Adding {title}..."),
            max_episodes=settings.max_episodes,
        )
    print(f"Subscribed to {len(subscriptions.podcasts)} podcasts")
    if skipped:
        print(f"Skipped {skipped} unreachable feeds", file=sys.stderr)
        return EXIT_ERROR
    return EXIT_OK


def _cmd_refresh(
    args: argparse.Namespace,
    subscriptions: Subscriptions,
    settings: Settings,
    episode_downloader: EpisodeDownloader,
) -> int:
    keep = settings.episodes_to_keep if args.keep is None else args.keep
    result = subscriptions.refresh_all(
        use_episode_artwork=args.episode_artwork,
        total_episodes_to_keep=keep,
        append_to_end=not args.prepend,
    )
    episode_downloader.remove_episodes(
        [ep for ep in result.removed_episodes if ep.downloaded]
    )
    for podcast in subscriptions.podcasts:
        episode_downloader.repository.store_artwork(podcast)

    print(
        f"Refreshed {result.refreshed} podcasts, "
        f"{result.new_episodes} new episodes"
    )
    for failure in result.failures:
        print(
            f"  Failed: {failure.podcast_title or failure.feed_uri}: "
            f"{failure.error}",
            file=sys.stderr,
        )
    if result.status is RefreshStatus.OFFLINE:
        print("Offline: could not resolve feed hosts", file=sys.stderr)
        return EXIT_OFFLINE
    if result.status is RefreshStatus.ERROR:
        return EXIT_ERROR
    return EXIT_OK


def _cmd_list(subscriptions: Subscriptions) -> int:
    if not subscriptions.podcasts:
        print("No subscriptions")
        return EXIT_OK
    for podcast in subscriptions.podcasts:
        print(f"{podcast.title} <{podcast.feed_uri}>")
        for i, episode in enumerate(podcast.episodes, 1):
            flags = []
            if episode.downloaded:
                flags.append("downloaded")
            if episode.pending_download:
                flags.append("queued")
            if episode.is_played:
                flags.append("played")
            suffix = f" [{', '.join(flags)}]" if flags else ""
            print(
                f"  {i}. {episode.published:%Y-%m-%d} {episode.title} "
                f"({format_bytes(episode.size)}){suffix}"
            )
    return EXIT_OK


def _cmd_download(
    args: argparse.Namespace,
    subscriptions: Subscriptions,
    episode_downloader: EpisodeDownloader,
) -> int:
    if args.queue_latest > 0:
        for podcast in subscriptions.podcasts:
            for episode in podcast.most_recent_episodes(args.queue_latest):
                if not episode.downloaded:
                    episode.pending_download = True

    pending = subscriptions.pending_downloads(args.max)
    if not pending:
        print("No episodes to download")
        return EXIT_OK
    total_size = sum(ep.size for ep in pending)
    print(
        f"Downloading {len(pending)} episodes "
        f"({format_bytes(total_size)})"
    )

    summary = episode_downloader.download_pending(
        subscriptions, args.max, show_progress=not args.no_progress
    )
    print("\nDownload complete:")
    print(f"  Successfully downloaded: {summary.successful}")
    print(f"  Already existed (skipped): {summary.skipped}")
    print(f"  Failed downloads: {summary.failed}")
    return EXIT_ERROR if summary.failed > 0 else EXIT_OK


def _cmd_cleanup(
    args: argparse.Namespace,
    subscriptions: Subscriptions,
    episode_downloader: EpisodeDownloader,
) -> int:
    candidates = subscriptions.eviction_candidates(args.keep)
    removed = episode_downloader.remove_episodes(candidates)
    print(f"Removed {removed} of {len(candidates)} finished episodes")
    return EXIT_OK if removed == len(candidates) else EXIT_ERROR


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point; returns the process exit code."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    settings = load_settings()
    data_dir = args.data_dir or settings.data_dir
    if not data_dir:
        print(
            "Error: PODCAST_DATA_DIRECTORY environment variable "
            "must be set (or pass --data-dir).",
            file=sys.stderr,
        )
        print(
            "Example: export PODCAST_DATA_DIRECTORY=/path/to/podcast/data",
            file=sys.stderr,
        )
        return EXIT_ERROR
    downloader.configure(settings)

    repository = SubscriptionRepository(Storage(data_dir))
    subscriptions = repository.load(PodcastParser())
    episode_downloader = EpisodeDownloader(repository)

    try:
        if args.command == "add":
            code = _cmd_add(args, subscriptions, settings)
        elif args.command == "import-opml":
            code = _cmd_import_opml(args, subscriptions, settings)
        elif args.command == "refresh":
            code = _cmd_refresh(
                args, subscriptions, settings, episode_downloader
            )
        elif args.command == "list":
            code = _cmd_list(subscriptions)
        elif args.command == "download":
            code = _cmd_download(args, subscriptions, episode_downloader)
        else:
            code = _cmd_cleanup(args, subscriptions, episode_downloader)
    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        code = EXIT_INTERRUPTED
    except (PodcastSyncError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        code = EXIT_ERROR

    if args.command != "list" and not repository.save(subscriptions):
        print("Error: could not save subscriptions", file=sys.stderr)
        return EXIT_ERROR
    return code


if __name__ == "__main__":
    sys.exit(main())
