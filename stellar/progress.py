"""Progress reporting.

The engine hands finished levels to a ``ProgressReporter`` and the driver
flushes per-session totals through :func:`sync_progress`. Where the progress
ends up (a local profile, a remote ledger, just the log) is the reporter's
business; the engine never looks at what a reporter returns.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

from .context import GameStats
from .meta import BADGE_NAMES, DEFAULT_BADGES, Profile, ProfileStore, award_badges

logger = logging.getLogger(__name__)


class ProgressReporter(Protocol):
    def report_game_started(self, level: int) -> Any: ...

    def report_round_complete(self, level: int, round_: int) -> Any: ...

    def report_level_complete(self, new_level: int, total_score: int) -> Any: ...

    def report_progress(self, total_keys_collected: int, session_score: int, high_score: int, level: int) -> bool: ...


def stats_from_profile(profile: Profile) -> GameStats:
    """Session stats for a new game, resuming at the saved level."""
    return GameStats(level=max(1, profile.level), keys=profile.keys, high_score=profile.high_score)


class LoggingProgressReporter:
    def report_game_started(self, level: int) -> None:
        logger.info("game started at level %d", level)

    def report_round_complete(self, level: int, round_: int) -> None:
        logger.debug("round %d of level %d complete", round_, level)

    def report_level_complete(self, new_level: int, total_score: int) -> None:
        logger.info("level complete: now level %d, score %d", new_level, total_score)

    def report_progress(self, total_keys_collected: int, session_score: int, high_score: int, level: int) -> bool:
        logger.info(
            "progress: %d keys, session score %d (high score %d), level %d",
            total_keys_collected, session_score, high_score, level,
        )
        return True


class ProfileProgressReporter:
    """Writes progress into the local JSON profile."""

    def __init__(self, store: ProfileStore, badges: Optional[Dict[str, int]] = None) -> None:
        self.store = store
        self.badges = dict(DEFAULT_BADGES if badges is None else badges)

    def report_game_started(self, level: int) -> None:
        self.store.profile.games_played += 1
        self.store.save()

    def report_round_complete(self, level: int, round_: int) -> None:
        self.store.profile.rounds_completed += 1
        self.store.save()

    def report_level_complete(self, new_level: int, total_score: int) -> None:
        p = self.store.profile
        p.level = max(p.level, new_level)
        p.high_score = max(p.high_score, total_score)
        self.store.save()

    def report_progress(self, total_keys_collected: int, session_score: int, high_score: int, level: int) -> bool:
        p = self.store.profile
        p.keys += total_keys_collected
        p.total_score += session_score
        p.high_score = max(p.high_score, high_score, session_score)
        p.level = max(p.level, level)
        for badge in award_badges(p, self.badges):
            logger.info("badge unlocked: %s", BADGE_NAMES.get(badge, badge))
        self.store.save()
        return True


@dataclass
class SyncResult:
    saved: bool
    status: str  # "saved", "nothing_to_save" or "failed"
    keys: int = 0
    score: int = 0


def sync_progress(stats: GameStats, reporter: ProgressReporter) -> SyncResult:
    """Flush the keys and score gathered since the last sync.

    Skipped when there are no new keys, no new high score and the player is
    still on level 1. On success the per-sync totals go back to zero and the
    high score catches up with the session score. A failing reporter leaves
    ``stats`` as it was so the next sync can try again.
    """
    keys, score = stats.total_keys_collected, stats.session_score
    has_new_keys = keys > 0
    has_new_high_score = score > stats.high_score
    needs_level_update = stats.level > 1
    if not (has_new_keys or has_new_high_score or needs_level_update):
        logger.debug("sync skipped, nothing new")
        return SyncResult(saved=False, status="nothing_to_save")

    try:
        ok = reporter.report_progress(keys, score, stats.high_score, stats.level)
    except Exception:
        logger.exception("progress sync failed")
        return SyncResult(saved=False, status="failed", keys=keys, score=score)
    if ok is False:
        logger.warning("progress sync rejected by %s", type(reporter).__name__)
        return SyncResult(saved=False, status="failed", keys=keys, score=score)

    stats.total_keys_collected = 0
    stats.session_score = 0
    stats.high_score = max(stats.high_score, score)
    logger.info("synced %d keys and %d points", keys, score)
    return SyncResult(saved=True, status="saved", keys=keys, score=score)
