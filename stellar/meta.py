from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List

logger = logging.getLogger(__name__)

# Badge tiers, unlocked by lifetime score
DEFAULT_BADGES: Dict[str, int] = {
    "bronze_explorer": 50,
    "silver_navigator": 200,
    "gold_commander": 900,
}

BADGE_NAMES: Dict[str, str] = {
    "bronze_explorer": "Bronze Explorer",
    "silver_navigator": "Silver Navigator",
    "gold_commander": "Gold Commander",
}


@dataclass
class Profile:
    level: int = 1
    high_score: int = 0
    keys: int = 0
    total_score: int = 0
    rounds_completed: int = 0
    games_played: int = 0
    achievements: dict[str, bool] = field(default_factory=dict)

    def to_dict(self):
        return {
            "level": self.level,
            "high_score": self.high_score,
            "keys": self.keys,
            "total_score": self.total_score,
            "rounds_completed": self.rounds_completed,
            "games_played": self.games_played,
            "achievements": dict(self.achievements),
        }


def award_badges(profile: Profile, thresholds: Dict[str, int]) -> List[str]:
    """Unlock every badge whose threshold ``total_score`` has reached; returns the new ones."""
    unlocked = []
    for badge, threshold in thresholds.items():
        if not profile.achievements.get(badge) and profile.total_score >= threshold:
            profile.achievements[badge] = True
            unlocked.append(badge)
    return unlocked


def badge_view(profile: Profile, thresholds: Dict[str, int]) -> List[Dict[str, Any]]:
    return [
        {
            "id": badge,
            "name": BADGE_NAMES.get(badge, badge),
            "threshold": threshold,
            "unlocked": bool(profile.achievements.get(badge)),
        }
        for badge, threshold in sorted(thresholds.items(), key=lambda item: item[1])
    ]


class ProfileStore:
    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.profile = Profile()

    def load(self) -> Profile:
        if self.path.exists():
            try:
                data = json.loads(self.path.read_text(encoding="utf-8"))
                self.profile = Profile(
                    level=max(1, int(data.get("level", 1))),
                    high_score=int(data.get("high_score", 0)),
                    keys=int(data.get("keys", 0)),
                    total_score=int(data.get("total_score", 0)),
                    rounds_completed=int(data.get("rounds_completed", 0)),
                    games_played=int(data.get("games_played", 0)),
                    achievements={str(k): bool(v) for k, v in dict(data.get("achievements", {})).items()},
                )
            except (ValueError, TypeError, AttributeError):
                logger.warning("profile at %s is unreadable, starting a fresh one", self.path, exc_info=True)
                self.profile = Profile()
                self.save()
        else:
            self.profile = Profile()
            self.save()
        return self.profile

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(self.profile.to_dict(), indent=2), encoding="utf-8")

    def reset(self) -> Profile:
        self.profile = Profile()
        self.save()
        return self.profile
