"""
Resource selection and difficulty suggestion.

Chooses the resources a quiz is grounded in and the difficulty a learner
should start at.
"""

from __future__ import annotations

from typing import List, Optional, Sequence

from loguru import logger

from .errors import NoContentAvailable
from .models.learner_progression import LearnerProgression, PerformanceRecord
from .models.resource import Resource
from .utils.persistence import ContentStore

# Starting difficulty per education level
EDUCATION_LEVEL_DIFFICULTY = {
    "college": 1,
    "seconde": 2,
    "premiere": 3,
    "terminale": 4,
    "superieur": 5,
}

# Records considered when refining a suggestion
RECENT_RECORDS_WINDOW = 5
RAISE_AT_AVERAGE = 90
LOWER_BELOW_AVERAGE = 60


class ResourceSelector:
    """Picks the resources used to ground a quiz."""

    def __init__(self, content_store: ContentStore):
        self.content_store = content_store

    def select(self, subject: str, difficulty_ceiling: int, limit: int) -> List[Resource]:
        """
        Resources for ``subject`` up to ``difficulty_ceiling``.

        Args:
            subject: Subject key (exact match)
            difficulty_ceiling: Highest resource difficulty allowed (1-5)
            limit: Maximum number of resources

        Returns:
            Up to ``limit`` resources, ordered by ascending difficulty then id

        Raises:
            ValueError: If the ceiling or limit is out of range
            NoContentAvailable: If no resource matches
        """
        if not 1 <= difficulty_ceiling <= 5:
            raise ValueError(f"Difficulty ceiling must be in [1, 5], got {difficulty_ceiling}")
        if limit < 1:
            raise ValueError(f"Limit must be >= 1, got {limit}")

        resources = self.content_store.fetch_resources(subject, difficulty_ceiling, limit)
        if not resources:
            logger.warning(f"No resources for {subject} at difficulty <= {difficulty_ceiling}")
            raise NoContentAvailable(subject, difficulty_ceiling)

        logger.debug(
            f"Selected {len(resources)} resource(s) for {subject}: "
            f"{[r.resource_id for r in resources]}"
        )
        return resources


def suggest_difficulty(
    education_level: Optional[str],
    recent_records: Sequence[PerformanceRecord],
    max_difficulty: int = 5,
    default_difficulty: int = 1,
) -> int:
    """
    Suggest a starting difficulty.

    The education level gives the base; the mean score of the most recent
    records moves it up one at 90 or more, down one below 60.

    Args:
        education_level: Learner's education level
        recent_records: Performance records, oldest first
        max_difficulty: Highest difficulty level
        default_difficulty: Base used when the education level is unknown

    Returns:
        Suggested difficulty in [1, max_difficulty]
    """
    suggested = EDUCATION_LEVEL_DIFFICULTY.get(
        (education_level or "").lower(), default_difficulty
    )
    suggested = min(suggested, max_difficulty)

    window = list(recent_records)[-RECENT_RECORDS_WINDOW:]
    if window:
        average = sum(r.score for r in window) / len(window)
        if average >= RAISE_AT_AVERAGE:
            suggested = min(suggested + 1, max_difficulty)
        elif average < LOWER_BELOW_AVERAGE:
            suggested = max(suggested - 1, 1)
    return suggested


def is_level_available(
    progression: LearnerProgression,
    subject: str,
    level: int,
    gamification_enabled: bool,
) -> bool:
    """Every level is open without gamification; otherwise up to the unlocked one."""
    if not gamification_enabled:
        return True
    return level <= progression.unlocked_level(subject)


def available_levels(
    progression: LearnerProgression,
    subject: str,
    gamification_enabled: bool,
    max_difficulty: int = 5,
) -> List[int]:
    return [
        level
        for level in range(1, max_difficulty + 1)
        if is_level_available(progression, subject, level, gamification_enabled)
    ]


def starting_difficulty(
    progression: LearnerProgression,
    subject: str,
    education_level: Optional[str],
    recent_records: Sequence[PerformanceRecord],
    gamification_enabled: bool,
    max_difficulty: int = 5,
    default_difficulty: int = 1,
) -> int:
    """
    Level preselected when the learner opens a subject.

    With gamification the learner resumes at their unlocked level;
    otherwise the suggestion applies.
    """
    if gamification_enabled:
        return min(progression.unlocked_level(subject), max_difficulty)
    return suggest_difficulty(education_level, recent_records, max_difficulty, default_difficulty)
