"""
Revision analytics for dashboards and quiz result screens.

Provides:
- Summary statistics over performance records (average, success rate,
  improvement, time spent)
- Timeframe filtering and per-difficulty / per-subject breakdowns
- Result helpers for one completed quiz
"""

from __future__ import annotations

import calendar
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence, Tuple

from ..models.learner_progression import PerformanceRecord
from ..models.quiz import Quiz, round_half_up

TIMEFRAMES = ("week", "month", "year")

# Durations outside (0, MAX_PLAUSIBLE_MINUTES) are left out of time averages
MAX_PLAUSIBLE_MINUTES = 60

PERFORMANCE_MESSAGES = [
    (90, "Excellent! You have mastered this subject."),
    (80, "Very good! A solid command of the subject."),
    (70, "Good! Your foundations are solid."),
    (60, "Not bad. A few points to review."),
    (50, "Average. More revision is needed."),
]
LOWEST_PERFORMANCE_MESSAGE = "This subject is difficult for you. Go back over the basics."


def average_score(records: Sequence[PerformanceRecord]) -> int:
    """
    Rounded mean score.

    Example:
        >>> average_score([])
        0
    """
    if not records:
        return 0
    return round_half_up(sum(r.score for r in records) / len(records))


def success_rate(records: Sequence[PerformanceRecord]) -> int:
    """Percentage of passed attempts, rounded."""
    if not records:
        return 0
    passed = sum(1 for r in records if r.passed)
    return round_half_up(passed / len(records) * 100)


def score_improvement(records: Sequence[PerformanceRecord]) -> Optional[int]:
    """
    Latest score minus earliest score, by start time.

    Returns:
        Score difference, or None with fewer than two records
    """
    if len(records) < 2:
        return None
    ordered = sorted(records, key=lambda r: r.created_at)
    return ordered[-1].score - ordered[0].score


def average_duration_minutes(records: Sequence[PerformanceRecord]) -> int:
    """Rounded mean quiz duration, ignoring implausible durations."""
    durations = [
        r.duration_minutes for r in records
        if 0 < r.duration_minutes < MAX_PLAUSIBLE_MINUTES
    ]
    if not durations:
        return 0
    return round_half_up(sum(durations) / len(durations))


def _months_before(moment: datetime, months: int) -> datetime:
    month_index = moment.month - 1 - months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def timeframe_cutoff(timeframe: str, now: datetime) -> datetime:
    """
    Earliest start time included in a timeframe.

    Raises:
        ValueError: If timeframe is not one of TIMEFRAMES
    """
    if timeframe == "week":
        return now - timedelta(days=7)
    if timeframe == "month":
        return _months_before(now, 1)
    if timeframe == "year":
        return _months_before(now, 12)
    raise ValueError(f"Unknown timeframe {timeframe!r}, expected one of {TIMEFRAMES}")


def filter_by_timeframe(
    records: Sequence[PerformanceRecord], timeframe: str, now: datetime
) -> List[PerformanceRecord]:
    """Records started within the last week, month or year."""
    cutoff = timeframe_cutoff(timeframe, now)
    return [r for r in records if r.created_at >= cutoff]


def difficulty_distribution(records: Sequence[PerformanceRecord]) -> Dict[int, Dict[str, int]]:
    """
    Attempts per difficulty level.

    Returns:
        Dict mapping each level 1-5 to {"total", "passed", "failed"}
    """
    distribution = {level: {"total": 0, "passed": 0, "failed": 0} for level in range(1, 6)}
    for record in records:
        if record.difficulty not in distribution:
            continue
        bucket = distribution[record.difficulty]
        bucket["total"] += 1
        bucket["passed" if record.passed else "failed"] += 1
    return distribution


def subject_breakdown(
    records: Sequence[PerformanceRecord],
    stored_averages: Optional[Dict[str, int]] = None,
) -> List[Dict[str, object]]:
    """
    Average score and attempt count per subject, best subject first.

    Args:
        records: Performance records
        stored_averages: Averages kept in the learner's progression; preferred
            over the value computed from ``records`` when present

    Returns:
        List of {"subject", "average_score", "quiz_count"} dicts
    """
    stored_averages = stored_averages or {}
    grouped: Dict[str, List[PerformanceRecord]] = {}
    for record in records:
        grouped.setdefault(record.subject, []).append(record)

    rows = []
    for subject, subject_records in grouped.items():
        stored = stored_averages.get(subject)
        rows.append({
            "subject": subject,
            "average_score": stored if stored else average_score(subject_records),
            "quiz_count": len(subject_records),
        })
    rows.sort(key=lambda row: row["average_score"], reverse=True)
    return rows


def is_level_passed(records: Sequence[PerformanceRecord], subject: str, level: int) -> bool:
    """Whether any attempt at ``level`` in ``subject`` passed."""
    return any(r.passed for r in records if r.subject == subject and r.difficulty == level)


def question_type_breakdown(quiz: Quiz) -> Dict[str, Dict[str, int]]:
    """Questions and correct answers per question type."""
    breakdown: Dict[str, Dict[str, int]] = {}
    for question in quiz.questions:
        bucket = breakdown.setdefault(question.question_type, {"total": 0, "correct": 0})
        bucket["total"] += 1
        if question.is_correct:
            bucket["correct"] += 1
    return breakdown


def performance_message(score: int) -> str:
    """Encouragement shown with a quiz result."""
    for threshold, message in PERFORMANCE_MESSAGES:
        if score >= threshold:
            return message
    return LOWEST_PERFORMANCE_MESSAGE


def time_spent(quiz: Quiz) -> Tuple[int, int]:
    """
    Whole minutes and remaining seconds between quiz start and end.

    Raises:
        ValueError: If the quiz has not ended
    """
    seconds = quiz.duration_seconds()
    if seconds is None:
        raise ValueError(f"Quiz {quiz.quiz_id} has not ended")
    total = max(int(seconds), 0)
    return total // 60, total % 60
