"""
Analytics aggregator.

Derives trend, time metrics, strengths/weaknesses, streak, readiness and
recommendations from a user's attempts. Soft-deleted attempts are part of the
input: statistics must not change when an attempt is hidden from history.
Nothing here is cached; callers recompute on every fetch.
"""
import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Union

from pydantic import BaseModel

from cse_reviewer.core.config import settings
from cse_reviewer.engine.categories import Section, normalize_category
from cse_reviewer.engine.scoring import percentage, round_half_up

logger = logging.getLogger(__name__)


@dataclass
class AnalyticsConfig:
    strength_threshold: int = field(default_factory=lambda: settings.STRENGTH_THRESHOLD)
    weakness_threshold: int = field(default_factory=lambda: settings.WEAKNESS_THRESHOLD)
    readiness_weak_threshold: int = field(default_factory=lambda: settings.READINESS_WEAK_SECTION_THRESHOLD)
    pass_threshold: int = field(default_factory=lambda: settings.PASS_THRESHOLD)
    trend_window: int = field(default_factory=lambda: settings.TREND_WINDOW)
    recent_window: int = field(default_factory=lambda: settings.RECENT_ATTEMPTS_WINDOW)


# ---------------------------------------------------------------------------
# Input record
# ---------------------------------------------------------------------------


class AttemptRecord(BaseModel):
    """The fields of a persisted attempt that analytics reads."""

    id: Optional[Union[int, str]] = None
    name: str = ""
    score: float = 0
    result: str = "Failed"
    is_mock_exam: bool = False
    is_deleted: bool = False
    completed_at: datetime
    section_scores: Dict[str, float] = {}
    attempted_sections: Optional[Set[str]] = None
    time_spent_seconds: int = 0
    total_questions: int = 0
    correct_questions: int = 0
    incorrect_questions: int = 0

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "AttemptRecord":
        """Build a record from an API attempt (camelCase, ``details`` nested)."""
        details = data.get("details") or {}
        responses = data.get("questionResponses") or data.get("question_responses")

        attempted = None
        if responses:
            attempted = {normalize_category(r.get("category")).value for r in responses}

        return cls(
            id=data.get("id"),
            name=data.get("name") or "",
            score=data.get("score") or 0,
            result=data.get("result") or "Failed",
            is_mock_exam=bool(data.get("isMockExam", data.get("is_mock_exam", False))),
            is_deleted=bool(data.get("isDeleted", data.get("is_deleted", False))),
            completed_at=data.get("completedAt") or data.get("completed_at"),
            section_scores=details.get("sectionScores") or {},
            attempted_sections=attempted,
            time_spent_seconds=details.get("timeSpentSeconds") or 0,
            total_questions=details.get("totalQuestions") or 0,
            correct_questions=details.get("correctQuestions") or 0,
            incorrect_questions=details.get("incorrectQuestions") or 0,
        )

    def has_section(self, key: str) -> bool:
        if self.attempted_sections is not None:
            return key in self.attempted_sections
        return key in self.section_scores


# ---------------------------------------------------------------------------
# Output models
# ---------------------------------------------------------------------------


class TrendPoint(BaseModel):
    label: str
    score: float
    date: str
    completed_at: datetime
    section_scores: Dict[str, float]


class TimeMetrics(BaseModel):
    avg_time_per_question: int = 0
    consistency: int = 0
    speed_score: int = 0


class SectionStanding(BaseModel):
    key: str
    label: str
    score: int
    type: str


class PerformanceTrend(BaseModel):
    direction: str = "stable"
    change: int = 0
    message: str = "Not enough data to calculate trend"


class Recommendation(BaseModel):
    kind: str
    text: str
    insight: str


class AggregateStats(BaseModel):
    total_attempts: int = 0
    total_passed: int = 0
    total_failed: int = 0
    average_score: int = 0
    accuracy: int = 0
    highest_score: int = 0
    lowest_score: int = 0
    section_averages: Dict[str, int]
    strengths_weaknesses: List[SectionStanding]
    time_metrics: TimeMetrics
    trend: List[TrendPoint]
    performance_trend: PerformanceTrend
    streak: int = 0
    readiness: int = 0
    pass_probability: float = 0.0
    days_to_mastery: int = 14
    focus_topics: List[str]
    strength_topics: List[str]
    recommendations: List[Recommendation]


# ---------------------------------------------------------------------------
# Derivations
# ---------------------------------------------------------------------------


def sort_newest_first(attempts: Iterable[AttemptRecord]) -> List[AttemptRecord]:
    return sorted(attempts, key=lambda a: a.completed_at, reverse=True)


def build_trend(attempts: Sequence[AttemptRecord], window: int) -> List[TrendPoint]:
    """
    Chart points, oldest first.

    Args:
        attempts: Attempts ordered newest first, as storage returns them
        window: Number of most recent attempts to chart
    """
    recent = list(attempts[:window])
    recent.reverse()
    return [
        TrendPoint(
            label=f"Mock {index + 1}",
            score=attempt.score,
            date=f"{attempt.completed_at:%b} {attempt.completed_at.day}",
            completed_at=attempt.completed_at,
            section_scores={s.value: attempt.section_scores.get(s.value, 0) for s in Section},
        )
        for index, attempt in enumerate(recent)
    ]


def speed_score(avg_time_per_question: int) -> int:
    if avg_time_per_question < 30:
        return 95
    if avg_time_per_question < 45:
        return 85
    if avg_time_per_question < 60:
        return 75
    if avg_time_per_question < 90:
        return 65
    return 50


def calculate_time_metrics(attempts: Sequence[AttemptRecord]) -> TimeMetrics:
    """
    Time efficiency of a set of attempts.

    Consistency is 100 minus the population standard deviation of the scores,
    floored at 0. Both values stay within [0, 100].
    """
    if not attempts:
        return TimeMetrics()

    total_seconds = sum(a.time_spent_seconds for a in attempts)
    total_questions = sum(a.total_questions for a in attempts)
    avg_time = round_half_up(total_seconds / total_questions) if total_questions > 0 else 0

    scores = [a.score for a in attempts]
    mean = sum(scores) / len(scores)
    variance = sum((s - mean) ** 2 for s in scores) / len(scores)
    consistency = max(0, round_half_up(100 - math.sqrt(variance)))

    return TimeMetrics(
        avg_time_per_question=avg_time,
        consistency=min(100, consistency),
        speed_score=speed_score(avg_time),
    )


def calculate_section_averages(attempts: Sequence[AttemptRecord]):
    """
    Average section score over the attempts that covered each section.

    Returns:
        Tuple of (section key -> rounded average, section key -> attempt count)
    """
    totals = {s.value: 0.0 for s in Section}
    counts = {s.value: 0 for s in Section}

    for attempt in attempts:
        for key in totals:
            if attempt.has_section(key):
                totals[key] += attempt.section_scores.get(key, 0)
                counts[key] += 1

    averages = {
        key: round_half_up(totals[key] / counts[key]) if counts[key] > 0 else 0
        for key in totals
    }
    return averages, counts


def classify_sections(
    averages: Mapping[str, int],
    counts: Optional[Mapping[str, int]] = None,
    config: Optional[AnalyticsConfig] = None,
) -> List[SectionStanding]:
    """Strength / neutral / weakness for every canonical section, in canonical order."""
    config = config or AnalyticsConfig()
    standings = []
    for section in Section:
        score = int(averages.get(section.value, 0))
        if counts is not None and counts.get(section.value, 0) == 0:
            kind = "neutral"
        elif score >= config.strength_threshold:
            kind = "strength"
        elif score >= config.weakness_threshold:
            kind = "neutral"
        else:
            kind = "weakness"
        standings.append(SectionStanding(key=section.value, label=section.label, score=score, type=kind))
    return standings


def _as_date(value: Union[date, datetime]) -> date:
    # Naive datetimes are stored in UTC
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    return value


def calculate_streak(dates: Iterable[Union[date, datetime]], today: Optional[date] = None) -> int:
    """
    Consecutive days with at least one attempt, anchored on today or yesterday.

    Args:
        dates: Attempt or answer dates, any order, duplicates allowed
        today: Reference day, defaults to the current UTC date

    Returns:
        Streak length in days, 0 when neither today nor yesterday has activity
    """
    today = today or datetime.now(timezone.utc).date()
    active_days = {_as_date(d) for d in dates}
    if not active_days:
        return 0

    if today in active_days:
        day = today
    elif today - timedelta(days=1) in active_days:
        day = today - timedelta(days=1)
    else:
        return 0

    streak = 0
    while day in active_days:
        streak += 1
        day -= timedelta(days=1)
    return streak


def calculate_readiness(
    avg_score: float,
    total_exams: int,
    section_scores: Mapping[str, float],
    avg_time_per_question: int,
    weak_threshold: Optional[int] = None,
) -> int:
    """
    Exam readiness heuristic in [0, 100].

    Starts from the average score, adds up to 10 for practice volume, takes 5
    off per weak section and adjusts 5 either way for pacing.
    """
    if total_exams <= 0:
        return 0
    weak_threshold = settings.READINESS_WEAK_SECTION_THRESHOLD if weak_threshold is None else weak_threshold

    readiness = avg_score + min(10, total_exams * 2)
    weak_sections = sum(1 for score in section_scores.values() if 0 < score < weak_threshold)
    readiness -= weak_sections * 5

    if avg_time_per_question > 90:
        readiness -= 5
    elif avg_time_per_question < 30 and avg_score > 75:
        readiness += 5

    return max(0, min(100, round_half_up(readiness)))


def calculate_pass_probability(avg_score: float, total_exams: int, pass_threshold: Optional[int] = None) -> float:
    """Estimated chance of passing, 0 before the first attempt and capped at 95."""
    if total_exams <= 0:
        return 0.0
    pass_threshold = settings.PASS_THRESHOLD if pass_threshold is None else pass_threshold

    if avg_score >= pass_threshold:
        probability = min(95.0, pass_threshold + (avg_score - pass_threshold) * 0.8)
    else:
        probability = max(40.0, avg_score * 0.8)
    return round(probability, 1)


def calculate_days_to_mastery(readiness: int, total_exams: int) -> int:
    if total_exams < 3:
        return 14
    return max(1, round_half_up((100 - readiness) / 3))


def calculate_performance_trend(trend: Sequence[TrendPoint]) -> PerformanceTrend:
    """Compare the latest three charted scores with the earliest three."""
    if len(trend) < 2:
        return PerformanceTrend()

    older = [p.score for p in trend[:3]]
    recent = [p.score for p in trend[-3:]]
    change = round_half_up(sum(recent) / len(recent) - sum(older) / len(older))

    if change > 5:
        return PerformanceTrend(direction="improving", change=change, message=f"Improving by {change}% recently")
    if change < -5:
        return PerformanceTrend(
            direction="declining", change=abs(change), message=f"Declining by {abs(change)}% recently"
        )
    return PerformanceTrend(direction="stable", change=abs(change), message="Performance is stable")


def rank_topics(averages: Mapping[str, int], counts: Mapping[str, int], config: Optional[AnalyticsConfig] = None):
    """
    Focus topics (weakest first) and strength topics (strongest first).

    A user with no section data gets every section as a focus topic.
    """
    config = config or AnalyticsConfig()
    covered = [s for s in Section if counts.get(s.value, 0) > 0]
    if not covered or all(averages.get(s.value, 0) == 0 for s in covered):
        return [s.label for s in Section], []

    ascending = sorted(covered, key=lambda s: averages.get(s.value, 0))
    focus = [s.label for s in ascending if averages.get(s.value, 0) < config.strength_threshold]
    strengths = [
        s.label for s in reversed(ascending) if averages.get(s.value, 0) >= config.strength_threshold
    ]
    return focus, strengths


def generate_recommendations(
    averages: Mapping[str, int],
    avg_score: float,
    total_exams: int,
    recent_attempts: Sequence[AttemptRecord],
    time_metrics: TimeMetrics,
    config: Optional[AnalyticsConfig] = None,
    limit: int = 5,
) -> List[Recommendation]:
    config = config or AnalyticsConfig()
    items: List[Recommendation] = []

    weak = [s for s in Section if 0 < averages.get(s.value, 0) < config.strength_threshold]
    weak.sort(key=lambda s: averages.get(s.value, 0))
    if weak:
        section = weak[0]
        items.append(Recommendation(
            kind="focus",
            text=f"Focus on {section.label} – current score: {averages[section.value]}%.",
            insight="Improvement potential detected",
        ))

    if time_metrics.avg_time_per_question > 60:
        items.append(Recommendation(
            kind="speed",
            text=f"Work on speed – averaging {time_metrics.avg_time_per_question}s per question.",
            insight="Practice under time pressure",
        ))
    elif 0 < time_metrics.avg_time_per_question < 30 and avg_score > 75:
        items.append(Recommendation(
            kind="speed",
            text=f"Excellent speed! Maintain {time_metrics.avg_time_per_question}s/q while ensuring accuracy.",
            insight="Speed mastery achieved",
        ))

    if total_exams < 5:
        items.append(Recommendation(
            kind="frequency",
            text="Take at least 3 mock exams per week to build consistency.",
            insight="Optimal practice frequency",
        ))

    total_errors = sum(a.incorrect_questions for a in recent_attempts)
    if total_errors > 0:
        items.append(Recommendation(
            kind="review",
            text=f"Review {total_errors} incorrect answers from recent tests.",
            insight="Error analysis in progress",
        ))

    if avg_score > 0 and total_exams >= 3:
        improvement = min(10, round_half_up(5 + total_exams * 0.5))
        items.append(Recommendation(
            kind="prediction",
            text=f"Projected +{improvement}% improvement with consistent practice.",
            insight=f"{min(95, 80 + total_exams * 2)}% confidence prediction",
        ))

    if total_exams == 0:
        items.insert(0, Recommendation(
            kind="start",
            text="Take your first mock exam to get personalized recommendations.",
            insight="No attempts yet",
        ))

    return items[:limit]


def aggregate(
    attempts: Iterable[AttemptRecord],
    answered_dates: Iterable[Union[date, datetime]] = (),
    today: Optional[date] = None,
    config: Optional[AnalyticsConfig] = None,
) -> AggregateStats:
    """
    Compute every derived statistic for one user.

    Args:
        attempts: All of the user's attempts, soft-deleted ones included
        answered_dates: Extra activity dates (question answers) for the streak
        today: Reference day for the streak
        config: Threshold overrides

    Returns:
        AggregateStats
    """
    config = config or AnalyticsConfig()
    ordered = sort_newest_first(attempts)
    total = len(ordered)

    scores = [a.score for a in ordered]
    avg_score = round_half_up(sum(scores) / total) if total else 0
    passed = sum(1 for a in ordered if a.result == "Passed")

    averages, counts = calculate_section_averages(ordered)
    recent = ordered[:config.recent_window]
    time_metrics = calculate_time_metrics(recent)
    trend = build_trend(ordered, config.trend_window)

    readiness = calculate_readiness(
        avg_score, total, averages, time_metrics.avg_time_per_question, config.readiness_weak_threshold
    )
    focus, strengths = rank_topics(averages, counts, config)

    activity = [a.completed_at for a in ordered] + list(answered_dates)

    stats = AggregateStats(
        total_attempts=total,
        total_passed=passed,
        total_failed=total - passed,
        average_score=avg_score,
        accuracy=percentage(sum(a.correct_questions for a in ordered), sum(a.total_questions for a in ordered)),
        highest_score=round_half_up(max(scores)) if scores else 0,
        lowest_score=round_half_up(min(scores)) if scores else 0,
        section_averages=averages,
        strengths_weaknesses=classify_sections(averages, counts, config),
        time_metrics=time_metrics,
        trend=trend,
        performance_trend=calculate_performance_trend(trend),
        streak=calculate_streak(activity, today),
        readiness=readiness,
        pass_probability=calculate_pass_probability(avg_score, total, config.pass_threshold),
        days_to_mastery=calculate_days_to_mastery(readiness, total),
        focus_topics=focus,
        strength_topics=strengths,
        recommendations=generate_recommendations(averages, avg_score, total, recent, time_metrics, config),
    )
    logger.debug(f"Aggregated {total} attempts: avg={avg_score} readiness={readiness} streak={stats.streak}")
    return stats
