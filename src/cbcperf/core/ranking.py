from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, Iterable, List, Sequence, Tuple

from cbcperf.core.aggregation import StudentResult, SubjectDefinition
from cbcperf.core.grading import DEFAULT_SCALE, SortedGradeScale, round_half_up


TOP_PERFORMERS = 5
SUBJECT_HIGHLIGHTS = 3


class RankingPolicy(str, Enum):
    # 1, 2, 3 for equal totals, in input order
    SEQUENTIAL = "sequential"
    # 1, 1, 3 for equal totals
    COMPETITION = "competition"


@dataclass(frozen=True)
class ClassMetrics:
    grade: str
    term: str
    academic_year: str
    total_students: int = 0
    average_percentage: int = 0
    pass_rate: int = 0
    subject_averages: Dict[str, int] = field(default_factory=dict)
    subject_attempts: Dict[str, int] = field(default_factory=dict)
    grade_distribution: Dict[str, int] = field(default_factory=dict)
    top_performers: Tuple[StudentResult, ...] = ()
    bottom_performers: Tuple[StudentResult, ...] = ()
    subject_strengths: Tuple[str, ...] = ()
    subject_weaknesses: Tuple[str, ...] = ()


def rank(
    results: Iterable[StudentResult],
    policy: RankingPolicy = RankingPolicy.SEQUENTIAL,
) -> List[StudentResult]:
    """Order results by total marks, highest first, and assign positions.

    The sort is stable so equal totals keep their input order. Returns new
    results; the inputs are left untouched.
    """
    ordered = sorted(results, key=lambda result: result.total_marks, reverse=True)

    ranked: List[StudentResult] = []
    for index, result in enumerate(ordered):
        position = index + 1
        if policy is RankingPolicy.COMPETITION and ranked and ranked[-1].total_marks == result.total_marks:
            position = ranked[-1].position or position
        ranked.append(replace(result, position=position))
    return ranked


def _mean(values: Sequence[float]) -> int:
    if not values:
        return 0
    return round_half_up(sum(values) / len(values))


def _subject_percentages(
    results: Sequence[StudentResult],
    subject_defs: Iterable[SubjectDefinition],
) -> Dict[str, List[int]]:
    subject_ids = [subject.id for subject in subject_defs]
    for result in results:
        for score in result.subject_scores:
            if score.subject_id not in subject_ids:
                subject_ids.append(score.subject_id)

    by_subject: Dict[str, List[int]] = {}
    for subject_id in subject_ids:
        percentages = []
        for result in results:
            score = result.score_for(subject_id)
            if score is not None:
                percentages.append(score.percentage)
        if percentages:
            by_subject[subject_id] = percentages
    return by_subject


def subject_averages(
    results: Sequence[StudentResult],
    subject_defs: Iterable[SubjectDefinition],
) -> Dict[str, int]:
    """Mean percentage per subject over the students who sat it."""
    by_subject = _subject_percentages(results, subject_defs)
    return {subject_id: _mean(percentages) for subject_id, percentages in by_subject.items()}


def analyze(
    results: Iterable[StudentResult],
    subject_defs: Iterable[SubjectDefinition],
    *,
    grade: str = "",
    term: str = "",
    academic_year: str = "",
    scale: SortedGradeScale = DEFAULT_SCALE,
    policy: RankingPolicy = RankingPolicy.SEQUENTIAL,
    top_n: int = TOP_PERFORMERS,
    subject_n: int = SUBJECT_HIGHLIGHTS,
) -> Tuple[List[StudentResult], ClassMetrics]:
    ranked = rank(results, policy)
    distribution = {letter: 0 for letter in scale.letters}

    if not ranked:
        return ranked, ClassMetrics(
            grade=grade,
            term=term,
            academic_year=academic_year,
            grade_distribution=distribution,
        )

    total_students = len(ranked)
    average_percentage = _mean([result.overall_percentage for result in ranked])

    pass_count = sum(1 for result in ranked if scale.is_pass(result.overall_grade_band))
    pass_rate = round_half_up(pass_count / total_students * 100)

    for result in ranked:
        letter = result.overall_grade_band.letter
        if letter in distribution:
            distribution[letter] += 1

    by_subject = _subject_percentages(ranked, subject_defs)
    averages = {subject_id: _mean(percentages) for subject_id, percentages in by_subject.items()}
    attempts = {subject_id: len(percentages) for subject_id, percentages in by_subject.items()}

    # counts below zero select nobody
    subject_n = max(0, subject_n)
    top_n = max(0, top_n)

    by_average = sorted(averages.items(), key=lambda item: item[1], reverse=True)
    strengths = tuple(subject_id for subject_id, _ in by_average[:subject_n])
    weaknesses = tuple(subject_id for subject_id, _ in by_average[-subject_n:]) if subject_n else ()

    top = tuple(ranked[:top_n])
    bottom = tuple(reversed(ranked[-top_n:])) if top_n else ()

    metrics = ClassMetrics(
        grade=grade,
        term=term,
        academic_year=academic_year,
        total_students=total_students,
        average_percentage=average_percentage,
        pass_rate=pass_rate,
        subject_averages=averages,
        subject_attempts=attempts,
        grade_distribution=distribution,
        top_performers=top,
        bottom_performers=bottom,
        subject_strengths=strengths,
        subject_weaknesses=weaknesses,
    )
    return ranked, metrics
