from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable

from cbcperf.core.grading import DEFAULT_SCALE, SortedGradeScale, round_half_up
from cbcperf.core.ranking import ClassMetrics


@dataclass(frozen=True)
class SchoolMetrics:
    term: str
    academic_year: str
    total_students: int = 0
    average_percentage: int = 0
    pass_rate: int = 0
    grade_performance: Dict[str, int] = field(default_factory=dict)
    overall_distribution: Dict[str, int] = field(default_factory=dict)
    subject_trends: Dict[str, int] = field(default_factory=dict)


def summarize_school(
    class_metrics: Iterable[ClassMetrics],
    *,
    term: str = "",
    academic_year: str = "",
    scale: SortedGradeScale = DEFAULT_SCALE,
) -> SchoolMetrics:
    """Combine per-class metrics into a school-wide view, weighting by class size.

    Subject trends are weighted by how many students sat each subject. Classes
    that do not report attempts count every student.

    Class averages are already rounded, so the school figures are means of
    rounded values rather than of raw student percentages.
    """
    distribution = {letter: 0 for letter in scale.letters}
    grade_performance: Dict[str, int] = {}
    subject_weighted: Dict[str, float] = {}
    subject_students: Dict[str, int] = {}

    total_students = 0
    weighted_average = 0.0
    weighted_pass = 0.0
    for metrics in class_metrics:
        if metrics.total_students == 0:
            continue
        count = metrics.total_students
        total_students += count
        weighted_average += metrics.average_percentage * count
        weighted_pass += metrics.pass_rate * count
        grade_performance[metrics.grade] = metrics.average_percentage

        for letter, students in metrics.grade_distribution.items():
            if letter in distribution:
                distribution[letter] += students

        for subject_id, average in metrics.subject_averages.items():
            sat = metrics.subject_attempts.get(subject_id, count)
            if sat <= 0:
                continue
            subject_weighted[subject_id] = subject_weighted.get(subject_id, 0.0) + average * sat
            subject_students[subject_id] = subject_students.get(subject_id, 0) + sat

    if total_students == 0:
        return SchoolMetrics(term=term, academic_year=academic_year, overall_distribution=distribution)

    trends = {
        subject_id: round_half_up(subject_weighted[subject_id] / subject_students[subject_id])
        for subject_id in subject_weighted
    }
    return SchoolMetrics(
        term=term,
        academic_year=academic_year,
        total_students=total_students,
        average_percentage=round_half_up(weighted_average / total_students),
        pass_rate=round_half_up(weighted_pass / total_students),
        grade_performance=grade_performance,
        overall_distribution=distribution,
        subject_trends=trends,
    )
