from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from cbcperf.core.grading import DEFAULT_SCALE, GradeBand, SortedGradeScale, calculate_percentage, classify


class InvalidMarkError(ValueError):
    def __init__(self, student_id: str, subject_id: str, marks: float, max_marks: int) -> None:
        super().__init__(
            f"Marks {marks} for subject {subject_id} of student {student_id} "
            f"must be between 0 and {max_marks}"
        )
        self.student_id = student_id
        self.subject_id = subject_id
        self.marks = marks
        self.max_marks = max_marks


@dataclass(frozen=True)
class SubjectDefinition:
    id: str
    label: str
    max_marks: int

    def __post_init__(self) -> None:
        if self.max_marks <= 0:
            raise ValueError(f"Subject {self.id} must have positive max_marks")


@dataclass(frozen=True)
class RawScore:
    subject_id: str
    marks: float


@dataclass(frozen=True)
class StudentInfo:
    registration_number: str
    name: str


@dataclass(frozen=True)
class SubjectScore:
    subject_id: str
    subject_label: str
    raw_marks: float
    max_marks: int
    percentage: int
    grade_band: GradeBand


@dataclass(frozen=True)
class StudentResult:
    student_id: str
    registration_number: str
    name: str
    subject_scores: tuple[SubjectScore, ...]
    total_marks: float
    total_possible: int
    overall_percentage: int
    overall_grade_band: GradeBand
    position: Optional[int] = None

    def score_for(self, subject_id: str) -> Optional[SubjectScore]:
        for score in self.subject_scores:
            if score.subject_id == subject_id:
                return score
        return None


def aggregate(
    student_id: str,
    display_info: StudentInfo,
    raw_scores: Iterable[RawScore],
    subject_defs: Iterable[SubjectDefinition],
    scale: SortedGradeScale = DEFAULT_SCALE,
) -> StudentResult:
    """Build one student's result from raw marks.

    Scores naming a subject missing from ``subject_defs`` are skipped. Marks
    outside 0..max_marks reject the whole record with ``InvalidMarkError``.
    """
    subjects = {subject.id: subject for subject in subject_defs}

    scores: list[SubjectScore] = []
    total_marks = 0.0
    total_possible = 0
    for raw in raw_scores:
        subject = subjects.get(raw.subject_id)
        if subject is None:
            continue
        if not 0 <= raw.marks <= subject.max_marks:
            raise InvalidMarkError(student_id, subject.id, raw.marks, subject.max_marks)

        percentage = calculate_percentage(raw.marks, subject.max_marks)
        scores.append(
            SubjectScore(
                subject_id=subject.id,
                subject_label=subject.label,
                raw_marks=raw.marks,
                max_marks=subject.max_marks,
                percentage=percentage,
                grade_band=classify(percentage, scale),
            )
        )
        total_marks += raw.marks
        total_possible += subject.max_marks

    overall_percentage = calculate_percentage(total_marks, total_possible)
    return StudentResult(
        student_id=student_id,
        registration_number=display_info.registration_number,
        name=display_info.name,
        subject_scores=tuple(scores),
        total_marks=total_marks,
        total_possible=total_possible,
        overall_percentage=overall_percentage,
        overall_grade_band=classify(overall_percentage, scale),
    )
