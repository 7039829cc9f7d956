from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List

from cbcperf.core.aggregation import StudentResult
from cbcperf.core.grading import DEFAULT_SCALE, SortedGradeScale


# Indexed by how far the overall band sits from the top of the scale.
OVERALL_REMARKS = (
    "Excellent performance! Keep up the outstanding work.",
    "Good performance overall. Continue working hard.",
    "Shows promise but needs improvement in several areas.",
)
SUPPORT_REMARK = "Requires significant improvement and additional support."
MAINTAIN_REMARK = "Continue maintaining current performance levels"
MAX_LISTED_SUBJECTS = 3


@dataclass(frozen=True)
class StudentRemark:
    student_id: str
    strong_subjects: tuple[str, ...]
    weak_subjects: tuple[str, ...]
    overall_remark: str
    improvement_areas: tuple[str, ...]


def remarks_for(result: StudentResult, scale: SortedGradeScale = DEFAULT_SCALE) -> StudentRemark:
    strong: List[str] = []
    weak: List[str] = []
    for score in result.subject_scores:
        if scale.is_pass(score.grade_band):
            strong.append(score.subject_label)
        else:
            weak.append(score.subject_label)
    strong = strong[:MAX_LISTED_SUBJECTS]
    weak = weak[:MAX_LISTED_SUBJECTS]

    band_rank = scale.rank_of(result.overall_grade_band.letter)
    if band_rank is not None and band_rank < len(OVERALL_REMARKS):
        overall = OVERALL_REMARKS[band_rank]
    else:
        overall = SUPPORT_REMARK

    if weak:
        improvement = (f"Focus more on {', '.join(weak)}",)
    else:
        improvement = (MAINTAIN_REMARK,)

    return StudentRemark(
        student_id=result.student_id,
        strong_subjects=tuple(strong),
        weak_subjects=tuple(weak),
        overall_remark=overall,
        improvement_areas=improvement,
    )


def remarks_for_class(
    results: Iterable[StudentResult],
    scale: SortedGradeScale = DEFAULT_SCALE,
) -> List[StudentRemark]:
    return [remarks_for(result, scale) for result in results]
