from typing import List, Optional, Tuple

from pydantic import BaseModel, Field

from cbcperf.core.aggregation import RawScore, StudentInfo, SubjectDefinition
from cbcperf.core.grading import DEFAULT_SCALE, GradeBand, SortedGradeScale
from cbcperf.services.performance_service import StudentMarks


class SubjectPayload(BaseModel):
    id: str
    label: str
    max_marks: int = Field(ge=1)

    def to_definition(self) -> SubjectDefinition:
        return SubjectDefinition(id=self.id, label=self.label, max_marks=self.max_marks)


class SubjectMarkPayload(BaseModel):
    subject_id: str
    marks: float


class StudentPayload(BaseModel):
    id: str
    registration_number: str = ""
    student_name: str = ""
    subject_marks: List[SubjectMarkPayload] = Field(default_factory=list)

    def to_marks(self) -> StudentMarks:
        return StudentMarks(
            student_id=self.id,
            info=StudentInfo(registration_number=self.registration_number, name=self.student_name),
            raw_scores=tuple(RawScore(subject_id=m.subject_id, marks=m.marks) for m in self.subject_marks),
        )


class GradeBandPayload(BaseModel):
    grade_letter: str
    grade_descriptor: str = ""
    points: int
    min_percentage: int
    max_percentage: int

    def to_band(self) -> GradeBand:
        return GradeBand(
            letter=self.grade_letter,
            descriptor=self.grade_descriptor,
            points=self.points,
            min_percentage=self.min_percentage,
            max_percentage=self.max_percentage,
        )


class AnalyzePayload(BaseModel):
    grade: str = ""
    term: str = ""
    academic_year: str = ""
    subjects: List[SubjectPayload]
    students: List[StudentPayload]
    scale: Optional[List[GradeBandPayload]] = None

    def grade_scale(self) -> SortedGradeScale:
        """Raises GradeScaleError when the supplied bands do not partition 0-100."""
        if not self.scale:
            return DEFAULT_SCALE
        return SortedGradeScale(band.to_band() for band in self.scale)

    def to_inputs(self) -> Tuple[List[StudentMarks], List[SubjectDefinition]]:
        return (
            [student.to_marks() for student in self.students],
            [subject.to_definition() for subject in self.subjects],
        )
