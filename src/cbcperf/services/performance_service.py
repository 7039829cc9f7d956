import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from cbcperf.config.settings import settings
from cbcperf.core.aggregation import (
    InvalidMarkError,
    RawScore,
    StudentInfo,
    StudentResult,
    SubjectDefinition,
    aggregate,
)
from cbcperf.core.grading import DEFAULT_SCALE, GradeScaleError, SortedGradeScale
from cbcperf.core.ranking import SUBJECT_HIGHLIGHTS, TOP_PERFORMERS, ClassMetrics, RankingPolicy, analyze
from cbcperf.core.remarks import StudentRemark, remarks_for, remarks_for_class
from cbcperf.core.school import SchoolMetrics, summarize_school
from cbcperf.services.appwrite_service import AppwriteService, AppwriteServiceError


LOG = logging.getLogger(__name__)


class PerformanceServiceError(Exception):
    pass


class StudentNotFoundError(PerformanceServiceError):
    pass


@dataclass(frozen=True)
class StudentMarks:
    student_id: str
    info: StudentInfo
    raw_scores: Tuple[RawScore, ...]


@dataclass(frozen=True)
class ClassPerformance:
    ranked: List[StudentResult]
    metrics: ClassMetrics
    remarks: List[StudentRemark]
    scale: SortedGradeScale


@dataclass(frozen=True)
class StudentReport:
    result: StudentResult
    remark: StudentRemark
    class_size: int
    metrics: ClassMetrics


def parse_policy(value: str) -> RankingPolicy:
    try:
        return RankingPolicy(value)
    except ValueError as exc:
        raise PerformanceServiceError(f"Unsupported ranking policy: {value}") from exc


class PerformanceService:
    def __init__(
        self,
        store: Optional[AppwriteService],
        *,
        policy: RankingPolicy = RankingPolicy.SEQUENTIAL,
        top_n: int = TOP_PERFORMERS,
        subject_n: int = SUBJECT_HIGHLIGHTS,
    ) -> None:
        self.store = store
        self.policy = policy
        self.top_n = top_n
        self.subject_n = subject_n

    @classmethod
    def from_settings(cls) -> "PerformanceService":
        return cls(
            AppwriteService.from_settings(),
            policy=parse_policy(settings.ranking_policy),
            top_n=settings.top_performers_count,
            subject_n=settings.subject_highlight_count,
        )

    def _require_store(self) -> AppwriteService:
        if self.store is None:
            raise PerformanceServiceError("No data store configured")
        return self.store

    def grade_scale(self) -> SortedGradeScale:
        store = self._require_store()
        try:
            scale = store.get_grade_scale()
        except GradeScaleError as exc:
            raise PerformanceServiceError(f"Invalid grading configuration: {exc}") from exc
        except AppwriteServiceError as exc:
            LOG.warning("Could not load grading configuration, using default CBC scale: %s", exc)
            return DEFAULT_SCALE
        if scale is None:
            return DEFAULT_SCALE
        return scale

    def analyze_marks(
        self,
        students: Iterable[StudentMarks],
        subjects: Sequence[SubjectDefinition],
        *,
        grade: str,
        term: str,
        academic_year: str,
        scale: SortedGradeScale = DEFAULT_SCALE,
    ) -> ClassPerformance:
        results: List[StudentResult] = []
        for student in students:
            try:
                results.append(aggregate(student.student_id, student.info, student.raw_scores, subjects, scale))
            except InvalidMarkError as exc:
                raise PerformanceServiceError(str(exc)) from exc

        ranked, metrics = analyze(
            results,
            subjects,
            grade=grade,
            term=term,
            academic_year=academic_year,
            scale=scale,
            policy=self.policy,
            top_n=self.top_n,
            subject_n=self.subject_n,
        )
        return ClassPerformance(
            ranked=ranked,
            metrics=metrics,
            remarks=remarks_for_class(ranked, scale),
            scale=scale,
        )

    def _load_marks(self, grade: str, term: str, academic_year: str) -> List[StudentMarks]:
        store = self._require_store()
        students = store.list_students(grade)
        exams = store.list_examination_marks(grade, term, academic_year)

        exam_by_student: Dict[str, Dict] = {}
        for exam in exams:
            student_id = str(exam.get("student_id") or "")
            if student_id and student_id not in exam_by_student:
                exam_by_student[student_id] = exam

        enrolled = {student["id"] for student in students}
        orphaned = [student_id for student_id in exam_by_student if student_id not in enrolled]
        if orphaned:
            LOG.warning("Ignoring marks for %d student(s) not enrolled in %s", len(orphaned), grade)

        loaded: List[StudentMarks] = []
        for student in students:
            exam = exam_by_student.get(student["id"])
            if exam is None:
                continue
            loaded.append(
                StudentMarks(
                    student_id=student["id"],
                    info=StudentInfo(
                        registration_number=str(student.get("registration_number") or ""),
                        name=str(student.get("student_name") or ""),
                    ),
                    raw_scores=tuple(AppwriteService.to_raw_scores(exam["subject_marks"])),
                )
            )
        return loaded

    def class_performance(self, grade: str, term: str, academic_year: str) -> ClassPerformance:
        store = self._require_store()
        scale = self.grade_scale()
        subjects = store.list_subjects()
        students = self._load_marks(grade, term, academic_year)

        performance = self.analyze_marks(
            students,
            subjects,
            grade=grade,
            term=term,
            academic_year=academic_year,
            scale=scale,
        )
        LOG.info(
            "Analyzed %d student(s) across %d subject(s) for %s %s %s",
            performance.metrics.total_students,
            len(subjects),
            grade,
            term,
            academic_year,
        )
        return performance

    def student_report(self, student_id: str, grade: str, term: str, academic_year: str) -> StudentReport:
        performance = self.class_performance(grade, term, academic_year)
        for result in performance.ranked:
            if result.student_id == student_id:
                return StudentReport(
                    result=result,
                    remark=remarks_for(result, performance.scale),
                    class_size=performance.metrics.total_students,
                    metrics=performance.metrics,
                )
        raise StudentNotFoundError(f"No results for student {student_id} in {grade} {term} {academic_year}")

    def school_performance(
        self,
        term: str,
        academic_year: str,
        grades: Optional[Iterable[str]] = None,
    ) -> SchoolMetrics:
        scale = self.grade_scale()
        grade_names = list(grades) if grades is not None else list(settings.school_grades)
        metrics = [self.class_performance(grade, term, academic_year).metrics for grade in grade_names]
        return summarize_school(metrics, term=term, academic_year=academic_year, scale=scale)
