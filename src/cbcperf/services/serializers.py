from typing import Any, Dict, List

from cbcperf.core.aggregation import StudentResult, SubjectScore
from cbcperf.core.grading import GradeBand, SortedGradeScale
from cbcperf.core.ranking import ClassMetrics
from cbcperf.core.remarks import StudentRemark
from cbcperf.core.school import SchoolMetrics
from cbcperf.services.performance_service import ClassPerformance, StudentReport


def band_to_dict(band: GradeBand) -> Dict[str, Any]:
    return {
        "letter": band.letter,
        "descriptor": band.descriptor,
        "points": band.points,
        "min_percentage": band.min_percentage,
        "max_percentage": band.max_percentage,
    }


def scale_to_list(scale: SortedGradeScale) -> List[Dict[str, Any]]:
    return [band_to_dict(band) for band in scale]


def subject_score_to_dict(score: SubjectScore) -> Dict[str, Any]:
    return {
        "subject_id": score.subject_id,
        "subject_name": score.subject_label,
        "marks": score.raw_marks,
        "max_marks": score.max_marks,
        "percentage": score.percentage,
        "grade": band_to_dict(score.grade_band),
    }


def result_to_dict(result: StudentResult) -> Dict[str, Any]:
    return {
        "student_id": result.student_id,
        "registration_number": result.registration_number,
        "student_name": result.name,
        "subject_marks": [subject_score_to_dict(score) for score in result.subject_scores],
        "total_marks": result.total_marks,
        "total_possible": result.total_possible,
        "overall_percentage": result.overall_percentage,
        "overall_grade": band_to_dict(result.overall_grade_band),
        "position": result.position,
    }


def metrics_to_dict(metrics: ClassMetrics) -> Dict[str, Any]:
    return {
        "grade": metrics.grade,
        "term": metrics.term,
        "academic_year": metrics.academic_year,
        "total_students": metrics.total_students,
        "average_percentage": metrics.average_percentage,
        "pass_rate": metrics.pass_rate,
        "subject_averages": dict(metrics.subject_averages),
        "subject_attempts": dict(metrics.subject_attempts),
        "grade_distribution": dict(metrics.grade_distribution),
        "top_performers": [result_to_dict(result) for result in metrics.top_performers],
        "bottom_performers": [result_to_dict(result) for result in metrics.bottom_performers],
        "subject_strengths": list(metrics.subject_strengths),
        "subject_weaknesses": list(metrics.subject_weaknesses),
    }


def remark_to_dict(remark: StudentRemark) -> Dict[str, Any]:
    return {
        "student_id": remark.student_id,
        "strong_subjects": list(remark.strong_subjects),
        "weak_subjects": list(remark.weak_subjects),
        "overall_remark": remark.overall_remark,
        "improvement_areas": list(remark.improvement_areas),
    }


def performance_to_dict(performance: ClassPerformance) -> Dict[str, Any]:
    return {
        "results": [result_to_dict(result) for result in performance.ranked],
        "metrics": metrics_to_dict(performance.metrics),
        "remarks": [remark_to_dict(remark) for remark in performance.remarks],
        "grading_scale": scale_to_list(performance.scale),
    }


def report_to_dict(report: StudentReport) -> Dict[str, Any]:
    return {
        "result": result_to_dict(report.result),
        "remark": remark_to_dict(report.remark),
        "class_size": report.class_size,
        "class_average": report.metrics.average_percentage,
        "subject_averages": dict(report.metrics.subject_averages),
    }


def school_to_dict(metrics: SchoolMetrics) -> Dict[str, Any]:
    return {
        "term": metrics.term,
        "academic_year": metrics.academic_year,
        "total_students": metrics.total_students,
        "average_percentage": metrics.average_percentage,
        "pass_rate": metrics.pass_rate,
        "grade_performance": dict(metrics.grade_performance),
        "overall_distribution": dict(metrics.overall_distribution),
        "subject_trends": dict(metrics.subject_trends),
    }
