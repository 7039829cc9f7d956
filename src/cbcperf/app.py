from typing import Dict, List, NoReturn, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, status
from fastapi.middleware.cors import CORSMiddleware

from cbcperf.config.settings import settings
from cbcperf.core.grading import GradeScaleError
from cbcperf.schemas import AnalyzePayload
from cbcperf.services import serializers
from cbcperf.services.appwrite_service import AppwriteServiceError
from cbcperf.services.performance_service import (
    PerformanceService,
    PerformanceServiceError,
    StudentNotFoundError,
    parse_policy,
)


app = FastAPI(title="CBC Performance API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_allowed_origins),
    allow_origin_regex=settings.cors_allow_origin_regex or None,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_performance_service() -> PerformanceService:
    try:
        return PerformanceService.from_settings()
    except (AppwriteServiceError, PerformanceServiceError) as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc


def get_analysis_service() -> PerformanceService:
    try:
        policy = parse_policy(settings.ranking_policy)
    except PerformanceServiceError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc
    return PerformanceService(
        None,
        policy=policy,
        top_n=settings.top_performers_count,
        subject_n=settings.subject_highlight_count,
    )


def _raise_http(exc: Exception) -> NoReturn:
    if isinstance(exc, PerformanceServiceError):
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/grading-scale")
def grading_scale(service: PerformanceService = Depends(get_performance_service)) -> Dict:
    try:
        scale = service.grade_scale()
    except PerformanceServiceError as exc:
        _raise_http(exc)
    return {"bands": serializers.scale_to_list(scale)}


@app.get("/performance/{grade}")
def class_performance(
    grade: str,
    term: str = Query(..., min_length=1),
    academic_year: str = Query(..., min_length=1),
    service: PerformanceService = Depends(get_performance_service),
) -> Dict:
    try:
        performance = service.class_performance(grade, term, academic_year)
    except (PerformanceServiceError, AppwriteServiceError) as exc:
        _raise_http(exc)
    return serializers.performance_to_dict(performance)


@app.get("/performance/{grade}/students/{student_id}")
def student_report(
    grade: str,
    student_id: str,
    term: str = Query(..., min_length=1),
    academic_year: str = Query(..., min_length=1),
    service: PerformanceService = Depends(get_performance_service),
) -> Dict:
    try:
        report = service.student_report(student_id, grade, term, academic_year)
    except StudentNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except (PerformanceServiceError, AppwriteServiceError) as exc:
        _raise_http(exc)
    return serializers.report_to_dict(report)


@app.get("/school-performance")
def school_performance(
    term: str = Query(..., min_length=1),
    academic_year: str = Query(..., min_length=1),
    grades: Optional[List[str]] = Query(None),
    service: PerformanceService = Depends(get_performance_service),
) -> Dict:
    try:
        metrics = service.school_performance(term, academic_year, grades)
    except (PerformanceServiceError, AppwriteServiceError) as exc:
        _raise_http(exc)
    return serializers.school_to_dict(metrics)


@app.post("/analyze")
def analyze_marks(
    payload: AnalyzePayload,
    service: PerformanceService = Depends(get_analysis_service),
) -> Dict:
    try:
        scale = payload.grade_scale()
    except GradeScaleError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    students, subjects = payload.to_inputs()

    try:
        performance = service.analyze_marks(
            students,
            subjects,
            grade=payload.grade,
            term=payload.term,
            academic_year=payload.academic_year,
            scale=scale,
        )
    except PerformanceServiceError as exc:
        _raise_http(exc)
    return serializers.performance_to_dict(performance)
