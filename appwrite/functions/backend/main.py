import json
import os
import re
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qs, unquote

from pydantic import ValidationError


def _find_src_dir(start_file: Path) -> Optional[Path]:
    env_src = os.getenv("CBCPERF_SRC_DIR", "").strip()
    if env_src:
        env_path = Path(env_src)
        if (env_path / "cbcperf" / "config" / "settings.py").exists():
            return env_path

    for parent in (start_file.parent, *start_file.parents):
        if (parent / "cbcperf" / "config" / "settings.py").exists():
            return parent

        candidate = parent / "src"
        if (candidate / "cbcperf").exists():
            return candidate

    return None


SRC_DIR = _find_src_dir(Path(__file__).resolve())
if SRC_DIR is None:
    raise RuntimeError(
        "Could not locate src/cbcperf. Set Appwrite Function root to repository root, "
        "entrypoint to appwrite/functions/backend/main.py, and build command to "
        "pip install ."
    )

if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

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


LOCAL_REGEX = r"^https?:\/\/(localhost|127\.0\.0\.1)(:\d+)?$"

# attributes the Appwrite runtimes have used for the request body, in order of preference
BODY_ATTRIBUTES = ("bodyJson", "body", "bodyText", "payload", "rawBody")


class RequestError(Exception):
    def __init__(self, status_code: int, detail: str) -> None:
        super().__init__(detail)
        self.status_code = status_code
        self.detail = detail


def _decode_body(candidate: Any) -> Optional[Dict[str, Any]]:
    while candidate is not None:
        if isinstance(candidate, (bytes, bytearray)):
            candidate = candidate.decode("utf-8", errors="ignore")
        if isinstance(candidate, str):
            if not candidate.strip():
                return None
            try:
                candidate = json.loads(candidate)
            except json.JSONDecodeError:
                return None
            continue
        if not isinstance(candidate, dict):
            return None
        # some runtimes wrap the document as {"body": "<json>"}
        nested = _decode_body(candidate["body"]) if "body" in candidate else None
        return nested if nested is not None else candidate
    return None


def _query(req: Any) -> Dict[str, List[str]]:
    raw = getattr(req, "query", None)
    if isinstance(raw, dict) and raw:
        return {str(k): (v if isinstance(v, list) else [str(v)]) for k, v in raw.items()}
    return parse_qs(str(getattr(req, "query_string", "") or getattr(req, "queryString", "") or ""))


@dataclass(frozen=True)
class FunctionRequest:
    method: str
    path: str
    headers: Dict[str, str]
    query: Dict[str, List[str]]
    raw: Any = None

    @classmethod
    def from_context(cls, req: Any) -> "FunctionRequest":
        headers = getattr(req, "headers", None) or {}
        return cls(
            method=str(getattr(req, "method", "") or "GET").upper(),
            path="/" + str(getattr(req, "path", "") or "").strip("/"),
            headers={str(key).lower(): str(value) for key, value in headers.items()},
            query=_query(req),
            raw=req,
        )

    def param(self, name: str) -> str:
        values = self.query.get(name) or []
        value = values[-1].strip() if values else ""
        if not value:
            raise RequestError(400, f"{name} is required")
        return value

    def body(self) -> Dict[str, Any]:
        for attr in BODY_ATTRIBUTES:
            parsed = _decode_body(getattr(self.raw, attr, None))
            if parsed is not None:
                return parsed
        return {}

    def allowed_origin(self) -> str:
        origin = self.headers.get("origin", "")
        if not origin or origin in settings.cors_allowed_origins:
            return origin
        regex = settings.cors_allow_origin_regex or LOCAL_REGEX
        return origin if re.match(regex, origin) else ""


def _respond(context: Any, request: FunctionRequest, payload: Any = None, status_code: int = 200):
    headers: Dict[str, str] = {}
    origin = request.allowed_origin()
    if origin:
        headers = {
            "access-control-allow-origin": origin,
            "access-control-allow-credentials": "true",
            "access-control-allow-methods": "GET,POST,OPTIONS",
            "access-control-allow-headers": "Content-Type,Authorization",
            "vary": "Origin",
        }
    if status_code == 204:
        return context.res.empty(status_code, headers)
    return context.res.json(payload, status_code, headers)


def _service() -> PerformanceService:
    try:
        return PerformanceService.from_settings()
    except (AppwriteServiceError, PerformanceServiceError) as exc:
        raise RequestError(500, str(exc)) from exc


def _health(request: FunctionRequest) -> Dict[str, Any]:
    return {"status": "ok"}


def _grading_scale(request: FunctionRequest) -> Dict[str, Any]:
    return {"bands": serializers.scale_to_list(_service().grade_scale())}


def _class_performance(request: FunctionRequest, grade: str) -> Dict[str, Any]:
    term, academic_year = request.param("term"), request.param("academic_year")
    return serializers.performance_to_dict(_service().class_performance(grade, term, academic_year))


def _student_report(request: FunctionRequest, grade: str, student_id: str) -> Dict[str, Any]:
    term, academic_year = request.param("term"), request.param("academic_year")
    report = _service().student_report(student_id, grade, term, academic_year)
    return serializers.report_to_dict(report)


def _school_performance(request: FunctionRequest) -> Dict[str, Any]:
    term, academic_year = request.param("term"), request.param("academic_year")
    grades = request.query.get("grades") or None
    return serializers.school_to_dict(_service().school_performance(term, academic_year, grades))


def _analyze(request: FunctionRequest) -> Dict[str, Any]:
    try:
        payload = AnalyzePayload.model_validate(request.body())
    except ValidationError as exc:
        raise RequestError(422, str(exc)) from exc

    service = PerformanceService(
        None,
        policy=parse_policy(settings.ranking_policy),
        top_n=settings.top_performers_count,
        subject_n=settings.subject_highlight_count,
    )
    students, subjects = payload.to_inputs()
    performance = service.analyze_marks(
        students,
        subjects,
        grade=payload.grade,
        term=payload.term,
        academic_year=payload.academic_year,
        scale=payload.grade_scale(),
    )
    return serializers.performance_to_dict(performance)


ROUTES = (
    ("GET", re.compile(r"/health"), _health),
    ("GET", re.compile(r"/grading-scale"), _grading_scale),
    ("GET", re.compile(r"/school-performance"), _school_performance),
    ("GET", re.compile(r"/performance/([^/]+)/students/([^/]+)"), _student_report),
    ("GET", re.compile(r"/performance/([^/]+)"), _class_performance),
    ("POST", re.compile(r"/analyze"), _analyze),
)


def _dispatch(request: FunctionRequest) -> Dict[str, Any]:
    for method, pattern, handler in ROUTES:
        match = pattern.fullmatch(request.path)
        if match is None or method != request.method:
            continue
        try:
            return handler(request, *(unquote(part) for part in match.groups()))
        except StudentNotFoundError as exc:
            raise RequestError(404, str(exc)) from exc
        except (PerformanceServiceError, GradeScaleError) as exc:
            raise RequestError(422, str(exc)) from exc
        except AppwriteServiceError as exc:
            raise RequestError(502, str(exc)) from exc
    raise RequestError(404, "Not found")


def main(context: Any):
    request = FunctionRequest.from_context(context.req)
    if request.method == "OPTIONS":
        return _respond(context, request, status_code=204)

    try:
        return _respond(context, request, _dispatch(request))
    except RequestError as exc:
        if exc.status_code >= 500:
            context.error(f"{request.method} {request.path}: {exc.detail}")
        else:
            context.log(f"{request.method} {request.path} -> {exc.status_code}: {exc.detail}")
        return _respond(context, request, {"detail": exc.detail}, exc.status_code)
    except Exception as exc:
        context.error(f"Unhandled exception in {request.method} {request.path}: {exc!r}")
        if os.getenv("APPWRITE_FUNCTION_DEBUG", "false").lower() == "true":
            return _respond(context, request, {"detail": str(exc)}, 500)
        return _respond(context, request, {"detail": "INTERNAL_SERVER_ERROR"}, 500)
