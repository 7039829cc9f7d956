from dataclasses import dataclass
import os
from dotenv import load_dotenv


load_dotenv()


def _split_csv(value: str) -> tuple[str, ...]:
    return tuple(item.strip() for item in value.split(",") if item.strip())


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name, "").strip()
    if not value:
        return default
    try:
        return max(0, int(value))
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    appwrite_endpoint: str = os.getenv("APPWRITE_ENDPOINT", "")
    appwrite_project_id: str = os.getenv("APPWRITE_PROJECT_ID", "")
    appwrite_api_key: str = os.getenv("APPWRITE_API_KEY") or os.getenv("APPWRITE_FUNCTION_API_KEY", "")
    appwrite_database_id: str = os.getenv("APPWRITE_DATABASE_ID", "")

    appwrite_students_collection_id: str = os.getenv("APPWRITE_STUDENTS_COLLECTION_ID", "students")
    appwrite_marks_collection_id: str = os.getenv("APPWRITE_MARKS_COLLECTION_ID", "examination_marks")
    appwrite_subjects_collection_id: str = os.getenv("APPWRITE_SUBJECTS_COLLECTION_ID", "subjects")
    appwrite_grading_collection_id: str = os.getenv("APPWRITE_GRADING_COLLECTION_ID", "cbc_grading")

    ranking_policy: str = os.getenv("RANKING_POLICY", "sequential").strip().lower()
    top_performers_count: int = _int_env("TOP_PERFORMERS_COUNT", 5)
    subject_highlight_count: int = _int_env("SUBJECT_HIGHLIGHT_COUNT", 3)

    school_grades: tuple[str, ...] = _split_csv(
        os.getenv("SCHOOL_GRADES", ",".join(f"Grade {n}" for n in range(1, 10)))
    )

    cors_allowed_origins: tuple[str, ...] = _split_csv(
        os.getenv("CORS_ALLOWED_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173")
    )
    cors_allow_origin_regex: str = os.getenv(
        "CORS_ALLOW_ORIGIN_REGEX",
        r"^https?:\/\/(localhost|127\.0\.0\.1)(:\d+)?$",
    )


settings = Settings()
