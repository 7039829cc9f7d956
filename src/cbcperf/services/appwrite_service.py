import json
from typing import Any, Dict, List, Optional

from appwrite.client import Client
from appwrite.exception import AppwriteException
from appwrite.query import Query
from appwrite.services.databases import Databases

from cbcperf.config.settings import settings
from cbcperf.core.aggregation import RawScore, SubjectDefinition
from cbcperf.core.grading import SortedGradeScale


PAGE_SIZE = 100


class AppwriteServiceError(Exception):
    pass


class AppwriteService:
    def __init__(
        self,
        endpoint: str,
        project_id: str,
        api_key: str,
        database_id: str,
        students_collection_id: str,
        marks_collection_id: str,
        subjects_collection_id: str,
        grading_collection_id: str,
    ) -> None:
        if not endpoint:
            raise AppwriteServiceError("Missing APPWRITE_ENDPOINT in environment")
        if not project_id:
            raise AppwriteServiceError("Missing APPWRITE_PROJECT_ID in environment")
        if not api_key:
            raise AppwriteServiceError("Missing APPWRITE_API_KEY in environment")
        if not database_id:
            raise AppwriteServiceError("Missing APPWRITE_DATABASE_ID in environment")

        self.database_id = database_id
        self.students_collection_id = students_collection_id
        self.marks_collection_id = marks_collection_id
        self.subjects_collection_id = subjects_collection_id
        self.grading_collection_id = grading_collection_id

        client = Client()
        client.set_endpoint(endpoint.rstrip("/"))
        client.set_project(project_id)
        client.set_key(api_key)

        self.db = Databases(client)

    @classmethod
    def from_settings(cls) -> "AppwriteService":
        return cls(
            endpoint=settings.appwrite_endpoint,
            project_id=settings.appwrite_project_id,
            api_key=settings.appwrite_api_key,
            database_id=settings.appwrite_database_id,
            students_collection_id=settings.appwrite_students_collection_id,
            marks_collection_id=settings.appwrite_marks_collection_id,
            subjects_collection_id=settings.appwrite_subjects_collection_id,
            grading_collection_id=settings.appwrite_grading_collection_id,
        )

    def _list_documents(self, collection_id: str, queries: List[str]) -> List[Dict]:
        try:
            result = self.db.list_documents(self.database_id, collection_id, queries=queries)
            return list(result.get("documents", []))
        except AppwriteException as exc:
            raise AppwriteServiceError(str(exc)) from exc

    def _list_all_documents(self, collection_id: str, queries: List[str]) -> List[Dict]:
        docs: List[Dict] = []
        cursor: Optional[str] = None
        while True:
            page_queries = [*queries, Query.limit(PAGE_SIZE)]
            if cursor is not None:
                page_queries.append(Query.cursor_after(cursor))
            page = self._list_documents(collection_id, page_queries)
            docs.extend(page)
            if len(page) < PAGE_SIZE:
                return docs
            cursor = page[-1]["$id"]

    @staticmethod
    def _parse_subject_marks(value: Any) -> List[Dict]:
        if value is None:
            return []
        if isinstance(value, str):
            text = value.strip()
            if not text:
                return []
            try:
                value = json.loads(text)
            except json.JSONDecodeError as exc:
                raise AppwriteServiceError("subject_marks is not valid JSON") from exc
        if not isinstance(value, list):
            return []
        return [item for item in value if isinstance(item, dict)]

    @staticmethod
    def to_raw_scores(subject_marks: List[Dict]) -> List[RawScore]:
        scores: List[RawScore] = []
        for item in subject_marks:
            subject_id = item.get("subject_id")
            if not subject_id:
                continue
            try:
                marks = float(item.get("marks", 0))
            except (TypeError, ValueError) as exc:
                raise AppwriteServiceError(f"Invalid marks for subject {subject_id}") from exc
            scores.append(RawScore(subject_id=str(subject_id), marks=marks))
        return scores

    def list_subjects(self) -> List[SubjectDefinition]:
        docs = self._list_all_documents(
            self.subjects_collection_id,
            [
                Query.order_asc("label"),
            ],
        )

        subjects: List[SubjectDefinition] = []
        for doc in docs:
            try:
                raw_max = doc.get("max_marks")
                max_marks = 100 if raw_max is None else int(raw_max)
                subjects.append(SubjectDefinition(id=doc["$id"], label=doc.get("label", doc["$id"]), max_marks=max_marks))
            except (TypeError, ValueError) as exc:
                raise AppwriteServiceError(f"Invalid subject {doc.get('$id')}: {exc}") from exc
        return subjects

    def list_students(self, grade: str) -> List[Dict]:
        docs = self._list_all_documents(
            self.students_collection_id,
            [
                Query.equal("grade", [grade]),
            ],
        )

        results: List[Dict] = []
        for doc in docs:
            row = dict(doc)
            row["id"] = row["$id"]
            results.append(row)
        return results

    def list_examination_marks(self, grade: str, term: str, academic_year: str) -> List[Dict]:
        docs = self._list_all_documents(
            self.marks_collection_id,
            [
                Query.equal("grade", [grade]),
                Query.equal("term", [term]),
                Query.equal("academic_year", [academic_year]),
            ],
        )

        results: List[Dict] = []
        for doc in docs:
            row = dict(doc)
            row["id"] = row["$id"]
            row["subject_marks"] = self._parse_subject_marks(row.get("subject_marks"))
            results.append(row)
        return results

    def get_grade_scale(self) -> Optional[SortedGradeScale]:
        docs = self._list_all_documents(
            self.grading_collection_id,
            [
                Query.equal("is_active", [True]),
                Query.order_desc("min_percentage"),
            ],
        )
        if not docs:
            return None
        return SortedGradeScale.from_rows(docs)
