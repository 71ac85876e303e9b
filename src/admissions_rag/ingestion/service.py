"""Knowledge-base ingestion: structured department records to documents."""

from __future__ import annotations

import json
import re
import time
import unicodedata
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Sequence

from admissions_rag.errors import KnowledgeBaseError
from admissions_rag.ingestion.processor import enhance_document
from admissions_rag.metrics.observability import get_logger
from admissions_rag.models import Document, DocumentType

DepartmentRecord = Mapping[str, Any]


@dataclass(frozen=True)
class IngestionConfig:
    """Configuration for knowledge-base ingestion."""

    institution_name: str = "SOA University College"
    encoding: str = "utf-8"


def _normalize_text(raw: str) -> str:
    normalized = unicodedata.normalize("NFKC", raw)
    normalized = normalized.replace(" ", " ")
    normalized = re.sub(r"\s+", " ", normalized)
    return normalized.strip()


def _slug(value: str) -> str:
    return re.sub(r"[^\w]+", "_", value.strip().lower()).strip("_")


def _first_value(value: Any) -> Any:
    """Per-shift mappings (`{"morning": "79.5%"}`) collapse to their first value."""

    if isinstance(value, Mapping):
        return next(iter(value.values()), None)
    return value


def _joined(value: Any) -> str | None:
    if value is None or value == "":
        return None
    if isinstance(value, (list, tuple)):
        return ", ".join(str(item) for item in value) or None
    return str(value)


def _department_records(source: Mapping[str, Any] | Sequence[DepartmentRecord]) -> List[DepartmentRecord]:
    departments: Any = source.get("departments") if isinstance(source, Mapping) else source
    if departments is None:
        return []
    if isinstance(departments, Mapping):
        return [{"id": _slug(str(name)), "name_en": name, **dict(record)} for name, record in departments.items()]
    if isinstance(departments, (list, tuple)):
        return [record for record in departments if isinstance(record, Mapping)]
    raise KnowledgeBaseError(f"Unsupported departments payload: {type(departments).__name__}")


class KnowledgeBaseBuilder:
    """Turns department records into enriched department/admission/fee documents."""

    _logger = get_logger("ingestion")

    def __init__(self, config: IngestionConfig | None = None) -> None:
        self._config = config or IngestionConfig()

    def build(self, source: Mapping[str, Any] | Sequence[DepartmentRecord]) -> Sequence[Document]:
        start = time.perf_counter()
        documents: list[Document] = []
        seen: set[str] = set()
        for record in _department_records(source):
            for document in self._documents_for(record):
                if document.id in seen:
                    self._logger.warning("ingestion.duplicate_id", document_id=document.id)
                    continue
                seen.add(document.id)
                documents.append(document)
        self._logger.info(
            "ingestion.complete",
            document_count=len(documents),
            duration_seconds=time.perf_counter() - start,
        )
        return documents

    def load_file(self, path: Path) -> Sequence[Document]:
        try:
            payload = json.loads(Path(path).read_text(encoding=self._config.encoding))
        except FileNotFoundError as exc:
            raise KnowledgeBaseError(f"Knowledge base not found: {path}") from exc
        except json.JSONDecodeError as exc:
            raise KnowledgeBaseError(f"Knowledge base is not valid JSON: {path}: {exc}") from exc
        return self.build(payload)

    def _documents_for(self, dept: DepartmentRecord) -> Iterable[Document]:
        name_en = str(dept.get("name_en") or dept.get("name") or dept.get("id") or "").strip()
        if not name_en:
            self._logger.warning("ingestion.unnamed_department", record_keys=sorted(dept.keys()))
            return
        dept_id = _slug(str(dept.get("id") or name_en))
        name_ar = dept.get("name_ar") or None
        grade = dept.get("minimum_grade")
        fee = dept.get("tuition_fee")
        channels = dept.get("admission_channels")

        yield enhance_document(
            Document(
                id=f"dept_{dept_id}",
                content=_normalize_text(self.format_department_info(dept)),
                type=DocumentType.DEPARTMENT,
                metadata={
                    "department": name_en,
                    "department_ar": name_ar,
                    "minimum_grade": grade,
                    "tuition_fee": fee,
                    "college": dept.get("college") or self._config.institution_name,
                    "shift": dept.get("shift"),
                },
            ),
        )
        if grade or channels:
            yield enhance_document(
                Document(
                    id=f"admission_{dept_id}",
                    content=_normalize_text(self.format_admission_info(dept)),
                    type=DocumentType.ADMISSION,
                    metadata={"department": name_en, "department_ar": name_ar, "minimum_grade": grade},
                ),
            )
        if fee:
            yield enhance_document(
                Document(
                    id=f"fee_{dept_id}",
                    content=_normalize_text(self.format_fee_info(dept)),
                    type=DocumentType.FEE,
                    metadata={"department": name_en, "department_ar": name_ar, "tuition_fee": fee},
                ),
            )

    @staticmethod
    def _names(dept: DepartmentRecord) -> tuple[str, str]:
        name_en = str(dept.get("name_en") or dept.get("name") or dept.get("id"))
        return name_en, str(dept.get("name_ar") or name_en)

    def format_department_info(self, dept: DepartmentRecord) -> str:
        name_en, name_ar = self._names(dept)
        grade = _first_value(dept.get("minimum_grade"))
        fee = _first_value(dept.get("tuition_fee"))
        return (
            f"{name_en} Department ({name_ar}) offers comprehensive education in its field. "
            f"Admission Requirements: Minimum grade {grade or 'Contact university'}. "
            f"Annual Tuition: {fee or 'Contact university'}. "
            f"Available shifts: {_joined(dept.get('shift')) or 'Morning'}. "
            f"Admission channels: {_joined(dept.get('admission_channels')) or 'General'}. "
            "This program provides students with theoretical knowledge and practical skills "
            "needed for professional success."
        )

    def format_admission_info(self, dept: DepartmentRecord) -> str:
        name_en, name_ar = self._names(dept)
        grade = _first_value(dept.get("minimum_grade"))
        return (
            f"Admission requirements for {name_en} ({name_ar}): "
            f"Students must achieve a minimum grade of {grade or 'contact university'} "
            "to be eligible for admission. "
            f"Accepted through {_joined(dept.get('admission_channels')) or 'General admission'} admission channels. "
            f"Available study shifts: {_joined(dept.get('shift')) or 'Morning'}. "
            "Students should submit their applications according to the university calendar "
            "and meet all specified requirements."
        )

    def format_fee_info(self, dept: DepartmentRecord) -> str:
        name_en, name_ar = self._names(dept)
        fee = _first_value(dept.get("tuition_fee"))
        return (
            f"Tuition fees for {name_en} ({name_ar}): "
            f"Annual tuition is {fee or 'available upon inquiry'} per academic year. "
            "This covers core curriculum, access to facilities, and basic student services. "
            "Additional fees may apply for laboratory work, specialized equipment, textbooks, "
            "and extracurricular activities. Payment plans and financial aid options may be "
            "available - contact the admissions office for details."
        )


def build_documents(
    source: Mapping[str, Any] | Sequence[DepartmentRecord],
    *,
    config: IngestionConfig | None = None,
) -> Sequence[Document]:
    """Convenience helper for tests and ad-hoc ingestion."""

    return KnowledgeBaseBuilder(config=config).build(source)


def load_knowledge_base_file(path: Path, *, config: IngestionConfig | None = None) -> Sequence[Document]:
    return KnowledgeBaseBuilder(config=config).load_file(path)
