"""Deterministic template answers used when no language model is available."""

from __future__ import annotations

import re
from enum import Enum
from typing import Sequence

from admissions_rag.models import Document, DocumentType, SearchResult
from admissions_rag.services.prompts import Language

NO_INFORMATION = {
    Language.EN: (
        "I couldn't find specific information about that. "
        "Please try rephrasing your question or contact the university directly."
    ),
    Language.AR: "لم أستطع العثور على معلومات محددة حول ذلك. يرجى إعادة صياغة سؤالك أو التواصل مع الجامعة مباشرة.",
}

APOLOGY = {
    Language.EN: "Sorry, I encountered an error processing your question. Please try again.",
    Language.AR: "عذراً، حدث خطأ أثناء معالجة سؤالك. يرجى المحاولة مرة أخرى.",
}

_GRADE = re.compile(r"(\d+\.?\d*)\s*%")
_FEE = re.compile(r"(\d{1,3}(,\d{3})*)\s*(IQD|USD|\$)")

_HEADERS = {
    "admission": {Language.EN: "Here are the admission requirements:", Language.AR: "إليك متطلبات القبول:"},
    "fee": {Language.EN: "Here are the tuition fees:", Language.AR: "إليك الرسوم الدراسية:"},
    "comparison": {Language.EN: "Here's a comparison:", Language.AR: "إليك المقارنة:"},
    "generic": {Language.EN: "Based on the available information:", Language.AR: "بناءً على المعلومات المتوفرة:"},
}

_LABELS = {
    Language.EN: {
        "minimum_grade": "Minimum grade",
        "see_details": "See details below",
        "contact": "Contact university",
        "requirements": "Requirements",
        "fees": "Fees",
        "department": "Department",
        "option": "Option",
        "not_enough": "Not enough information for comparison.",
    },
    Language.AR: {
        "minimum_grade": "الحد الأدنى للمعدل",
        "see_details": "راجع التفاصيل أدناه",
        "contact": "تواصل مع الجامعة",
        "requirements": "المتطلبات",
        "fees": "الرسوم",
        "department": "القسم",
        "option": "الخيار",
        "not_enough": "لا توجد معلومات كافية للمقارنة.",
    },
}


class Intent(str, Enum):
    ADMISSION = "admission"
    FEE = "fee"
    COMPARISON = "comparison"
    GENERIC = "generic"


_INTENT_VOCABULARY = (
    (Intent.ADMISSION, ("admission", "requirement", "قبول", "متطلبات")),
    (Intent.FEE, ("fee", "cost", "رسوم", "تكلفة")),
    (Intent.COMPARISON, ("compare", "مقارنة")),
)


def detect_intent(query: str) -> Intent:
    lowered = query.lower()
    for intent, words in _INTENT_VOCABULARY:
        if any(word in lowered for word in words):
            return intent
    return Intent.GENERIC


def extract_grade(text: str) -> str | None:
    match = _GRADE.search(text)
    return f"{match.group(1)}%" if match else None


def extract_fee(text: str) -> str | None:
    match = _FEE.search(text)
    return match.group(0) if match else None


class TemplateResponder:
    """Formats retrieved documents into a short answer without a model."""

    def respond(
        self,
        query: str,
        results: Sequence[SearchResult | Document],
        language: Language = Language.EN,
    ) -> str:
        documents = [item.document if isinstance(item, SearchResult) else item for item in results]
        if not documents:
            return NO_INFORMATION[language]
        intent = detect_intent(query)
        if intent is Intent.ADMISSION:
            return self._admission(documents, language)
        if intent is Intent.FEE:
            return self._fee(documents, language)
        if intent is Intent.COMPARISON:
            return self._comparison(documents, language)
        return f"{_HEADERS['generic'][language]}\n\n{documents[0].content}"

    def _admission(self, documents: Sequence[Document], language: Language) -> str:
        labels = _LABELS[language]
        matching = [
            doc
            for doc in documents
            if doc.type is DocumentType.ADMISSION or "admission" in doc.content.lower()
        ][:3]
        if not matching:
            return documents[0].content
        lines = [_HEADERS["admission"][language], ""]
        for index, doc in enumerate(matching, start=1):
            grade = extract_grade(doc.content)
            detail = f"{labels['minimum_grade']} {grade}" if grade else labels["see_details"]
            lines.append(f"{index}. **{doc.department or labels['department']}**: {detail}")
        return "\n".join(lines) + "\n"

    def _fee(self, documents: Sequence[Document], language: Language) -> str:
        labels = _LABELS[language]
        matching = [
            doc for doc in documents if doc.type is DocumentType.FEE or "fee" in doc.content.lower()
        ][:3]
        if not matching:
            return documents[0].content
        lines = [_HEADERS["fee"][language], ""]
        for index, doc in enumerate(matching, start=1):
            fee = extract_fee(doc.content) or labels["contact"]
            lines.append(f"{index}. **{doc.department or labels['department']}**: {fee}")
        return "\n".join(lines) + "\n"

    def _comparison(self, documents: Sequence[Document], language: Language) -> str:
        labels = _LABELS[language]
        if len(documents) < 2:
            return documents[0].content if documents else labels["not_enough"]
        lines = [_HEADERS["comparison"][language], ""]
        for index, doc in enumerate(documents[:2], start=1):
            lines.append(f"**{doc.department or labels['option'] + ' ' + str(index)}**:")
            lines.append(f"- {labels['requirements']}: {extract_grade(doc.content) or labels['contact']}")
            lines.append(f"- {labels['fees']}: {extract_fee(doc.content) or labels['contact']}")
            lines.append("")
        return "\n".join(lines) + "\n"


__all__ = [
    "APOLOGY",
    "NO_INFORMATION",
    "Intent",
    "TemplateResponder",
    "detect_intent",
    "extract_fee",
    "extract_grade",
]
