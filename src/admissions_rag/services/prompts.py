"""Prompt construction for the generation backends."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Sequence

from admissions_rag.models import Exchange, SearchResult

HISTORY_EXCHANGES = 2
HISTORY_CHARS = 200

# Single pass, so placeholders inside user text are never expanded.
_PLACEHOLDER = re.compile(r"\{(query|context|history)\}")


class Language(str, Enum):
    """Response language; anything unrecognised falls back to English."""

    EN = "en"
    AR = "ar"

    @classmethod
    def parse(cls, value: "Language | str | None") -> "Language":
        if isinstance(value, Language):
            return value
        try:
            return cls(str(value or "").strip().lower())
        except ValueError:
            return cls.EN


class PromptKind(str, Enum):
    """Prompt family; voice prompts ask for short spoken answers."""

    STANDARD = "standard"
    VOICE = "voice"

    @classmethod
    def for_interaction(cls, is_voice_interaction: bool) -> "PromptKind":
        return cls.VOICE if is_voice_interaction else cls.STANDARD


@dataclass(frozen=True)
class Prompt:
    system: str
    user: str


_STANDARD_EN = """You are a helpful conversational AI assistant.
You will be given:
1. A **user query** (the question the user asked).
2. A **retrieved context** (information retrieved from external sources or knowledge base).

Your task:
- Use the retrieved context as the **primary source of truth**.
- If the context is relevant, answer the query **strictly based on it**.
- If the context does not contain enough information, politely say so instead of guessing.
- Keep the answer clear, concise, and conversational.
{history}
---
User Query:
{query}

Retrieved Context:
{context}

Answer:"""

_STANDARD_AR = """أنت مساعد ذكي محادث مفيد.

ستحصل على:
1. استفسار المستخدم (السؤال الذي طرحه المستخدم).
2. السياق المسترجع (معلومات مسترجعة من مصادر خارجية أو قاعدة المعرفة).

مهمتك:
- استخدم السياق المسترجع كمصدر الحقيقة الأساسي.
- إذا كان السياق ذا صلة، أجب على الاستفسار بناءً عليه بدقة.
- إذا لم يحتوِ السياق على معلومات كافية، قل ذلك بأدب بدلاً من التخمين.
- اجعل الإجابة واضحة ومختصرة وبأسلوب المحادثة.
{history}
---
استفسار المستخدم:
{query}

السياق المسترجع:
{context}

الإجابة:"""

_VOICE_EN = """You are a friendly and helpful voice assistant for college admissions.

You will be given:
1. A student's spoken query about admissions.
2. Retrieved context (information about admission procedures, eligibility, deadlines, fees, or courses).

Your task:
- Answer **clearly and naturally as if speaking to a student**.
- Always rely on the retrieved context as the **main source of truth**.
- If the context provides enough info, give a **short, conversational, and encouraging answer**.
- If the context is incomplete, politely say you don't have the full details and guide the student on possible next steps.
- Do not read the retrieved context word-for-word; **paraphrase it into simple, natural speech**.
- Keep answers focused on admissions (eligibility, process, deadlines, scholarships, courses, etc.).

---
Student's Question (spoken):
{query}

Retrieved Context:
{context}

Spoken Answer:"""

_VOICE_AR = """أنت مساعد صوتي ودود ومفيد لقبولات الكلية.

ستحصل على:
1. استفسار الطالب المنطوق حول القبولات.
2. السياق المسترجع (معلومات حول إجراءات القبول، الأهلية، المواعيد النهائية، الرسوم، أو الدورات).

مهمتك:
- أجب بوضوح وبشكل طبيعي كما لو كنت تتحدث مع طالب.
- اعتمد دائماً على السياق المسترجع كمصدر الحقيقة الأساسي.
- إذا قدم السياق معلومات كافية، أعطِ إجابة قصيرة ومشجعة بأسلوب المحادثة.
- إذا كان السياق غير مكتمل، قل بأدب إنك لا تملك التفاصيل الكاملة ووجّه الطالب نحو الخطوات التالية الممكنة.
- لا تقرأ السياق المسترجع كلمة بكلمة، بل أعد صياغته بكلام بسيط وطبيعي.
- اجعل الإجابات مركزة على القبولات (الأهلية، الإجراءات، المواعيد النهائية، المنح الدراسية، الدورات، إلخ).

---
سؤال الطالب (منطوق):
{query}

السياق المسترجع:
{context}

الإجابة المنطوقة:"""

_HISTORY_HEADERS = {
    Language.EN: "Relevant earlier conversation:",
    Language.AR: "محادثة سابقة ذات صلة:",
}


def _truncate(text: str, limit: int = HISTORY_CHARS) -> str:
    text = " ".join(text.split())
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


def format_context(results: Sequence[SearchResult]) -> str:
    return "\n\n".join(f"{index}. {result.document.content}" for index, result in enumerate(results, start=1))


def format_history(history: Sequence[Exchange], language: Language) -> str:
    if not history:
        return ""
    lines = [_HISTORY_HEADERS[language]]
    for exchange in history[:HISTORY_EXCHANGES]:
        lines.append(f"- Q: {_truncate(exchange.user_text)}")
        lines.append(f"  A: {_truncate(exchange.assistant_text)}")
    return "\n" + "\n".join(lines) + "\n"


class PromptBuilder:
    """Builds system/user prompt pairs for each prompt kind and language."""

    _TEMPLATES = {
        (PromptKind.STANDARD, Language.EN): _STANDARD_EN,
        (PromptKind.STANDARD, Language.AR): _STANDARD_AR,
        (PromptKind.VOICE, Language.EN): _VOICE_EN,
        (PromptKind.VOICE, Language.AR): _VOICE_AR,
    }

    def __init__(self, *, include_history: bool = True) -> None:
        self._include_history = include_history

    def build(
        self,
        kind: PromptKind,
        language: Language,
        query: str,
        results: Sequence[SearchResult],
        history: Sequence[Exchange] = (),
    ) -> Prompt:
        template = self._TEMPLATES[(kind, language)]
        values = {"query": query, "context": format_context(results)}
        if kind is PromptKind.STANDARD:
            values["history"] = format_history(history, language) if self._include_history else ""
        system = _PLACEHOLDER.sub(lambda match: values.get(match.group(1), ""), template)
        return Prompt(system=system, user=query)


__all__ = [
    "Language",
    "Prompt",
    "PromptBuilder",
    "PromptKind",
    "format_context",
    "format_history",
]
