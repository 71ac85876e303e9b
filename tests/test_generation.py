from __future__ import annotations

import asyncio
import json

import httpx

from admissions_rag.memory import ConversationMemory
from admissions_rag.models import Document, DocumentType, SearchResult, SearchType
from admissions_rag.services.generation import AnthropicBackend, OpenAICompatibleBackend, ProviderChain
from admissions_rag.services.prompts import Language, PromptBuilder, PromptKind
from admissions_rag.services.responder import ResponseGenerator, compute_confidence
from admissions_rag.services.templates import NO_INFORMATION, TemplateResponder, detect_intent, extract_fee, extract_grade
from conftest import FailingBackend, StubBackend, run

ADMISSION = Document(
    id="admission_dentistry",
    content="Admission requirements for Dentistry: Students must achieve a minimum grade of 79.5% to be eligible.",
    type=DocumentType.ADMISSION,
    metadata={"department": "Dentistry"},
)
FEE = Document(
    id="fee_pharmacy",
    content="Tuition fees for Pharmacy: Annual tuition is 9,000,000 IQD per academic year.",
    type=DocumentType.FEE,
    metadata={"department": "Pharmacy"},
)


def _results(score: float = 0.6) -> list[SearchResult]:
    return [
        SearchResult(document=ADMISSION, score=score, search_type=SearchType.HYBRID),
        SearchResult(document=FEE, score=score / 2, search_type=SearchType.HYBRID),
    ]


class SlowBackend:
    name = "slow"

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        await asyncio.sleep(1)
        return "too late"


def test_extractors():
    assert extract_grade("minimum grade of 79.5% overall") == "79.5%"
    assert extract_grade("no grade") is None
    assert extract_fee("costs 10,000,000 IQD a year") == "10,000,000 IQD"
    assert extract_fee("about 500 USD") == "500 USD"
    assert extract_fee("free") is None


def test_detect_intent():
    assert detect_intent("Admission requirements?").value == "admission"
    assert detect_intent("How much does it cost").value == "fee"
    assert detect_intent("compare dentistry and pharmacy").value == "comparison"
    assert detect_intent("ما هي رسوم الصيدلة").value == "fee"
    assert detect_intent("hello").value == "generic"


def test_template_admission_and_fee_answers():
    responder = TemplateResponder()
    admission = responder.respond("admission requirements for dentistry", _results())
    assert admission.startswith("Here are the admission requirements:\n\n")
    assert "1. **Dentistry**: Minimum grade 79.5%" in admission

    fee = responder.respond("pharmacy fees", _results())
    assert "**Pharmacy**: 9,000,000 IQD" in fee


def test_template_comparison_generic_and_empty():
    responder = TemplateResponder()
    comparison = responder.respond("compare these", _results())
    assert comparison.startswith("Here's a comparison:")
    assert "- Requirements: 79.5%" in comparison
    assert "- Fees: 9,000,000 IQD" in comparison

    generic = responder.respond("tell me more", _results())
    assert generic == f"Based on the available information:\n\n{ADMISSION.content}"

    assert responder.respond("anything", []) == NO_INFORMATION[Language.EN]
    assert responder.respond("anything", [], Language.AR) == NO_INFORMATION[Language.AR]


def test_prompt_builder_variants():
    memory = ConversationMemory()
    memory.add_exchange("dentistry fees", "Dentistry costs 10,000,000 IQD.")
    history = memory.get_relevant_history("dentistry fees")
    builder = PromptBuilder()

    standard = builder.build(PromptKind.STANDARD, Language.EN, "dentistry {context} fees", _results(), history)
    assert "1. Admission requirements for Dentistry" in standard.system
    assert "2. Tuition fees for Pharmacy" in standard.system
    assert "User Query:\ndentistry {context} fees" in standard.system
    assert "Relevant earlier conversation:" in standard.system
    assert standard.user == "dentistry {context} fees"

    voice = builder.build(PromptKind.VOICE, Language.EN, "dentistry fees", _results(), history)
    assert "Spoken Answer:" in voice.system
    assert "Relevant earlier conversation:" not in voice.system

    arabic = builder.build(PromptKind.STANDARD, Language.AR, "رسوم", _results())
    assert "استفسار المستخدم:\nرسوم" in arabic.system
    assert "{history}" not in arabic.system

    assert PromptKind.for_interaction(True) is PromptKind.VOICE
    assert Language.parse("fr") is Language.EN


def test_compute_confidence_bounds():
    assert compute_confidence("anything at all here", []) == 0.0
    assert compute_confidence("a" * 40, _results(0.9)) == 1.0
    short = compute_confidence("a" * 10, _results(0.6))
    assert 0.0 < short < 1.0
    assert short == 0.5


def test_provider_chain_falls_through_to_first_success():
    stub = StubBackend("final answer", name="second")
    chain = ProviderChain([FailingBackend(), StubBackend("   ", name="empty"), stub], timeout_seconds=1)
    attempt = run(chain.attempt("system", "user"))
    assert attempt.succeeded
    assert attempt.text == "final answer"
    assert attempt.provider == "second"
    assert len(attempt.errors) == 2
    assert stub.calls == [("system", "user")]


def test_provider_chain_times_out_and_fails():
    attempt = run(ProviderChain([SlowBackend()], timeout_seconds=0.01).attempt("s", "u"))
    assert not attempt.succeeded
    assert "timed out" in attempt.errors[0]


def test_generator_methods():
    results = _results()
    empty = run(ResponseGenerator(enable_llm=False).generate("admission requirements", []))
    assert (empty.method, empty.confidence, empty.text) == ("fallback", 0.0, NO_INFORMATION[Language.EN])

    template = run(ResponseGenerator(enable_llm=False).generate("admission requirements", results))
    assert template.method == "template"
    assert "79.5%" in template.text

    no_chain = run(ResponseGenerator(ProviderChain([])).generate("admission requirements", results))
    assert no_chain.method == "template"

    llm = run(ResponseGenerator(ProviderChain([StubBackend("LLM says hi")])).generate("hello there", results))
    assert (llm.method, llm.text, llm.provider, llm.llm_attempted) == ("llm", "LLM says hi", "stub", True)

    failed = run(ResponseGenerator(ProviderChain([FailingBackend()])).generate("admission requirements", results))
    assert failed.method == "fallback"
    assert failed.llm_attempted
    assert "79.5%" in failed.text


def test_generator_serves_cached_response():
    memory = ConversationMemory()
    memory.add_exchange("admission requirements dentistry", "cached answer")
    backend = StubBackend("fresh answer")
    response = run(
        ResponseGenerator(ProviderChain([backend])).generate("Admission requirements Dentistry?", _results(), memory)
    )
    assert response.method == "cached"
    assert response.text == "cached answer"
    assert response.confidence == compute_confidence("Admission requirements Dentistry?", _results())
    assert backend.calls == []


def test_openai_compatible_backend_posts_chat_completion():
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"choices": [{"message": {"content": "Hi from Groq"}}]})

    async def call() -> str:
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            backend = OpenAICompatibleBackend(
                "groq",
                api_key="key",
                model="llama-3.1-8b-instant",
                base_url="https://api.groq.com/openai/v1",
                client=client,
            )
            return await backend.complete("sys", "usr")

    assert run(call()) == "Hi from Groq"
    assert seen["url"] == "https://api.groq.com/openai/v1/chat/completions"
    assert seen["auth"] == "Bearer key"
    assert seen["body"]["messages"][0] == {"role": "system", "content": "sys"}
    assert seen["body"]["max_tokens"] == 500


def test_anthropic_backend_sends_version_header():
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["version"] = request.headers["anthropic-version"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"content": [{"type": "text", "text": "Hi from Claude"}]})

    async def call() -> str:
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await AnthropicBackend(api_key="key", client=client).complete("sys", "usr")

    assert run(call()) == "Hi from Claude"
    assert seen["version"] == "2023-06-01"
    assert seen["body"]["system"] == "sys"
    assert seen["body"]["model"] == "claude-3-haiku-20240307"


def test_backend_http_error_falls_back():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"error": "down"})

    async def call():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            backend = OpenAICompatibleBackend("openai", api_key="k", model="m", base_url="https://x", client=client)
            return await ResponseGenerator(ProviderChain([backend])).generate("admission requirements", _results())

    response = run(call())
    assert response.method == "fallback"
    assert "openai" in response.errors[0]
