"""CLI for evaluating admissions retrieval accuracy."""

from __future__ import annotations

import argparse
import asyncio
import json
import statistics
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Sequence

from admissions_rag.config import Settings, get_settings
from admissions_rag.embeddings import EmbeddingConfig, HashEmbeddingProvider
from admissions_rag.models import SearchType
from admissions_rag.services.query import QueryOrchestrator
from admissions_rag.services.responder import ResponseGenerator


@dataclass(frozen=True)
class QueryFixture:
    question: str
    relevant_document_ids: Sequence[str]
    search_type: str | None = None


@dataclass(frozen=True)
class EvaluationResult:
    total_queries: int
    hits: int
    recall_at_k: float
    mean_reciprocal_rank: float
    average_latency_ms: float
    details: List[dict]

    def to_dict(self) -> dict:
        return {
            "total_queries": self.total_queries,
            "hits": self.hits,
            "recall_at_k": self.recall_at_k,
            "mean_reciprocal_rank": self.mean_reciprocal_rank,
            "average_latency_ms": self.average_latency_ms,
            "details": self.details,
        }


def load_dataset(path: Path) -> tuple[Any, list[QueryFixture]]:
    """Read a fixture holding `knowledge_base` (inline records or a path) and `queries`."""

    data = json.loads(path.read_text(encoding="utf-8"))
    knowledge_base = data.get("knowledge_base")
    if isinstance(knowledge_base, str):
        kb_path = Path(knowledge_base)
        if not kb_path.is_absolute():
            kb_path = path.parent / kb_path
        knowledge_base = json.loads(kb_path.read_text(encoding="utf-8"))
    queries = [
        QueryFixture(
            question=item["question"],
            relevant_document_ids=item.get("relevant_document_ids", []),
            search_type=item.get("search_type"),
        )
        for item in data["queries"]
    ]
    return knowledge_base, queries


async def _evaluate(
    knowledge_base: Any,
    queries: Sequence[QueryFixture],
    *,
    top_k: int,
    search_type: str,
    settings: Settings,
) -> EvaluationResult:
    provider = HashEmbeddingProvider(EmbeddingConfig(dim=settings.embedding_dim))
    orchestrator = QueryOrchestrator(
        settings,
        embedding_loader=lambda: provider,
        generator=ResponseGenerator(enable_llm=False),
    )
    await orchestrator.initialize()
    await orchestrator.load_knowledge_base(knowledge_base or [])

    hits = 0
    reciprocal_ranks: list[float] = []
    latencies: list[float] = []
    details: list[dict] = []
    for query in queries:
        mode = SearchType.parse(query.search_type or search_type)
        start = time.perf_counter()
        results = await orchestrator.search(query.question, mode, top_k)
        latency_ms = (time.perf_counter() - start) * 1000
        latencies.append(latency_ms)
        retrieved_ids = [result.document.id for result in results]
        relevant_set = set(query.relevant_document_ids)
        rank = next(
            (index for index, doc_id in enumerate(retrieved_ids, start=1) if doc_id in relevant_set),
            None,
        )
        if rank is not None:
            hits += 1
            reciprocal_ranks.append(1 / rank)
        else:
            reciprocal_ranks.append(0.0)
        details.append(
            {
                "question": query.question,
                "search_type": mode.value,
                "retrieved": retrieved_ids,
                "relevant": list(query.relevant_document_ids),
                "latency_ms": latency_ms,
            },
        )

    total = len(queries)
    return EvaluationResult(
        total_queries=total,
        hits=hits,
        recall_at_k=hits / total if total else 0.0,
        mean_reciprocal_rank=statistics.fmean(reciprocal_ranks) if reciprocal_ranks else 0.0,
        average_latency_ms=statistics.fmean(latencies) if latencies else 0.0,
        details=details,
    )


def run_evaluation(
    dataset_path: Path,
    *,
    top_k: int = 3,
    search_type: str = "hybrid",
    settings: Settings | None = None,
    json_out: Path | None = None,
    markdown_out: Path | None = None,
) -> EvaluationResult:
    settings = settings or get_settings()
    knowledge_base, queries = load_dataset(dataset_path)
    result = asyncio.run(
        _evaluate(knowledge_base, queries, top_k=top_k, search_type=search_type, settings=settings)
    )
    if json_out:
        json_out.write_text(json.dumps(result.to_dict(), indent=2, ensure_ascii=False), encoding="utf-8")
    if markdown_out:
        markdown_out.write_text(_format_markdown(result), encoding="utf-8")
    return result


def _format_markdown(result: EvaluationResult) -> str:
    lines = [
        "# Admissions Retrieval Evaluation Report",
        "",
        f"- Total queries: {result.total_queries}",
        f"- Hits: {result.hits}",
        f"- Recall@k: {result.recall_at_k:.2f}",
        f"- MRR: {result.mean_reciprocal_rank:.2f}",
        f"- Avg latency (ms): {result.average_latency_ms:.2f}",
        "",
        "| Question | Search | Retrieved | Relevant |",
        "| --- | --- | --- | --- |",
    ]
    for item in result.details:
        retrieved = ", ".join(item["retrieved"]) if item["retrieved"] else "-"
        relevant = ", ".join(item["relevant"]) if item["relevant"] else "-"
        lines.append(f"| {item['question']} | {item['search_type']} | {retrieved} | {relevant} |")
    return "\n".join(lines)


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Evaluate admissions retrieval accuracy.")
    parser.add_argument(
        "--dataset",
        type=Path,
        default=Path("evaluations/fixtures/admissions.json"),
        help="Path to evaluation dataset JSON file.",
    )
    parser.add_argument("--top-k", type=int, default=3, help="Number of results to evaluate")
    parser.add_argument(
        "--search-type",
        choices=[mode.value for mode in SearchType],
        default="hybrid",
        help="Default retrieval strategy for queries without one",
    )
    parser.add_argument("--json-out", type=Path, default=None, help="Optional path to write JSON report")
    parser.add_argument("--markdown-out", type=Path, default=None, help="Optional path to write Markdown report")
    parser.add_argument("--min-recall", type=float, default=None, help="Override recall threshold")
    parser.add_argument("--min-mrr", type=float, default=None, help="Override MRR threshold")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    settings = get_settings()
    min_recall = args.min_recall if args.min_recall is not None else settings.evaluation_min_recall
    min_mrr = args.min_mrr if args.min_mrr is not None else settings.evaluation_min_mrr

    result = run_evaluation(
        args.dataset,
        top_k=args.top_k,
        search_type=args.search_type,
        settings=settings,
        json_out=args.json_out,
        markdown_out=args.markdown_out,
    )
    print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))

    if result.recall_at_k < min_recall or result.mean_reciprocal_rank < min_mrr:
        print(
            f"Evaluation failed thresholds (recall {result.recall_at_k:.2f} vs {min_recall}, "
            f"MRR {result.mean_reciprocal_rank:.2f} vs {min_mrr})",
            file=sys.stderr,
        )
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    sys.exit(main())
