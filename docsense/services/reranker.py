"""
Bounded-concurrency reranker.

Each candidate with extracted data gets one oracle scoring call against the
literal user query. A semaphore owned by the reranker caps the number of calls
in flight; the rest wait their turn. A failed call scores 0 and never fails the
batch.

Order is rerank desc, then similarity desc. When two or more candidates share
the top score and that score is at or above the tie-break threshold, one extra
oracle call orders just the tied set. If that call fails the order is kept.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from ..core.errors import ParseError
from .llm import Oracle, as_float, parse_json_response
from .prompts import build_rerank_prompt, build_tie_break_prompt

logger = logging.getLogger(__name__)

TIE_EPSILON = 1e-4


@dataclass
class Candidate:
    id: str
    similarity: float
    extracted_data_json: Optional[str] = None


@dataclass
class ScoredCandidate:
    id: str
    similarity: float
    rerank_score: float = 0.0


def clip_score(value: float) -> float:
    return max(0.0, min(1.0, value))


def order_by_score(scored: list[ScoredCandidate]) -> list[ScoredCandidate]:
    return sorted(scored, key=lambda s: (-s.rerank_score, -s.similarity))


def find_top_ties(ordered: list[ScoredCandidate], threshold: float) -> list[str]:
    """Ids sharing the maximum score, if that maximum reaches the threshold."""
    if not ordered:
        return []
    top = ordered[0].rerank_score
    if top < threshold:
        return []
    tied = [s.id for s in ordered if abs(s.rerank_score - top) < TIE_EPSILON]
    return tied if len(tied) >= 2 else []


def splice_order(
    ordered: list[ScoredCandidate], tied_ids: list[str], ranking: list
) -> list[ScoredCandidate]:
    """
    Reorder only the positions held by tied candidates, following `ranking`.
    Tied ids missing from the ranking keep their relative order after the
    ranked ones; unknown and duplicate ids in the ranking are ignored.
    """
    tied_set = set(tied_ids)
    new_order: list[str] = []
    for doc_id in ranking:
        if isinstance(doc_id, str) and doc_id in tied_set and doc_id not in new_order:
            new_order.append(doc_id)
    new_order.extend(i for i in tied_ids if i not in new_order)

    by_id = {s.id: s for s in ordered if s.id in tied_set}
    replacements = iter(new_order)
    return [by_id[next(replacements)] if s.id in tied_set else s for s in ordered]


class Reranker:
    def __init__(
        self,
        oracle: Oracle,
        concurrency: int = 10,
        tie_break_threshold: float = 0.99,
        use_tie_break: bool = True,
    ):
        self.oracle = oracle
        self.concurrency = max(1, concurrency)
        self.tie_break_threshold = tie_break_threshold
        self.use_tie_break = use_tie_break
        self._semaphore = asyncio.Semaphore(self.concurrency)

    async def rerank(self, query: str, candidates: list[Candidate]) -> list[ScoredCandidate]:
        if not candidates:
            return []

        # Per-task results, merged after the join
        scores = await asyncio.gather(*[self._score(query, c) for c in candidates])
        ordered = order_by_score([
            ScoredCandidate(id=c.id, similarity=c.similarity, rerank_score=score)
            for c, score in zip(candidates, scores)
        ])

        tied = find_top_ties(ordered, self.tie_break_threshold)
        if self.use_tie_break and tied:
            ordered = await self._tie_break(query, ordered, tied, candidates)
        return ordered

    async def _score(self, query: str, candidate: Candidate) -> float:
        if not candidate.extracted_data_json or not candidate.extracted_data_json.strip():
            return 0.0

        async with self._semaphore:
            try:
                text = await self.oracle.generate(
                    build_rerank_prompt(query, candidate.id, candidate.extracted_data_json)
                )
                data = parse_json_response(text)
                if not isinstance(data, dict):
                    raise ParseError(f"Unparseable rerank response: {text[:200]!r}")
                return clip_score(as_float(data.get("relevancy")))
            except Exception as e:
                logger.warning("Rerank failed for doc %s: %s", candidate.id, e)
                return 0.0

    async def _tie_break(
        self,
        query: str,
        ordered: list[ScoredCandidate],
        tied: list[str],
        candidates: list[Candidate],
    ) -> list[ScoredCandidate]:
        extracted = {c.id: c.extracted_data_json or "" for c in candidates}
        payload = [{"docId": doc_id, "extractedData": extracted.get(doc_id, "")} for doc_id in tied]

        logger.info("Tie-break between %d candidates", len(tied))
        try:
            async with self._semaphore:
                text = await self.oracle.generate(build_tie_break_prompt(query, payload))
            ranking = parse_json_response(text)
            if not isinstance(ranking, list):
                raise ParseError(f"Unparseable tie-break response: {text[:200]!r}")
        except Exception as e:
            logger.warning("Tie-break failed: %s", e)
            return ordered

        return splice_order(ordered, tied, ranking)
