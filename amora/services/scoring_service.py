"""
Amora — Compatibility Scorer: batched, concurrent oracle scoring.

The candidate pool is split into small fixed-size batches.  Every batch is
dispatched concurrently (bounded by a semaphore), each call drawing the next
API key from the ``CredentialRotator`` so that per-key rate limits do not
serialise the pass.

Failure policy:
  - A batch whose call fails, times out, or whose response cannot be parsed
    is discarded whole (``OracleBatchFailure``).  Its candidates receive no
    score and are left out of the ranking.
  - If no batch succeeds, or scoring cannot start (no client, no keys), the
    pass is an ``OracleTotalFailure`` and every candidate receives a uniform
    random score in [0, 100].
  - Batches still pending at the total deadline are cancelled and only their
    candidates receive random scores.

Rubric weights are module constants and are not read from settings.
"""

from __future__ import annotations

import asyncio
import json
import random
import time
import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field

import structlog

from amora.exceptions import OracleBatchFailure, OracleTotalFailure
from amora.schemas.profile import CandidateProfile
from amora.schemas.ranking import CompatibilityResult
from amora.services.credentials import CredentialRotator, NoCredentialsError
from amora.services.oracle_client import GeminiOracleClient, OracleCallError
from amora.services.response_parser import parse_generate_content

logger = structlog.get_logger("amora.scoring_service")

# ──────────────────────────────────────────────────────────────────────────────
# Constants
# ──────────────────────────────────────────────────────────────────────────────

RUBRIC_WEIGHTS: dict[str, int] = {
    "location": 30,
    "interests": 25,
    "age": 15,
    "lifestyle": 15,
    "education": 10,
    "personality": 5,
}

_RUBRIC_LABELS: dict[str, str] = {
    "location": "Location proximity (same city scores highest, nearby next)",
    "interests": "Interest overlap (shared interests / total interests)",
    "age": "Age compatibility (reasonable age gap)",
    "lifestyle": "Lifestyle match (habits, routines, religion)",
    "education": "Education level (comparable education and career)",
    "personality": "Personality traits (similar or complementary)",
}

FALLBACK_REASON = "Estimated score: compatibility service unavailable"

_NOT_PROVIDED = "Not provided"


@dataclass
class ScoringOutcome:
    """Results of one scoring pass plus what had to be degraded."""

    results: list[CompatibilityResult] = field(default_factory=list)
    fallback_ids: set[uuid.UUID] = field(default_factory=set)
    failed_batches: list[int] = field(default_factory=list)

    @property
    def total_fallback(self) -> bool:
        return bool(self.results) and len(self.fallback_ids) == len(self.results)


def partition(items: Sequence, size: int) -> list[list]:
    """Split ``items`` into consecutive chunks of at most ``size``."""
    if size < 1:
        raise ValueError(f"batch size must be >= 1, got {size}")
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


# ──────────────────────────────────────────────────────────────────────────────
# Prompt construction
# ──────────────────────────────────────────────────────────────────────────────

def _describe(profile: CandidateProfile) -> str:
    def _text(value) -> str:
        if value is None or value == "" or value == [] or value == {}:
            return _NOT_PROVIDED
        if isinstance(value, list):
            return ", ".join(str(v) for v in value)
        if isinstance(value, dict):
            return json.dumps(value, ensure_ascii=False, sort_keys=True)
        return str(value)

    return "\n".join([
        f"  - ID: {profile.id}",
        f"  - Age: {_text(profile.age)}",
        f"  - Gender: {_text(profile.gender)}",
        f"  - Location: {_text(profile.location)}",
        f"  - Interests: {_text(profile.interests)}",
        f"  - Personality: {_text(profile.personality_traits)}",
        f"  - Education: {_text(profile.education)}",
        f"  - Job: {_text(profile.job_title)}",
        f"  - Religion: {_text(profile.religion)}",
        f"  - Lifestyle: {_text(profile.lifestyle)}",
        f"  - Habits: {_text(profile.habits)}",
    ])


def build_batch_prompt(
    requester: CandidateProfile,
    batch: Sequence[CandidateProfile],
) -> str:
    """Build the scoring prompt for one batch of candidates."""
    candidates_section = "\n\n".join(
        f"Candidate {i}:\n{_describe(candidate)}"
        for i, candidate in enumerate(batch, 1)
    )
    rubric_section = "\n".join(
        f"  {i}. {_RUBRIC_LABELS[key]}: {weight}%"
        for i, (key, weight) in enumerate(RUBRIC_WEIGHTS.items(), 1)
    )

    return f"""You are a dating compatibility analyst.

TASK: Score how compatible the SEEKER is with each of the {len(batch)} candidates below.

SEEKER:
{_describe(requester)}

CANDIDATES:
{candidates_section}

SCORING RUBRIC (weighted, in priority order):
{rubric_section}

Return a JSON array with exactly one object per candidate:
[
  {{"user_id": "<candidate ID>", "score": <integer 0-100>, "match_percentage": <integer 0-100>, "reasons": ["<short reason>", "..."]}}
]

Use the candidate IDs exactly as given. Respond with ONLY the JSON array."""


# ──────────────────────────────────────────────────────────────────────────────
# Scorer
# ──────────────────────────────────────────────────────────────────────────────

class CompatibilityScorer:
    """Scores candidate pools against a requester via the oracle."""

    def __init__(
        self,
        oracle: GeminiOracleClient | None,
        rotator: CredentialRotator,
        batch_size: int = 2,
        max_concurrency: int = 8,
        batch_timeout: float = 20.0,
        deadline: float = 45.0,
        rng: random.Random | None = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        if max_concurrency < 1:
            raise ValueError(f"max_concurrency must be >= 1, got {max_concurrency}")
        self._oracle = oracle
        self._rotator = rotator
        self.batch_size = batch_size
        self.max_concurrency = max_concurrency
        self.batch_timeout = batch_timeout
        self.deadline = deadline
        self._rng = rng or random.Random()

    # ── Public API ────────────────────────────────────────────────────────

    async def score_candidates(
        self,
        requester: CandidateProfile,
        candidates: Sequence[CandidateProfile],
    ) -> ScoringOutcome:
        """Score every candidate against ``requester``.

        Never raises for oracle problems; see the module docstring for how
        failures degrade.  Results are unordered.
        """
        if not candidates:
            return ScoringOutcome()

        start_time = time.monotonic()
        batches = partition(candidates, self.batch_size)
        log = logger.bind(
            user_id=str(requester.id),
            candidate_count=len(candidates),
            batch_count=len(batches),
        )

        try:
            if self._oracle is None or not self._rotator:
                raise OracleTotalFailure("no oracle client or credentials configured")
            outcome = await self._score_batches(requester, batches, log)
        except OracleTotalFailure as exc:
            log.warning("scoring_fallback_applied", scope="all", reason=str(exc))
            outcome = ScoringOutcome(
                results=self._fallback_results(candidates),
                fallback_ids={c.id for c in candidates},
                failed_batches=getattr(exc, "failed_batches", []),
            )

        log.info(
            "scoring_complete",
            scored=len(outcome.results),
            fallback=len(outcome.fallback_ids),
            failed_batches=outcome.failed_batches,
            elapsed_ms=round((time.monotonic() - start_time) * 1000, 2),
        )
        return outcome

    # ── Batch orchestration ───────────────────────────────────────────────

    async def _score_batches(
        self,
        requester: CandidateProfile,
        batches: list[list[CandidateProfile]],
        log,
    ) -> ScoringOutcome:
        semaphore = asyncio.Semaphore(self.max_concurrency)
        tasks = [
            asyncio.create_task(self._run_batch(index, requester, batch, semaphore))
            for index, batch in enumerate(batches)
        ]

        done, pending = await asyncio.wait(tasks, timeout=self.deadline)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        outcome = ScoringOutcome()
        timed_out: list[CandidateProfile] = []
        succeeded = 0

        for index, (task, batch) in enumerate(zip(tasks, batches)):
            if task in pending:
                timed_out.extend(batch)
                continue

            exc = task.exception()
            if exc is not None:
                outcome.failed_batches.append(index)
                log.warning(
                    "oracle_batch_failed",
                    batch_index=index,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                continue

            succeeded += 1
            outcome.results.extend(task.result())

        if succeeded == 0:
            failure = OracleTotalFailure(
                f"all {len(batches)} scoring batches failed or timed out"
            )
            failure.failed_batches = outcome.failed_batches
            raise failure

        if timed_out:
            log.warning(
                "scoring_fallback_applied",
                scope="deadline",
                deadline_seconds=self.deadline,
                candidates=len(timed_out),
            )
            outcome.results.extend(self._fallback_results(timed_out))
            outcome.fallback_ids.update(c.id for c in timed_out)

        return outcome

    async def _run_batch(
        self,
        index: int,
        requester: CandidateProfile,
        batch: list[CandidateProfile],
        semaphore: asyncio.Semaphore,
    ) -> list[CompatibilityResult]:
        async with semaphore:
            prompt = build_batch_prompt(requester, batch)
            try:
                payload = await self._oracle.generate(
                    prompt,
                    key_supplier=self._rotator.next_key,
                    timeout=self.batch_timeout,
                )
            except (OracleCallError, NoCredentialsError) as exc:
                raise OracleBatchFailure(index, str(exc)) from exc

        parsed = parse_generate_content(payload)
        if not parsed.ok:
            raise OracleBatchFailure(index, parsed.error or "unparseable response")

        batch_ids = {candidate.id for candidate in batch}
        results: dict[uuid.UUID, CompatibilityResult] = {}
        for item in parsed.items:
            if item.candidate_id not in batch_ids or item.candidate_id in results:
                continue
            results[item.candidate_id] = CompatibilityResult(
                candidate_id=item.candidate_id,
                score=item.score,
                match_percentage=item.match_percentage,
                reasons=list(item.reasons),
            )

        if not results:
            raise OracleBatchFailure(index, "response scored none of the batch candidates")

        missing = batch_ids - results.keys()
        if missing:
            logger.debug(
                "oracle_batch_partial",
                batch_index=index,
                missing=[str(m) for m in missing],
            )
        return list(results.values())

    # ── Fallback ─────────────────────────────────────────────────────────

    def _fallback_results(
        self,
        candidates: Sequence[CandidateProfile],
    ) -> list[CompatibilityResult]:
        results = []
        for candidate in candidates:
            score = self._rng.randint(0, 100)
            results.append(
                CompatibilityResult(
                    candidate_id=candidate.id,
                    score=score,
                    match_percentage=score,
                    reasons=[FALLBACK_REASON],
                )
            )
        return results
