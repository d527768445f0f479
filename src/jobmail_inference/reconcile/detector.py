"""
Duplicate detection across five dimensions.

| Dimension | Rule                                                         | Window |
|-----------|--------------------------------------------------------------|--------|
| exact     | same normalized company + title                              | 90d    |
| fuzzy     | 0.6 * company similarity + 0.4 * title similarity >= 0.75    | 180d   |
| domain    | same (company-identifying) sender domain, score 0.8          | 90d    |
| semantic  | stored extraction agrees with the candidate's (>= 0.7)       | 60d    |
| temporal  | same company, score max(0.6, 1 - days/7)                     | 7d     |

Risk, in priority order: CRITICAL (exact) > HIGH (fuzzy >= 0.85) >
MEDIUM (domain or semantic) > LOW (temporal) > NONE.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, Optional

import structlog

from jobmail_inference.config import Settings
from jobmail_inference.fallback.patterns import ATS, JOB_BOARD, PERSONAL_DOMAINS
from jobmail_inference.models.conflict_models import DuplicateMatch, DuplicateReport
from jobmail_inference.models.enums import (
    DuplicateDimension,
    DuplicateRecommendation,
    DuplicateRisk,
    JobStatus,
)
from jobmail_inference.models.input_models import EmailMessage
from jobmail_inference.models.output_models import ParseResult
from jobmail_inference.models.record_models import JobRecord, utcnow
from jobmail_inference.monitoring.metrics import duplicate_checks_total
from jobmail_inference.persistence.base import RecordStore
from jobmail_inference.reconcile.similarity import (
    advanced_similarity,
    normalize_text,
    semantic_similarity,
    title_similarity,
)

logger = structlog.get_logger(__name__)

Extractor = Callable[[EmailMessage], Awaitable[ParseResult]]

FUZZY_COMPANY_WEIGHT = 0.6
FUZZY_TITLE_WEIGHT = 0.4
DOMAIN_MATCH_SCORE = 0.8
TEMPORAL_MIN_SCORE = 0.6

# Shared sender domains say nothing about which employer sent the mail
_SHARED_DOMAINS = PERSONAL_DOMAINS + ATS.domains + JOB_BOARD.domains

_RECOMMENDATIONS = {
    DuplicateRisk.CRITICAL: DuplicateRecommendation.BLOCK,
    DuplicateRisk.HIGH: DuplicateRecommendation.WARN,
    DuplicateRisk.MEDIUM: DuplicateRecommendation.SUGGEST,
    DuplicateRisk.LOW: DuplicateRecommendation.PROCEED,
    DuplicateRisk.NONE: DuplicateRecommendation.PROCEED,
}


@dataclass
class DuplicateCandidate:
    """The would-be record being checked against the store."""

    company: Optional[str] = None
    position: Optional[str] = None
    status: Optional[JobStatus] = None
    sender_domain: Optional[str] = None
    source_email: Optional[EmailMessage] = None
    extraction: Optional[ParseResult] = None

    @classmethod
    def from_record(cls, record: JobRecord) -> "DuplicateCandidate":
        return cls(
            company=record.company,
            position=record.position,
            status=record.status,
            sender_domain=record.sender_domain,
            source_email=record.source_email,
            extraction=record.original_classification,
        )


def _is_company_domain(domain: Optional[str]) -> bool:
    if not domain:
        return False
    return not any(domain == d or domain.endswith("." + d) for d in _SHARED_DOMAINS)


class DuplicateDetector:
    """
    Check a candidate record against recent records in the store.

    The semantic dimension needs an extractor (normally the cached
    ClassificationService.classify) to re-read stored source emails;
    without one it compares stored extractions only.
    """

    def __init__(
        self,
        store: RecordStore,
        settings: Settings,
        extractor: Optional[Extractor] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.settings = settings
        self.extractor = extractor
        self.clock = clock

    async def detect(self, candidate: DuplicateCandidate, exclude_job_id: Optional[str] = None) -> DuplicateReport:
        """
        Run all dimensions concurrently and combine them.

        Args:
            candidate: Record data to check
            exclude_job_id: Record to ignore (the one being edited)

        Returns:
            DuplicateReport with matches, risk level and recommendation
        """
        s = self.settings
        horizon = max(
            s.DUPLICATE_EXACT_WINDOW_DAYS,
            s.DUPLICATE_FUZZY_WINDOW_DAYS,
            s.DUPLICATE_DOMAIN_WINDOW_DAYS,
            s.DUPLICATE_SEMANTIC_WINDOW_DAYS,
            s.DUPLICATE_TEMPORAL_WINDOW_DAYS,
        )
        now = self.clock()
        aged = [
            (record, (now - record.created_at).total_seconds() / 86400.0)
            for record in await self.store.list_recent(horizon)
            if record.job_id != exclude_job_id
        ]

        results = await asyncio.gather(
            self._exact(candidate, aged),
            self._fuzzy(candidate, aged),
            self._domain(candidate, aged),
            self._semantic(candidate, aged),
            self._temporal(candidate, aged),
        )
        matches = [match for dimension_matches in results for match in dimension_matches]

        risk = self.assess_risk(matches)
        report = DuplicateReport(matches=matches, risk_level=risk, recommendation=_RECOMMENDATIONS[risk])
        duplicate_checks_total.labels(risk=risk.value).inc()
        logger.info(
            "Duplicate check",
            company=candidate.company,
            position=candidate.position,
            risk=risk.value,
            matches=len(matches),
        )
        return report

    def assess_risk(self, matches: list[DuplicateMatch]) -> DuplicateRisk:
        dimensions = {m.dimension for m in matches}
        if DuplicateDimension.EXACT in dimensions:
            return DuplicateRisk.CRITICAL
        if any(
            m.dimension == DuplicateDimension.FUZZY and m.score >= self.settings.DUPLICATE_HIGH_THRESHOLD
            for m in matches
        ):
            return DuplicateRisk.HIGH
        if dimensions & {DuplicateDimension.DOMAIN, DuplicateDimension.SEMANTIC}:
            return DuplicateRisk.MEDIUM
        if DuplicateDimension.TEMPORAL in dimensions:
            return DuplicateRisk.LOW
        return DuplicateRisk.NONE

    async def _exact(self, candidate: DuplicateCandidate, aged: list[tuple[JobRecord, float]]) -> list[DuplicateMatch]:
        if not candidate.company or not candidate.position:
            return []
        company = normalize_text(candidate.company)
        position = normalize_text(candidate.position)
        return [
            self._match(record, DuplicateDimension.EXACT, 1.0, "same company and title")
            for record, age in aged
            if age <= self.settings.DUPLICATE_EXACT_WINDOW_DAYS
            and normalize_text(record.company) == company
            and normalize_text(record.position) == position
        ]

    async def _fuzzy(self, candidate: DuplicateCandidate, aged: list[tuple[JobRecord, float]]) -> list[DuplicateMatch]:
        if not candidate.company or not candidate.position:
            return []
        matches = []
        for record, age in aged:
            if age > self.settings.DUPLICATE_FUZZY_WINDOW_DAYS or not record.company or not record.position:
                continue
            company_score = advanced_similarity(candidate.company, record.company)
            title_score = title_similarity(candidate.position, record.position)
            score = FUZZY_COMPANY_WEIGHT * company_score + FUZZY_TITLE_WEIGHT * title_score
            # identical pairs belong to the exact dimension
            if self.settings.DUPLICATE_FUZZY_THRESHOLD <= score < 1.0:
                matches.append(
                    self._match(
                        record,
                        DuplicateDimension.FUZZY,
                        score,
                        f"company {company_score:.2f}, title {title_score:.2f}",
                    )
                )
        return sorted(matches, key=lambda m: m.score, reverse=True)

    async def _domain(self, candidate: DuplicateCandidate, aged: list[tuple[JobRecord, float]]) -> list[DuplicateMatch]:
        domain = (candidate.sender_domain or "").lower()
        if not _is_company_domain(domain):
            return []
        return [
            self._match(record, DuplicateDimension.DOMAIN, DOMAIN_MATCH_SCORE, f"same sender domain {domain}")
            for record, age in aged
            if age <= self.settings.DUPLICATE_DOMAIN_WINDOW_DAYS and (record.sender_domain or "").lower() == domain
        ]

    async def _semantic(self, candidate: DuplicateCandidate, aged: list[tuple[JobRecord, float]]) -> list[DuplicateMatch]:
        reference = await self._candidate_extraction(candidate)
        if reference is None:
            return []

        matches = []
        for record, age in aged:
            if age > self.settings.DUPLICATE_SEMANTIC_WINDOW_DAYS:
                continue
            stored = await self._record_extraction(record)
            if stored is None or not stored.is_job_related:
                continue
            score = semantic_similarity(
                reference.company, reference.position, reference.status,
                stored.company, stored.position, stored.status,
            )
            if score >= self.settings.DUPLICATE_SEMANTIC_THRESHOLD:
                matches.append(self._match(record, DuplicateDimension.SEMANTIC, score, "extracted fields agree"))
        return sorted(matches, key=lambda m: m.score, reverse=True)

    async def _temporal(self, candidate: DuplicateCandidate, aged: list[tuple[JobRecord, float]]) -> list[DuplicateMatch]:
        if not candidate.company:
            return []
        company = normalize_text(candidate.company)
        window = self.settings.DUPLICATE_TEMPORAL_WINDOW_DAYS
        return [
            self._match(
                record,
                DuplicateDimension.TEMPORAL,
                max(TEMPORAL_MIN_SCORE, 1.0 - age / window),
                f"same company {age:.1f} days ago",
            )
            for record, age in aged
            if age < window and normalize_text(record.company) == company
        ]

    async def _candidate_extraction(self, candidate: DuplicateCandidate) -> Optional[ParseResult]:
        if candidate.source_email is not None and self.extractor is not None:
            extraction = await self.extractor(candidate.source_email)
            return extraction if extraction.is_job_related else None
        if candidate.extraction is not None:
            return candidate.extraction if candidate.extraction.is_job_related else None
        if candidate.company or candidate.position:
            return ParseResult(
                is_job_related=True,
                company=candidate.company,
                position=candidate.position,
                status=candidate.status,
            )
        return None

    async def _record_extraction(self, record: JobRecord) -> Optional[ParseResult]:
        if record.original_classification is not None:
            return record.original_classification
        if record.source_email is not None and self.extractor is not None:
            return await self.extractor(record.source_email)
        return None

    @staticmethod
    def _match(record: JobRecord, dimension: DuplicateDimension, score: float, reason: str) -> DuplicateMatch:
        return DuplicateMatch(
            job_id=record.job_id,
            dimension=dimension,
            score=round(min(1.0, max(0.0, score)), 4),
            reason=reason,
            company=record.company,
            position=record.position,
        )
