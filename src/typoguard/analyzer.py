"""Turn raw search results into impostor candidates."""

from __future__ import annotations

import logging

from typoguard.domains import DomainNormalizer
from typoguard.models import Candidate, OrganicResult
from typoguard.similarity import SimilarityClassifier

logger = logging.getLogger(__name__)


class ImpostorAnalyzer:
    """Deduplicate results by root domain and classify each domain once.

    Candidates come out in the order their domain first appeared in the
    result stream, carrying the rank of that first appearance.
    """

    def __init__(
        self,
        classifier: SimilarityClassifier | None = None,
        normalizer: DomainNormalizer | None = None,
    ) -> None:
        self.classifier = classifier or SimilarityClassifier()
        self.normalizer = normalizer or DomainNormalizer()

    def analyze(
        self,
        results: list[OrganicResult],
        brand_domain: str,
        brand_name: str,
    ) -> list[Candidate]:
        """Return the likely impostors among ``results``.

        Args:
            results: Organic results in search-rank order.
            brand_domain: The brand's own domain (any URL form).
            brand_name: The brand's display name.

        Returns:
            Candidates in first-seen order.
        """
        own_domain = self.normalizer.normalize(brand_domain)
        seen: set[str] = set()
        candidates: list[Candidate] = []

        for position, result in enumerate(results, start=1):
            domain = self.normalizer.normalize(result.url)
            if not domain or domain in seen:
                continue
            seen.add(domain)

            verdict = self.classifier.classify(domain, own_domain, brand_name)
            if not verdict.is_impostor:
                continue

            rank = result.rank if result.rank else position
            candidates.append(
                Candidate(
                    domain=domain,
                    full_url=result.url,
                    page_title=result.name,
                    page_description=result.description,
                    search_rank=rank,
                    matched_rule=verdict.rule,
                    edit_distance=verdict.edit_distance,
                )
            )

        logger.info(
            "Analyzed %d results (%d unique domains): %d candidate(s)",
            len(results), len(seen), len(candidates),
        )
        return candidates
