"""Lookalike-domain heuristics for brand impersonation detection.

The classifier runs an ordered list of rules against a candidate domain.
Each rule either returns a verdict (``True``/``False``) or ``None`` to
pass the decision on to the next rule. The first verdict wins.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Iterable

from Levenshtein import distance as levenshtein_distance

from typoguard.domains import base_label

logger = logging.getLogger(__name__)

# Platforms that rank for brand-name queries without impersonating anyone.
DEFAULT_LEGITIMATE_DOMAINS: tuple[str, ...] = (
    "google.com", "google.co.uk", "apple.com", "apps.apple.com",
    "play.google.com", "youtube.com", "facebook.com", "twitter.com",
    "instagram.com", "linkedin.com", "trustpilot.com", "uk.trustpilot.com",
    "racingpost.com", "talksport.com", "olbg.com", "wikipedia.org",
    "github.com", "reddit.com", "medium.com", "forbes.com",
    "bbc.com", "bbc.co.uk", "theguardian.com", "mirror.co.uk",
    "gambling.com", "askgamblers.com", "casinomeister.com",
)

# Industry words stripped from a brand name to find its distinctive part.
DEFAULT_GENERIC_BRAND_WORDS: tuple[str, ...] = ("casino", "bet", "slots", "win", "gaming")

NEAR_MISS_MAX_LENGTH_DIFF = 2
NEAR_MISS_MIN_OVERLAP = 0.75


@dataclass(frozen=True)
class DomainPair:
    """Pre-computed views of a candidate and the brand it is compared to."""

    candidate: str
    brand_domain: str
    brand_name: str
    candidate_base: str
    brand_base: str
    distinctive: str
    legitimate_domains: frozenset[str]

    @property
    def differs(self) -> bool:
        return self.candidate != self.brand_domain


@dataclass(frozen=True)
class Verdict:
    """Outcome of classifying one candidate domain."""

    is_impostor: bool
    rule: str
    edit_distance: int = 0


RuleCheck = Callable[[DomainPair], "bool | None"]


@dataclass(frozen=True)
class Rule:
    name: str
    check: RuleCheck


def positional_overlap(a: str, b: str) -> float:
    """Share of characters matching at the same index.

    Divided by the longer string's length; two empty strings score 1.0.
    """
    longer, shorter = (a, b) if len(a) > len(b) else (b, a)
    if not longer:
        return 1.0
    matches = sum(1 for i, ch in enumerate(shorter) if ch == longer[i])
    return matches / len(longer)


def _check_identity(pair: DomainPair) -> bool | None:
    return False if not pair.differs else None


def _check_allow_list(pair: DomainPair) -> bool | None:
    for legit in pair.legitimate_domains:
        if pair.candidate == legit or pair.candidate.endswith("." + legit):
            return False
    return None


def _check_brand_signal(pair: DomainPair) -> bool | None:
    """Reject candidates that carry no trace of the brand at all."""
    tokens = (pair.distinctive, pair.brand_name, pair.brand_base)
    if any(token and token in pair.candidate for token in tokens):
        return None
    return False


def _check_different_suffix(pair: DomainPair) -> bool | None:
    if pair.candidate_base == pair.brand_base and pair.differs:
        return True
    return None


def _check_hyphenation(pair: DomainPair) -> bool | None:
    if not pair.differs:
        return None
    if pair.candidate.replace("-", "") == pair.brand_domain.replace("-", ""):
        return True
    if pair.candidate_base.replace("-", "") == pair.brand_base:
        return True
    return None


def _check_pluralization(pair: DomainPair) -> bool | None:
    if (
        pair.candidate_base == pair.brand_base + "s"
        or pair.brand_base == pair.candidate_base + "s"
    ):
        return True
    return None


def _check_digit_insertion(pair: DomainPair) -> bool | None:
    if pair.candidate_base == pair.brand_base:
        return None
    if re.sub(r"\d+", "", pair.candidate_base) == pair.brand_base:
        return True
    return None


def _check_near_miss(pair: DomainPair) -> bool | None:
    if abs(len(pair.candidate_base) - len(pair.brand_base)) > NEAR_MISS_MAX_LENGTH_DIFF:
        return None
    overlap = positional_overlap(pair.candidate_base, pair.brand_base)
    if overlap >= NEAR_MISS_MIN_OVERLAP and pair.differs:
        return True
    return None


def _check_brand_reference(pair: DomainPair) -> bool | None:
    # Only reached once the brand-signal gate has passed.
    return True if pair.differs else None


DEFAULT_RULES: tuple[Rule, ...] = (
    Rule("identity", _check_identity),
    Rule("allow_list", _check_allow_list),
    Rule("brand_signal", _check_brand_signal),
    Rule("different_suffix", _check_different_suffix),
    Rule("hyphenation", _check_hyphenation),
    Rule("pluralization", _check_pluralization),
    Rule("digit_insertion", _check_digit_insertion),
    Rule("near_miss", _check_near_miss),
    Rule("brand_reference", _check_brand_reference),
)


class SimilarityClassifier:
    """Decide whether a domain plausibly impersonates a brand.

    Pure and deterministic: no I/O happens during classification.
    """

    def __init__(
        self,
        legitimate_domains: Iterable[str] | None = None,
        generic_words: Iterable[str] | None = None,
        rules: Iterable[Rule] | None = None,
    ) -> None:
        """Initialize the classifier.

        Args:
            legitimate_domains: Allow-listed domains; defaults to
                DEFAULT_LEGITIMATE_DOMAINS when empty or None.
            generic_words: Industry words removed from brand names; defaults
                to DEFAULT_GENERIC_BRAND_WORDS when empty or None.
            rules: Ordered rules to evaluate; defaults to DEFAULT_RULES.
        """
        self.legitimate_domains = frozenset(
            d.lower() for d in (legitimate_domains or DEFAULT_LEGITIMATE_DOMAINS)
        )
        words = sorted(
            (w.lower() for w in (generic_words or DEFAULT_GENERIC_BRAND_WORDS) if w),
            key=len,
            reverse=True,
        )
        self._generic_pattern = re.compile("|".join(re.escape(w) for w in words))
        self.rules = tuple(rules) if rules is not None else DEFAULT_RULES

    @classmethod
    def from_config(cls, config: dict) -> "SimilarityClassifier":
        section = config.get("similarity") or {}
        return cls(
            legitimate_domains=section.get("legitimate_domains"),
            generic_words=section.get("generic_brand_words"),
        )

    def distinctive_token(self, brand_name: str) -> str:
        """Brand name without whitespace and generic industry words."""
        compact = re.sub(r"\s+", "", brand_name.lower())
        return self._generic_pattern.sub("", compact).strip()

    def classify(self, candidate: str, brand_domain: str, brand_name: str) -> Verdict:
        """Run the rule list and return the first verdict reached.

        Args:
            candidate: Normalized candidate domain.
            brand_domain: Normalized domain of the brand itself.
            brand_name: Display name of the brand.

        Returns:
            A Verdict naming the deciding rule.
        """
        candidate = candidate.lower()
        brand_domain = brand_domain.lower()
        pair = DomainPair(
            candidate=candidate,
            brand_domain=brand_domain,
            brand_name=re.sub(r"\s+", "", brand_name.lower()),
            candidate_base=base_label(candidate),
            brand_base=base_label(brand_domain),
            distinctive=self.distinctive_token(brand_name),
            legitimate_domains=self.legitimate_domains,
        )
        distance = levenshtein_distance(pair.candidate_base, pair.brand_base)

        for rule in self.rules:
            result = rule.check(pair)
            if result is not None:
                logger.debug("%s vs %s: %s -> %s", candidate, brand_domain, rule.name, result)
                return Verdict(is_impostor=result, rule=rule.name, edit_distance=distance)

        return Verdict(is_impostor=False, rule="no_match", edit_distance=distance)

    def is_likely_impostor(self, candidate: str, brand_domain: str, brand_name: str) -> bool:
        return self.classify(candidate, brand_domain, brand_name).is_impostor


_default_classifier = SimilarityClassifier()


def is_likely_impostor(candidate: str, brand_domain: str, brand_name: str) -> bool:
    """Classify with the built-in allow-list and generic word list."""
    return _default_classifier.is_likely_impostor(candidate, brand_domain, brand_name)
