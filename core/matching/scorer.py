#!/usr/bin/env python3
"""
Match Scorer - compatibility between a job post and a candidate worker.

Three equally weighted criteria, each worth up to one point:

    gender       full credit if the job accepts any caregiver gender or the
                 worker's gender is the requested one
    languages    share of the job's required languages the worker speaks
    preferences  share of the job's preferences the applicant asserted

A criterion with no requirement earns full credit. The score is
round(100 * points / 3), halves rounded up. It only ranks candidates and
never blocks an operation.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional, Set

from core.utils import round_half_up

logger = logging.getLogger(__name__)

ANY_GENDER = 'any'
CRITERIA_COUNT = 3


@dataclass(frozen=True)
class JobRequirements:
    """What a job post asks of its caregiver."""
    caregiver_gender: Optional[str] = None
    language_ids: frozenset = frozenset()
    preference_ids: frozenset = frozenset()

    @classmethod
    def build(
        cls,
        caregiver_gender: Optional[str],
        language_ids: Iterable[Any] = (),
        preference_ids: Iterable[Any] = (),
    ) -> "JobRequirements":
        return cls(
            caregiver_gender=caregiver_gender,
            language_ids=frozenset(language_ids or ()),
            preference_ids=frozenset(preference_ids or ()),
        )


@dataclass(frozen=True)
class CandidateProfile:
    """What a worker brings: their profile plus the preferences their application asserts."""
    gender: Optional[str] = None
    language_ids: frozenset = frozenset()
    asserted_preference_ids: frozenset = frozenset()

    @classmethod
    def build(
        cls,
        gender: Optional[str],
        language_ids: Iterable[Any] = (),
        asserted_preference_ids: Iterable[Any] = (),
    ) -> "CandidateProfile":
        return cls(
            gender=gender,
            language_ids=frozenset(language_ids or ()),
            asserted_preference_ids=frozenset(asserted_preference_ids or ()),
        )


@dataclass
class MatchScore:
    """Score in percent with the per-criterion credit that produced it."""
    percentage: int
    gender_credit: float = 0.0
    language_credit: float = 0.0
    preference_credit: float = 0.0
    components: Dict[str, Any] = field(default_factory=dict)


class MatchScorer:

    def score(self, job: JobRequirements, candidate: CandidateProfile) -> MatchScore:
        gender_credit = self._gender_credit(job.caregiver_gender, candidate.gender)
        language_credit = self._share(job.language_ids, candidate.language_ids)
        preference_credit = self._share(job.preference_ids, candidate.asserted_preference_ids)

        points = gender_credit + language_credit + preference_credit
        percentage = int(round_half_up(100 * points / CRITERIA_COUNT))

        return MatchScore(
            percentage=percentage,
            gender_credit=gender_credit,
            language_credit=language_credit,
            preference_credit=preference_credit,
            components={
                'gender': {
                    'required': job.caregiver_gender,
                    'candidate': candidate.gender,
                },
                'languages': {
                    'required': len(job.language_ids),
                    'matched': len(job.language_ids & candidate.language_ids),
                },
                'preferences': {
                    'required': len(job.preference_ids),
                    'matched': len(job.preference_ids & candidate.asserted_preference_ids),
                },
            },
        )

    @staticmethod
    def _gender_credit(required: Optional[str], candidate: Optional[str]) -> float:
        if not required or required == ANY_GENDER:
            return 1.0
        return 1.0 if candidate == required else 0.0

    @staticmethod
    def _share(required: Set[Any], offered: Set[Any]) -> float:
        if not required:
            return 1.0
        return len(required & offered) / len(required)
