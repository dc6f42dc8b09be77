from core.matching.scorer import (
    MatchScorer,
    MatchScore,
    JobRequirements,
    CandidateProfile,
    ANY_GENDER,
)

__all__ = [
    'MatchScorer',
    'MatchScore',
    'JobRequirements',
    'CandidateProfile',
    'ANY_GENDER',
]
