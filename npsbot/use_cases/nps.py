"""
NPS classification and aggregation.

Pure functions over already-fetched data. ``classify`` is the only place
where score thresholds live; per-respondent labels and aggregate numbers
both go through it.
"""

import math
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from npsbot.domain.entities import Respondent, SegmentResult
from npsbot.domain.enums import NPSCategory

PROMOTER_MIN = 9
NEUTRAL_MIN = 7
SCORE_RANGE = range(0, 11)


def classify(score: int) -> NPSCategory:
    if score >= PROMOTER_MIN:
        return NPSCategory.PROMOTER
    if score >= NEUTRAL_MIN:
        return NPSCategory.NEUTRAL
    return NPSCategory.DETRACTOR


def round_half_up(value: float) -> int:
    # round() would send 12.5 to 12
    return math.floor(value + 0.5)


def nps_score(scores: Sequence[int]) -> int:
    if not scores:
        return 0
    categories = [classify(s) for s in scores]
    promoters = categories.count(NPSCategory.PROMOTER)
    detractors = categories.count(NPSCategory.DETRACTOR)
    return round_half_up((promoters - detractors) / len(scores) * 100)


def extract_score(raw: Optional[str]) -> Optional[int]:
    """Integer score in 0..10 from a stored answer, or None when missing or malformed."""
    if raw is None:
        return None
    try:
        score = int(str(raw).strip())
    except ValueError:
        return None
    if score not in SCORE_RANGE:
        return None
    return score


def summarize(scores: Sequence[int]) -> SegmentResult:
    categories = [classify(s) for s in scores]
    return SegmentResult(
        nps=nps_score(scores),
        promoters=categories.count(NPSCategory.PROMOTER),
        neutrals=categories.count(NPSCategory.NEUTRAL),
        detractors=categories.count(NPSCategory.DETRACTOR),
        total=len(scores),
    )


def segment(
    respondents: Iterable[Respondent],
    predicate: Callable[[Respondent], bool],
    question_id: str,
) -> SegmentResult:
    scores: List[int] = []
    for respondent in respondents:
        if not predicate(respondent):
            continue
        score = extract_score(respondent.answers.get(question_id))
        if score is not None:
            scores.append(score)
    return summarize(scores)


def segment_by(
    respondents: Iterable[Respondent],
    key: Callable[[Respondent], Iterable[str]],
    question_id: str,
) -> Dict[str, SegmentResult]:
    """
    Splits respondents by the labels ``key`` returns and summarizes each group.

    ``key`` returns an iterable so a respondent may count in several groups,
    which is how multi-valued tags such as scopes are compared.
    """
    respondents = list(respondents)
    labels = sorted({label for r in respondents for label in key(r)})
    return {
        label: segment(respondents, lambda r, label=label: label in key(r), question_id)
        for label in labels
    }
