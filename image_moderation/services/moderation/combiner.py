from typing import Optional

from image_moderation.schemas import ImageAnalysis, ModerationResult

HEURISTIC_REASON = 'Potential inappropriate content detected'
HEURISTIC_CATEGORY = 'suspicious_content'


def combine_results(pixel_analysis: ImageAnalysis,
                    external_result: Optional[ModerationResult]) -> ModerationResult:
    """
    Merge the heuristic and external signals, worst case wins.

    Either signal flagging makes the image inappropriate; the score is the
    highest contributing score. A missed violation costs more than an extra
    human review.
    """
    reasons = []
    categories = []
    max_score = 0.0
    is_inappropriate = False

    if pixel_analysis.has_inappropriate_content:
        is_inappropriate = True
        max_score = max(max_score, pixel_analysis.confidence)
        reasons.append(HEURISTIC_REASON)
        categories.append(HEURISTIC_CATEGORY)

    if external_result is not None and not external_result.is_appropriate:
        is_inappropriate = True
        max_score = max(max_score, external_result.score)
        if external_result.reason:
            reasons.append(external_result.reason)
        categories.extend(external_result.categories)

    if not is_inappropriate:
        external_score = external_result.score if external_result is not None else 0.0
        return ModerationResult(
            is_appropriate=True,
            score=max(pixel_analysis.confidence, external_score),
            reason=None,
            categories=[]
        )

    return ModerationResult(
        is_appropriate=False,
        score=max_score,
        reason='; '.join(reasons) or None,
        categories=list(dict.fromkeys(categories))
    )
