from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from attendance_api.config import settings
from attendance_api.services.roster import EnrolledStudent
from attendance_api.services.similarity import cosine_similarity
from attendance_api.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class MatchResult:
    student: EnrolledStudent
    confidence: float


def find_best_match(
    descriptor: Sequence[float],
    students: Iterable[EnrolledStudent],
    threshold: Optional[float] = None,
) -> Optional[MatchResult]:
    """
    Scans the roster and returns the best match scoring at least `threshold`.

    A candidate replaces the current best only when its score is strictly
    greater, so when two students share the top score the one that appears
    first in the roster wins. Students without a descriptor are skipped.

    Raises:
        ValueError: if the query descriptor is missing or empty.
    """
    if not descriptor:
        raise ValueError("Query face descriptor is required")

    if threshold is None:
        threshold = settings.FACE_MATCH_THRESHOLD

    best_match: Optional[EnrolledStudent] = None
    best_confidence = 0.0
    runner_up = 0.0

    for student in students:
        if not student.face_descriptor:
            logger.debug(f"Student {student.name} has no face descriptor")
            continue

        similarity = cosine_similarity(descriptor, student.face_descriptor)
        logger.debug(f"Comparing with {student.name}: similarity = {similarity:.4f}")

        if similarity > best_confidence and similarity >= threshold:
            runner_up = best_confidence
            best_confidence = similarity
            best_match = student
        elif similarity > runner_up:
            runner_up = similarity

    if best_match is None:
        logger.info(f"No match found (threshold={threshold})")
        return None

    # TODO: replace the flat cutoff with a best vs. runner-up margin rule once
    # the production embedding model is calibrated; the margin is logged for that.
    logger.info(
        f"Match found: {best_match.name} ({best_confidence:.4f}), "
        f"margin over runner-up {best_confidence - runner_up:.4f}"
    )
    return MatchResult(student=best_match, confidence=best_confidence)
