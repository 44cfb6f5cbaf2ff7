"""
Face Matching Service - best-match identification under ambiguity
Compares a probe descriptor against enrolled identities using euclidean distance
"""
import logging
from dataclasses import dataclass
from typing import Iterable, Optional, List, Tuple

import numpy as np

from campus.core.config import settings
from campus.core.errors import InvalidDescriptor
from campus.models.domain import EnrolledIdentity, MatchResult

logger = logging.getLogger(__name__)

# Distances from the embedding model are roughly within [0, 1.2]
CONFIDENCE_SCALE = 1.0


@dataclass(frozen=True)
class MatchPolicy:
    """Acceptance thresholds for a face match"""
    confidence_threshold: float = 0.5
    distance_ceiling: float = 0.8
    margin_threshold: float = 0.05
    descriptor_dimension: int = 128

    @classmethod
    def from_settings(cls, config=settings) -> "MatchPolicy":
        return cls(
            confidence_threshold=config.confidence_threshold,
            distance_ceiling=config.distance_ceiling,
            margin_threshold=config.margin_threshold,
            descriptor_dimension=config.descriptor_dimension,
        )


def to_descriptor(values, dimension: int = 128) -> np.ndarray:
    """
    Convert raw values (list, JSON-decoded dict, array) into a read-only descriptor.

    Raises:
        InvalidDescriptor: wrong length, non-numeric or non-finite values
    """
    if values is None:
        raise InvalidDescriptor("Descriptor is missing")

    # Browsers serialise Float32Array as {"0": .., "1": ..}
    if isinstance(values, dict):
        try:
            values = [values[k] for k in sorted(values, key=int)]
        except (TypeError, ValueError) as e:
            raise InvalidDescriptor(f"Descriptor keys are not indices: {e}")

    try:
        descriptor = np.array(values, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise InvalidDescriptor(f"Descriptor has non-numeric values: {e}")

    if descriptor.ndim != 1 or descriptor.shape[0] != dimension:
        raise InvalidDescriptor(
            f"Descriptor must have {dimension} values, got shape {descriptor.shape}"
        )
    if not np.all(np.isfinite(descriptor)):
        raise InvalidDescriptor("Descriptor contains NaN or infinite values")

    descriptor.setflags(write=False)
    return descriptor


class FaceMatcher:
    """
    Identify a probe face against a snapshot of enrolled identities.

    Strategy:
    - Best (minimum) distance per identity over all of its descriptors
    - Rank identities by that distance
    - Accept the top one only if it is confident, close enough, and clearly
      ahead of the runner-up (the margin test is waived for a lone candidate)
    """

    def __init__(self, policy: Optional[MatchPolicy] = None):
        self.policy = policy or MatchPolicy.from_settings()

    def validate_probe(self, probe) -> np.ndarray:
        return to_descriptor(probe, self.policy.descriptor_dimension)

    def _best_distance(self, probe: np.ndarray, identity: EnrolledIdentity) -> Optional[float]:
        """Minimum distance to any usable descriptor, None if the identity has none"""
        best = None
        for stored in identity.descriptors or ():
            try:
                stored = np.asarray(stored, dtype=np.float64) if stored is not None else None
            except (TypeError, ValueError):
                stored = None

            if stored is None or stored.shape != probe.shape or not np.all(np.isfinite(stored)):
                logger.debug(f"Skipping malformed descriptor for {identity.name} ({identity.id})")
                continue

            distance = float(np.linalg.norm(probe - stored))
            if best is None or distance < best:
                best = distance
        return best

    def rank(self, probe: np.ndarray, candidates: Iterable[EnrolledIdentity]) -> List[Tuple[EnrolledIdentity, float]]:
        """(identity, best distance) pairs, closest first"""
        ranked = []
        for identity in candidates:
            distance = self._best_distance(probe, identity)
            if distance is not None:
                ranked.append((identity, distance))

        # Stable sort keeps directory order for ties
        ranked.sort(key=lambda pair: pair[1])
        return ranked

    def match(self, probe, candidates: Iterable[EnrolledIdentity]) -> MatchResult:
        """
        Find who the probe face belongs to, if anyone.

        Args:
            probe: descriptor values of the live face
            candidates: enrolled identities (read-only snapshot)

        Returns:
            MatchResult with identity set when accepted, None otherwise

        Raises:
            InvalidDescriptor: probe has the wrong length or bad values
        """
        probe = self.validate_probe(probe)
        ranked = self.rank(probe, candidates)

        if not ranked:
            logger.debug("No enrolled identity with a usable descriptor")
            return MatchResult(identity=None)

        best, best_distance = ranked[0]
        confidence = max(0.0, 1.0 - best_distance / CONFIDENCE_SCALE)
        margin = ranked[1][1] - best_distance if len(ranked) > 1 else 0.0

        policy = self.policy
        is_confident = confidence > policy.confidence_threshold
        is_close = best_distance < policy.distance_ceiling
        has_margin = margin > policy.margin_threshold
        single_candidate = len(ranked) == 1

        if is_confident and is_close and (single_candidate or has_margin):
            logger.info(
                f"✅ Identified: {best.name} (distance: {best_distance:.3f}, "
                f"confidence: {confidence:.1%}, margin: {margin:.3f})"
            )
            return MatchResult(
                identity=best,
                confidence=confidence,
                margin=margin,
                distance=best_distance,
                candidate=best,
            )

        logger.info(
            f"Face not recognized: best {best.name} distance={best_distance:.3f} "
            f"confident={is_confident} close={is_close} margin={margin:.3f} "
            f"single={single_candidate} (checked {len(ranked)} identities)"
        )
        return MatchResult(
            identity=None,
            confidence=confidence,
            margin=margin,
            distance=best_distance,
            candidate=best,
        )
