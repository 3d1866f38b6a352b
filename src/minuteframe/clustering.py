"""Online speaker clustering over per-utterance feature vectors.

Each utterance is assigned to the nearest speaker centroid when it is both close
enough and clearly closer than the runner-up; otherwise a new speaker is created
until the cap is reached. Matched centroids drift towards new observations with
a confidence-weighted exponential moving average.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, fields
from typing import List, Optional

from .config import ClusteringConfig
from .models import FeatureVector, Speaker, new_speaker

logger = logging.getLogger("minuteframe")

# (weight, divisor) per dimension
DISTANCE_TERMS = {
    "pitch": (2.0, 200.0),
    "formant": (1.8, 50.0),
    "mid_band": (1.5, 1.0),
    "low_band": (1.2, 1.0),
    "high_band": (1.0, 1.0),
    "energy": (0.5, 0.1),
    "pitch_variance": (0.8, 100.0),
}
_WEIGHT_NORM = math.sqrt(sum(weight for weight, _ in DISTANCE_TERMS.values()))

# duration is bookkeeping, not voice identity
_EMA_FIELDS = [f.name for f in fields(FeatureVector) if f.name != "duration"]


def feature_distance(a: FeatureVector, b: FeatureVector) -> float:
    total = 0.0
    for name, (weight, divisor) in DISTANCE_TERMS.items():
        diff = (getattr(a, name) - getattr(b, name)) / divisor
        total += weight * diff * diff
    return math.sqrt(total) / _WEIGHT_NORM


@dataclass
class Assignment:
    speaker: Speaker
    distance: float
    created: bool = False
    updated: bool = False


class SpeakerClusterer:
    def __init__(self, config: Optional[ClusteringConfig] = None):
        self.config = config or ClusteringConfig()

    def threshold(self, speaker_count: int) -> float:
        return self.config.base_threshold * (1 + speaker_count * self.config.threshold_growth)

    def assign(self, speakers: List[Speaker], features: FeatureVector) -> Assignment:
        """Assign ``features`` to a speaker, mutating ``speakers`` in place."""
        if not speakers:
            speaker = new_speaker(0, FeatureVector(**vars(features)))
            speakers.append(speaker)
            logger.info("First speaker created: %s", speaker.name)
            return Assignment(speaker=speaker, distance=0.0, created=True)

        ranked = sorted(
            ((feature_distance(features, s.centroid), index) for index, s in enumerate(speakers)),
        )
        closest_distance, closest_index = ranked[0]
        closest = speakers[closest_index]

        if len(ranked) == 1:
            separation = self.config.single_speaker_separation
        elif closest_distance == 0:
            separation = math.inf
        else:
            separation = ranked[1][0] / closest_distance

        threshold = self.threshold(len(speakers))
        logger.debug(
            "Closest %s distance=%.3f threshold=%.3f separation=%.2f",
            closest.name,
            closest_distance,
            threshold,
            separation,
        )

        if closest_distance < threshold and separation >= self.config.min_separation_ratio:
            confidence = 1.0 / (1.0 + closest_distance)
            self._update_centroid(closest, features, self.config.learning_rate * confidence)
            self._count(closest, features)
            return Assignment(speaker=closest, distance=closest_distance, updated=True)

        if len(speakers) < self.config.max_speakers:
            speaker = new_speaker(len(speakers), FeatureVector(**vars(features)))
            speakers.append(speaker)
            logger.info(
                "New speaker detected: %s (distance %.3f, separation %.2f)",
                speaker.name,
                closest_distance,
                separation,
            )
            return Assignment(speaker=speaker, distance=closest_distance, created=True)

        logger.warning(
            "Max speakers (%d) reached, assigning to closest: %s",
            self.config.max_speakers,
            closest.name,
        )
        self._count(closest, features)
        return Assignment(speaker=closest, distance=closest_distance)

    @staticmethod
    def _update_centroid(speaker: Speaker, features: FeatureVector, alpha: float) -> None:
        centroid = speaker.centroid
        for name in _EMA_FIELDS:
            blended = (1 - alpha) * getattr(centroid, name) + alpha * getattr(features, name)
            setattr(centroid, name, blended)

    @staticmethod
    def _count(speaker: Speaker, features: FeatureVector) -> None:
        speaker.utterance_count += 1
        speaker.total_duration += features.duration
