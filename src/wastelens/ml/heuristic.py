"""Color-statistics waste classifier.

This is a rule-based scorer, not a trained model. Each sampled pixel feeds a
set of named color signals; categories are weighted mixes of those signals.

Pipeline:
    samples -> signal counters -> raw scores -> normalize -> jitter/clamp
            -> sort -> boost top -> renormalize -> ClassificationResult
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import numpy as np

from wastelens.ml.categories import CategoryConfig, Signal
from wastelens.ml.preprocessing import DEFAULT_SAMPLE_TARGET, iter_chunks, sample_pixels

if TYPE_CHECKING:
    from collections.abc import Iterator

    from numpy.typing import NDArray

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Signal thresholds (0-255 channel scale)
# ---------------------------------------------------------------------------

GRAY_COLORFULNESS_MAX: int = 30

BROWN_RED_MIN: int = 100
BROWN_BLUE_MAX: int = 100

WHITE_BRIGHTNESS_MIN: int = 200

METAL_BRIGHTNESS_MIN: int = 100
METAL_BRIGHTNESS_MAX: int = 200

REFLECTIVE_BRIGHTNESS_MIN: int = 200
REFLECTIVE_SPREAD_MAX: int = 20
REFLECTIVE_SPREAD_BRIGHTNESS_MIN: int = 160

COLORFUL_MIN: int = 100
COLORFUL_PEAK_MIN: int = 180
COLORFUL_PEAK_COLORFULNESS_MIN: int = 60

DARK_BRIGHTNESS_MAX: int = 60

GREEN_MARGIN: int = 30
BLUE_OVER_RED_MARGIN: int = 30
BLUE_OVER_GREEN_MARGIN: int = 20

# Per-hit weight added to each signal
SIGNAL_WEIGHTS: dict[Signal, float] = {
    Signal.BROWN: 1.5,
    Signal.WHITE: 1.2,
    Signal.METAL_GRAY: 1.4,
    Signal.REFLECTIVE: 1.0,
    Signal.COLORFUL: 1.2,
    Signal.DARK: 1.0,
    Signal.GREEN: 1.1,
    Signal.BLUE: 1.1,
}

# ---------------------------------------------------------------------------
# Scoring constants
# ---------------------------------------------------------------------------

SCORE_FLOOR: float = 0.1
DEFAULT_JITTER: float = 0.1
CONFIDENCE_MIN: float = 0.01
CONFIDENCE_MAX: float = 0.99
TOP_BOOST: float = 1.2
TOP_BOOST_CAP: float = 0.95


@dataclass(frozen=True)
class CategoryScore:
    """A single (category, confidence) pair."""

    label: str
    confidence: float


@dataclass(frozen=True)
class ClassificationResult:
    """Six category scores, sorted by confidence (descending)."""

    scores: tuple[CategoryScore, ...]

    @property
    def top(self) -> CategoryScore:
        return self.scores[0]

    def as_dict(self) -> dict[str, float]:
        return {score.label: score.confidence for score in self.scores}

    def __iter__(self) -> Iterator[CategoryScore]:
        return iter(self.scores)

    def __len__(self) -> int:
        return len(self.scores)


@dataclass
class ColorSignalCounters:
    """Accumulated signal weights over a run of samples.

    Counters from separate chunks of one image combine with ``+``.
    """

    values: dict[Signal, float] = field(default_factory=lambda: dict.fromkeys(Signal, 0.0))
    sample_count: int = 0

    def __add__(self, other: ColorSignalCounters) -> ColorSignalCounters:
        return ColorSignalCounters(
            values={signal: self.values[signal] + other.values[signal] for signal in Signal},
            sample_count=self.sample_count + other.sample_count,
        )

    def __getitem__(self, signal: Signal) -> float:
        return self.values[signal]


def count_signals(samples: NDArray[np.uint8]) -> ColorSignalCounters:
    """Evaluate every signal rule over an (N, 3) sample array."""
    rgb = samples.astype(np.int32)
    r, g, b = rgb[:, 0], rgb[:, 1], rgb[:, 2]

    brightness = rgb.sum(axis=1) / 3.0
    colorfulness = np.abs(r - g) + np.abs(r - b) + np.abs(g - b)
    is_gray = colorfulness < GRAY_COLORFULNESS_MAX
    peak = rgb.max(axis=1)
    spread = peak - rgb.min(axis=1)

    hits = {
        Signal.BROWN: (r > BROWN_RED_MIN) & (r > g) & (g > b) & (b < BROWN_BLUE_MAX),
        Signal.WHITE: (brightness > WHITE_BRIGHTNESS_MIN) & is_gray,
        Signal.METAL_GRAY: (brightness > METAL_BRIGHTNESS_MIN) & (brightness < METAL_BRIGHTNESS_MAX) & is_gray,
        Signal.REFLECTIVE: ((brightness > REFLECTIVE_BRIGHTNESS_MIN) & is_gray)
        | ((spread < REFLECTIVE_SPREAD_MAX) & (brightness > REFLECTIVE_SPREAD_BRIGHTNESS_MIN)),
        Signal.COLORFUL: (colorfulness > COLORFUL_MIN)
        | ((peak > COLORFUL_PEAK_MIN) & (colorfulness > COLORFUL_PEAK_COLORFULNESS_MIN)),
        Signal.DARK: brightness < DARK_BRIGHTNESS_MAX,
        Signal.GREEN: (g > r + GREEN_MARGIN) & (g > b + GREEN_MARGIN),
        Signal.BLUE: (b > r + BLUE_OVER_RED_MARGIN) & (b > g + BLUE_OVER_GREEN_MARGIN),
    }

    return ColorSignalCounters(
        values={signal: float(np.count_nonzero(mask)) * SIGNAL_WEIGHTS[signal] for signal, mask in hits.items()},
        sample_count=int(samples.shape[0]),
    )


def _normalize(values: NDArray[np.float64]) -> NDArray[np.float64]:
    total = float(values.sum())
    if total <= 0.0:
        return np.full(values.shape, 1.0 / len(values))
    return values / total


class HeuristicClassifier:
    """Ranks the waste categories of an image from its color statistics.

    Args:
        categories: Category registry, loaded once at startup.
        jitter: Relative bound of the random multiplier applied to each
            confidence (0.1 means +/-10%). ``0`` disables it.
        rng: Source of jitter. Pass a seeded generator for reproducible output.
        sample_target: Approximate number of pixels sampled per image.
        chunk_size: If set, count signals chunk by chunk and sum the counters.
    """

    def __init__(
        self,
        categories: CategoryConfig,
        *,
        jitter: float = DEFAULT_JITTER,
        rng: np.random.Generator | None = None,
        sample_target: int = DEFAULT_SAMPLE_TARGET,
        chunk_size: int | None = None,
    ) -> None:
        if not 0.0 <= jitter < 1.0:
            raise ValueError(f"jitter must be in [0, 1), got {jitter}")
        self._categories = categories
        self._jitter = jitter
        self._rng = rng if rng is not None else np.random.default_rng()
        self._sample_target = sample_target
        self._chunk_size = chunk_size

    @property
    def categories(self) -> CategoryConfig:
        return self._categories

    def classify(self, image: NDArray[np.uint8]) -> ClassificationResult:
        """Classify an HxWx3 RGB uint8 image.

        Raises:
            InvalidImageError: If the image has a zero dimension or bad shape.
        """
        samples = sample_pixels(image, self._sample_target)
        logger.debug("Sampled %d of %d pixels", samples.shape[0], image.shape[0] * image.shape[1])
        return self.score(samples)

    def score(self, samples: NDArray[np.uint8]) -> ClassificationResult:
        """Score an (N, 3) sample array. An empty array yields uniform confidence."""
        counters = self._count(samples)
        labels = self._categories.labels

        if counters.sample_count == 0:
            uniform = 1.0 / len(labels)
            return ClassificationResult(tuple(CategoryScore(label, uniform) for label in labels))

        confidences = _normalize(self._raw_scores(counters))

        if self._jitter > 0.0:
            factors = 1.0 + self._rng.uniform(-self._jitter, self._jitter, size=confidences.shape)
            confidences = confidences * factors
        confidences = np.clip(confidences, CONFIDENCE_MIN, CONFIDENCE_MAX)

        # Stable sort keeps configured order among ties
        order = np.argsort(-confidences, kind="stable")
        confidences = confidences[order]
        ranked = [labels[i] for i in order]

        confidences[0] = min(TOP_BOOST_CAP, confidences[0] * TOP_BOOST)
        confidences = _normalize(confidences)

        result = ClassificationResult(
            tuple(CategoryScore(label, float(conf)) for label, conf in zip(ranked, confidences, strict=True))
        )
        logger.debug("Classified %d samples: %s", counters.sample_count, result.as_dict())
        return result

    def _count(self, samples: NDArray[np.uint8]) -> ColorSignalCounters:
        if self._chunk_size is None:
            return count_signals(samples)
        counters = ColorSignalCounters()
        for chunk in iter_chunks(samples, self._chunk_size):
            counters = counters + count_signals(chunk)
        return counters

    def _raw_scores(self, counters: ColorSignalCounters) -> NDArray[np.float64]:
        scores = np.empty(len(self._categories), dtype=np.float64)
        for i, spec in enumerate(self._categories):
            mix = sum(counters[signal] * weight for signal, weight in spec.signals.items())
            scores[i] = mix / counters.sample_count * spec.gain
        scores[scores == 0.0] = SCORE_FLOOR
        return scores
