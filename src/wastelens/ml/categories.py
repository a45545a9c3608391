"""Waste category registry: signal mixes, gains, and disposal guidance.

The registry is built once at startup and handed to the classifier by
reference. Nothing mutates it afterwards.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from types import MappingProxyType
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping
    from pathlib import Path

logger = logging.getLogger(__name__)


class Signal(StrEnum):
    BROWN = "brown"
    WHITE = "white"
    METAL_GRAY = "metal_gray"
    REFLECTIVE = "reflective"
    COLORFUL = "colorful"
    DARK = "dark"
    GREEN = "green"
    BLUE = "blue"


@dataclass(frozen=True)
class CategorySpec:
    """Static scoring and guidance metadata for one waste category."""

    name: str
    signals: Mapping[Signal, float]
    gain: float
    description: str


def _spec(name: str, signals: dict[Signal, float], gain: float, description: str) -> CategorySpec:
    return CategorySpec(name=name, signals=MappingProxyType(signals), gain=gain, description=description)


CATEGORY_REGISTRY: Mapping[str, CategorySpec] = MappingProxyType(
    {
        "cardboard": _spec(
            "cardboard",
            {Signal.BROWN: 1.0},
            gain=4.0,
            description="Cardboard is recyclable and should be flattened before disposal.",
        ),
        "glass": _spec(
            "glass",
            {Signal.REFLECTIVE: 1.0, Signal.GREEN: 1.0, Signal.BLUE: 1.0},
            gain=3.0,
            description="Glass is 100% recyclable and can be recycled endlessly without loss in quality.",
        ),
        "metal": _spec(
            "metal",
            {Signal.METAL_GRAY: 1.0, Signal.REFLECTIVE: 0.5},
            gain=3.0,
            description="Metal items such as cans and foil can be recycled to save energy and resources.",
        ),
        "paper": _spec(
            "paper",
            {Signal.WHITE: 1.0},
            gain=3.5,
            description="Paper is recyclable, but should be clean and free of food residue.",
        ),
        "plastic": _spec(
            "plastic",
            {Signal.COLORFUL: 1.0, Signal.BLUE: 0.3, Signal.GREEN: 0.2},
            gain=3.0,
            description=(
                "Plastic items should be cleaned before recycling. Check your local recycling guidelines."
            ),
        ),
        "trash": _spec(
            "trash",
            {Signal.DARK: 1.0},
            gain=3.0,
            description="General waste that cannot be recycled and should be disposed of properly.",
        ),
    }
)

DEFAULT_LABELS: tuple[str, ...] = ("cardboard", "glass", "metal", "paper", "plastic", "trash")


class CategoryConfig:
    """Ordered, read-only set of the six waste categories.

    Order matters only for tie-breaking: categories with equal confidence keep
    the configured order in a classification result.
    """

    def __init__(self, labels: tuple[str, ...] = DEFAULT_LABELS) -> None:
        unknown = [label for label in labels if label not in CATEGORY_REGISTRY]
        if unknown:
            raise KeyError(f"Unknown category: {', '.join(unknown)}")
        if len(set(labels)) != len(labels) or set(labels) != set(CATEGORY_REGISTRY):
            raise ValueError(f"Categories must list each of {sorted(CATEGORY_REGISTRY)} exactly once")
        self._specs = tuple(CATEGORY_REGISTRY[label] for label in labels)

    @property
    def labels(self) -> tuple[str, ...]:
        return tuple(spec.name for spec in self._specs)

    def get(self, name: str) -> CategorySpec:
        try:
            return CATEGORY_REGISTRY[name]
        except KeyError:
            raise KeyError(f"Unknown category: {name}") from None

    def __iter__(self) -> Iterator[CategorySpec]:
        return iter(self._specs)

    def __len__(self) -> int:
        return len(self._specs)


def load_categories(classes_file: Path | None = None) -> CategoryConfig:
    """Build the category config, optionally ordered by a label file.

    The file holds one label per line; blank lines are ignored. Any problem
    with it (missing, empty, unknown or duplicate labels, an incomplete set)
    is logged and the default order is used instead.
    """
    if classes_file is None:
        logger.info("Using default categories: %s", ", ".join(DEFAULT_LABELS))
        return CategoryConfig()

    try:
        text = classes_file.read_text(encoding="utf-8")
    except OSError as exc:
        logger.warning("Could not read %s (%s); using default categories", classes_file, exc)
        return CategoryConfig()

    labels = tuple(line.strip().lower() for line in text.splitlines() if line.strip())
    if not labels:
        logger.warning("Category file %s is empty; using default categories", classes_file)
        return CategoryConfig()

    try:
        config = CategoryConfig(labels)
    except (KeyError, ValueError) as exc:
        logger.warning("Invalid category file %s (%s); using default categories", classes_file, exc)
        return CategoryConfig()

    logger.info("Loaded categories from %s: %s", classes_file, ", ".join(config.labels))
    return config
