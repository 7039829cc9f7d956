from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, Optional


class GradeScaleError(ValueError):
    pass


@dataclass(frozen=True)
class GradeBand:
    letter: str
    descriptor: str
    points: int
    min_percentage: int
    max_percentage: int

    def contains(self, percentage: float) -> bool:
        return self.min_percentage <= percentage <= self.max_percentage

    @property
    def label(self) -> str:
        return f"{self.letter} - {self.descriptor}"


CBC_BANDS: tuple[GradeBand, ...] = (
    GradeBand("EE", "Exceeding Expectation", 4, 80, 100),
    GradeBand("ME", "Meeting Expectation", 3, 50, 79),
    GradeBand("AE", "Approaching Expectation", 2, 40, 49),
    GradeBand("BE", "Below Expectation", 1, 0, 39),
)

# 8-4-4 secondary scale, kept for schools still reporting letter grades.
SECONDARY_BANDS: tuple[GradeBand, ...] = (
    GradeBand("A", "Excellent", 12, 80, 100),
    GradeBand("A-", "Very Good", 11, 75, 79),
    GradeBand("B+", "Good", 10, 70, 74),
    GradeBand("B", "Above Average", 9, 65, 69),
    GradeBand("B-", "Average", 8, 60, 64),
    GradeBand("C+", "Fairly Good", 7, 55, 59),
    GradeBand("C", "Fair", 6, 50, 54),
    GradeBand("C-", "Fair but Weak", 5, 45, 49),
    GradeBand("D+", "Poor", 4, 40, 44),
    GradeBand("D", "Very Poor", 3, 35, 39),
    GradeBand("D-", "Weak", 2, 30, 34),
    GradeBand("E", "Fail", 1, 0, 29),
)


class SortedGradeScale:
    """Grade bands validated once and held in descending order of min_percentage.

    The bands must partition 0-100 with integer bounds: the highest band ends at
    100, the lowest starts at 0, and every band starts one above where the next
    lower band ends. Letters must be unique.
    """

    def __init__(self, bands: Iterable[GradeBand]) -> None:
        ordered = tuple(sorted(bands, key=lambda band: band.min_percentage, reverse=True))
        self._validate(ordered)
        self._bands = ordered

    @staticmethod
    def _validate(bands: tuple[GradeBand, ...]) -> None:
        if not bands:
            raise GradeScaleError("Grade scale must contain at least one band")

        letters = [band.letter for band in bands]
        duplicates = sorted({letter for letter in letters if letters.count(letter) > 1})
        if duplicates:
            raise GradeScaleError(f"Duplicate grade letters: {', '.join(duplicates)}")

        for band in bands:
            if not band.letter:
                raise GradeScaleError("Grade letter is required")
            if band.min_percentage > band.max_percentage:
                raise GradeScaleError(
                    f"Band {band.letter} has min {band.min_percentage} above max {band.max_percentage}"
                )
            if band.min_percentage < 0 or band.max_percentage > 100:
                raise GradeScaleError(f"Band {band.letter} falls outside 0-100")

        if bands[0].max_percentage != 100:
            raise GradeScaleError(f"Highest band {bands[0].letter} must end at 100")
        if bands[-1].min_percentage != 0:
            raise GradeScaleError(f"Lowest band {bands[-1].letter} must start at 0")

        for higher, lower in zip(bands, bands[1:]):
            if lower.max_percentage >= higher.min_percentage:
                raise GradeScaleError(f"Bands {higher.letter} and {lower.letter} overlap")
            if lower.max_percentage + 1 != higher.min_percentage:
                raise GradeScaleError(f"Gap between bands {lower.letter} and {higher.letter}")

    @classmethod
    def from_rows(cls, rows: Iterable[Dict[str, Any]]) -> "SortedGradeScale":
        bands = []
        for row in rows:
            try:
                bands.append(
                    GradeBand(
                        letter=str(row["grade_letter"]).strip(),
                        descriptor=str(row.get("grade_descriptor") or "").strip(),
                        points=int(row["points"]),
                        min_percentage=int(row["min_percentage"]),
                        max_percentage=int(row["max_percentage"]),
                    )
                )
            except (KeyError, TypeError, ValueError) as exc:
                raise GradeScaleError(f"Malformed grade band row: {row!r}") from exc
        return cls(bands)

    @property
    def bands(self) -> tuple[GradeBand, ...]:
        return self._bands

    @property
    def highest(self) -> GradeBand:
        return self._bands[0]

    @property
    def lowest(self) -> GradeBand:
        return self._bands[-1]

    @property
    def letters(self) -> tuple[str, ...]:
        return tuple(band.letter for band in self._bands)

    @property
    def pass_bands(self) -> tuple[GradeBand, ...]:
        """The two bands with the most points; what counts as a pass."""
        by_points = sorted(self._bands, key=lambda band: band.points, reverse=True)
        return tuple(by_points[:2])

    def is_pass(self, band: GradeBand) -> bool:
        return band.letter in {b.letter for b in self.pass_bands}

    def rank_of(self, letter: str) -> Optional[int]:
        """Zero-based position of a letter when bands are ordered by points, best first."""
        by_points = sorted(self._bands, key=lambda band: band.points, reverse=True)
        for index, band in enumerate(by_points):
            if band.letter == letter:
                return index
        return None

    def __iter__(self) -> Iterator[GradeBand]:
        return iter(self._bands)

    def __len__(self) -> int:
        return len(self._bands)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SortedGradeScale):
            return NotImplemented
        return self._bands == other._bands

    def __hash__(self) -> int:
        return hash(self._bands)

    def __repr__(self) -> str:
        return f"SortedGradeScale({', '.join(self.letters)})"


DEFAULT_SCALE = SortedGradeScale(CBC_BANDS)
SECONDARY_SCALE = SortedGradeScale(SECONDARY_BANDS)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def calculate_percentage(marks: float, max_marks: float) -> int:
    if max_marks == 0:
        return 0
    return round_half_up((marks / max_marks) * 100)


def find_band(percentage: float, scale: SortedGradeScale = DEFAULT_SCALE) -> Optional[GradeBand]:
    for band in scale:
        if band.contains(percentage):
            return band
    return None


def classify(percentage: float, scale: SortedGradeScale = DEFAULT_SCALE) -> GradeBand:
    """Return the first band containing ``percentage``.

    Values no band contains (below 0, above 100, NaN, or a non-integer that
    falls between two integer-bounded bands) resolve to the lowest band.
    Use ``find_band`` to tell a miss apart from a real match.
    """
    band = find_band(percentage, scale)
    if band is None:
        return scale.lowest
    return band
