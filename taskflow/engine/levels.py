"""
taskflow.engine.levels — Level Bands & Lookup
==============================================

Maps a point total onto a level number and name.  Bands are contiguous,
start at 0 and the last one is open-ended, so every non-negative total
falls into exactly one band.

Pure module — no DB I/O.
"""

from __future__ import annotations

import bisect
from collections.abc import Sequence
from dataclasses import dataclass

__all__ = ["DEFAULT_LEVEL_BANDS", "LevelBand", "LevelProgress", "LevelTable"]


@dataclass(frozen=True, slots=True)
class LevelBand:
    """One contiguous point range.  ``max_points`` is None for the top band."""

    level: int
    name: str
    min_points: int
    max_points: int | None

    def contains(self, points: int) -> bool:
        if points < self.min_points:
            return False
        return self.max_points is None or points <= self.max_points


@dataclass(frozen=True, slots=True)
class LevelProgress:
    """Where a point total sits inside its band."""

    band: LevelBand
    next_band: LevelBand | None
    points_to_next_level: int
    next_level_threshold: int
    progress_percentage: float


DEFAULT_LEVEL_BANDS: tuple[LevelBand, ...] = (
    LevelBand(1, "Iniciante", 0, 99),
    LevelBand(2, "Aprendiz", 100, 299),
    LevelBand(3, "Colaborador", 300, 599),
    LevelBand(4, "Especialista", 600, 999),
    LevelBand(5, "Mestre", 1000, 1999),
    LevelBand(6, "Lenda", 2000, None),
)


class LevelTable:
    """Validated, ordered band table with O(log n) lookup.

    Raises ValueError at construction if the bands leave a gap, overlap,
    don't start at 0, or the last band is bounded.
    """

    def __init__(self, bands: Sequence[LevelBand] = DEFAULT_LEVEL_BANDS) -> None:
        self._bands: tuple[LevelBand, ...] = tuple(bands)
        _validate(self._bands)
        self._floors: list[int] = [b.min_points for b in self._bands]
        self._by_level: dict[int, LevelBand] = {b.level: b for b in self._bands}

    @property
    def bands(self) -> tuple[LevelBand, ...]:
        return self._bands

    @property
    def first(self) -> LevelBand:
        return self._bands[0]

    def band_for(self, points: int) -> LevelBand:
        """Return the band containing *points*."""
        if points < 0:
            raise ValueError(f"Point total cannot be negative: {points}")
        idx = bisect.bisect_right(self._floors, points) - 1
        return self._bands[idx]

    def band(self, level: int) -> LevelBand:
        try:
            return self._by_level[level]
        except KeyError:
            raise ValueError(f"Unknown level: {level}") from None

    def next_band(self, level: int) -> LevelBand | None:
        """Band directly above *level*, or None at the top."""
        return self._by_level.get(level + 1)

    def name_for(self, level: int) -> str:
        band = self._by_level.get(level)
        return band.name if band else "Desconhecido"

    def progress(self, points: int) -> LevelProgress:
        """Distance to the next band, as shown on the profile page."""
        band = self.band_for(points)
        nxt = self.next_band(band.level)
        if nxt is None:
            return LevelProgress(
                band=band,
                next_band=None,
                points_to_next_level=0,
                next_level_threshold=band.min_points,
                progress_percentage=100.0,
            )
        span = nxt.min_points - band.min_points
        done = points - band.min_points
        return LevelProgress(
            band=band,
            next_band=nxt,
            points_to_next_level=max(0, nxt.min_points - points),
            next_level_threshold=nxt.min_points,
            progress_percentage=min(100.0, done * 100.0 / span),
        )


def _validate(bands: tuple[LevelBand, ...]) -> None:
    if not bands:
        raise ValueError("Level table needs at least one band")
    if bands[0].min_points != 0:
        raise ValueError("First level band must start at 0 points")
    for prev, cur in zip(bands, bands[1:]):
        if cur.level <= prev.level:
            raise ValueError(f"Levels must increase: {prev.level} → {cur.level}")
        if prev.max_points is None:
            raise ValueError(f"Only the last band may be unbounded (level {prev.level})")
        if cur.min_points != prev.max_points + 1:
            raise ValueError(
                f"Gap or overlap between level {prev.level} and {cur.level}"
            )
    for band in bands:
        if band.max_points is not None and band.max_points < band.min_points:
            raise ValueError(f"Empty band for level {band.level}")
    if bands[-1].max_points is not None:
        raise ValueError("Last level band must be unbounded")
