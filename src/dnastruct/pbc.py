from __future__ import annotations

import logging
import math
from typing import Union

import numpy as np

from .structure_data import BoxSpec, StructureGraph, Vec3

logger = logging.getLogger(__name__)

AXES = {"x": 0, "y": 1, "z": 2}

# --- wrapping ----------------------------------------------------------------


def wrap(value: float, length: float) -> float:
    """
    Map ``value`` into ``[0, length)``.

    A non-positive or non-finite ``length`` means the axis does not wrap and
    ``value`` is returned unchanged; so is a non-finite ``value``.
    """
    if not (length > 0.0 and math.isfinite(length)) or not math.isfinite(value):
        return value
    r = math.fmod(value, length)
    if r < 0.0:
        r += length
    # tiny negative remainders can round up to exactly `length`
    if r >= length:
        r = 0.0
    return r


def wrap_positions(positions: np.ndarray, box: Union[BoxSpec, np.ndarray]) -> np.ndarray:
    """Vectorized ``wrap`` over an (..., 3) array, one box edge per axis; same pass-through rules."""
    lengths = box.as_array() if isinstance(box, BoxSpec) else np.asarray(box, dtype=float)
    pos = np.asarray(positions, dtype=float)
    active = np.isfinite(lengths) & (lengths > 0.0) & np.isfinite(pos)
    safe = np.where(active, lengths, 1.0)

    r = np.fmod(np.where(active, pos, 0.0), safe)
    r = np.where(r < 0.0, r + safe, r)
    r = np.where(r >= safe, 0.0, r)
    return np.where(active, r, pos)


def _axis_index(axis: Union[str, int]) -> int:
    if isinstance(axis, str) and axis.lower() in AXES:
        return AXES[axis.lower()]
    if isinstance(axis, (int, np.integer)) and not isinstance(axis, bool) and 0 <= axis <= 2:
        return int(axis)
    raise ValueError(f"Unknown axis {axis!r}; expected one of 'x', 'y', 'z' or 0..2")


# --- PBC view ----------------------------------------------------------------


class PeriodicBoundaryModel:
    """
    Displayed positions of a structure under an accumulated box offset.

    The canonical positions are a snapshot of the graph at load time and are
    never modified; every ``shift`` recomputes the wrapped position of every
    particle and both endpoints of every bond. Bond endpoints are wrapped
    independently, so a bond crossing the box edge spans the box.

    Not thread-safe: serialize calls to ``shift``/``reset``/``load``.
    """

    def __init__(self, graph: StructureGraph):
        self.load(graph)

    def __repr__(self) -> str:
        ox, oy, oz = self.offset
        return f"<pbc view: {len(self._canonical)} particles, offset ({ox:g}, {oy:g}, {oz:g})>"

    def load(self, graph: StructureGraph) -> None:
        """Take a new canonical snapshot from ``graph`` and reset the offset."""
        self._canonical = graph.positions_array()
        self._bond_pairs = np.array(
            [(b.from_index, b.to_index) for b in graph.bonds], dtype=int
        ).reshape(-1, 2)
        self._box = graph.metadata.box
        self._offset = np.zeros(3, dtype=float)
        self._recompute()

    # ---- state ----

    @property
    def box(self) -> BoxSpec:
        return self._box

    @property
    def offset(self) -> Vec3:
        return (float(self._offset[0]), float(self._offset[1]), float(self._offset[2]))

    def canonical_positions(self) -> np.ndarray:
        return self._canonical.copy()

    # ---- mutation ----

    def shift(self, axis: Union[str, int], amount: float) -> None:
        self._offset[_axis_index(axis)] += float(amount)
        self._recompute()

    def reset(self) -> None:
        self._offset[:] = 0.0
        self._recompute()

    def _recompute(self) -> None:
        self._display = wrap_positions(self._canonical + self._offset, self._box)
        self._endpoints = self._display[self._bond_pairs] if len(self._bond_pairs) else np.zeros((0, 2, 3))
        logger.debug(f"PBC recompute: offset={self.offset}, {len(self._display)} particles")

    # ---- accessors ----

    def positions(self) -> np.ndarray:
        return self._display.copy()

    def bond_endpoints(self) -> np.ndarray:
        """(nbonds, 2, 3) array of displayed bond endpoints."""
        return self._endpoints.copy()

    def current_position(self, index: int) -> Vec3:
        n = len(self._display)
        if not 0 <= index < n:
            raise IndexError(f"Particle index {index} is out of range for view with {n} particles")
        x, y, z = self._display[index]
        return (float(x), float(y), float(z))

    def current_bond_endpoints(self, bond_index: int) -> tuple[Vec3, Vec3]:
        n = len(self._endpoints)
        if not 0 <= bond_index < n:
            raise IndexError(f"Bond index {bond_index} is out of range for view with {n} bonds")
        a, b = self._endpoints[bond_index]
        return (
            (float(a[0]), float(a[1]), float(a[2])),
            (float(b[0]), float(b[1]), float(b[2])),
        )
