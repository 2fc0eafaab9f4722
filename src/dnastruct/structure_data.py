from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from .diagnostics import Diagnostic

Vec3 = tuple[float, float, float]

# --- Topology ----------------------------------------------------------------


@dataclass(frozen=True)
class PatchTemplate:
    id: int
    color: int
    strength: float
    local_position: Vec3


@dataclass(frozen=True)
class SpringTemplate:
    id: int
    stiffness: float
    rest_length: float
    local_position: Vec3


@dataclass(frozen=True)
class Connection:
    peer_index: int
    spring_id: int


@dataclass(frozen=True)
class ParticleRecord:
    index: int  # position among particle rows, not read from the file
    type: int
    strand: int
    radius: float
    mass: float
    patch_ids: tuple[int, ...] = ()
    connections: tuple[Connection, ...] = ()

    def __repr__(self) -> str:
        return f"<particle record {self.index} type {self.type} strand {self.strand}>"


@dataclass(frozen=True)
class TopologyHeader:
    num_particles: int
    num_strands: int
    max_springs_per_particle: int
    repeated_patches_per_particle: int

    def as_tuple(self) -> tuple[int, int, int, int]:
        return (
            self.num_particles,
            self.num_strands,
            self.max_springs_per_particle,
            self.repeated_patches_per_particle,
        )


@dataclass
class TopologyDocument:
    header: TopologyHeader
    patches: list[PatchTemplate] = field(default_factory=list)
    springs: list[SpringTemplate] = field(default_factory=list)
    particles: list[ParticleRecord] = field(default_factory=list)
    malformed_indices: list[int] = field(default_factory=list)  # rows kept only as an index
    diagnostics: list[Diagnostic] = field(default_factory=list)

    def __repr__(self) -> str:
        return (
            f"<topology: {len(self.particles)} particles, {len(self.patches)} patches, "
            f"{len(self.springs)} springs>"
        )

    def patch_map(self) -> dict[int, PatchTemplate]:
        """id -> template; the first template declared for an id wins."""
        out: dict[int, PatchTemplate] = {}
        for p in self.patches:
            out.setdefault(p.id, p)
        return out

    def spring_map(self) -> dict[int, SpringTemplate]:
        out: dict[int, SpringTemplate] = {}
        for s in self.springs:
            out.setdefault(s.id, s)
        return out


# --- Configuration -----------------------------------------------------------


@dataclass(frozen=True)
class BoxSpec:
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def as_array(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z], dtype=float)


@dataclass(frozen=True)
class Energy:
    total: float = 0.0
    potential: float = 0.0
    kinetic: float = 0.0


@dataclass(frozen=True)
class NucleotideState:
    index: int
    position: Vec3
    base_vector: Vec3  # a1
    normal_vector: Vec3  # a3
    velocity: Vec3
    angular_velocity: Vec3


@dataclass
class ConfigurationDocument:
    timestep: int = 0
    box: BoxSpec = field(default_factory=BoxSpec)
    energy: Energy = field(default_factory=Energy)
    nucleotides: list[NucleotideState] = field(default_factory=list)
    malformed_indices: list[int] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)

    def __repr__(self) -> str:
        return f"<configuration t={self.timestep}: {len(self.nucleotides)} nucleotides>"


# --- Combined structure graph ------------------------------------------------


@dataclass(frozen=True)
class Particle:
    index: int
    type: int
    strand: int
    radius: float
    mass: float
    patches: tuple[PatchTemplate, ...]
    connections: tuple[Connection, ...]
    position: Vec3
    base_vector: Vec3
    normal_vector: Vec3
    velocity: Vec3
    angular_velocity: Vec3

    def __repr__(self) -> str:
        return f"<particle {self.index} type {self.type} strand {self.strand}>"


@dataclass(frozen=True)
class Bond:
    from_index: int
    to_index: int
    spring: Optional[SpringTemplate] = None

    def pair(self) -> frozenset[int]:
        return frozenset((self.from_index, self.to_index))


@dataclass(frozen=True)
class Metadata:
    timestep: int
    box: BoxSpec
    energy: Energy
    num_strands: int


@dataclass(frozen=True)
class StructureGraph:
    particles: tuple[Particle, ...]
    bonds: tuple[Bond, ...]
    metadata: Metadata
    diagnostics: tuple[Diagnostic, ...] = ()

    def __repr__(self) -> str:
        return f"<structure: {self.nparticles()} particles, {self.nbonds()} bonds>"

    __str__ = __repr__

    def __iter__(self) -> Iterator[Particle]:
        return iter(self.particles)

    def __len__(self) -> int:
        return len(self.particles)

    def nparticles(self) -> int:
        return len(self.particles)

    def nbonds(self) -> int:
        return len(self.bonds)

    def _particle(self, index: int) -> Particle:
        if not 0 <= index < len(self.particles):
            raise IndexError(
                f"Particle index {index} is out of range for structure with "
                f"{len(self.particles)} particles"
            )
        return self.particles[index]

    def positions_array(self) -> np.ndarray:
        """Canonical positions as a fresh (n, 3) float array."""
        if not self.particles:
            return np.zeros((0, 3), dtype=float)
        return np.array([p.position for p in self.particles], dtype=float)

    def strands(self) -> dict[int, list[int]]:
        """strand id -> particle indices, in first-seen strand order."""
        out: dict[int, list[int]] = {}
        for p in self.particles:
            out.setdefault(p.strand, []).append(p.index)
        return out

    # ---- geometry helpers ----

    def center_of_geometry(self) -> np.ndarray:
        pos = self.positions_array()
        if len(pos) == 0:
            return np.zeros(3)
        return pos.mean(axis=0)

    def bounding_box(self) -> tuple[np.ndarray, np.ndarray]:
        """(min corner, max corner) of the canonical positions."""
        pos = self.positions_array()
        if len(pos) == 0:
            return np.zeros(3), np.zeros(3)
        return pos.min(axis=0), pos.max(axis=0)

    def orientation_matrix(self, index: int) -> np.ndarray:
        """
        Rows are the particle frame a1, a2, a3 with a1 the base vector,
        a3 the normal vector and a2 = a3 x a1.
        """
        p = self._particle(index)
        a1 = np.asarray(p.base_vector, dtype=float)
        a3 = np.asarray(p.normal_vector, dtype=float)
        a2 = np.cross(a3, a1)
        return np.vstack([a1, a2, a3])

    def patch_positions(self, index: int) -> np.ndarray:
        """World positions (k, 3) of a particle's resolved patches."""
        p = self._particle(index)
        if not p.patches:
            return np.zeros((0, 3), dtype=float)
        local = np.array([pt.local_position for pt in p.patches], dtype=float)
        return np.asarray(p.position, dtype=float) + local @ self.orientation_matrix(index)

    # ---- selections ----

    def select_strand(self, strand: int) -> list[int]:
        return [p.index for p in self.particles if p.strand == strand]

    def select_within_radius(self, index: int, radius: float) -> list[int]:
        """Indices of particles whose canonical position lies within `radius` of particle `index`."""
        center = np.asarray(self._particle(index).position, dtype=float)
        pos = self.positions_array()
        d = np.linalg.norm(pos - center, axis=1)
        return [int(i) for i in np.nonzero(d <= radius)[0]]

    def summary(self) -> dict:
        box = self.metadata.box
        return {
            "particles": self.nparticles(),
            "bonds": self.nbonds(),
            "strands": self.metadata.num_strands,
            "timestep": self.metadata.timestep,
            "box": [box.x, box.y, box.z],
        }
