from __future__ import annotations

import logging

from .diagnostics import (
    COUNT_MISMATCH,
    DROPPED_CONNECTION,
    TRUNCATED,
    UNRESOLVED_PATCH,
    UNRESOLVED_SPRING,
    Diagnostic,
    record,
)
from .parsers import ConfigurationParser, FileLike, TopologyParser
from .structure_data import (
    Bond,
    ConfigurationDocument,
    Metadata,
    Particle,
    StructureGraph,
    TopologyDocument,
)

logger = logging.getLogger(__name__)


class StructureCombiner:
    """
    Merge a topology and a configuration document by positional index.

    Only the first ``min(len(topology.particles), len(configuration.nucleotides))``
    indices are merged, and never past the first malformed row of either
    document. Bonds are undirected and deduplicated; a bond never
    references a particle outside the merged range. Anomalies are recorded
    as diagnostics on the resulting graph; combining never raises.
    """

    @staticmethod
    def combine(topology: TopologyDocument, configuration: ConfigurationDocument) -> StructureGraph:
        diagnostics: list[Diagnostic] = []

        declared = topology.header.num_particles
        found = len(configuration.nucleotides)
        if declared != found:
            record(
                diagnostics,
                COUNT_MISMATCH,
                f"Particle count mismatch: topology={declared}, config={found}",
                log=logger,
            )

        count = min(len(topology.particles), found)
        # past the first unreadable row the two files no longer line up by position
        first_bad = min(topology.malformed_indices + configuration.malformed_indices, default=count)
        if first_bad < count:
            record(
                diagnostics,
                TRUNCATED,
                f"merge stopped at index {first_bad}: malformed row, {count - first_bad} particles dropped",
                log=logger,
            )
            count = first_bad

        patch_map = topology.patch_map()
        spring_map = topology.spring_map()

        particles: list[Particle] = []
        for i in range(count):
            rec = topology.particles[i]
            state = configuration.nucleotides[i]

            patches = []
            for pid in rec.patch_ids:
                patch = patch_map.get(pid)
                if patch is None:
                    record(diagnostics, UNRESOLVED_PATCH, f"particle {i}: no patch template {pid}", log=logger)
                    continue
                patches.append(patch)

            particles.append(
                Particle(
                    index=i,
                    type=rec.type,
                    strand=rec.strand,
                    radius=rec.radius,
                    mass=rec.mass,
                    patches=tuple(patches),
                    connections=rec.connections,
                    position=state.position,
                    base_vector=state.base_vector,
                    normal_vector=state.normal_vector,
                    velocity=state.velocity,
                    angular_velocity=state.angular_velocity,
                )
            )

        bonds: list[Bond] = []
        seen: set[frozenset[int]] = set()
        for p in particles:
            for conn in p.connections:
                peer = conn.peer_index
                if peer < 0 or peer >= count:
                    record(
                        diagnostics,
                        DROPPED_CONNECTION,
                        f"particle {p.index}: peer {peer} outside merged range 0..{count - 1}",
                        log=logger,
                    )
                    continue
                key = frozenset((p.index, peer))
                if key in seen:
                    continue
                seen.add(key)
                spring = spring_map.get(conn.spring_id)
                if spring is None:
                    record(
                        diagnostics,
                        UNRESOLVED_SPRING,
                        f"bond {p.index}-{peer}: no spring template {conn.spring_id}",
                        log=logger,
                    )
                bonds.append(Bond(from_index=p.index, to_index=peer, spring=spring))

        metadata = Metadata(
            timestep=configuration.timestep,
            box=configuration.box,
            energy=configuration.energy,
            num_strands=topology.header.num_strands,
        )
        logger.info(f"Combined structure: {len(particles)} particles, {len(bonds)} bonds")
        return StructureGraph(
            particles=tuple(particles),
            bonds=tuple(bonds),
            metadata=metadata,
            diagnostics=tuple(topology.diagnostics) + tuple(configuration.diagnostics) + tuple(diagnostics),
        )


def load_structure(topology_file: FileLike, configuration_file: FileLike) -> StructureGraph:
    """Read a topology/configuration file pair and combine them into a new graph."""
    topology = TopologyParser().read(topology_file)
    configuration = ConfigurationParser().read(configuration_file)
    return StructureCombiner.combine(topology, configuration)
