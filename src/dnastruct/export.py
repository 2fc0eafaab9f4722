from __future__ import annotations

import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Optional, Union

import mdtraj as md
import numpy as np
from openmm import Vec3, unit
from openmm.app import Topology, element

from .pbc import PeriodicBoundaryModel
from .structure_data import StructureGraph

logger = logging.getLogger(__name__)

# --- helpers -----------------------------------------------------------------


def _coords(graph: StructureGraph, pbc: Optional[PeriodicBoundaryModel]) -> np.ndarray:
    """Displayed coordinates when a PBC view is given, canonical ones otherwise."""
    if pbc is None:
        return graph.positions_array()
    pos = pbc.positions()
    if len(pos) != graph.nparticles():
        raise ValueError(
            f"PBC view has {len(pos)} particles but structure has {graph.nparticles()}"
        )
    return pos


def _residue_name(ptype: int) -> str:
    return f"P{ptype}"[:4]


# --- JSON --------------------------------------------------------------------


def to_dict(graph: StructureGraph, pbc: Optional[PeriodicBoundaryModel] = None) -> dict:
    coords = _coords(graph, pbc)
    particles = []
    for p, xyz in zip(graph.particles, coords):
        particles.append(
            {
                "index": p.index,
                "type": p.type,
                "strand": p.strand,
                "radius": p.radius,
                "mass": p.mass,
                "position": [float(c) for c in xyz],
                "patches": [asdict(pt) for pt in p.patches],
            }
        )
    bonds = [
        {
            "from": b.from_index,
            "to": b.to_index,
            "spring": asdict(b.spring) if b.spring is not None else None,
        }
        for b in graph.bonds
    ]
    return {
        "metadata": asdict(graph.metadata),
        "particles": particles,
        "bonds": bonds,
    }


def write_json(
    graph: StructureGraph,
    path: Union[str, Path],
    pbc: Optional[PeriodicBoundaryModel] = None,
) -> None:
    logger.info(f"Writing JSON structure to {path}")
    with open(path, "w", encoding="utf-8") as fh:
        json.dump(to_dict(graph, pbc), fh, indent=2)


# --- OpenMM / MDTraj ---------------------------------------------------------


def to_openmm_topology(graph: StructureGraph) -> Topology:
    """
    OpenMM topology with one atom per particle, in particle order.

    One chain per contiguous run of a strand, named by the strand id: an
    interleaved strand gets several chains with the same id, which keeps
    chain-ordered atom iteration (OpenMM writers, ``md.Topology.from_openmm``)
    identical to particle order. Each particle is its own residue.
    Coarse-grained beads have no element, carbon is used as a placeholder.
    """
    top = Topology()
    atoms = []
    chain = None
    last_strand = None
    for p in graph.particles:
        if chain is None or p.strand != last_strand:
            chain = top.addChain(str(p.strand))
            last_strand = p.strand
        res = top.addResidue(_residue_name(p.type), chain)
        atoms.append(top.addAtom(f"B{p.type}"[:4], element=element.carbon, residue=res))

    for b in graph.bonds:
        top.addBond(atoms[b.from_index], atoms[b.to_index])

    box = graph.metadata.box
    if box.x > 0 and box.y > 0 and box.z > 0:
        top.setUnitCellDimensions(Vec3(box.x, box.y, box.z) * unit.nanometer)
    return top


def positions(graph: StructureGraph, pbc: Optional[PeriodicBoundaryModel] = None):
    """OpenMM Quantity[list[Vec3]] in nm; simulation length units are taken as nm."""
    vecs = [Vec3(float(x), float(y), float(z)) for x, y, z in _coords(graph, pbc)]
    return unit.Quantity(vecs, unit.nanometer)


def to_mdtraj(graph: StructureGraph, pbc: Optional[PeriodicBoundaryModel] = None) -> md.Trajectory:
    top = md.Topology.from_openmm(to_openmm_topology(graph))
    xyz = _coords(graph, pbc).reshape(1, -1, 3)

    box = graph.metadata.box
    if box.x > 0 and box.y > 0 and box.z > 0:
        return md.Trajectory(
            xyz,
            top,
            time=[float(graph.metadata.timestep)],
            unitcell_lengths=[[box.x, box.y, box.z]],
            unitcell_angles=[[90.0, 90.0, 90.0]],
        )
    return md.Trajectory(xyz, top, time=[float(graph.metadata.timestep)])


def write_pdb(
    graph: StructureGraph,
    path: Union[str, Path],
    pbc: Optional[PeriodicBoundaryModel] = None,
) -> None:
    logger.info(f"Writing PDB structure to {path}")
    to_mdtraj(graph, pbc).save_pdb(str(path))
