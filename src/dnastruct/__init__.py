from .__version__ import __version__
from .combine import StructureCombiner, load_structure
from .diagnostics import Diagnostic, FormatError
from .export import positions, to_dict, to_mdtraj, to_openmm_topology, write_json, write_pdb
from .parsers import ConfigurationParser, TopologyParser
from .pbc import PeriodicBoundaryModel, wrap, wrap_positions
from .structure_data import (
    Bond,
    BoxSpec,
    ConfigurationDocument,
    Connection,
    Energy,
    Metadata,
    NucleotideState,
    Particle,
    ParticleRecord,
    PatchTemplate,
    SpringTemplate,
    StructureGraph,
    TopologyDocument,
    TopologyHeader,
)

__all__ = [
    "__version__",
    "Bond",
    "BoxSpec",
    "ConfigurationDocument",
    "ConfigurationParser",
    "Connection",
    "Diagnostic",
    "Energy",
    "FormatError",
    "Metadata",
    "NucleotideState",
    "Particle",
    "ParticleRecord",
    "PatchTemplate",
    "PeriodicBoundaryModel",
    "SpringTemplate",
    "StructureCombiner",
    "StructureGraph",
    "TopologyDocument",
    "TopologyHeader",
    "TopologyParser",
    "load_structure",
    "positions",
    "to_dict",
    "to_mdtraj",
    "to_openmm_topology",
    "wrap",
    "wrap_positions",
    "write_json",
    "write_pdb",
]
