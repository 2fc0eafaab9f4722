from __future__ import annotations

import numpy as np
import pytest

from dnastruct import (
    ConfigurationParser,
    StructureCombiner,
    TopologyParser,
    load_structure,
)

from conftest import CONFIGURATION_TEXT, TOPOLOGY_TEXT


def _pairs(graph):
    return [(b.from_index, b.to_index) for b in graph.bonds]


def test_combine_scenario(graph):
    assert graph.nparticles() == 4
    assert [p.index for p in graph.particles] == [0, 1, 2, 3]
    assert _pairs(graph) == [(0, 1), (1, 2), (2, 3)]


def test_bonds_are_unique_and_in_range(graph):
    keys = [b.pair() for b in graph.bonds]
    assert len(keys) == len(set(keys))
    for b in graph.bonds:
        assert b.from_index < graph.nparticles()
        assert b.to_index < graph.nparticles()


def test_out_of_range_peer_dropped(graph):
    assert all(99 not in pair for pair in _pairs(graph))
    assert "dropped_connection" in [d.kind for d in graph.diagnostics]


def test_spring_resolution(graph):
    s01 = graph.bonds[0].spring
    assert s01 is not None and s01.id == 0
    # spring id 1 was never declared
    assert graph.bonds[2].spring is None
    assert "unresolved_spring" in [d.kind for d in graph.diagnostics]


def test_particle_merge(graph):
    p1 = graph.particles[1]
    assert p1.type == 0 and p1.strand == 1
    assert [pt.id for pt in p1.patches] == [0, 1]
    assert p1.position == (2.0, 1.0, 1.0)
    assert p1.velocity == (0.1, 0.0, 0.0)
    assert graph.particles[3].patches == ()


def test_metadata_copied(graph):
    md = graph.metadata
    assert md.timestep == 1000
    assert md.num_strands == 2
    assert (md.box.x, md.box.y, md.box.z) == (10.0, 10.0, 10.0)
    assert md.energy.kinetic == pytest.approx(0.5)


def test_no_count_mismatch_when_counts_agree(graph):
    assert "count_mismatch" not in [d.kind for d in graph.diagnostics]


def test_count_mismatch_truncates():
    top = TopologyParser().from_string(TOPOLOGY_TEXT)
    rows = CONFIGURATION_TEXT.strip().split("\n")[:-1]  # drop the last nucleotide
    conf = ConfigurationParser().from_string("\n".join(rows))
    g = StructureCombiner.combine(top, conf)

    assert g.nparticles() == 3
    assert _pairs(g) == [(0, 1), (1, 2)]
    kinds = [d.kind for d in g.diagnostics]
    assert "count_mismatch" in kinds


def test_unresolved_patch_dropped():
    top = TopologyParser().from_string("1 1 0 0\niP 0 1 1.0 0 0 0\n0 1 0.5 1.0 3 0 7 0\n")
    conf = ConfigurationParser().from_string("0 0 0 1 0 0 0 0 1 0 0 0 0 0 0")
    g = StructureCombiner.combine(top, conf)
    assert [pt.id for pt in g.particles[0].patches] == [0, 0]
    assert [d.kind for d in g.diagnostics] == ["unresolved_patch"]


def test_duplicate_template_ids_first_wins():
    top = TopologyParser().from_string(
        "2 1 0 0\niS 4 1.0 1.0 0 0 0\niS 4 2.0 2.0 0 0 0\n0 1 0.5 1.0 0 1 4\n0 1 0.5 1.0 0\n"
    )
    conf = ConfigurationParser().from_string(
        "0 0 0 1 0 0 0 0 1 0 0 0 0 0 0\n1 0 0 1 0 0 0 0 1 0 0 0 0 0 0"
    )
    g = StructureCombiner.combine(top, conf)
    assert g.bonds[0].spring.stiffness == pytest.approx(1.0)


def test_malformed_topology_row_stops_merge():
    top = TopologyParser().from_string("3 1 0 0\n0 1 0.5 1.0 0 2 0\nX 1 0.5 1.0 0\n2 1 0.5 1.0 0\n")
    conf = ConfigurationParser().from_string(
        "1 0 0 1 0 0 0 0 1 0 0 0 0 0 0\n2 0 0 1 0 0 0 0 1 0 0 0 0 0 0\n3 0 0 1 0 0 0 0 1 0 0 0 0 0 0"
    )
    g = StructureCombiner.combine(top, conf)

    # the type-2 particle never picks up the second configuration row
    assert g.nparticles() == 1
    assert g.particles[0].type == 0
    assert g.particles[0].position == (1.0, 0.0, 0.0)
    assert g.nbonds() == 0
    kinds = [d.kind for d in g.diagnostics]
    assert "truncated" in kinds
    assert "dropped_connection" in kinds


def test_malformed_configuration_row_stops_merge():
    top = TopologyParser().from_string("3 1 0 0\n0 1 0.5 1.0 0\n1 1 0.5 1.0 0\n2 1 0.5 1.0 0\n")
    conf = ConfigurationParser().from_string(
        "1 0 0 1 0 0 0 0 1 0 0 0 0 0 0\n2 0 0 1 0 0 0 x 1 0 0 0 0 0 0\n3 0 0 1 0 0 0 0 1 0 0 0 0 0 0"
    )
    g = StructureCombiner.combine(top, conf)
    assert [(p.type, p.position) for p in g.particles] == [(0, (1.0, 0.0, 0.0))]
    assert [d.kind for d in g.diagnostics] == ["malformed_row", "count_mismatch", "truncated"]


def test_empty_overlap_is_not_an_error():
    top = TopologyParser().from_string(TOPOLOGY_TEXT)
    conf = ConfigurationParser().from_string("t = 0\nb = 1 1 1\n")
    g = StructureCombiner.combine(top, conf)
    assert g.nparticles() == 0
    assert g.nbonds() == 0
    assert g.positions_array().shape == (0, 3)


def test_combine_does_not_touch_documents(topology, configuration):
    before = list(topology.particles)
    StructureCombiner.combine(topology, configuration)
    assert topology.particles == before


def test_load_structure(structure_files):
    top, conf = structure_files
    g = load_structure(top, conf)
    assert g.nparticles() == 4
    assert g.nbonds() == 3


# --- graph helpers -----------------------------------------------------------


def test_geometry_helpers(graph):
    np.testing.assert_allclose(graph.center_of_geometry(), [2.5, 1.0, 1.0])
    lo, hi = graph.bounding_box()
    np.testing.assert_allclose(lo, [1.0, 1.0, 1.0])
    np.testing.assert_allclose(hi, [4.0, 1.0, 1.0])


def test_selections(graph):
    assert graph.strands() == {1: [0, 1], 2: [2, 3]}
    assert graph.select_strand(2) == [2, 3]
    assert graph.select_within_radius(1, 1.0) == [0, 1, 2]
    with pytest.raises(IndexError):
        graph.select_within_radius(10, 1.0)


def test_patch_positions(graph):
    frame = graph.orientation_matrix(1)
    np.testing.assert_allclose(frame, np.eye(3))
    np.testing.assert_allclose(
        graph.patch_positions(1),
        [[2.5, 1.0, 1.0], [1.5, 1.0, 1.0]],
    )
    assert graph.patch_positions(3).shape == (0, 3)


def test_summary(graph):
    assert graph.summary() == {
        "particles": 4,
        "bonds": 3,
        "strands": 2,
        "timestep": 1000,
        "box": [10.0, 10.0, 10.0],
    }
