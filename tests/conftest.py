from __future__ import annotations

import pytest

from dnastruct import ConfigurationParser, StructureCombiner, TopologyParser

# 4 particles on 2 strands. Declared connections:
#   0: (1, s0)
#   1: (0, s0) dup, (2, s0)
#   2: (1, s0) dup, (3, s1) -> spring 1 does not exist
#   3: (2, s1) dup, (99, s0) -> peer out of range
TOPOLOGY_TEXT = """\
# small test structure
4 2 1 1
iP 0 21 1.0 0.5 0.0 0.0
iP 1 -21 0.8 -0.5 0.0 0.0
iS 0 10.0 1.2 0.0 0.0 0.5
# particles follow
0 1 0.5 1.0 1 0 1 0
0 1 0.5 1.0 2 0 1 0 0 2 0

1 2 0.6 2.0 1 1 1 0 3 1
1 2 0.6 2.0 0 2 1 99 0
"""

CONFIGURATION_TEXT = """\
t = 1000
b = 10 10 10
E = -1.5 -2.0 0.5
1.0 1.0 1.0 1 0 0 0 0 1 0 0 0 0 0 0
2.0 1.0 1.0 1 0 0 0 0 1 0.1 0 0 0 0 0
3.0 1.0 1.0 1 0 0 0 0 1 0 0.2 0 0 0 0
4.0 1.0 1.0 1 0 0 0 0 1 0 0 0.3 0 0 0.4
"""


@pytest.fixture
def topology():
    return TopologyParser().from_string(TOPOLOGY_TEXT)


@pytest.fixture
def configuration():
    return ConfigurationParser().from_string(CONFIGURATION_TEXT)


@pytest.fixture
def graph(topology, configuration):
    return StructureCombiner.combine(topology, configuration)


@pytest.fixture
def structure_files(tmp_path):
    top = tmp_path / "input.psp"
    conf = tmp_path / "input.dat"
    top.write_text(TOPOLOGY_TEXT)
    conf.write_text(CONFIGURATION_TEXT)
    return top, conf
