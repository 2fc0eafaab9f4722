from __future__ import annotations

import gzip
import io
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Optional, Union

from .diagnostics import (
    DROPPED_CONNECTION,
    MALFORMED_ROW,
    SHORT_ROW,
    Diagnostic,
    FormatError,
    record,
)
from .structure_data import (
    BoxSpec,
    ConfigurationDocument,
    Connection,
    Energy,
    NucleotideState,
    ParticleRecord,
    PatchTemplate,
    SpringTemplate,
    TopologyDocument,
    TopologyHeader,
)

logger = logging.getLogger(__name__)

FileLike = Union[str, Path, io.BytesIO, io.StringIO]

PATCH_TAG = "iP"
SPRING_TAG = "iS"
NUCLEOTIDE_FIELDS = 15

# --- text input --------------------------------------------------------------


def open_text(file: FileLike) -> Iterable[str]:
    """
    Lines of a ``.psp`` or ``.dat`` file, without line terminators.

    Accepts a path (``.psp.gz``/``.dat.gz`` are decompressed on the fly) or an
    already loaded upload buffer, so hosts that hold the file contents in
    memory never touch the file system.
    """
    if isinstance(file, io.StringIO):
        yield from file.getvalue().splitlines()
        return

    if isinstance(file, io.BytesIO):
        text = io.TextIOWrapper(file, encoding="utf-8", newline="").read()
        yield from text.splitlines()
        return

    p = Path(file)
    if p.suffix == ".gz":
        with gzip.open(p, "rt", encoding="utf-8", newline="") as fh:
            for line in fh:
                yield line.rstrip("\r\n")
        return

    with open(p, encoding="utf-8", newline="") as fh:
        for line in fh:
            yield line.rstrip("\r\n")


def _is_significant(line: str) -> bool:
    return bool(line) and not line.startswith("#")


def _safe_int(s: str, default: Optional[int] = None) -> Optional[int]:
    try:
        return int(s.strip())
    except (ValueError, AttributeError):
        return default


def _floats(tokens: Iterable[str]) -> list[float]:
    return [float(t) for t in tokens]


# --- Topology ----------------------------------------------------------------


class TopologyParser:
    """
    Parser for the static topology (.psp) file.

    - First significant line: ``numParticles numStrands maxSprings repeatedPatches``.
    - ``iP`` rows define patch templates, ``iS`` rows spring templates.
    - Any other significant row is a particle; indices follow file order and
      a row that fails to parse still takes its index (see ``malformed_indices``).
    - ``#`` comments and blank lines are ignored anywhere.

    ``TopologyParser(file)`` parses directly and returns the document.
    """

    def __new__(cls, file: Optional[FileLike] = None):
        self = super().__new__(cls)
        if file is None:
            return self
        return self.read(file)

    def read(self, file: FileLike) -> TopologyDocument:
        return self._parse(open_text(file))

    def from_string(self, text: str) -> TopologyDocument:
        return self._parse(text.split("\n"))

    parse = from_string

    def _parse(self, lines: Iterable[str]) -> TopologyDocument:
        doc: Optional[TopologyDocument] = None
        diagnostics: list[Diagnostic] = []
        next_index = 0

        for lineno, raw in enumerate(lines, start=1):
            line = raw.strip()
            if not _is_significant(line):
                continue

            if doc is None:
                doc = TopologyDocument(
                    header=self._parse_header(line, lineno), diagnostics=diagnostics
                )
                continue

            parts = line.split()
            tag = parts[0]
            if tag == PATCH_TAG:
                patch = self._parse_patch(parts, lineno, diagnostics)
                if patch is not None:
                    doc.patches.append(patch)
            elif tag == SPRING_TAG:
                spring = self._parse_spring(parts, lineno, diagnostics)
                if spring is not None:
                    doc.springs.append(spring)
            else:
                particle = self._parse_particle(parts, next_index, lineno, diagnostics)
                if particle is None:
                    doc.malformed_indices.append(next_index)
                else:
                    doc.particles.append(particle)
                next_index += 1

        if doc is None:
            raise FormatError("Invalid topology file: no header found")

        logger.info(
            f"Parsed topology: {len(doc.particles)} particles, {len(doc.patches)} patches, "
            f"{len(doc.springs)} springs"
        )
        return doc

    @staticmethod
    def _parse_header(line: str, lineno: int) -> TopologyHeader:
        parts = line.split()
        if len(parts) < 4:
            raise FormatError(
                f"Invalid topology header on line {lineno}: expected 4 integers, got '{line}'"
            )
        try:
            values = [int(t) for t in parts[:4]]
        except ValueError as e:
            raise FormatError(
                f"Invalid topology header on line {lineno}: expected 4 integers, got '{line}'"
            ) from e
        return TopologyHeader(*values)

    @staticmethod
    def _parse_patch(
        parts: list[str], lineno: int, diagnostics: list[Diagnostic]
    ) -> Optional[PatchTemplate]:
        # iP id color strength x y z
        if len(parts) < 7:
            record(diagnostics, MALFORMED_ROW, f"patch row needs 6 fields: {' '.join(parts)}", lineno)
            return None
        try:
            x, y, z = _floats(parts[4:7])
            return PatchTemplate(
                id=int(parts[1]), color=int(parts[2]), strength=float(parts[3]), local_position=(x, y, z)
            )
        except ValueError:
            record(diagnostics, MALFORMED_ROW, f"unparseable patch row: {' '.join(parts)}", lineno)
            return None

    @staticmethod
    def _parse_spring(
        parts: list[str], lineno: int, diagnostics: list[Diagnostic]
    ) -> Optional[SpringTemplate]:
        # iS id stiffness restLength x y z
        if len(parts) < 7:
            record(diagnostics, MALFORMED_ROW, f"spring row needs 6 fields: {' '.join(parts)}", lineno)
            return None
        try:
            x, y, z = _floats(parts[4:7])
            return SpringTemplate(
                id=int(parts[1]),
                stiffness=float(parts[2]),
                rest_length=float(parts[3]),
                local_position=(x, y, z),
            )
        except ValueError:
            record(diagnostics, MALFORMED_ROW, f"unparseable spring row: {' '.join(parts)}", lineno)
            return None

    @staticmethod
    def _parse_particle(
        parts: list[str], index: int, lineno: int, diagnostics: list[Diagnostic]
    ) -> Optional[ParticleRecord]:
        # type strand radius mass numPatches patchId... [peerIndex springId]...
        try:
            ptype = int(parts[0])
            strand = int(parts[1])
            radius = float(parts[2])
            mass = float(parts[3])
            npatches = max(int(parts[4]), 0)
        except (ValueError, IndexError):
            record(diagnostics, MALFORMED_ROW, f"unparseable particle row: {' '.join(parts)}", lineno)
            return None

        patch_tokens = parts[5 : 5 + npatches]
        if len(patch_tokens) < npatches:
            record(
                diagnostics,
                MALFORMED_ROW,
                f"particle {index} declares {npatches} patches but lists {len(patch_tokens)}",
                lineno,
            )
        patch_ids: list[int] = []
        for t in patch_tokens:
            pid = _safe_int(t)
            if pid is None:
                record(diagnostics, MALFORMED_ROW, f"particle {index}: bad patch id '{t}'", lineno)
                continue
            patch_ids.append(pid)

        connections: list[Connection] = []
        rest = parts[5 + npatches :]
        # a dangling odd token is dropped by the pairing
        for peer_tok, spring_tok in zip(rest[0::2], rest[1::2]):
            peer = _safe_int(peer_tok)
            spring = _safe_int(spring_tok)
            if peer is None or spring is None:
                record(
                    diagnostics,
                    DROPPED_CONNECTION,
                    f"particle {index}: bad connection pair '{peer_tok} {spring_tok}'",
                    lineno,
                )
                continue
            connections.append(Connection(peer_index=peer, spring_id=spring))

        return ParticleRecord(
            index=index,
            type=ptype,
            strand=strand,
            radius=radius,
            mass=mass,
            patch_ids=tuple(patch_ids),
            connections=tuple(connections),
        )


# --- Configuration -----------------------------------------------------------


class ConfigurationParser:
    """
    Parser for the per-timestep configuration (.dat) file.

    Optional header lines ``t =``, ``b =`` and ``E =`` are tried in that order;
    a slot that does not match leaves the line for the next slot or for the
    data rows. Data rows carry 15 floats: position, a1, a3, velocity and
    angular velocity. Rows with fewer fields are not data rows; a row with
    enough fields that fails to parse still takes its index.
    """

    def __new__(cls, file: Optional[FileLike] = None):
        self = super().__new__(cls)
        if file is None:
            return self
        return self.read(file)

    def read(self, file: FileLike) -> ConfigurationDocument:
        return self._parse(list(open_text(file)))

    def from_string(self, text: str) -> ConfigurationDocument:
        return self._parse(text.split("\n"))

    parse = from_string

    def _parse(self, raw_lines: list[str]) -> ConfigurationDocument:
        lines = [ln.strip() for ln in raw_lines]
        doc = ConfigurationDocument()
        cursor = 0

        if cursor < len(lines) and lines[cursor].startswith("t ="):
            tok = lines[cursor].split("=", 1)[1].split()
            ts = _safe_int(tok[0]) if tok else None
            if ts is None:
                record(doc.diagnostics, MALFORMED_ROW, f"bad timestep '{lines[cursor]}'", cursor + 1)
                ts = 0
            doc.timestep = ts
            cursor += 1

        if cursor < len(lines) and lines[cursor].startswith("b ="):
            x, y, z = self._three_floats(lines[cursor], cursor + 1, doc.diagnostics)
            doc.box = BoxSpec(x, y, z)
            cursor += 1

        if cursor < len(lines) and lines[cursor].startswith("E ="):
            total, pot, kin = self._three_floats(lines[cursor], cursor + 1, doc.diagnostics)
            doc.energy = Energy(total=total, potential=pot, kinetic=kin)
            cursor += 1

        next_index = 0
        for lineno in range(cursor + 1, len(lines) + 1):
            line = lines[lineno - 1]
            if not _is_significant(line):
                continue
            parts = line.split()
            if len(parts) < NUCLEOTIDE_FIELDS:
                record(
                    doc.diagnostics,
                    SHORT_ROW,
                    f"configuration row has {len(parts)} fields, need {NUCLEOTIDE_FIELDS}",
                    lineno,
                )
                continue
            state = self._parse_state(parts, next_index, lineno, doc.diagnostics)
            if state is None:
                doc.malformed_indices.append(next_index)
            else:
                doc.nucleotides.append(state)
            next_index += 1

        logger.info(f"Parsed configuration t={doc.timestep}: {len(doc.nucleotides)} nucleotides")
        return doc

    @staticmethod
    def _three_floats(line: str, lineno: int, diagnostics: list[Diagnostic]) -> tuple[float, float, float]:
        """Three floats after '='; missing or unparseable components are 0.0."""
        tokens = line.split("=", 1)[1].split()
        out = [0.0, 0.0, 0.0]
        for i, t in enumerate(tokens[:3]):
            try:
                out[i] = float(t)
            except ValueError:
                record(diagnostics, MALFORMED_ROW, f"bad value '{t}' in '{line}'", lineno)
        if len(tokens) < 3:
            record(diagnostics, SHORT_ROW, f"expected 3 values in '{line}'", lineno)
        return out[0], out[1], out[2]

    @staticmethod
    def _parse_state(
        parts: list[str], index: int, lineno: int, diagnostics: list[Diagnostic]
    ) -> Optional[NucleotideState]:
        try:
            v = _floats(parts[:NUCLEOTIDE_FIELDS])
        except ValueError:
            record(
                diagnostics, MALFORMED_ROW, f"configuration row {index} unparseable: {' '.join(parts)}", lineno
            )
            return None
        return NucleotideState(
            index=index,
            position=(v[0], v[1], v[2]),
            base_vector=(v[3], v[4], v[5]),
            normal_vector=(v[6], v[7], v[8]),
            velocity=(v[9], v[10], v[11]),
            angular_velocity=(v[12], v[13], v[14]),
        )
