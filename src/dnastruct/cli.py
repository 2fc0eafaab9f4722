from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from .__version__ import __version__
from .combine import load_structure
from .diagnostics import FormatError
from .export import write_json, write_pdb
from .pbc import PeriodicBoundaryModel


def _shift_spec(text: str) -> tuple[str, float]:
    axis, sep, amount = text.partition("=")
    axis = axis.strip().lower()
    if not sep or axis not in ("x", "y", "z"):
        raise argparse.ArgumentTypeError(f"expected AXIS=AMOUNT with AXIS in x/y/z, got '{text}'")
    try:
        return axis, float(amount)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"bad shift amount in '{text}'") from e


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="dnastruct", description="Topology/configuration structure tools")
    p.add_argument("--version", action="version", version=__version__)
    p.add_argument("-v", "--verbose", action="count", default=0, help="-v for info, -vv for debug")
    sp = p.add_subparsers(dest="cmd")

    sp_info = sp.add_parser("info", help="Show structure summary and diagnostics")
    sp_info.add_argument("topology", help="Topology (.psp) file")
    sp_info.add_argument("configuration", help="Configuration (.dat) file")
    sp_info.set_defaults(func=_cmd_info)

    sp_exp = sp.add_parser("export", help="Write the structure as JSON or PDB")
    sp_exp.add_argument("topology", help="Topology (.psp) file")
    sp_exp.add_argument("configuration", help="Configuration (.dat) file")
    sp_exp.add_argument("-o", "--output", required=True, help="Output file (.json or .pdb)")
    sp_exp.add_argument(
        "--shift",
        type=_shift_spec,
        action="append",
        default=[],
        metavar="AXIS=AMOUNT",
        help="Shift the periodic box view, may be repeated",
    )
    sp_exp.set_defaults(func=_cmd_export)
    return p


def _cmd_info(args: argparse.Namespace) -> None:
    graph = load_structure(args.topology, args.configuration)
    out = graph.summary()
    out["diagnostics"] = [str(d) for d in graph.diagnostics]
    print(json.dumps(out, indent=2))


def _cmd_export(args: argparse.Namespace) -> None:
    suffix = Path(args.output).suffix.lower()
    if suffix not in (".json", ".pdb"):
        raise SystemExit(f"dnastruct export: unsupported output format '{suffix}'")

    graph = load_structure(args.topology, args.configuration)
    pbc = PeriodicBoundaryModel(graph)
    for axis, amount in args.shift:
        pbc.shift(axis, amount)

    if suffix == ".json":
        write_json(graph, args.output, pbc)
    else:
        write_pdb(graph, args.output, pbc)


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()
    level = logging.WARNING if args.verbose == 0 else logging.INFO if args.verbose == 1 else logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    if not hasattr(args, "func"):
        parser.print_help()
        return
    try:
        args.func(args)
    except FormatError as e:
        print(f"dnastruct: {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
