#!/usr/bin/env python3
"""Command-line interface for the IR inspector."""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import List, Optional, Sequence, TextIO

from irinspect import IRParseError, Module, PassBuilder, get_plugin_info, load_module, parse_module
from irinspect.ir import DataLayoutError
from irinspect.passes import OptimizationLevel


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "inputs",
        nargs="+",
        help="Textual IR (.ll) files to inspect; '-' reads from standard input",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Write the report to this file instead of standard error",
    )
    parser.add_argument(
        "--datalayout",
        default=None,
        help="Override the target data layout string of every input module",
    )
    parser.add_argument(
        "-O",
        dest="opt_level",
        type=int,
        choices=[level.value for level in OptimizationLevel],
        default=0,
        help="Optimisation level handed to the pipeline builder",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Verbosity of diagnostic logging",
    )
    return parser.parse_args(argv)


def validate_inputs(inputs: Sequence[str]) -> None:
    for raw in inputs:
        if raw != "-" and not Path(raw).exists():
            raise SystemExit(f"missing input file: {raw}")


def load_inputs(inputs: Sequence[str], datalayout: Optional[str]) -> List[Module]:
    modules: List[Module] = []
    for raw in inputs:
        try:
            if raw == "-":
                modules.append(parse_module(sys.stdin.read(), name="<stdin>", data_layout=datalayout))
            else:
                modules.append(load_module(Path(raw), data_layout=datalayout))
        except (IRParseError, DataLayoutError) as exc:
            raise SystemExit(f"{raw}: {exc}") from exc
    return modules


def run_pipeline(modules: Sequence[Module], stream: Optional[TextIO], level: OptimizationLevel) -> None:
    builder = PassBuilder()
    get_plugin_info(stream).register_pass_builder_callbacks(builder)
    manager = builder.build_module_pipeline(level)
    for module in modules:
        manager.run(module)


def main(argv: Optional[Sequence[str]] = None) -> None:
    start_time = time.perf_counter()
    args = parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s %(name)s: %(message)s")
    validate_inputs(args.inputs)

    modules = load_inputs(args.inputs, args.datalayout)
    level = OptimizationLevel(args.opt_level)

    if args.output is None:
        run_pipeline(modules, None, level)
    else:
        with args.output.open("w", encoding="utf-8") as stream:
            run_pipeline(modules, stream, level)
        print(f"report written to {args.output}")

    total_time = time.perf_counter() - start_time
    print(f"total execution time: {total_time:.2f}s")


if __name__ == "__main__":
    main()
