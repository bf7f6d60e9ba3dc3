#!/usr/bin/env python3
"""
Run Simulator Script.

Render a test pattern on the virtual cutter and write the canvas to an
image file.

Usage:
    python -m cutter_sim.scripts.run_sim --pattern test-card --output out.png
    python -m cutter_sim.scripts.run_sim -p circle -o circle.png --tool-width 0.03
    python -m cutter_sim.scripts.run_sim -p wave -o wave.png --preview wave_preview.png

Available patterns:
    square, cross, circle, wave, test-card
"""

from __future__ import annotations

import argparse
import logging
import sys

from cutter_sim.configs.loader import ConfigError, DeviceConfig, load_config
from cutter_sim.device.cv_sim import CVSimDevice
from cutter_sim.device.job_runner import JobRunner
from cutter_sim.job_ir.operations import SetToolWidth, count_draw_segments
from cutter_sim.patterns import PATTERN_MAP
from cutter_sim.utils.logging_config import install_excepthook, setup_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Render a test pattern on the virtual cutter",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"Available patterns: {', '.join(PATTERN_MAP.keys())}",
    )
    parser.add_argument(
        "--pattern",
        "-p",
        type=str,
        choices=list(PATTERN_MAP.keys()),
        default="test-card",
        help="Test pattern to cut (default: test-card)",
    )
    parser.add_argument(
        "--output",
        "-o",
        type=str,
        required=True,
        help="Image file written on stop (suffix selects the format)",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=str,
        help="Device configuration file (default: bundled device.yaml)",
    )
    parser.add_argument(
        "--tool-width",
        "-w",
        type=float,
        help="Tool width in inches",
    )
    parser.add_argument(
        "--preview",
        type=str,
        help="Also write an annotated snapshot (tool marker) to this file",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit JSON log lines",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    setup_logging(
        log_level=args.log_level,
        json=args.json_logs,
        context={"app": "run_sim", "pattern": args.pattern},
    )
    install_excepthook()

    try:
        cfg = load_config(args.config) if args.config else DeviceConfig.default()
    except (ConfigError, FileNotFoundError) as exc:
        logger.error("Configuration error: %s", exc)
        return 2

    for label, target in (("output", args.output), ("preview", args.preview)):
        if target is not None and not cfg.output.is_valid_target(target):
            logger.error(
                "Invalid %s target %r: expected an image file name ending in one of %s",
                label, target, ", ".join(cfg.output.allowed_suffixes) or "(any)",
            )
            return 2

    ops = list(PATTERN_MAP[args.pattern]())
    if args.tool_width is not None:
        try:
            ops.insert(0, SetToolWidth(width=args.tool_width))
        except ValueError as exc:
            logger.error("%s", exc)
            return 2

    logger.info(
        "Pattern '%s': %d operations, %d segments",
        args.pattern, len(ops), count_draw_segments(ops, cfg.curve.segments),
    )

    preview_ok = True
    with CVSimDevice(args.output, cfg) as device:
        runner = JobRunner(device)
        report = runner.run(ops, autostop=False)

        if args.preview:
            try:
                device.snapshot().persist(args.preview)
            except (RuntimeError, OSError):
                logger.error("Failed to write preview to %s", args.preview, exc_info=True)
                preview_ok = False
            else:
                logger.info("Preview written to %s", args.preview)

        report.stopped_cleanly = device.stop()

    if not report.ok:
        logger.error(
            "Run failed: %d rejected operations, stop %s",
            report.failed_ops, "ok" if report.stopped_cleanly else "failed",
        )
        return 1
    if not preview_ok:
        return 1

    print(f"Wrote {args.output} ({report.executed_ops} operations)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
