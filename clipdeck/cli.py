"""Thin CLI entry point: probe files or run a request file through the orchestrator."""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

import yaml

from .config import load_settings
from .context import AppContext, LoggingListener
from .core.orchestrator import Orchestrator
from .errors import ClipdeckError
from .operations import parse_request
from .operations.audio import waveform_data_url


def _load_request_file(path: Path) -> dict:
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        return json.loads(text)
    return yaml.safe_load(text)


class _StatePrinter:
    def on_progress(self, operation_id: str, text: str) -> None:
        pass

    def on_state(self, operation_id: str, state: str) -> None:
        print(f"  [{state}]", file=sys.stderr)


async def _probe(orchestrator: Orchestrator, paths: list[Path]) -> int:
    for path in paths:
        result = await orchestrator.analyzer.probe(path)
        print(json.dumps(result.model_dump(exclude={"raw_format"}), indent=2))
    return 0


async def _run(orchestrator: Orchestrator, request_path: Path, data_url: bool) -> int:
    request = parse_request(_load_request_file(request_path))
    result = await orchestrator.run(request)
    print()
    print(f"Done! Output: {result.output_path}")
    print(f"  Passes: {result.passes}  Time: {result.elapsed:.1f}s")
    if data_url and result.output_path.lower().endswith(".png"):
        print(waveform_data_url(result.output_path))
    return 0


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="clipdeck",
        description="clipdeck: FFmpeg-driven trims, merges, overlays and audio edits.",
    )
    parser.add_argument("--config", "-c", type=Path, help="YAML settings file")
    parser.add_argument("--verbose", "-v", action="store_true", help="Show FFmpeg output and debug logs")
    sub = parser.add_subparsers(dest="command")

    probe = sub.add_parser("probe", help="Print stream metadata for media files")
    probe.add_argument("files", nargs="+", type=Path, help="Media files to probe")

    run = sub.add_parser("run", help="Run an edit request from a YAML or JSON file")
    run.add_argument("request", type=Path, help="Request file, e.g. {kind: trim, input_path: ...}")
    run.add_argument("--data-url", action="store_true", help="Print PNG outputs as a data: URL")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    try:
        settings = load_settings(args.config)
        context = AppContext(settings=settings)
        context.subscribe(_StatePrinter())
        if args.verbose:
            context.subscribe(LoggingListener())
        orchestrator = Orchestrator(context)

        if args.command == "probe":
            code = asyncio.run(_probe(orchestrator, args.files))
        else:
            code = asyncio.run(_run(orchestrator, args.request, args.data_url))
    except ClipdeckError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except (OSError, json.JSONDecodeError, yaml.YAMLError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    sys.exit(code)


if __name__ == "__main__":
    main()
