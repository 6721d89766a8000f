"""Per-operation coordinator.

Sequences Probe -> Command Builder -> Process Runner -> finalize for one
request::

    PLANNING -> PROBING -> BUILDING -> RUNNING(i) ... -> FINALIZING -> DONE
                                                                   \\-> FAILED

Passes inside an operation run strictly one after another.  Several
operations may run concurrently on the same event loop; each gets its own
work directory, so they share nothing but the scratch directory.
"""

import asyncio
import logging
import os
import shutil
import tempfile
import time
import uuid
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from ..context import AppContext
from ..errors import FinalizeError, SubprocessFailure
from ..operations import BuildPlan, build
from ..operations.requests import OperationRequest
from .executor.command_builder import CommandSpec
from .executor.process_manager import ProcessRunner
from .output_resolver import OutputPlan, OutputResolver
from .sanitize import validate_input_path
from .video.analyzer import MediaAnalyzer, MediaProbeResult

logger = logging.getLogger("clipdeck")


class OperationState(str, Enum):
    PLANNING = "planning"
    PROBING = "probing"
    BUILDING = "building"
    RUNNING = "running"
    FINALIZING = "finalizing"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class OperationResult:
    """What a finished operation produced."""
    kind: str
    output_path: str
    passes: int
    probe: Optional[MediaProbeResult]
    elapsed: float


class Orchestrator:
    """Runs operation requests against FFmpeg."""

    def __init__(
        self,
        context: Optional[AppContext] = None,
        runner: Optional[ProcessRunner] = None,
        analyzer: Optional[MediaAnalyzer] = None,
        resolver: Optional[OutputResolver] = None,
    ):
        self.context = context or AppContext()
        settings = self.context.settings
        self.runner = runner or ProcessRunner()
        self.analyzer = analyzer or MediaAnalyzer(settings.ffprobe, runner=self.runner)
        self.resolver = resolver or OutputResolver(settings.scratch_dir)

    def _state(self, operation_id: str, state: OperationState, detail: str = "") -> None:
        label = f"{state.value}{detail}"
        logger.debug("[%s] %s", operation_id, label)
        self.context.emit_state(operation_id, label)

    async def probe_inputs(self, request: OperationRequest) -> dict[str, MediaProbeResult]:
        """Probe every distinct input once."""
        probes: dict[str, MediaProbeResult] = {}
        for path in request.input_paths():
            if path not in probes:
                probes[path] = await self.analyzer.probe(path)
        return probes

    async def run(
        self,
        request: OperationRequest,
        operation_id: Optional[str] = None,
    ) -> OperationResult:
        """Execute ``request`` and return where the result landed.

        Raises:
            InvalidParameters: Bad request, detected before anything runs.
            ProbeError: An input could not be probed.
            SpawnError: FFmpeg could not be launched.
            SubprocessFailure: A pass exited non-zero; carries its stderr.
            FinalizeError: The output was produced but could not replace
                the original file.
        """
        op_id = operation_id or f"{request.kind}-{uuid.uuid4().hex[:8]}"
        settings = self.context.settings
        started = time.monotonic()
        output: Optional[OutputPlan] = None
        plan: Optional[BuildPlan] = None
        work_dir: Optional[str] = None

        try:
            self._state(op_id, OperationState.PLANNING)
            for path in request.input_paths():
                validate_input_path(path)
            output = self.resolver.resolve(
                request.output_path,
                request.default_ext(),
                request.input_paths(),
                label=request.label,
            )

            self._state(op_id, OperationState.PROBING)
            probes = await self.probe_inputs(request)

            self._state(op_id, OperationState.BUILDING)
            work_dir = tempfile.mkdtemp(prefix="clipdeck_", dir=settings.scratch_dir)
            plan = build(
                request,
                probes,
                output.staging_path,
                work_dir,
                settings=settings,
                ffmpeg=settings.ffmpeg,
            )
            for path, text in plan.staged_files.items():
                Path(path).write_text(text, encoding="utf-8")

            logger.info("[%s] %s: %d pass(es) -> %s", op_id, request.kind, len(plan.passes), output.final_path)
            for index, spec in enumerate(plan.passes, start=1):
                self._state(op_id, OperationState.RUNNING, f"[{index}/{len(plan.passes)}]")
                await self._run_pass(op_id, spec, index)

            self._state(op_id, OperationState.FINALIZING)
            if output.requires_atomic_replace:
                self._replace(output)

        except FinalizeError:
            self._state(op_id, OperationState.FAILED)
            raise
        except BaseException:
            self._state(op_id, OperationState.FAILED)
            if output is not None:
                self._remove(output.staging_path)
            raise
        finally:
            if plan is not None:
                self._cleanup(plan)
            if work_dir is not None:
                self._remove_dir(work_dir)

        elapsed = time.monotonic() - started
        self._state(op_id, OperationState.DONE)
        logger.info("[%s] done in %.2fs: %s", op_id, elapsed, output.final_path)
        inputs = request.input_paths()
        return OperationResult(
            kind=request.kind,
            output_path=output.final_path,
            passes=len(plan.passes),
            probe=probes.get(inputs[0]) if inputs else None,
            elapsed=elapsed,
        )

    async def _run_pass(self, op_id: str, spec: CommandSpec, index: int) -> None:
        def on_progress(line: str) -> None:
            self.context.emit_progress(op_id, line)

        outcome = await self.runner.run(spec, on_progress=on_progress)
        if not outcome.success:
            logger.error(
                "[%s] pass %d (%s) failed with exit code %d: %s",
                op_id, index, spec.description or spec.executable.value,
                outcome.exit_code, outcome.error_summary,
            )
            raise SubprocessFailure(
                f"FFmpeg failed during {spec.description or 'pass ' + str(index)} "
                f"(exit code {outcome.exit_code})",
                outcome.exit_code,
                outcome.stderr_text,
            )

    def _replace(self, output: OutputPlan) -> None:
        """Move the staged file over the original in one step."""
        try:
            os.replace(output.staging_path, output.final_path)
        except OSError as e:
            logger.error(
                "Could not replace %s; result kept at %s", output.final_path, output.staging_path,
            )
            raise FinalizeError(
                f"Could not replace {output.final_path}: {e}",
                staging_path=output.staging_path,
            ) from e

    def _cleanup(self, plan: BuildPlan) -> None:
        for path in [*plan.staged_files, *plan.temp_artifacts]:
            self._remove(path)

    @staticmethod
    def _remove(path: str) -> None:
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Could not delete temp file %s: %s", path, e)

    @staticmethod
    def _remove_dir(path: str) -> None:
        try:
            shutil.rmtree(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Could not delete work directory %s: %s", path, e)


async def run_all(orchestrator: Orchestrator, requests: list[OperationRequest]) -> list:
    """Run independent requests concurrently; failures are returned, not raised."""
    return await asyncio.gather(
        *(orchestrator.run(r) for r in requests),
        return_exceptions=True,
    )
