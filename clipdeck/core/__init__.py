"""
clipdeck core module

FFmpeg command construction and execution, media probing, output
planning and path sanitization.  The orchestrator lives in
``clipdeck.core.orchestrator`` and is imported from there.
"""

from .executor.command_builder import CommandBuilder, CommandSpec, FilterGraph
from .executor.process_manager import ExitOutcome, ProcessRunner
from .output_resolver import OutputPlan, OutputResolver
from .video.analyzer import MediaAnalyzer, MediaProbeResult

__all__ = [
    "CommandBuilder",
    "CommandSpec",
    "FilterGraph",
    "ExitOutcome",
    "ProcessRunner",
    "OutputPlan",
    "OutputResolver",
    "MediaAnalyzer",
    "MediaProbeResult",
]
