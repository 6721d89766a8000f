"""FFMPEG command execution modules."""

from .command_builder import CommandBuilder, CommandSpec, Filter, FilterChain, FilterGraph, FFMPEGCommand
from .process_manager import ExitOutcome, ProcessRunner

__all__ = [
    "CommandBuilder",
    "CommandSpec",
    "Filter",
    "FilterChain",
    "FilterGraph",
    "FFMPEGCommand",
    "ExitOutcome",
    "ProcessRunner",
]
