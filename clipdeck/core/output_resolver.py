"""Decide where an operation writes its output.

``resolve`` only computes an :class:`OutputPlan`; apart from existence
checks it touches nothing on disk.  The plan is not re-checked later, so a
file appearing between planning and the FFmpeg write is reported as an
operation failure by whoever writes it.
"""

import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Optional

from .sanitize import validate_output_path


@dataclass(frozen=True)
class OutputPlan:
    """Where FFmpeg writes (``staging_path``) and where the result ends up."""
    final_path: str
    staging_path: str
    requires_atomic_replace: bool = False


def _now_ms() -> int:
    return int(time.time() * 1000)


def _same_file(a: str, b: str) -> bool:
    if os.path.normcase(os.path.abspath(a)) == os.path.normcase(os.path.abspath(b)):
        return True
    try:
        return os.path.samefile(a, b)
    except OSError:
        return False


def _with_counter(path: Path) -> Path:
    """``clip.mp4`` -> ``clip (1).mp4``, ``clip (2).mp4`` ... first free name."""
    counter = 1
    while True:
        candidate = path.with_name(f"{path.stem} ({counter}){path.suffix}")
        if not candidate.exists():
            return candidate
        counter += 1


class OutputResolver:
    """Plans output paths inside a scratch directory."""

    def __init__(
        self,
        scratch_dir: str | Path,
        clock: Callable[[], int] = _now_ms,
        pid: Optional[int] = None,
    ):
        self.scratch_dir = Path(scratch_dir)
        self.clock = clock
        self.pid = os.getpid() if pid is None else pid

    def scratch_name(self, stem: str, label: str, ext: str) -> Path:
        """``<scratch>/<stem>_<label>_<ms><ext>``."""
        ext = ext if ext.startswith(".") else f".{ext}"
        name = f"{stem}_{label}_{self.clock()}{ext}" if label else f"{stem}_{self.clock()}{ext}"
        return self.scratch_dir / name

    def staging_name(self, final_path: Path) -> Path:
        """Sibling temp file with the same extension as ``final_path``."""
        return final_path.with_name(
            f"{final_path.stem}_temp_{self.clock()}_{self.pid}{final_path.suffix}"
        )

    def resolve(
        self,
        requested_path: Optional[str],
        default_ext: str,
        input_path: Optional[str | Iterable[str]] = None,
        label: str = "output",
    ) -> OutputPlan:
        """Compute the output plan for one operation.

        Args:
            requested_path: Destination chosen by the caller, or None.
            default_ext: Extension used when a path has to be synthesised.
            input_path: The operation's input(s); writing onto one of them
                switches to stage-then-replace.
            label: Name fragment for synthesised paths (``trimmed``, ``merged``...).
        """
        if isinstance(input_path, (str, os.PathLike)):
            inputs = [str(input_path)]
        else:
            inputs = [str(p) for p in (input_path or [])]

        if not requested_path:
            stem = Path(inputs[0]).stem if inputs else label
            final = self.scratch_name(stem, label if inputs else "", default_ext)
            return OutputPlan(final_path=str(final), staging_path=str(final))

        final = Path(validate_output_path(requested_path))

        if any(_same_file(str(final), inp) for inp in inputs):
            staging = self.staging_name(final)
            return OutputPlan(
                final_path=str(final),
                staging_path=str(staging),
                requires_atomic_replace=True,
            )

        if final.exists():
            final = _with_counter(final)

        return OutputPlan(final_path=str(final), staging_path=str(final))
