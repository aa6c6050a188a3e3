"""Utility functions for CLI output."""

import sys
from typing import TextIO

from cli.constants import GREEN, RESET
from uploader.progress import Phase, ProgressEvent


class ProgressPrinter:
    """Progress observer that renders upload events as a single status line."""

    def __init__(self, stream: TextIO = None):
        self.stream = stream or sys.stdout
        self._line_open = False

    def __call__(self, event: ProgressEvent) -> None:
        if event.phase is Phase.UPLOADING and event.total_files is not None:
            self._close_line()
            self._write(f"[{event.file_index + 1}/{event.total_files}] {event.message}\n")
        elif event.phase is Phase.UPLOADING and event.fraction is not None:
            progress = event.fraction * 100
            self._write(
                f"\rUploading {event.file_name}: chunk {event.chunk_index + 1}/{event.total_chunks} "
                f"({GREEN}{progress:.1f}%{RESET})"
            )
            self._line_open = True
        elif event.phase is Phase.HASHING:
            self._write(f"\rHashing {event.file_name}...")
            self._line_open = True
        elif event.phase is Phase.COMPLETING:
            self._write(f"\rFinalizing {event.file_name}...")
            self._line_open = True
        elif event.phase in (Phase.DONE, Phase.FAILED):
            self._close_line()

    def _write(self, text: str) -> None:
        self.stream.write(text)
        self.stream.flush()

    def _close_line(self) -> None:
        if self._line_open:
            self._write('\n')
            self._line_open = False


def format_file_size(size_bytes: int) -> str:
    """
    Format file size in bytes to human-readable format with appropriate unit.

    Uses binary units (1024-based) and automatically selects the most
    appropriate unit (B, KiB, MiB, GiB, TiB).

    Args:
        size_bytes: File size in bytes

    Returns:
        Formatted string with size and unit (e.g., "1.50 MiB", "512 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"

    units = ['KiB', 'MiB', 'GiB', 'TiB']
    size = size_bytes / 1024.0

    for unit in units:
        if size < 1024.0:
            return f"{size:.2f} {unit}"
        size /= 1024.0

    return f"{size:.2f} PiB"
