"""Utility functions for CLI operations."""

import sys
from datetime import datetime
from pathlib import Path
from typing import Sequence

from cli.constants import GREEN, RESET
from common.types import DirectoryMember, FileEntry, ProgressEvent


class ProgressPrinter:
    """Progress callback that renders a single updating line on stdout."""

    def __init__(self, label: str):
        """
        Initialize the printer.

        Args:
            label: Text shown before the byte counters
        """
        self.label = label
        self._printed = False

    def __call__(self, event: ProgressEvent) -> None:
        loaded_str = format_file_size(event.loaded)
        if event.total:
            total_str = format_file_size(event.total)
            line = f"\r{self.label}: {loaded_str} / {total_str} ({GREEN}{event.progress}%{RESET})"
        else:
            line = f"\r{self.label}: {loaded_str}"
        sys.stdout.write(line)
        sys.stdout.flush()
        self._printed = True

    def finish(self) -> None:
        """Finalize progress display with newline."""
        if self._printed:
            sys.stdout.write('\n')
            sys.stdout.flush()
            self._printed = False


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


def format_timestamp(value: datetime) -> str:
    return value.strftime('%Y-%m-%d %H:%M')


def format_file_entries(entries: Sequence[FileEntry]) -> str:
    """Render the root listing as aligned rows."""
    if not entries:
        return "No files found"

    lines = []
    for entry in entries:
        kind = "dir" if entry.is_directory else entry.content_kind
        lock = " [encrypted]" if entry.encrypted else ""
        lines.append(
            f"{entry.name:<32} {format_file_size(entry.size):>10}  {kind:<24} "
            f"{format_timestamp(entry.uploaded_at)}  {entry.address}{lock}"
        )
    return "\n".join(lines)


def format_members(members: Sequence[DirectoryMember]) -> str:
    """Render the members of a folder as aligned rows."""
    if not members:
        return "Folder is empty"

    return "\n".join(
        f"{member.relative_path:<40} {format_file_size(member.size):>10}  {member.content_kind}"
        for member in members
    )


def read_local_files(paths: Sequence[str]) -> list[tuple[str, bytes]]:
    """
    Read local files into (name, bytes) pairs.

    Raises:
        FileNotFoundError: If a path does not exist or is not a file
    """
    files = []
    for raw_path in paths:
        path = Path(raw_path).expanduser()
        if not path.is_file():
            raise FileNotFoundError(f"File not found: {raw_path}")
        files.append((path.name, path.read_bytes()))
    return files
