"""Command-line entry points.

Each tool exposes `main(argv) -> int` returning the process exit code.
"""

from .dirents2stream import main as dirents2stream_main
from .sheet2jsonl import main as sheet2jsonl_main
from .stream2sheet import main as stream2sheet_main

TOOLS = {
    "dirents2stream": dirents2stream_main,
    "stream2sheet": stream2sheet_main,
    "sheet2jsonl": sheet2jsonl_main,
}


def main(argv: list[str] | None = None) -> int:
    """Dispatch `python -m sheetpipe.cli <tool> [args...]`."""
    import sys

    if argv is None:
        argv = sys.argv[1:]
    if not argv or argv[0] not in TOOLS:
        sys.stderr.write(f"usage: python -m sheetpipe.cli {{{','.join(TOOLS)}}} [args...]\n")
        return 2
    return TOOLS[argv[0]](argv[1:])


__all__ = [
    "TOOLS",
    "main",
    "dirents2stream_main",
    "stream2sheet_main",
    "sheet2jsonl_main",
]
