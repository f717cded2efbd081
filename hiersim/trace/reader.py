from __future__ import annotations
import bz2
import gzip
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Iterable, Iterator, Optional

INSTRUCTION = "I"
DATA = "D"

# Trace kind letters accepted for each access path
KIND_ALIASES = {
    "I": INSTRUCTION,
    "D": DATA,
    "L": DATA,
    "S": DATA,
    "R": DATA,
    "W": DATA,
}


class TraceFormatError(ValueError):
    """Raised on a trace line that is not '<kind> <hex address>'."""
    def __init__(self, message: str, lineno: Optional[int] = None):
        self.lineno = lineno
        if lineno is not None:
            message = f"line {lineno}: {message}"
        super().__init__(message)


@dataclass(frozen=True)
class TraceEntry:
    kind: str
    address: int

    @property
    def is_instruction(self) -> bool:
        return self.kind == INSTRUCTION


def parse_trace_line(line: str, lineno: Optional[int] = None) -> Optional[TraceEntry]:
    """Parses one trace line. Returns None for blank and comment lines."""
    line = line.split("#", 1)[0].strip()
    if not line:
        return None

    parts = line.split()
    if len(parts) != 2:
        raise TraceFormatError(f"expected '<kind> <address>', got '{line}'", lineno)

    kind = KIND_ALIASES.get(parts[0].upper())
    if kind is None:
        raise TraceFormatError(f"unknown access kind '{parts[0]}'", lineno)

    try:
        address = int(parts[1], 16)
    except ValueError as e:
        raise TraceFormatError(f"bad hex address '{parts[1]}'", lineno) from e
    if not 0 <= address <= 0xFFFF_FFFF:
        raise TraceFormatError(f"address {parts[1]} does not fit in 32 bits", lineno)

    return TraceEntry(kind, address)


def parse_trace(lines: Iterable[str]) -> Iterator[TraceEntry]:
    it = iter(lines)
    lineno = 0
    while True:
        try:
            line = next(it)
        except StopIteration:
            return
        except UnicodeDecodeError as e:
            # Files are decoded in chunks, so the bad bytes may sit a few lines further on
            raise TraceFormatError(f"invalid UTF-8 at or after this line ({e.reason})", lineno + 1) from e
        lineno += 1
        entry = parse_trace_line(line, lineno)
        if entry is not None:
            yield entry


def _open_trace(path: str) -> IO[str]:
    if path == "-":
        return sys.stdin
    suffix = Path(path).suffix
    if suffix == ".gz":
        return gzip.open(path, "rt", encoding="utf-8")
    if suffix == ".bz2":
        return bz2.open(path, "rt", encoding="utf-8")
    return open(path, "r", encoding="utf-8")


def read_trace(path: str) -> Iterator[TraceEntry]:
    """Streams the entries of a (possibly gzip/bzip2 compressed) trace file; '-' is stdin."""
    f = _open_trace(path)
    try:
        yield from parse_trace(f)
    finally:
        if path != "-":
            f.close()
