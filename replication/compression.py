"""
Compression
===========

Compressors turn a raw export file into the compressed artifact that is
uploaded. Each compressor knows its file extension and the option the
warehouse COPY statement needs to read it back.

Compression happens in place: the original file is replaced by
``<path>.<extension>``.
"""

import bz2
import gzip
import logging
import shutil
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024


class Compressor(ABC):
    """Base compressor."""

    extension = ""
    load_option = ""

    def compressed_path(self, path: Path) -> Path:
        return Path(f"{path}.{self.extension}")

    @abstractmethod
    def compress(self, path: Path) -> Path:
        """Compress ``path`` in place and return the compressed file's path."""


class Bzip2Compressor(Compressor):
    """In-process bzip2."""

    extension = "bz2"
    load_option = "BZIP2"

    def __init__(self, level: int = 9):
        self.level = level

    def compress(self, path: Path) -> Path:
        target = self.compressed_path(path)
        with open(path, "rb") as src, bz2.open(target, "wb", compresslevel=self.level) as dst:
            shutil.copyfileobj(src, dst, CHUNK_SIZE)
        Path(path).unlink()
        return target


class GzipCompressor(Compressor):
    """In-process gzip."""

    extension = "gz"
    load_option = "GZIP"

    def __init__(self, level: int = 6):
        self.level = level

    def compress(self, path: Path) -> Path:
        target = self.compressed_path(path)
        with open(path, "rb") as src, gzip.open(target, "wb", compresslevel=self.level) as dst:
            shutil.copyfileobj(src, dst, CHUNK_SIZE)
        Path(path).unlink()
        return target


class CommandCompressor(Compressor):
    """
    External compression binary that compresses a file in place,
    e.g. ``pbzip2`` or ``pigz``.
    """

    def __init__(self, command: str, extension: str, load_option: str):
        self.command = command
        self.extension = extension
        self.load_option = load_option

    def compress(self, path: Path) -> Path:
        binary = shutil.which(self.command)
        if binary is None:
            raise FileNotFoundError(f"Compression binary not found: {self.command}")

        logger.debug(f"Running {binary} {path}")
        subprocess.run([binary, str(path)], check=True, capture_output=True)

        target = self.compressed_path(path)
        if not target.exists():
            raise FileNotFoundError(f"{self.command} did not produce {target}")
        return target


CODECS = {
    "bzip2": (Bzip2Compressor, "bz2", "BZIP2"),
    "gzip": (GzipCompressor, "gz", "GZIP"),
}


def get_compressor(settings: Optional[Dict] = None) -> Compressor:
    """
    Build a compressor from the ``compression`` settings block.

    Args:
        settings: dict with ``codec`` (bzip2 | gzip) and optional ``command``
            naming an external binary for that codec

    Returns:
        Compressor instance
    """
    settings = settings or {}
    codec = settings.get("codec", "bzip2")
    if codec not in CODECS:
        raise ValueError(f"Unsupported compression codec: {codec}")

    compressor_cls, extension, load_option = CODECS[codec]
    if settings.get("command"):
        return CommandCompressor(settings["command"], extension, load_option)
    if "level" in settings:
        return compressor_cls(level=settings["level"])
    return compressor_cls()
