"""
Compressors: in-place compression and codec selection.
"""

import bz2
import gzip

import pytest

from replication.compression import (
    Bzip2Compressor,
    CommandCompressor,
    Compressor,
    GzipCompressor,
    get_compressor,
)


@pytest.mark.parametrize("compressor, opener", [
    (Bzip2Compressor(), bz2.open),
    (GzipCompressor(), gzip.open),
])
def test_compresses_in_place(compressor, opener, tmp_path):
    raw = tmp_path / "export"
    raw.write_bytes(b"1|a\n2|b\n")

    compressed = compressor.compress(raw)

    assert compressed == tmp_path / f"export.{compressor.extension}"
    assert not raw.exists()
    with opener(compressed, "rb") as f:
        assert f.read() == b"1|a\n2|b\n"


def test_get_compressor_defaults_to_bzip2():
    compressor = get_compressor()

    assert isinstance(compressor, Bzip2Compressor)
    assert compressor.load_option == "BZIP2"


def test_get_compressor_with_command():
    compressor = get_compressor({"codec": "bzip2", "command": "pbzip2"})

    assert isinstance(compressor, CommandCompressor)
    assert compressor.extension == "bz2"
    assert compressor.load_option == "BZIP2"


def test_get_compressor_rejects_unknown_codec():
    with pytest.raises(ValueError, match="lz4"):
        get_compressor({"codec": "lz4"})


def test_missing_binary_raises(tmp_path):
    raw = tmp_path / "export"
    raw.write_bytes(b"x")
    compressor = CommandCompressor("definitely-not-a-compressor", "bz2", "BZIP2")

    with pytest.raises(FileNotFoundError):
        compressor.compress(raw)


def test_compressor_base_cannot_be_instantiated():
    with pytest.raises(TypeError):
        Compressor()


def test_compressor_subclass_must_implement_compress():
    class NoCompress(Compressor):
        extension = "xz"

    with pytest.raises(TypeError):
        NoCompress()
