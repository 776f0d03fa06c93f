"""
Кодирование и декодирование файлов на диске.
"""

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Dict

from codec import decode, encode
from container import ArtifactFormat, ArtifactHeader
from errors import EmptyInputError, VerificationError
from huffman import build_code_table, build_tree


DEFAULT_INPUT = 'input.txt'
DEFAULT_ENCODED = 'encoded.bin'
DEFAULT_DECODED = 'decoded.txt'


@dataclass
class CodecStats:
    input_path: str
    output_path: str
    input_size: int
    output_size: int

    @property
    def ratio(self) -> float:
        return (self.output_size / self.input_size * 100) if self.input_size > 0 else 0


@dataclass
class ArtifactInfo:
    path: str
    artifact_size: int
    header: ArtifactHeader
    codes: Dict[int, str]


def _read_file(path: str) -> bytes:
    with open(path, 'rb') as f:
        return f.read()


def _default_file_mode() -> int:
    mask = os.umask(0)
    os.umask(mask)
    return 0o666 & ~mask


def _write_atomic(path: str, data: bytes):
    directory = os.path.dirname(os.path.abspath(path))
    os.makedirs(directory, exist_ok=True)

    fd, tmp_path = tempfile.mkstemp(dir=directory, prefix='.', suffix='.tmp')
    try:
        with os.fdopen(fd, 'wb') as f:
            f.write(data)
        # mkstemp creates 0600; match what open(path, 'wb') would give
        os.chmod(tmp_path, _default_file_mode())
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise


class HuffmanCodec:
    def __init__(self, verify: bool = True, quiet: bool = False):
        self.verify = verify
        self.quiet = quiet

    def _report(self, message: str):
        if not self.quiet:
            print(message)

    def encode_file(self, input_path: str = DEFAULT_INPUT,
                    output_path: str = DEFAULT_ENCODED) -> CodecStats:
        data = _read_file(input_path)

        if not data:
            raise EmptyInputError(f"{input_path} is empty, nothing to encode")

        artifact = encode(data)

        if self.verify and decode(artifact) != data:
            raise VerificationError(f"Round-trip check failed for {input_path}")

        _write_atomic(output_path, artifact)

        stats = CodecStats(input_path, output_path, len(data), len(artifact))
        self._report(f"Encoding {Path(input_path).name}... OK ({stats.ratio:.1f}%)")
        self._report(f"Total: {stats.input_size} -> {stats.output_size} bytes")

        return stats

    def decode_file(self, input_path: str = DEFAULT_ENCODED,
                    output_path: str = DEFAULT_DECODED) -> CodecStats:
        artifact = _read_file(input_path)

        if not artifact:
            raise EmptyInputError(f"{input_path} is empty, nothing to decode")

        data = decode(artifact)

        _write_atomic(output_path, data)

        stats = CodecStats(input_path, output_path, len(artifact), len(data))
        self._report(f"Decoding {Path(input_path).name}... OK")
        self._report(f"Total: {stats.input_size} -> {stats.output_size} bytes")

        return stats

    def describe(self, artifact_path: str) -> ArtifactInfo:
        artifact = _read_file(artifact_path)

        if not artifact:
            raise EmptyInputError(f"{artifact_path} is empty")

        header, _ = ArtifactFormat.read_artifact(artifact)
        codes = build_code_table(build_tree(header.frequency_table()))

        return ArtifactInfo(artifact_path, len(artifact), header, codes)

    def list_artifact(self, artifact_path: str) -> ArtifactInfo:
        info = self.describe(artifact_path)
        header = info.header

        print(f"{'Symbol':<10} {'Frequency':>14} {'Bits':>6}  Code")
        print("-" * 60)

        for symbol, freq in header.entries:
            code = info.codes[symbol]
            label = repr(chr(symbol)) if 32 <= symbol < 127 else f"0x{symbol:02x}"
            print(f"{label:<10} {freq:>14} {len(code):>6}  {code}")

        print("-" * 60)
        ratio = (info.artifact_size / header.original_size * 100) if header.original_size > 0 else 0
        print(f"Symbols: {header.symbol_count}, total bits: {header.total_bits}, "
              f"valid bits in last byte: {header.valid_bits}")
        print(f"Size: {header.original_size} -> {info.artifact_size} bytes ({ratio:.1f}%)")

        return info
