"""
Формат закодированного файла: заголовок с таблицей частот и упакованные биты.

Все целые числа записываются в little-endian:

    int32   symbol_count
    symbol_count раз:
        uint8   symbol
        uint64  frequency
    uint8   valid_bits_in_last_byte   (1..8)
    uint64  total_bit_count
    byte[]  payload
"""

import io
import struct
from dataclasses import dataclass, field
from typing import List, Tuple

from errors import MalformedHeaderError, TruncatedHeaderError
from huffman import MAX_SYMBOLS


COUNT_FMT = '<i'
ENTRY_FMT = '<BQ'
TRAILER_FMT = '<BQ'

COUNT_SIZE = struct.calcsize(COUNT_FMT)
ENTRY_SIZE = struct.calcsize(ENTRY_FMT)
TRAILER_SIZE = struct.calcsize(TRAILER_FMT)

MAX_FREQUENCY = (1 << 64) - 1


@dataclass
class ArtifactHeader:
    entries: List[Tuple[int, int]] = field(default_factory=list)
    valid_bits: int = 8
    total_bits: int = 0

    @property
    def symbol_count(self) -> int:
        return len(self.entries)

    @property
    def size(self) -> int:
        return COUNT_SIZE + ENTRY_SIZE * len(self.entries) + TRAILER_SIZE

    @property
    def payload_size(self) -> int:
        return (self.total_bits + 7) // 8

    @property
    def original_size(self) -> int:
        return sum(freq for _, freq in self.entries)

    def frequency_table(self) -> List[int]:
        table = [0] * MAX_SYMBOLS
        for symbol, freq in self.entries:
            table[symbol] = freq
        return table

    @staticmethod
    def from_frequencies(frequencies: List[int], total_bits: int) -> 'ArtifactHeader':
        entries = [(symbol, freq) for symbol, freq in enumerate(frequencies) if freq > 0]
        remainder = total_bits % 8
        return ArtifactHeader(entries=entries,
                              valid_bits=remainder if remainder else 8,
                              total_bits=total_bits)


class ArtifactFormat:
    @staticmethod
    def create_artifact(header: ArtifactHeader, payload: bytes) -> bytes:
        output = io.BytesIO()

        output.write(struct.pack(COUNT_FMT, header.symbol_count))

        for symbol, freq in header.entries:
            if not 0 <= symbol < MAX_SYMBOLS:
                raise ValueError(f"Symbol out of range: {symbol}")
            if not 0 < freq <= MAX_FREQUENCY:
                raise ValueError(f"Frequency out of range for symbol {symbol}: {freq}")
            output.write(struct.pack(ENTRY_FMT, symbol, freq))

        output.write(struct.pack(TRAILER_FMT, header.valid_bits, header.total_bits))
        output.write(payload)

        return output.getvalue()

    @staticmethod
    def read_header(data: bytes) -> Tuple[ArtifactHeader, int]:
        """Parse the header and return it with the payload offset."""
        pos = 0

        if pos + COUNT_SIZE > len(data):
            raise TruncatedHeaderError("Cannot read symbol count")

        symbol_count = struct.unpack_from(COUNT_FMT, data, pos)[0]
        pos += COUNT_SIZE

        if not 0 <= symbol_count <= MAX_SYMBOLS:
            raise MalformedHeaderError(f"Invalid symbol count: {symbol_count}")

        if pos + symbol_count * ENTRY_SIZE > len(data):
            raise TruncatedHeaderError(
                f"Cannot read {symbol_count} frequency entries")

        header = ArtifactHeader()
        seen = set()

        for _ in range(symbol_count):
            symbol, freq = struct.unpack_from(ENTRY_FMT, data, pos)
            pos += ENTRY_SIZE

            if symbol in seen:
                raise MalformedHeaderError(f"Duplicate symbol: {symbol}")
            if freq == 0:
                raise MalformedHeaderError(f"Zero frequency for symbol {symbol}")

            seen.add(symbol)
            header.entries.append((symbol, freq))

        if pos + TRAILER_SIZE > len(data):
            raise TruncatedHeaderError("Cannot read bit counts")

        header.valid_bits, header.total_bits = struct.unpack_from(TRAILER_FMT, data, pos)
        pos += TRAILER_SIZE

        if not 1 <= header.valid_bits <= 8:
            raise MalformedHeaderError(
                f"Invalid valid-bit count in last byte: {header.valid_bits}")

        if symbol_count > 0 and header.total_bits % 8 != header.valid_bits % 8:
            raise MalformedHeaderError(
                f"Valid-bit count {header.valid_bits} does not match "
                f"total bit count {header.total_bits}")

        return header, pos

    @staticmethod
    def read_artifact(data: bytes) -> Tuple[ArtifactHeader, bytes]:
        header, pos = ArtifactFormat.read_header(data)

        available_bits = (len(data) - pos) * 8
        if header.total_bits > available_bits:
            raise MalformedHeaderError(
                f"Declared {header.total_bits} bits but payload holds {available_bits}")

        payload = data[pos:pos + header.payload_size]

        return header, payload
