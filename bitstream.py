"""
Побитовая запись и чтение (старший бит первым).
"""

from typing import Iterator

from errors import MalformedHeaderError


class BitWriter:
    def __init__(self):
        self._buffer = bytearray()
        self._acc = 0
        self._held = 0  # bits currently in _acc (0..7)
        self.total_bits = 0
        self._finished = False

    def write_bits(self, code: str):
        """Append a bit string such as '0110'."""
        if code:
            self.write_code(int(code, 2), len(code))

    def write_code(self, value: int, length: int):
        """Append the low 'length' bits of value, MSB first."""
        if self._finished:
            raise RuntimeError("BitWriter already finished")

        self._acc = (self._acc << length) | (value & ((1 << length) - 1))
        self._held += length
        self.total_bits += length

        while self._held >= 8:
            self._held -= 8
            self._buffer.append((self._acc >> self._held) & 0xFF)
        self._acc &= (1 << self._held) - 1

    @property
    def valid_bits_in_last_byte(self) -> int:
        remainder = self.total_bits % 8
        return remainder if remainder else 8

    def finish(self) -> bytes:
        if not self._finished:
            if self._held > 0:
                self._buffer.append((self._acc << (8 - self._held)) & 0xFF)
                self._acc = 0
                self._held = 0
            self._finished = True
        return bytes(self._buffer)


class BitReader:
    def __init__(self, data: bytes, total_bits: int):
        if total_bits > len(data) * 8:
            raise MalformedHeaderError(
                f"Declared {total_bits} bits but payload holds {len(data) * 8}")
        self.data = data
        self.total_bits = total_bits
        self.position = 0

    def __iter__(self) -> Iterator[int]:
        data = self.data
        remaining = self.total_bits - self.position
        index = self.position >> 3
        offset = self.position & 7

        while remaining > 0:
            byte = data[index]
            take = min(8 - offset, remaining)
            for shift in range(7 - offset, 7 - offset - take, -1):
                yield (byte >> shift) & 1
            self.position += take
            remaining -= take
            index += 1
            offset = 0
