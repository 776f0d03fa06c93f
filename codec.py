"""
Кодирование и декодирование байтов статическим кодом Хаффмана.
"""

from typing import Dict, Tuple

from bitstream import BitReader, BitWriter
from container import ArtifactFormat, ArtifactHeader
from errors import MalformedHeaderError
from huffman import build_code_table, build_frequency_table, build_tree


EMPTY_ARTIFACT = b''


class HuffmanEncoder:
    @staticmethod
    def encode(data: bytes) -> bytes:
        if not data:
            return EMPTY_ARTIFACT

        frequencies = build_frequency_table(data)
        root = build_tree(frequencies)
        codes = build_code_table(root)

        packed: Dict[int, Tuple[int, int]] = {
            symbol: (int(code, 2), len(code)) for symbol, code in codes.items()
        }

        writer = BitWriter()
        for byte in data:
            value, length = packed[byte]
            writer.write_code(value, length)

        payload = writer.finish()
        header = ArtifactHeader.from_frequencies(frequencies, writer.total_bits)

        return ArtifactFormat.create_artifact(header, payload)

    @staticmethod
    def decode(artifact: bytes) -> bytes:
        if not artifact:
            return b''

        header, payload = ArtifactFormat.read_artifact(artifact)

        root = build_tree(header.frequency_table())
        if root is None:
            return b''

        expected = header.original_size
        reader = BitReader(payload, header.total_bits)

        if root.is_leaf:
            # one symbol per bit, no edges to follow
            if header.total_bits != expected:
                raise MalformedHeaderError(
                    f"Single-symbol stream has {header.total_bits} bits, "
                    f"expected {expected}")
            return bytes([root.symbol]) * expected

        output = bytearray()
        node = root

        for bit in reader:
            node = node.right if bit else node.left
            if node.left is None:
                output.append(node.symbol)
                node = root

        if node is not root:
            raise MalformedHeaderError("Bitstream ends in the middle of a code")

        if len(output) != expected:
            raise MalformedHeaderError(
                f"Decoded {len(output)} bytes, header declares {expected}")

        return bytes(output)


def encode(data: bytes) -> bytes:
    return HuffmanEncoder.encode(data)


def decode(artifact: bytes) -> bytes:
    return HuffmanEncoder.decode(artifact)
