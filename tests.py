import io
import os
import random
import shutil
import stat
import struct
import sys
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from unittest import mock

from bitstream import BitReader, BitWriter
from codec import EMPTY_ARTIFACT, HuffmanEncoder, decode, encode
from container import ArtifactFormat, ArtifactHeader
from errors import (
    CodeLengthError, EmptyHeapError, EmptyInputError, FormatError,
    MalformedHeaderError, TruncatedHeaderError, VerificationError,
)
from file_codec import HuffmanCodec
from huffman import (
    MAX_CODE_LENGTH, HuffmanNode, MinHeap, build_code_table,
    build_frequency_table, build_tree,
)
import main as cli


def frequencies_from(pairs):
    table = [0] * 256
    for symbol, freq in pairs:
        table[symbol] = freq
    return table


def iter_leaves(root):
    stack = [root] if root is not None else []
    while stack:
        node = stack.pop()
        if node.is_leaf:
            yield node
        else:
            stack.append(node.right)
            stack.append(node.left)


def encoded_bit_count(frequencies, codes):
    return sum(frequencies[symbol] * len(code) for symbol, code in codes.items())


def make_artifact(entries, valid_bits, total_bits, payload=b'', count=None):
    output = struct.pack('<i', len(entries) if count is None else count)
    for symbol, freq in entries:
        output += struct.pack('<BQ', symbol, freq)
    output += struct.pack('<BQ', valid_bits, total_bits)
    return output + payload


class TestMinHeap(unittest.TestCase):
    def test_extracts_in_weight_order(self):
        heap = MinHeap()
        for weight in [5, 1, 4, 2, 3]:
            heap.insert(HuffmanNode(symbol=weight, weight=weight))

        weights = [heap.extract_min().weight for _ in range(5)]
        self.assertEqual(weights, [1, 2, 3, 4, 5])
        self.assertEqual(len(heap), 0)

    def test_equal_weights_are_fifo(self):
        heap = MinHeap()
        for symbol in [7, 3, 9]:
            heap.insert(HuffmanNode(symbol=symbol, weight=10))

        symbols = [heap.extract_min().symbol for _ in range(3)]
        self.assertEqual(symbols, [7, 3, 9])

    def test_extract_from_empty_heap(self):
        heap = MinHeap()
        with self.assertRaises(EmptyHeapError):
            heap.extract_min()

    def test_empty_heap_error_is_index_error(self):
        with self.assertRaises(IndexError):
            MinHeap().extract_min()

    def test_capacity(self):
        heap = MinHeap(capacity=2)
        heap.insert(HuffmanNode(symbol=1, weight=1))
        heap.insert(HuffmanNode(symbol=2, weight=1))
        with self.assertRaises(OverflowError):
            heap.insert(HuffmanNode(symbol=3, weight=1))


class TestHuffmanTree(unittest.TestCase):
    def test_frequency_table_counts_every_byte_value(self):
        data = bytes(range(256)) * 3 + b"\x00" * 5
        table = build_frequency_table(data)
        self.assertEqual(table[0], 8)
        self.assertEqual(table[255], 3)
        self.assertEqual(sum(table), len(data))
        self.assertEqual(build_frequency_table(b""), [0] * 256)

    def test_frequency_table(self):
        table = build_frequency_table(b"aaab")
        self.assertEqual(len(table), 256)
        self.assertEqual(table[ord('a')], 3)
        self.assertEqual(table[ord('b')], 1)
        self.assertEqual(sum(table), 4)

    def test_empty_table_has_no_tree(self):
        self.assertIsNone(build_tree([0] * 256))
        self.assertEqual(build_code_table(None), {})

    def test_single_symbol_tree_is_a_leaf(self):
        root = build_tree(frequencies_from([(65, 1000)]))
        self.assertTrue(root.is_leaf)
        self.assertEqual(root.symbol, 65)
        self.assertEqual(build_code_table(root), {65: '0'})

    def test_one_leaf_per_distinct_symbol(self):
        data = b"The quick brown fox jumps over the lazy dog"
        frequencies = build_frequency_table(data)
        root = build_tree(frequencies)

        leaves = list(iter_leaves(root))
        self.assertEqual(len(leaves), len(set(data)))
        self.assertEqual(root.weight, len(data))
        for leaf in leaves:
            self.assertEqual(leaf.weight, frequencies[leaf.symbol])

    def test_two_symbol_codes(self):
        codes = build_code_table(build_tree(build_frequency_table(b"aaab")))
        self.assertEqual(codes, {ord('b'): '0', ord('a'): '1'})

    def test_codes_are_prefix_free(self):
        random.seed(7)
        data = bytes(random.choice(b"abcdefghij  \n") for _ in range(2000))
        codes = build_code_table(build_tree(build_frequency_table(data)))

        values = list(codes.values())
        for i, a in enumerate(values):
            for j, b in enumerate(values):
                if i != j:
                    self.assertFalse(b.startswith(a), f"{a} is a prefix of {b}")

    def test_code_table_is_deterministic(self):
        frequencies = build_frequency_table(bytes(range(256)) * 3 + b"xyz" * 10)
        first = build_code_table(build_tree(frequencies))
        second = build_code_table(build_tree(list(frequencies)))
        self.assertEqual(first, second)

    def test_skewed_weights_give_deep_tree(self):
        frequencies = frequencies_from([(i, 1 << i) for i in range(40)])
        codes = build_code_table(build_tree(frequencies))
        self.assertEqual(max(len(code) for code in codes.values()), 39)
        self.assertEqual(len(codes[39]), 1)

    def test_deepest_possible_tree_is_allowed(self):
        frequencies = frequencies_from([(i, 1 << i) for i in range(256)])
        codes = build_code_table(build_tree(frequencies))
        self.assertEqual(max(len(code) for code in codes.values()), MAX_CODE_LENGTH)

    def test_code_length_guard(self):
        frequencies = frequencies_from([(i, 1 << i) for i in range(8)])
        root = build_tree(frequencies)
        with mock.patch('huffman.MAX_CODE_LENGTH', 3):
            with self.assertRaises(CodeLengthError):
                build_code_table(root)


class TestBitStream(unittest.TestCase):
    def test_partial_last_byte(self):
        writer = BitWriter()
        writer.write_bits('101')
        self.assertEqual(writer.finish(), bytes([0b10100000]))
        self.assertEqual(writer.total_bits, 3)
        self.assertEqual(writer.valid_bits_in_last_byte, 3)

    def test_full_last_byte(self):
        writer = BitWriter()
        writer.write_bits('11001010')
        self.assertEqual(writer.finish(), bytes([0b11001010]))
        self.assertEqual(writer.valid_bits_in_last_byte, 8)

    def test_codes_across_byte_boundary(self):
        writer = BitWriter()
        writer.write_code(1, 1)
        writer.write_code(0x1FF, 9)
        self.assertEqual(writer.finish(), b'\xff\xc0')
        self.assertEqual(writer.total_bits, 10)
        self.assertEqual(writer.valid_bits_in_last_byte, 2)

    def test_write_after_finish(self):
        writer = BitWriter()
        writer.finish()
        with self.assertRaises(RuntimeError):
            writer.write_bits('1')

    def test_reader_stops_at_total_bits(self):
        reader = BitReader(b'\xff\xc0', 10)
        self.assertEqual(list(reader), [1] * 10)

    def test_reader_ignores_padding(self):
        reader = BitReader(bytes([0b10111111]), 2)
        self.assertEqual(list(reader), [1, 0])

    def test_reader_spans_bytes(self):
        reader = BitReader(bytes([0b10110000, 0b01000000]), 10)
        self.assertEqual(list(reader), [1, 0, 1, 1, 0, 0, 0, 0, 0, 1])
        self.assertEqual(reader.position, 10)

    def test_reader_is_exhausted_after_total_bits(self):
        reader = BitReader(b'\x80', 1)
        self.assertEqual(list(reader), [1])
        self.assertEqual(list(reader), [])

    def test_declared_bits_exceed_payload(self):
        with self.assertRaises(MalformedHeaderError):
            BitReader(b'\x00', 9)


class TestArtifactFormat(unittest.TestCase):
    def test_aaab_layout(self):
        expected = make_artifact([(97, 3), (98, 1)], 4, 4, b'\xe0')
        self.assertEqual(encode(b"aaab"), expected)

    def test_header_round_trip(self):
        header = ArtifactHeader.from_frequencies(frequencies_from([(1, 5), (200, 7)]), 17)
        self.assertEqual(header.valid_bits, 1)
        self.assertEqual(header.payload_size, 3)

        artifact = ArtifactFormat.create_artifact(header, b'\x01\x02\x03')
        parsed, payload = ArtifactFormat.read_artifact(artifact)

        self.assertEqual(parsed, header)
        self.assertEqual(payload, b'\x01\x02\x03')
        self.assertEqual(parsed.size, len(artifact) - 3)

    def test_trailing_bytes_are_ignored(self):
        artifact = encode(b"aaab") + b'\xff\xff'
        self.assertEqual(decode(artifact), b"aaab")

    def test_truncated_symbol_count(self):
        with self.assertRaises(TruncatedHeaderError):
            ArtifactFormat.read_artifact(b'\x01\x00')

    def test_truncated_entries(self):
        artifact = encode(b"aaab")
        with self.assertRaises(TruncatedHeaderError):
            ArtifactFormat.read_artifact(artifact[:10])

    def test_truncated_trailer(self):
        artifact = encode(b"aaab")
        with self.assertRaises(TruncatedHeaderError):
            ArtifactFormat.read_artifact(artifact[:4 + 18 + 5])

    def test_negative_symbol_count(self):
        with self.assertRaises(MalformedHeaderError):
            ArtifactFormat.read_artifact(make_artifact([], 8, 0, count=-1))

    def test_too_many_symbols(self):
        with self.assertRaises(MalformedHeaderError):
            ArtifactFormat.read_artifact(make_artifact([], 8, 0, count=300))

    def test_duplicate_symbol(self):
        with self.assertRaises(MalformedHeaderError):
            ArtifactFormat.read_artifact(make_artifact([(97, 1), (97, 1)], 2, 2, b'\x40'))

    def test_zero_frequency(self):
        with self.assertRaises(MalformedHeaderError):
            ArtifactFormat.read_artifact(make_artifact([(97, 0), (98, 1)], 1, 1, b'\x00'))

    def test_valid_bits_out_of_range(self):
        for valid_bits in (0, 9):
            with self.assertRaises(MalformedHeaderError):
                ArtifactFormat.read_artifact(make_artifact([(97, 3), (98, 1)], valid_bits, 4, b'\xe0'))

    def test_valid_bits_mismatch(self):
        with self.assertRaises(MalformedHeaderError):
            ArtifactFormat.read_artifact(make_artifact([(97, 3), (98, 1)], 5, 4, b'\xe0'))

    def test_total_bits_exceed_payload(self):
        with self.assertRaises(MalformedHeaderError):
            ArtifactFormat.read_artifact(make_artifact([(97, 3), (98, 7)], 2, 10, b'\xe0'))

    def test_format_errors_are_value_errors(self):
        self.assertTrue(issubclass(MalformedHeaderError, ValueError))
        self.assertTrue(issubclass(TruncatedHeaderError, FormatError))


class TestHuffmanCodec(unittest.TestCase):
    def assertRoundTrip(self, data):
        self.assertEqual(decode(encode(data)), data)

    def test_aaab(self):
        artifact = encode(b"aaab")
        header, _ = ArtifactFormat.read_artifact(artifact)
        self.assertEqual(header.total_bits, 4)
        self.assertEqual(decode(artifact), b"aaab")

    def test_empty_input(self):
        self.assertEqual(encode(b""), EMPTY_ARTIFACT)
        self.assertEqual(decode(EMPTY_ARTIFACT), b"")
        self.assertNotEqual(encode(b"\x00"), EMPTY_ARTIFACT)

    def test_zero_symbol_header(self):
        self.assertEqual(decode(make_artifact([], 8, 0)), b"")

    def test_single_byte(self):
        self.assertRoundTrip(b"\x00")
        self.assertRoundTrip(b"\xff")

    def test_single_symbol_uses_one_bit_codes(self):
        data = b"A" * 1000
        artifact = encode(data)
        header, payload = ArtifactFormat.read_artifact(artifact)

        self.assertEqual(header.entries, [(65, 1000)])
        self.assertEqual(header.total_bits, 1000)
        self.assertEqual(header.valid_bits, 8)
        self.assertEqual(len(payload), 125)
        self.assertEqual(decode(artifact), data)

    def test_single_symbol_bit_count_mismatch(self):
        artifact = make_artifact([(65, 5)], 4, 4, b'\x00')
        with self.assertRaises(MalformedHeaderError):
            decode(artifact)

    def test_equal_weights_left_to_right(self):
        self.assertEqual(encode(b"ab")[-1:], bytes([0b01000000]))

    def test_all_byte_values(self):
        self.assertRoundTrip(bytes(range(256)) * 10)

    def test_random_data(self):
        random.seed(42)
        self.assertRoundTrip(bytes(random.randint(0, 255) for _ in range(5000)))

    def test_repetitive_text(self):
        self.assertRoundTrip(b"Lorem ipsum dolor sit amet " * 200)

    def test_bytearray_input(self):
        self.assertEqual(decode(encode(bytearray(b"hello world"))), b"hello world")

    def test_header_consistency(self):
        data = b"abracadabra, a Huffman test string\n" * 17
        header, _ = ArtifactFormat.read_artifact(encode(data))

        frequencies = header.frequency_table()
        codes = build_code_table(build_tree(frequencies))

        self.assertEqual(sum(freq for _, freq in header.entries), len(data))
        self.assertEqual(header.total_bits, encoded_bit_count(frequencies, codes))

    def test_skewed_data_compresses(self):
        data = b"a" * 900 + bytes(range(100))
        header, _ = ArtifactFormat.read_artifact(encode(data))
        self.assertLess(header.total_bits, 8 * len(data))

    def test_encoding_is_reproducible(self):
        data = b"mississippi river" * 30
        self.assertEqual(encode(data), encode(data))

    def test_stream_ending_mid_code(self):
        # a=10, b=11, c=0; a single '1' bit is half a code
        artifact = make_artifact([(97, 1), (98, 1), (99, 2)], 1, 1, b'\x80')
        with self.assertRaises(MalformedHeaderError):
            decode(artifact)

    def test_frequencies_disagree_with_payload(self):
        artifact = make_artifact([(97, 4), (98, 1)], 4, 4, b'\xe0')
        with self.assertRaises(MalformedHeaderError):
            decode(artifact)

    def test_encoder_class(self):
        artifact = HuffmanEncoder.encode(b"xyz")
        self.assertEqual(HuffmanEncoder.decode(artifact), b"xyz")


class TestFileCodec(unittest.TestCase):
    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.codec = HuffmanCodec(quiet=True)

    def tearDown(self):
        if os.path.exists(self.temp_dir):
            shutil.rmtree(self.temp_dir)

    def path(self, name):
        return os.path.join(self.temp_dir, name)

    def write(self, name, data):
        with open(self.path(name), 'wb') as f:
            f.write(data)
        return self.path(name)

    def read(self, name):
        with open(self.path(name), 'rb') as f:
            return f.read()

    def test_encode_decode_file(self):
        source = self.write("input.txt", b"Hello World! " * 100)

        stats = self.codec.encode_file(source, self.path("encoded.bin"))
        self.assertEqual(stats.input_size, 1300)
        self.assertLess(stats.output_size, stats.input_size)
        self.assertLess(stats.ratio, 100)

        stats = self.codec.decode_file(self.path("encoded.bin"), self.path("decoded.txt"))
        self.assertEqual(stats.output_size, 1300)
        self.assertEqual(self.read("decoded.txt"), b"Hello World! " * 100)

    def test_output_directory_is_created(self):
        source = self.write("input.txt", b"abc")
        self.codec.encode_file(source, self.path(os.path.join("out", "encoded.bin")))
        self.assertTrue(os.path.isfile(self.path(os.path.join("out", "encoded.bin"))))

    def test_empty_input_writes_nothing(self):
        source = self.write("empty.txt", b"")
        with self.assertRaises(EmptyInputError):
            self.codec.encode_file(source, self.path("encoded.bin"))
        self.assertEqual(os.listdir(self.temp_dir), ["empty.txt"])

    def test_empty_artifact(self):
        source = self.write("empty.bin", b"")
        with self.assertRaises(EmptyInputError):
            self.codec.decode_file(source, self.path("decoded.txt"))

    def test_output_mode_matches_plain_open(self):
        reference = self.write("reference.bin", b"x")
        source = self.write("input.txt", b"file mode check")

        self.codec.encode_file(source, self.path("encoded.bin"))
        self.codec.decode_file(self.path("encoded.bin"), self.path("decoded.txt"))

        expected = stat.S_IMODE(os.stat(reference).st_mode)
        self.assertEqual(stat.S_IMODE(os.stat(self.path("encoded.bin")).st_mode), expected)
        self.assertEqual(stat.S_IMODE(os.stat(self.path("decoded.txt")).st_mode), expected)

    def test_missing_input(self):
        with self.assertRaises(OSError):
            self.codec.encode_file(self.path("missing.txt"), self.path("encoded.bin"))

    def test_verification_failure_writes_nothing(self):
        source = self.write("input.txt", b"some data")
        with mock.patch('file_codec.decode', return_value=b"other data"):
            with self.assertRaises(VerificationError):
                self.codec.encode_file(source, self.path("encoded.bin"))
        self.assertEqual(os.listdir(self.temp_dir), ["input.txt"])

    def test_corrupt_artifact_writes_nothing(self):
        source = self.write("encoded.bin", encode(b"aaab")[:12])
        with self.assertRaises(FormatError):
            self.codec.decode_file(source, self.path("decoded.txt"))
        self.assertEqual(os.listdir(self.temp_dir), ["encoded.bin"])

    def test_existing_output_survives_failure(self):
        source = self.write("encoded.bin", b"\x05\x00")
        target = self.write("decoded.txt", b"previous")
        with self.assertRaises(TruncatedHeaderError):
            self.codec.decode_file(source, target)
        self.assertEqual(self.read("decoded.txt"), b"previous")

    def test_describe(self):
        source = self.write("input.txt", b"aaab")
        self.codec.encode_file(source, self.path("encoded.bin"))

        info = self.codec.describe(self.path("encoded.bin"))
        self.assertEqual(info.header.original_size, 4)
        self.assertEqual(info.header.total_bits, 4)
        self.assertEqual(info.codes, {97: '1', 98: '0'})
        self.assertEqual(info.artifact_size, len(encode(b"aaab")))

    def test_list_artifact_output(self):
        source = self.write("input.txt", b"aaab\x00")
        self.codec.encode_file(source, self.path("encoded.bin"))

        output = io.StringIO()
        with redirect_stdout(output):
            self.codec.list_artifact(self.path("encoded.bin"))

        text = output.getvalue()
        self.assertIn("'a'", text)
        self.assertIn("0x00", text)
        self.assertIn("Symbols: 3", text)

    def test_progress_output(self):
        codec = HuffmanCodec()
        source = self.write("input.txt", b"progress " * 10)

        output = io.StringIO()
        with redirect_stdout(output):
            codec.encode_file(source, self.path("encoded.bin"))

        self.assertIn("Encoding input.txt... OK", output.getvalue())


class TestCommandLine(unittest.TestCase):
    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()

    def tearDown(self):
        if os.path.exists(self.temp_dir):
            shutil.rmtree(self.temp_dir)

    def path(self, name):
        return os.path.join(self.temp_dir, name)

    def run_cli(self, *argv):
        out, err = io.StringIO(), io.StringIO()
        with redirect_stdout(out), redirect_stderr(err):
            code = cli.main(list(argv))
        return code, out.getvalue(), err.getvalue()

    def test_encode_then_decode(self):
        with open(self.path("input.txt"), 'wb') as f:
            f.write(b"command line round trip\n" * 20)

        code, _, _ = self.run_cli('-q', 'encode', '-i', self.path("input.txt"),
                                  '-o', self.path("encoded.bin"))
        self.assertEqual(code, 0)

        code, _, _ = self.run_cli('-q', 'decode', '-i', self.path("encoded.bin"),
                                  '-o', self.path("decoded.txt"))
        self.assertEqual(code, 0)

        with open(self.path("decoded.txt"), 'rb') as f:
            self.assertEqual(f.read(), b"command line round trip\n" * 20)

    def test_info(self):
        with open(self.path("encoded.bin"), 'wb') as f:
            f.write(encode(b"aaab"))

        code, out, _ = self.run_cli('info', self.path("encoded.bin"))
        self.assertEqual(code, 0)
        self.assertIn("total bits: 4", out)

    def test_empty_input_is_not_an_error(self):
        open(self.path("empty.txt"), 'wb').close()

        code, out, _ = self.run_cli('encode', '-i', self.path("empty.txt"),
                                    '-o', self.path("encoded.bin"))
        self.assertEqual(code, 0)
        self.assertIn("Empty file", out)
        self.assertFalse(os.path.exists(self.path("encoded.bin")))

    def test_missing_file_reports_io_stage(self):
        code, _, err = self.run_cli('decode', '-i', self.path("missing.bin"),
                                    '-o', self.path("decoded.txt"))
        self.assertEqual(code, 1)
        self.assertIn("I/O error", err)

    def test_corrupt_file_reports_format_stage(self):
        with open(self.path("encoded.bin"), 'wb') as f:
            f.write(b"\xff\xff\xff\xff")

        code, _, err = self.run_cli('decode', '-i', self.path("encoded.bin"),
                                    '-o', self.path("decoded.txt"))
        self.assertEqual(code, 1)
        self.assertIn("Format error", err)
        self.assertFalse(os.path.exists(self.path("decoded.txt")))

    def test_no_command(self):
        code, out, _ = self.run_cli()
        self.assertEqual(code, 1)
        self.assertIn("encode", out)


def run_tests():
    loader = unittest.TestLoader()
    suite = unittest.TestSuite()

    suite.addTests(loader.loadTestsFromTestCase(TestMinHeap))
    suite.addTests(loader.loadTestsFromTestCase(TestHuffmanTree))
    suite.addTests(loader.loadTestsFromTestCase(TestBitStream))
    suite.addTests(loader.loadTestsFromTestCase(TestArtifactFormat))
    suite.addTests(loader.loadTestsFromTestCase(TestHuffmanCodec))
    suite.addTests(loader.loadTestsFromTestCase(TestFileCodec))
    suite.addTests(loader.loadTestsFromTestCase(TestCommandLine))

    runner = unittest.TextTestRunner(verbosity=2)
    result = runner.run(suite)

    return 0 if result.wasSuccessful() else 1


if __name__ == '__main__':
    sys.exit(run_tests())
