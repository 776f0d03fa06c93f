"""
Командная строка для кодека Хаффмана.
"""

import argparse
import sys
from typing import List, Optional

from errors import EmptyInputError, FormatError, HuffmanError
from file_codec import DEFAULT_DECODED, DEFAULT_ENCODED, DEFAULT_INPUT, HuffmanCodec


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Static Huffman byte codec',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py encode -i input.txt -o encoded.bin
  python main.py decode -i encoded.bin -o decoded.txt
  python main.py info encoded.bin
        """
    )
    parser.add_argument('-q', '--quiet', action='store_true', help='Suppress progress output')

    subparsers = parser.add_subparsers(dest='command', help='Command')

    encode_parser = subparsers.add_parser('encode', help='Encode a file')
    encode_parser.add_argument('-i', '--input', default=DEFAULT_INPUT, help='Input file')
    encode_parser.add_argument('-o', '--output', default=DEFAULT_ENCODED, help='Encoded file')
    encode_parser.add_argument('--no-verify', action='store_true',
                               help='Skip the in-memory round-trip check')

    decode_parser = subparsers.add_parser('decode', help='Decode a file')
    decode_parser.add_argument('-i', '--input', default=DEFAULT_ENCODED, help='Encoded file')
    decode_parser.add_argument('-o', '--output', default=DEFAULT_DECODED, help='Output file')

    info_parser = subparsers.add_parser('info', help='Show the header of an encoded file')
    info_parser.add_argument('artifact', help='Encoded file')

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    verify = not getattr(args, 'no_verify', False)
    codec = HuffmanCodec(verify=verify, quiet=args.quiet)

    try:
        if args.command == 'encode':
            codec.encode_file(args.input, args.output)

        elif args.command == 'decode':
            codec.decode_file(args.input, args.output)

        elif args.command == 'info':
            codec.list_artifact(args.artifact)

    except EmptyInputError as e:
        if not args.quiet:
            print(f"Empty file: {e}")
        return 0

    except FormatError as e:
        print(f"Format error: {e}", file=sys.stderr)
        return 1

    except OSError as e:
        print(f"I/O error: {e}", file=sys.stderr)
        return 1

    except HuffmanError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
