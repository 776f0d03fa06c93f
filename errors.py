"""
Иерархия исключений кодека Хаффмана.
"""


class HuffmanError(Exception):
    pass


class FormatError(HuffmanError, ValueError):
    """Artifact is corrupt or incomplete."""


class MalformedHeaderError(FormatError):
    pass


class TruncatedHeaderError(FormatError):
    pass


class EmptyHeapError(HuffmanError, IndexError):
    pass


class CodeLengthError(HuffmanError):
    pass


class EmptyInputError(HuffmanError):
    """Input has zero bytes: nothing to encode, not a failure."""


class VerificationError(HuffmanError):
    pass
