"""
Построение дерева Хаффмана и таблицы кодов.
Частые байты получают короткие коды, редкие - длинные.
"""

import heapq
from collections import Counter
from itertools import count
from typing import Dict, List, Optional, Tuple

from errors import CodeLengthError, EmptyHeapError


MAX_SYMBOLS = 256
MAX_HEAP_SIZE = 256
MAX_CODE_LENGTH = 255


class HuffmanNode:
    __slots__ = ('symbol', 'weight', 'left', 'right')

    def __init__(self, symbol: Optional[int] = None, weight: int = 0,
                 left: Optional['HuffmanNode'] = None,
                 right: Optional['HuffmanNode'] = None):
        self.symbol = symbol
        self.weight = weight
        self.left = left
        self.right = right

    @property
    def is_leaf(self) -> bool:
        return self.left is None and self.right is None

    def __repr__(self):
        if self.is_leaf:
            return f'Leaf({self.symbol!r}, {self.weight})'
        return f'Internal({self.weight})'


class MinHeap:
    """
    Min-heap of tree nodes ordered by weight.

    Equal weights are served first-in first-out: each entry carries an
    insertion sequence number, so the earliest inserted node wins a tie.
    Encoder and decoder both build their trees through this heap.
    """

    def __init__(self, capacity: int = MAX_HEAP_SIZE):
        self.capacity = capacity
        self._entries: List[Tuple[int, int, HuffmanNode]] = []
        self._sequence = count()

    def __len__(self) -> int:
        return len(self._entries)

    def insert(self, node: HuffmanNode):
        if len(self._entries) >= self.capacity:
            raise OverflowError(f"Heap capacity {self.capacity} exceeded")
        heapq.heappush(self._entries, (node.weight, next(self._sequence), node))

    def extract_min(self) -> HuffmanNode:
        if not self._entries:
            raise EmptyHeapError("extract_min() called on an empty heap")
        return heapq.heappop(self._entries)[2]


def build_frequency_table(data: bytes) -> List[int]:
    table = [0] * MAX_SYMBOLS
    for byte, freq in Counter(data).items():
        table[byte] = freq
    return table


def build_tree(frequencies: List[int]) -> Optional[HuffmanNode]:
    """Return the root of the Huffman tree, or None if every count is zero."""
    heap = MinHeap()
    for symbol, weight in enumerate(frequencies):
        if weight > 0:
            heap.insert(HuffmanNode(symbol=symbol, weight=weight))

    if not heap:
        return None

    while len(heap) > 1:
        left = heap.extract_min()
        right = heap.extract_min()
        heap.insert(HuffmanNode(weight=left.weight + right.weight,
                                left=left, right=right))

    return heap.extract_min()


def build_code_table(root: Optional[HuffmanNode]) -> Dict[int, str]:
    codes: Dict[int, str] = {}

    if root is None:
        return codes

    # single distinct symbol: there is no edge to walk, use a 1-bit code
    if root.is_leaf:
        codes[root.symbol] = '0'
        return codes

    stack: List[Tuple[HuffmanNode, str]] = [(root, '')]
    while stack:
        node, path = stack.pop()

        if len(path) > MAX_CODE_LENGTH:
            raise CodeLengthError(
                f"Code length {len(path)} exceeds {MAX_CODE_LENGTH}")

        if node.is_leaf:
            codes[node.symbol] = path
            continue

        # right pushed first so the left subtree is visited first
        stack.append((node.right, path + '1'))
        stack.append((node.left, path + '0'))

    return codes
