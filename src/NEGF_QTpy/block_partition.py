from __future__ import annotations

import logging
from typing import Optional, Sequence

import numpy as np

from NEGF_QTpy.errors import StructuralError

logger = logging.getLogger(__name__)


class BlockPartition:
    """
    Immutable partition of a square (or rectangular) matrix into contiguous
    row and column blocks.

    Parameters
    ----------
    `sizes` : sequence of int
        Row block sizes, in order. Every entry must be positive.
    `dimension` : int
        Dimension of the partitioned matrix. The sum of the sizes may be
        smaller than `dimension`, the partition then covers the leading
        sub-matrix only.
    `column_sizes` : sequence of int, optional
        Column block sizes. Defaults to `sizes`.

    Notes
    -----
    Signed block indices are accepted everywhere: ``-1`` is the last block,
    ``-count`` the first one.
    """

    __slots__ = ("_sizes", "_col_sizes", "_offsets", "_col_offsets", "_dimension")

    def __init__(
        self,
        sizes: Sequence[int],
        dimension: int,
        column_sizes: Optional[Sequence[int]] = None,
    ):
        sizes = tuple(int(s) for s in sizes)
        col_sizes = sizes if column_sizes is None else tuple(int(s) for s in column_sizes)
        _check_sizes(sizes, dimension, "row")
        _check_sizes(col_sizes, dimension, "column")

        self._sizes = sizes
        self._col_sizes = col_sizes
        self._offsets = tuple(np.concatenate(([0], np.cumsum(sizes))).tolist())
        self._col_offsets = tuple(np.concatenate(([0], np.cumsum(col_sizes))).tolist())
        self._dimension = int(dimension)

    @classmethod
    def single(cls, dimension: int) -> "BlockPartition":
        """Partition made of one block covering the whole matrix."""
        return cls((dimension,), dimension)

    @classmethod
    def validated(cls, sizes: Sequence[int], dimension: int) -> "BlockPartition":
        """Strict constructor: raise `StructuralError` on invalid sizes."""
        return cls(sizes, dimension)

    @classmethod
    def from_sizes(
        cls, sizes: Optional[Sequence[int]], dimension: int
    ) -> "BlockPartition":
        """
        Lenient constructor.

        When `sizes` is missing or does not fit into `dimension`, the
        partition falls back to a single block spanning the full matrix.
        """
        if sizes is None or len(sizes) == 0:
            return cls.single(dimension)
        try:
            return cls(sizes, dimension)
        except StructuralError as e:
            logger.warning(
                f"Invalid block sizes {list(sizes)} for dimension {dimension} ({e}); "
                "using a single block."
            )
            return cls.single(dimension)

    @property
    def count(self) -> int:
        return len(self._sizes)

    @property
    def col_count(self) -> int:
        return len(self._col_sizes)

    @property
    def sizes(self) -> tuple[int, ...]:
        return self._sizes

    @property
    def column_sizes(self) -> tuple[int, ...]:
        return self._col_sizes

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def covered(self) -> int:
        """Number of rows covered by the partition."""
        return self._offsets[-1]

    @property
    def col_covered(self) -> int:
        return self._col_offsets[-1]

    @property
    def is_blocked(self) -> bool:
        return self.count > 1

    def resolve(self, index: int) -> int:
        """Map a signed row block index onto ``[0, count)``."""
        return _resolve(index, self.count)

    def col_resolve(self, index: int) -> int:
        return _resolve(index, self.col_count)

    def offset(self, index: int) -> int:
        return self._offsets[self.resolve(index)]

    def size(self, index: int) -> int:
        return self._sizes[self.resolve(index)]

    def col_offset(self, index: int) -> int:
        return self._col_offsets[self.col_resolve(index)]

    def col_size(self, index: int) -> int:
        return self._col_sizes[self.col_resolve(index)]

    def slice(self, index: int) -> slice:
        i = self.resolve(index)
        return slice(self._offsets[i], self._offsets[i + 1])

    def col_slice(self, index: int) -> slice:
        j = self.col_resolve(index)
        return slice(self._col_offsets[j], self._col_offsets[j + 1])

    def completed(self) -> "BlockPartition":
        """
        Partition covering the whole matrix: uncovered trailing rows (and
        columns) become one extra block.
        """
        rows = self._sizes
        cols = self._col_sizes
        if self.covered < self._dimension:
            rows = rows + (self._dimension - self.covered,)
        if self.col_covered < self._dimension:
            cols = cols + (self._dimension - self.col_covered,)
        if rows is self._sizes and cols is self._col_sizes:
            return self
        return BlockPartition(rows, self._dimension, column_sizes=cols)

    def reversed(self) -> "BlockPartition":
        """Mirror partition, used to sweep a matrix from its last block."""
        return BlockPartition(
            self._sizes[::-1], self._dimension, column_sizes=self._col_sizes[::-1]
        )

    def __eq__(self, other) -> bool:
        if not isinstance(other, BlockPartition):
            return NotImplemented
        return (
            self._sizes == other._sizes
            and self._col_sizes == other._col_sizes
            and self._dimension == other._dimension
        )

    def __hash__(self) -> int:
        return hash((self._sizes, self._col_sizes, self._dimension))

    def __repr__(self) -> str:
        return f"BlockPartition(sizes={list(self._sizes)}, dimension={self._dimension})"


def _resolve(index: int, count: int) -> int:
    if index < -count or index >= count:
        raise StructuralError(
            f"Block index {index} out of range for {count} blocks", block_index=index
        )
    return index + count if index < 0 else index


def _check_sizes(sizes: tuple[int, ...], dimension: int, kind: str) -> None:
    if len(sizes) == 0:
        raise StructuralError(f"At least one {kind} block is required")
    for i, s in enumerate(sizes):
        if s <= 0:
            raise StructuralError(
                f"{kind.capitalize()} block {i} has non-positive size {s}", block_index=i
            )
    if sum(sizes) > dimension:
        raise StructuralError(
            f"{kind.capitalize()} block sizes sum to {sum(sizes)}, "
            f"exceeding matrix dimension {dimension}"
        )


class BlockView:
    """
    Non-owning, block-addressed view of a rectangular range of a matrix.

    Parameters
    ----------
    `matrix` : np.ndarray
        Backing 2D array. It must outlive the view; the view never copies
        or modifies it.
    `partition` : BlockPartition
        Partition of the backing array.
    `row_start`, `col_start` : int
        First row/column block covered by the view (signed).
    `row_count`, `col_count` : int, optional
        Number of blocks covered. Defaults to all remaining blocks.
    """

    def __init__(
        self,
        matrix: np.ndarray,
        partition: BlockPartition,
        row_start: int = 0,
        col_start: int = 0,
        row_count: Optional[int] = None,
        col_count: Optional[int] = None,
    ):
        if matrix.ndim != 2:
            raise StructuralError(f"Expected a 2D matrix, got ndim={matrix.ndim}")
        if matrix.shape[0] < partition.covered or matrix.shape[1] < partition.col_covered:
            raise StructuralError(
                f"Matrix of shape {matrix.shape} is smaller than {partition!r}"
            )
        self._matrix = matrix
        self._partition = partition
        self._row_start = partition.resolve(row_start)
        self._col_start = partition.col_resolve(col_start)
        if row_count is None:
            row_count = partition.count - self._row_start
        if col_count is None:
            col_count = partition.col_count - self._col_start
        if row_count <= 0 or self._row_start + row_count > partition.count:
            raise StructuralError(f"Invalid row block count {row_count}")
        if col_count <= 0 or self._col_start + col_count > partition.col_count:
            raise StructuralError(f"Invalid column block count {col_count}")
        self._row_count = row_count
        self._col_count = col_count

    @property
    def partition(self) -> BlockPartition:
        return self._partition

    @property
    def row_count(self) -> int:
        return self._row_count

    @property
    def col_count(self) -> int:
        return self._col_count

    @property
    def shape(self) -> tuple[int, int]:
        return self.matrix.shape

    @property
    def matrix(self) -> np.ndarray:
        """View of the whole covered region."""
        p = self._partition
        r0 = p.offset(self._row_start)
        r1 = p.offset(self._row_start + self._row_count - 1) + p.size(
            self._row_start + self._row_count - 1
        )
        c0 = p.col_offset(self._col_start)
        c1 = p.col_offset(self._col_start + self._col_count - 1) + p.col_size(
            self._col_start + self._col_count - 1
        )
        return self._matrix[r0:r1, c0:c1]

    def _local(self, i: int, j: int) -> tuple[int, int]:
        return (
            self._row_start + _resolve(i, self._row_count),
            self._col_start + _resolve(j, self._col_count),
        )

    def block(self, i: int, j: int) -> np.ndarray:
        """Read-only access to block ``(i, j)`` relative to the view."""
        bi, bj = self._local(i, j)
        return self._matrix[self._partition.slice(bi), self._partition.col_slice(bj)]

    def __getitem__(self, key: tuple[int, int]) -> np.ndarray:
        return self.block(*key)

    def blocks(self, i: int, j: int, n: int = 1, m: int = 1) -> "BlockView":
        """
        Sub-view of ``|n| x |m|`` blocks anchored at block ``(i, j)``.

        Negative counts extend backwards from the anchor block.
        """
        if n == 0 or m == 0:
            raise StructuralError("Block counts must be non-zero")
        bi, bj = self._local(i, j)
        if n < 0:
            bi, n = bi + n + 1, -n
        if m < 0:
            bj, m = bj + m + 1, -m
        if bi < self._row_start or bi + n > self._row_start + self._row_count:
            raise StructuralError("Row block range out of view", block_index=i)
        if bj < self._col_start or bj + m > self._col_start + self._col_count:
            raise StructuralError("Column block range out of view", block_index=j)
        return BlockView(self._matrix, self._partition, bi, bj, n, m)

    def zero_block(self, i: int, j: int) -> np.ndarray:
        """Fresh zero matrix with the shape of block ``(i, j)``."""
        return np.zeros(self.block(i, j).shape, dtype=self._matrix.dtype)
