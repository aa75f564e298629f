from __future__ import annotations

import enum
from dataclasses import dataclass, replace


class RangeType(enum.Enum):
    FULL = "full"
    INDEX = "index"
    MIDDLE_INDEX = "middle_index"
    VALUE = "value"


@dataclass(frozen=True)
class EigenRange:
    """
    Selection of eigenpairs handed to the Hermitian eigensolver.

    Index ranges are 0-based and inclusive. Negative indices count from the
    top of the spectrum (``-1`` is the highest eigenvalue). Middle ranges are
    offsets around ``size // 2``. Value ranges select eigenvalues in the
    half-open interval ``(lowest, highest]``.
    """

    kind: RangeType = RangeType.FULL
    begin: int = 0
    end: int = 0
    lowest: float = 0.0
    highest: float = 0.0

    @classmethod
    def full(cls) -> "EigenRange":
        return cls()

    @classmethod
    def span(cls, begin: int, end: int) -> "EigenRange":
        return cls(RangeType.INDEX, begin=int(begin), end=int(end))

    @classmethod
    def lowest_count(cls, count: int) -> "EigenRange":
        return cls.span(0, count - 1)

    @classmethod
    def highest_count(cls, count: int) -> "EigenRange":
        return cls.span(-count, -1)

    @classmethod
    def middle(cls, count: int) -> "EigenRange":
        # -((count - 1) // 2) keeps the offsets symmetric for even counts
        return cls(RangeType.MIDDLE_INDEX, begin=-((count - 1) // 2), end=count // 2)

    @classmethod
    def middle_span(cls, begin: int, end: int) -> "EigenRange":
        return cls(RangeType.MIDDLE_INDEX, begin=int(begin), end=int(end))

    @classmethod
    def values(cls, lowest: float, highest: float) -> "EigenRange":
        if highest <= lowest:
            raise ValueError("highest has to be greater than lowest")
        return cls(RangeType.VALUE, lowest=float(lowest), highest=float(highest))

    @property
    def is_full(self) -> bool:
        return self.kind is RangeType.FULL

    def fit_indices_to_size(self, size: int) -> "EigenRange":
        """
        Resolve middle and negative indices against a matrix of dimension `size`.

        Returns a new range; full and value ranges are returned unchanged.

        Raises
        ------
        ValueError
            If the resolved index range is empty or falls outside ``[0, size)``.
        """
        if self.kind in (RangeType.FULL, RangeType.VALUE):
            return self

        begin, end = self.begin, self.end
        if self.kind is RangeType.MIDDLE_INDEX:
            begin += size // 2
            end += size // 2
        if begin < 0:
            begin += size
        if end < 0:
            end += size
        if not (0 <= begin <= end < size):
            raise ValueError(
                f"Index range [{self.begin}, {self.end}] does not fit a matrix of size {size}"
            )
        return replace(self, kind=RangeType.INDEX, begin=begin, end=end)
