import numpy as np
import pytest

from NEGF_QTpy.block_partition import BlockPartition, BlockView
from NEGF_QTpy.errors import StructuralError


def test_offsets_and_signed_indices():
    """Offsets accumulate the block sizes and negative indices count from the end."""
    p = BlockPartition((2, 3, 4), 9)

    assert p.count == 3
    assert [p.offset(i) for i in range(3)] == [0, 2, 5]
    assert p.size(-1) == 4
    assert p.offset(-1) == 5
    assert p.resolve(-3) == 0
    assert p.slice(1) == slice(2, 5)
    assert p.covered == 9
    assert p.is_blocked


@pytest.mark.parametrize("index", [3, -4, 10])
def test_out_of_range_index(index):
    p = BlockPartition((2, 3, 4), 9)

    with pytest.raises(StructuralError) as e:
        p.offset(index)
    assert e.value.block_index == index


@pytest.mark.parametrize("sizes", [(), (2, 0, 3), (4, -1), (5, 6)])
def test_validated_rejects_bad_sizes(sizes):
    with pytest.raises(StructuralError):
        BlockPartition.validated(sizes, 10)


@pytest.mark.parametrize("sizes", [None, (), (5, 6), (3, 0)])
def test_from_sizes_falls_back_to_single_block(sizes):
    """Missing or invalid sizes give one block spanning the matrix."""
    p = BlockPartition.from_sizes(sizes, 10)

    assert p == BlockPartition.single(10)
    assert not p.is_blocked
    assert p.size(0) == 10


def test_completed_adds_trailing_block():
    p = BlockPartition.validated((2, 2, 2, 2), 10)

    assert p.covered == 8
    full = p.completed()
    assert full.sizes == (2, 2, 2, 2, 2)
    assert full.covered == 10
    assert full.completed() is full


def test_reversed_and_equality():
    p = BlockPartition((1, 2, 3), 6)

    assert p.reversed().sizes == (3, 2, 1)
    assert p.reversed().reversed() == p
    assert hash(p) == hash(BlockPartition([1, 2, 3], 6))
    assert p != BlockPartition((1, 2, 3), 7)


def test_column_sizes():
    p = BlockPartition((2, 2), 4, column_sizes=(1, 3))

    assert p.col_count == 2
    assert p.col_slice(-1) == slice(1, 4)


def test_block_view_does_not_copy():
    """Blocks read through a view share memory with the backing matrix."""
    a = np.arange(36, dtype=float).reshape(6, 6)
    view = BlockView(a, BlockPartition((1, 2, 3), 6))

    block = view[1, 2]
    assert block.shape == (2, 3)
    assert np.shares_memory(block, a)
    assert np.array_equal(block, a[1:3, 3:6])
    assert np.array_equal(view.block(-1, -1), a[3:, 3:])


def test_block_view_sub_views():
    a = np.arange(36, dtype=float).reshape(6, 6)
    view = BlockView(a, BlockPartition((1, 2, 3), 6))

    sub = view.blocks(1, 1, 2, 2)
    assert sub.shape == (5, 5)
    assert np.array_equal(sub[0, 0], a[1:3, 1:3])
    assert np.array_equal(sub.matrix, a[1:, 1:])

    # negative counts extend backwards from the anchor
    back = view.blocks(-1, -1, -2, -3)
    assert back.row_count == 2 and back.col_count == 3
    assert np.array_equal(back.matrix, a[1:, :])

    with pytest.raises(StructuralError):
        view.blocks(1, 1, 3, 1)
    with pytest.raises(StructuralError):
        sub[2, 0]


def test_zero_block_is_fresh():
    a = np.ones((4, 4), dtype=np.complex128)
    view = BlockView(a, BlockPartition((1, 3), 4))

    z = view.zero_block(1, 0)
    assert z.shape == (3, 1)
    assert z.dtype == np.complex128
    assert not np.shares_memory(z, a)
    assert np.all(z == 0)


def test_block_view_rejects_small_matrix():
    with pytest.raises(StructuralError):
        BlockView(np.zeros((3, 3)), BlockPartition((2, 2), 4))
