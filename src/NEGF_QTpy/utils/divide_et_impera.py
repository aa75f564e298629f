def divide_work(start: int, end: int, rank: int, size: int) -> tuple[int, int]:
    """
    Divide the inclusive range ``[start, end]`` across MPI ranks.

    The first ``total % size`` ranks receive one extra item. Ranks beyond
    the number of items receive an empty range (``i_end < i_start``).
    """
    total = end - start + 1
    chunk = total // size
    remainder = total % size
    i_start = start + rank * chunk + min(rank, remainder)
    i_end = i_start + chunk - 1
    if rank < remainder:
        i_end += 1
    return i_start, i_end


def local_indices(count: int, rank: int, size: int) -> range:
    """0-based indices of `count` items owned by `rank`."""
    if count <= 0:
        return range(0)
    i_start, i_end = divide_work(0, count - 1, rank, size)
    return range(i_start, i_end + 1)
