from __future__ import annotations

import pytest

from NEGF_QTpy.io.write_header import headered_function, write_header


class TestWriteHeader:

    def test_long_messages(self):

        msg = "*" * 80

        with pytest.raises(ValueError) as _:
            write_header(msg)

    @pytest.mark.parametrize("msg", ["Energy Loop", "Writing data"])
    def test_output(self, capfd, msg):

        write_header(msg)

        out, _ = capfd.readouterr()
        lines = out.split("\n")

        for line, expected in zip(lines, self._get_expected_output(msg)):
            assert line == expected

    def test_headered_function(self, capfd):

        @headered_function("Energy Loop")
        def solve(x):
            print("solving")
            return 2 * x

        assert solve(3) == 6
        assert solve.__name__ == "solve"

        out, _ = capfd.readouterr()
        lines = out.split("\n")
        assert tuple(lines[:3]) == self._get_expected_output("Energy Loop")
        assert lines[3] == "solving"

    def _get_expected_output(self, msg: str) -> tuple[str, ...]:
        return (
            f"  {'='*70}",
            f"  =  {msg:^66s}=",
            f"  {'='*70}",
        )
