import logging

import pytest

from codec import decode
from contaminate import distort
from main import _coerce, _multiplier_overrides, _parse_kv_pairs, main


class TestKvPairs:
    def test_coerce(self):
        assert _coerce("3") == 3
        assert _coerce("2.5") == 2.5
        assert _coerce("true") is True
        assert _coerce("abc") == "abc"

    def test_parse(self):
        assert _parse_kv_pairs(["darkest=2.5", "junk", "mix = 3"]) == {"darkest": 2.5, "mix": 3}
        assert _parse_kv_pairs(None) == {}

    def test_multiplier_overrides(self, caplog):
        with caplog.at_level(logging.WARNING, logger="contaminate"):
            out = _multiplier_overrides({"Darkest": 3, "colour": 1})
        assert out == {"darkest": 3.0}
        assert "colour" in caplog.text

    def test_non_numeric_multiplier(self):
        with pytest.raises(SystemExit):
            _multiplier_overrides({"mix": "lots"})


class TestCommands:
    def test_list(self, capsys):
        assert main(["list"]) == 0
        out = capsys.readouterr().out
        assert "darkest" in out and "2.5" in out

    def test_run_identity(self, tmp_path, png_path, noisy):
        out_path = tmp_path / "out.png"
        assert main(["run", "--url", str(png_path), "--out", str(out_path), "--scale", "0"]) == 0
        assert decode(out_path.read_bytes()) == noisy

    def test_run_with_style_and_extra(self, tmp_path, png_path, noisy):
        out_path = tmp_path / "out.png"
        rc = main(["run", "--url", str(png_path), "--out", str(out_path),
                   "--scale", "300", "--style", "lightest", "--seed", "4", "--extra", "lightest=1"])
        assert rc == 0
        expected = distort(noisy, 300, 0, "lightest", seed=4, multipliers={"lightest": 1.0})
        assert decode(out_path.read_bytes()) == expected

    def test_run_missing_input(self, tmp_path):
        assert main(["run", "--url", str(tmp_path / "missing.png"), "--out", str(tmp_path / "o.png")]) == 1

    def test_run_negative_scale(self, tmp_path, png_path):
        assert main(["run", "--url", str(png_path), "--out", str(tmp_path / "o.png"), "--scale", "-1"]) == 1

    def test_run_negative_seed(self, tmp_path, png_path):
        out_path = tmp_path / "o.png"
        assert main(["run", "--url", str(png_path), "--out", str(out_path), "--seed", "-1"]) == 1
        assert not out_path.exists()

    def test_bench_negative_seed(self, png_path):
        assert main(["bench", "--url", str(png_path), "--runs", "1", "--seed", "-1"]) == 1

    def test_run_unexpected_error_is_logged(self, tmp_path, png_path, monkeypatch, caplog):
        def boom(*args, **kwargs):
            raise RuntimeError("disk on fire")

        monkeypatch.setattr("state.distort", boom)
        assert main(["run", "--url", str(png_path), "--out", str(tmp_path / "o.png")]) == 1
        assert "disk on fire" in caplog.text

    def test_preview(self, tmp_path, png_path):
        out_path = tmp_path / "p.png"
        assert main(["preview", "--url", str(png_path), "--out", str(out_path), "--max-dim", "10"]) == 0
        assert max(decode(out_path.read_bytes()).size) == 10

    def test_bench(self, capsys, png_path):
        assert main(["bench", "--url", str(png_path), "--runs", "2", "--style", "mix"]) == 0
        assert "2 run(s)" in capsys.readouterr().out

    def test_bad_style_rejected_by_parser(self, png_path, tmp_path):
        with pytest.raises(SystemExit):
            main(["run", "--url", str(png_path), "--out", str(tmp_path / "o.png"), "--style", "sepia"])
