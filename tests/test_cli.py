from __future__ import annotations

import json
import os
from pathlib import Path

import matplotlib
import numpy as np
import pandas as pd
import pytest

os.environ.setdefault("MPLBACKEND", "Agg")
matplotlib.use("Agg", force=True)

from simbench import cli


def _write(path: Path, seed: int, n_cells: int) -> Path:
    rng = np.random.default_rng(seed)
    X = rng.poisson(rng.gamma(2.0, 2.0, size=(12, 1)), size=(12, n_cells))
    pd.DataFrame(X, index=[f"g{i}" for i in range(12)], columns=[f"c{i}" for i in range(n_cells)]).to_csv(path)
    return path


def test_compare_command_writes_differences(tmp_path: Path, capsys):
    real = _write(tmp_path / "real.csv", 0, 30)
    sim_a = _write(tmp_path / "a.csv", 1, 25)
    sim_b = _write(tmp_path / "b.csv", 2, 35)
    out = tmp_path / "out"
    rc = cli.main(
        [
            "compare",
            "--real",
            real.as_posix(),
            "--sim",
            f"ModelA={sim_a.as_posix()}",
            "--sim",
            f"ModelB={sim_b.as_posix()}",
            "--outdir",
            out.as_posix(),
            "--no-plots",
            "--statistics",
            "MAD",
            "RMSE",
        ]
    )
    assert rc == 0
    diffs = pd.read_csv(out / "tables" / "differences.csv")
    assert set(diffs["Model"]) == {"ModelA", "ModelB"}
    assert set(diffs["Statistic"]) == {"MAD", "RMSE"}
    assert "n_records=28" in capsys.readouterr().out
    assert not (out / "tables" / "gof_summary.csv").exists()


def test_run_command_uses_config(tmp_path: Path, capsys):
    _write(tmp_path / "toy.csv", 0, 20)
    cfg = {
        "outdir": (tmp_path / "bench").as_posix(),
        "datasets": [{"name": "toy", "path": "toy.csv"}],
        "models": ["Poisson"],
        "make_plots": False,
        "fit_gof": False,
    }
    cfg_path = tmp_path / "bench.json"
    cfg_path.write_text(json.dumps(cfg), encoding="utf-8")
    assert cli.main(["run", "--config", cfg_path.as_posix()]) == 0
    assert (tmp_path / "bench" / "tables" / "differences.csv").exists()
    assert "n_records=7" in capsys.readouterr().out


def test_user_errors_return_exit_code_two(tmp_path: Path, capsys):
    rc = cli.main(
        [
            "compare",
            "--real",
            (tmp_path / "missing.csv").as_posix(),
            "--sim",
            "A=whatever.csv",
            "--outdir",
            (tmp_path / "out").as_posix(),
        ]
    )
    assert rc == 2
    assert "error:" in capsys.readouterr().err


def test_malformed_sim_argument_rejected(tmp_path: Path):
    with pytest.raises(SystemExit) as info:
        cli.main(["compare", "--real", "r.csv", "--sim", "no-equals", "--outdir", tmp_path.as_posix()])
    assert info.value.code == 2
