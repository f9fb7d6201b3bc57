import json
import os

import numpy as np
import pytest

from oceanrun.main import build_parser, main
from oceanrun.output import FieldTimeSeries

CONFIG = {
    "name": "cli",
    "grid": {"size": [4, 1, 4], "x": [0, 400], "z": [-40, 0], "topology": ["periodic", "flat", "bounded"]},
    "model": {"tracers": ["T", "S"], "initial_conditions": {"T": {"kind": "linear", "value": 10, "gradient": {"z": 0.1}}}},
    "dt": 5.0,
    "stop_iteration": 3,
    "outputs": [{"name": "fields", "filename": "cli.h5", "fields": ["T", "u"],
                 "schedule": "iteration_interval", "interval": 1}],
    "checkpoint": {"interval": 3},
}


@pytest.fixture
def config_file(tmp_path):
    data = dict(CONFIG, output_directory=str(tmp_path / "output"))
    path = tmp_path / "cli.json"
    path.write_text(json.dumps(data))
    return str(path)


def test_run_plot_and_export(config_file, tmp_path):
    log_file = str(tmp_path / "run.log")
    assert main(["run", config_file, "--log-file", log_file]) == 0
    output = str(tmp_path / "output" / "cli.h5")
    assert len(FieldTimeSeries(output, "T")) == 4
    assert "Simulation is stopping" in open(log_file, encoding="utf-8").read()

    assert main(["plot", output, "--field", "T", "--out", str(tmp_path / "T.png"), "--axis", "y", "--index", "0"]) == 0
    assert os.path.exists(tmp_path / "T.png")
    assert main(["plot", output, "--field", "T", "--out", str(tmp_path / "T.gif"), "--axis", "y", "--index", "0"]) == 0
    assert os.path.exists(tmp_path / "T.gif")

    assert main(["export", output, "--out", str(tmp_path / "vtu"), "--field", "T"]) == 0
    assert os.path.exists(tmp_path / "vtu" / "cli.pvd")

    # Picking up from the final checkpoint has nothing left to run; the log is appended
    assert main(["run", config_file, "--pickup", "--log-file", log_file]) == 0
    log = open(log_file, encoding="utf-8").read()
    assert "Simulation is stopping" in log and "Nothing to run" in log


def test_failures_return_nonzero(tmp_path):
    assert main(["run", str(tmp_path / "missing.json")]) == 1

    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps({"stop_iteration": 1, "grid": {"kind": "hexagonal"}}))
    assert main(["run", str(bad)]) == 1

    assert main(["plot", str(bad), "--field", "T", "--out", str(tmp_path / "T.png")]) == 1


def test_parser():
    args = build_parser().parse_args(["plot", "out.h5", "--field", "T", "--out", "T.png"])
    assert args.axis == "z" and args.index == -1 and args.snapshot == -1
    with pytest.raises(SystemExit):
        build_parser().parse_args(["run"])
    with pytest.raises(SystemExit):
        build_parser().parse_args(["--version"])


def test_setup_logging_levels(tmp_path):
    import logging

    from oceanrun.logging_config import setup_logging

    log_file = str(tmp_path / "levels.log")
    setup_logging("debug", log_file=log_file)
    logger = logging.getLogger("oceanrun")
    assert logger.level == logging.DEBUG
    assert len(logger.handlers) == 2

    setup_logging(logging.WARNING)
    assert logger.level == logging.WARNING
    assert len(logger.handlers) == 1

    with pytest.raises(ValueError, match="VERBOSE"):
        setup_logging("verbose")


def test_pickup_keeps_earlier_snapshots(tmp_path):
    data = dict(CONFIG, stop_iteration=10, checkpoint={"interval": 5}, output_directory=str(tmp_path / "output"))
    data["outputs"] = [dict(CONFIG["outputs"][0], fields=["T"])]
    path = tmp_path / "long.json"
    path.write_text(json.dumps(data))
    assert main(["run", str(path)]) == 0

    data["stop_iteration"] = 15
    path.write_text(json.dumps(data))
    assert main(["run", str(path), "--pickup"]) == 0

    T = FieldTimeSeries(str(tmp_path / "output" / "cli.h5"), "T")
    assert list(T.iterations) == list(range(16))
    np.testing.assert_allclose(T.times, 5.0 * np.arange(16))
