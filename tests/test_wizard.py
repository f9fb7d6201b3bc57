import math

import pytest

from oceanrun.config import ConfigurationError
from oceanrun.schedules import IterationInterval
from oceanrun.simulation import Callback, Simulation, TimeStepWizard


def test_grows_at_most_by_max_change_when_at_rest(model):
    wizard = TimeStepWizard(cfl=0.5, max_change=1.1)
    assert wizard.new_time_step(model, 10.0) == pytest.approx(11.0)


def test_targets_cfl(model):
    model.set(u=1.0)
    # Advection timescale is dx / u = 100 s
    wizard = TimeStepWizard(cfl=0.5)
    assert wizard.new_time_step(model, 60.0) == pytest.approx(50.0)


def test_limits_decrease(model):
    model.set(u=1.0)
    wizard = TimeStepWizard(cfl=0.5, min_change=0.5)
    assert wizard.new_time_step(model, 200.0) == pytest.approx(100.0)


def test_respects_bounds(model):
    model.set(u=1.0)
    assert TimeStepWizard(cfl=0.5, max_dt=40.0).new_time_step(model, 60.0) == 40.0
    assert TimeStepWizard(cfl=0.5, min_dt=55.0).new_time_step(model, 60.0) == 55.0


def test_threshold_keeps_small_changes(model):
    model.set(u=1.0)
    wizard = TimeStepWizard(cfl=0.5, threshold=0.5)
    assert wizard.new_time_step(model, 60.0) == 60.0


@pytest.mark.parametrize("kwargs", [
    dict(cfl=0.0),
    dict(max_change=0.9),
    dict(min_change=0.0),
    dict(min_change=1.5),
    dict(min_dt=10.0, max_dt=1.0),
    dict(max_dt=0.0),
    dict(threshold=-0.1),
])
def test_invalid(kwargs):
    with pytest.raises(ConfigurationError):
        TimeStepWizard(**kwargs)


def test_as_callback(model):
    model.set(u=1.0)
    simulation = Simulation(model, dt=100.0, stop_iteration=3)
    simulation.add_callback(Callback(TimeStepWizard(cfl=0.2, max_dt=math.inf), IterationInterval(1), name="wizard"))
    simulation.run()
    # 100 -> 50 -> 25 -> 20, limited by min_change = 0.5
    assert simulation.dt == pytest.approx(20.0)
    assert model.clock.time == pytest.approx(100.0 + 50.0 + 25.0)
