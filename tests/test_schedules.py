import math

import pytest

from oceanrun.config import ConfigurationError
from oceanrun.model.clock import Clock
from oceanrun.schedules import (
    IterationInterval,
    SpecifiedTimes,
    TimeInterval,
    WallTimeInterval,
    build_schedule,
)


class TestIterationInterval:
    def test_actuates_on_multiples(self):
        schedule = IterationInterval(3)
        fired = [i for i in range(10) if schedule(Clock(iteration=i))]
        assert fired == [0, 3, 6, 9]

    def test_offset(self):
        schedule = IterationInterval(4, offset=1)
        fired = [i for i in range(10) if schedule(Clock(iteration=i))]
        assert fired == [1, 5, 9]

    def test_initialize_actuates_at_start(self):
        assert IterationInterval(5).initialize(Clock())
        assert not IterationInterval(5).initialize(Clock(iteration=3))

    def test_never_requests_alignment(self):
        assert IterationInterval(5).next_actuation_time(Clock()) == math.inf

    @pytest.mark.parametrize("interval", [0, -2, 2.5, True])
    def test_invalid(self, interval):
        with pytest.raises(ConfigurationError):
            IterationInterval(interval)


class TestTimeInterval:
    def test_actuates_once_per_interval(self):
        schedule = TimeInterval(1.0)
        clock = Clock()
        assert schedule.initialize(clock)
        fired = []
        for _ in range(12):
            clock.tick(0.25)
            if schedule(clock):
                fired.append(clock.time)
        assert fired == [1.0, 2.0, 3.0]

    def test_next_actuation_time_counts_from_initialization(self):
        schedule = TimeInterval(10.0)
        clock = Clock(time=5.0)
        schedule.initialize(clock)
        assert schedule.next_actuation_time(clock) == 15.0
        clock.time = 15.0
        assert schedule(clock)
        assert schedule.next_actuation_time(clock) == 25.0

    def test_tolerates_roundoff(self):
        schedule = TimeInterval(0.3)
        clock = Clock()
        schedule.initialize(clock)
        clock.time = 0.1 + 0.2  # 0.30000000000000004
        assert schedule(clock)
        clock.time = 0.6 - 1e-13
        assert schedule(clock)

    def test_skipped_intervals_actuate_once(self):
        schedule = TimeInterval(1.0)
        clock = Clock()
        schedule.initialize(clock)
        clock.time = 3.5
        assert schedule(clock)
        assert not schedule(clock)
        assert schedule.next_actuation_time(clock) == 4.0

    @pytest.mark.parametrize("interval", [0.0, -1.0, math.inf])
    def test_invalid(self, interval):
        with pytest.raises(ConfigurationError):
            TimeInterval(interval)


class TestSpecifiedTimes:
    def test_actuates_once_at_each_time(self):
        schedule = SpecifiedTimes(3.0, 1.0, 2.0)
        assert schedule.times == [1.0, 2.0, 3.0]
        clock = Clock()
        assert not schedule.initialize(clock)
        assert schedule.next_actuation_time(clock) == 1.0

        fired = []
        for t in (0.5, 1.0, 1.5, 2.5, 3.0, 4.0):
            clock.time = t
            if schedule(clock):
                fired.append(t)
        assert fired == [1.0, 2.5, 3.0]
        assert schedule.next_actuation_time(clock) == math.inf

    def test_accepts_a_list(self):
        assert SpecifiedTimes([2, 1]).times == [1.0, 2.0]

    def test_needs_times(self):
        with pytest.raises(ConfigurationError):
            SpecifiedTimes()


class TestWallTimeInterval:
    def test_actuates_on_elapsed_wall_time(self):
        schedule = WallTimeInterval(10.0)
        clock = Clock()
        assert not schedule.initialize(clock)
        assert not schedule(clock, wall_time=5.0)
        assert schedule(clock, wall_time=10.5)
        assert not schedule(clock, wall_time=15.0)
        assert schedule(clock, wall_time=21.0)

    def test_restarting_the_wall_clock(self):
        schedule = WallTimeInterval(10.0)
        clock = Clock()
        schedule.initialize(clock)
        assert schedule(clock, wall_time=25.0)
        # A new run counts wall time from zero again
        schedule.restart_wall_clock()
        assert schedule(clock, wall_time=11.0)


def test_build_schedule():
    assert isinstance(build_schedule("iteration_interval", 10), IterationInterval)
    assert isinstance(build_schedule("time_interval", 60.0), TimeInterval)
    assert isinstance(build_schedule("wall_time_interval", 60.0), WallTimeInterval)
    with pytest.raises(ConfigurationError):
        build_schedule("every_other_tuesday", 1.0)


class TestPickedUp:
    def test_iteration_interval_does_not_repeat_the_restored_iteration(self):
        assert not IterationInterval(5).initialize(Clock(iteration=10), picked_up=True)

    def test_time_interval_keeps_its_boundaries(self):
        schedule = TimeInterval(2.0)
        clock = Clock(time=5.0, iteration=5)
        assert not schedule.initialize(clock, picked_up=True)
        assert schedule.next_actuation_time(clock) == 6.0
        clock.time = 6.0
        assert schedule(clock)

    def test_time_interval_on_a_boundary(self):
        schedule = TimeInterval(2.0)
        clock = Clock(time=4.0, iteration=4)
        assert not schedule.initialize(clock, picked_up=True)
        assert not schedule(clock)
        assert schedule.next_actuation_time(clock) == 6.0

    def test_specified_times_skip_passed_times(self):
        schedule = SpecifiedTimes(1.0, 3.0, 6.0)
        clock = Clock(time=3.0)
        assert not schedule.initialize(clock, picked_up=True)
        assert schedule.next_actuation_time(clock) == 6.0
