"""Tests for the execution time budget."""

from __future__ import annotations

from meal_image_mapper.orchestration.budget import TimeBudget


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


def test_wall_clock_budget_stops_inside_buffer():
    clock = FakeClock()
    budget = TimeBudget(240.0, 30.0, clock=clock)

    clock.now += 200.0
    assert budget.remaining_seconds() == 40.0
    assert not budget.should_stop()

    clock.now += 15.0
    assert budget.should_stop()
    assert budget.elapsed_ms() == 215000


def test_host_remaining_time_wins():
    budget = TimeBudget(240.0, 30.0, remaining_fn=lambda: 29.9)
    assert budget.should_stop()


def test_exactly_at_buffer_keeps_going():
    budget = TimeBudget(240.0, 30.0, remaining_fn=lambda: 30.0)
    assert not budget.should_stop()
