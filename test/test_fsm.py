# test/test_fsm.py
import os
import sys

import pytest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if os.path.join(ROOT, 'src') not in sys.path:
    sys.path.insert(0, os.path.join(ROOT, 'src'))

from dryroom.config import Settings
from dryroom.fsm import ProcessFSM
from dryroom.messages import RelayIntent, Sample, Stage

SETTINGS = Settings(target_humidity=10.0, target_exposure=40.0, max_temperature=30.0)


@pytest.fixture
def changes():
    return []


@pytest.fixture
def fsm(changes):
    return ProcessFSM(pause_grace_s=60.0, clock=lambda: 0.0,
                      on_change=lambda prev, new: changes.append((prev, new)))


def reading(temp, rh, at=0.0):
    return Sample(temperature=temp, humidity=rh, captured_at=at)


def test_starts_done_and_idle(fsm):
    assert fsm.stage == Stage.DONE
    assert fsm.is_idle
    assert fsm.outputs == RelayIntent(heat_on=False, fan_on=False)


def test_heating_stays_heating_while_humid_and_below_max(fsm):
    fsm.set_stage(Stage.HEATING, 0.0)
    assert fsm.evaluate(reading(25.0, 40.0), SETTINGS, 1.0) == Stage.HEATING


def test_heating_pauses_when_humidity_reached(fsm):
    fsm.set_stage(Stage.HEATING, 0.0)
    assert fsm.evaluate(reading(25.0, 10.0), SETTINGS, 1.0) == Stage.PAUSE


def test_pause_becomes_done_after_grace(fsm):
    fsm.set_stage(Stage.PAUSE, 0.0)
    assert fsm.evaluate(reading(25.0, 8.0), SETTINGS, 60.0) == Stage.PAUSE
    assert fsm.evaluate(reading(25.0, 8.0), SETTINGS, 61.0) == Stage.DONE


def test_over_temperature_pauses_and_cooling_resumes_heating(fsm):
    fsm.set_stage(Stage.HEATING, 0.0)
    assert fsm.evaluate(reading(30.0, 40.0), SETTINGS, 1.0) == Stage.PAUSE
    assert fsm.evaluate(reading(29.5, 40.0), SETTINGS, 2.0) == Stage.HEATING


def test_cool_returns_to_heating_when_humid(fsm):
    fsm.set_stage(Stage.COOL, 0.0)
    assert fsm.outputs == RelayIntent(heat_on=False, fan_on=True)
    assert fsm.evaluate(reading(20.0, 40.0), SETTINGS, 1.0) == Stage.HEATING


@pytest.mark.parametrize("stage", [Stage.READY, Stage.DONE])
def test_idle_stages_ignore_samples(fsm, stage):
    fsm.set_stage(stage, 0.0)
    assert fsm.evaluate(reading(20.0, 90.0), SETTINGS, 5.0) == stage


def test_no_sample_is_a_no_op(fsm):
    fsm.set_stage(Stage.HEATING, 0.0)
    assert fsm.evaluate(None, SETTINGS, 500.0) == Stage.HEATING


def test_manual_start_wins_regardless_of_readings(fsm):
    fsm.set_stage(Stage.READY, 0.0)
    assert fsm.start(1.0)
    assert fsm.stage == Stage.HEATING
    assert fsm.changed_at == 1.0
    # automatic rules take over again on the next tick
    assert fsm.evaluate(reading(25.0, 5.0), SETTINGS, 2.0) == Stage.PAUSE


def test_stop_goes_ready(fsm):
    fsm.start(1.0)
    assert fsm.stop(2.0)
    assert fsm.stage == Stage.READY


def test_same_stage_twice_is_one_change(fsm, changes):
    assert fsm.set_stage(Stage.HEATING, 1.0)
    assert not fsm.set_stage(Stage.HEATING, 2.0)
    fsm.evaluate(reading(25.0, 40.0), SETTINGS, 3.0)
    assert changes == [(Stage.DONE, Stage.HEATING)]
    assert fsm.changed_at == 1.0


def test_indicators_are_mutually_exclusive(fsm):
    for stage in Stage:
        fsm.set_stage(stage, 0.0)
        lit = [name for name, on in fsm.indicators.items() if on]
        assert lit == [stage.value]
