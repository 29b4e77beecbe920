from __future__ import annotations

import pandas as pd
import pytest

from note_lanes.lanes import LaneMode, SpawnPolicy
from note_lanes.midi_input import NoteMessage
from note_lanes.routing import LaneId
from note_lanes.session import PracticeSession, replay_take, run_live
from note_lanes.takes import NoteOnEvent
from note_lanes.targets import Chord, Melody
from note_lanes.timers import ManualClock

from conftest import EventLog, make_config


def _manual_session(**config_kwargs) -> PracticeSession:
    return PracticeSession(make_config(**config_kwargs), clock=ManualClock(), listener=EventLog())


def test_note_at_the_timeout_instant_wins():
    session = _manual_session(modes={LaneId.DEFAULT: LaneMode.CHORD})
    session.engine.push_target(LaneId.DEFAULT, Chord({60, 64, 67}))

    session.note_on(60)
    session.clock.set(105)
    session.note_on(64)
    session.note_on(67)
    session.pump()

    assert session.engine.score == 1
    assert session.engine.lane(LaneId.DEFAULT).lives == 3


def test_advance_fires_chord_timeout():
    session = _manual_session(modes={LaneId.DEFAULT: LaneMode.CHORD})
    session.engine.push_target(LaneId.DEFAULT, Chord({60, 64, 67}))

    session.note_on(60)
    session.advance(150)

    assert session.engine.lane(LaneId.DEFAULT).lives == 2
    assert session.recorder.events[-1].reason == "chord-timeout"
    assert session.recorder.events[-1].time_ms == 105.0


def test_take_records_only_note_ons():
    session = _manual_session()
    session.handle_message(NoteMessage(pitch=60, velocity=80, timestamp=0.0))
    session.handle_message(NoteMessage(pitch=60, velocity=0, timestamp=0.1))
    session.clock.advance(40)
    session.note_on(62, 70)

    assert session.take == [NoteOnEvent(0.0, 60, 80), NoteOnEvent(40.0, 62, 70)]


def test_advance_requires_manual_clock():
    session = PracticeSession(make_config(), clock=lambda: 0.0)
    with pytest.raises(TypeError):
        session.advance(10)


def test_restart_clears_take_and_recorder():
    session = _manual_session(policy=SpawnPolicy.ONE_AT_A_TIME)
    session.note_on(20)
    assert session.engine.lane(LaneId.DEFAULT).lives == 2

    session.restart()

    assert session.take == []
    assert [event.kind for event in session.recorder.events] == ["spawn"]
    assert session.engine.lane(LaneId.DEFAULT).lives == 3


def test_toggle_dual_lane_switches_lane_set():
    session = _manual_session()
    assert session.toggle_dual_lane() is True
    assert set(session.engine.lanes) == {LaneId.PRIMARY, LaneId.SECONDARY}
    assert session.toggle_dual_lane() is False
    assert set(session.engine.lanes) == {LaneId.DEFAULT}


def test_set_level_changes_cadence():
    session = _manual_session(start_delay_ms=0.0)
    session.set_level(3)
    session.pump()
    assert session.engine.lane(LaneId.DEFAULT).next_spawn_at_ms == 1800.0


def test_replay_of_wrong_notes_ends_the_game():
    config = make_config(policy=SpawnPolicy.ONE_AT_A_TIME)
    take = [NoteOnEvent(float(t), 20) for t in (0, 100, 200, 300)]

    session = replay_take(take, config, seed=5)

    assert session.game_over is True
    assert len(session.take) == 3
    assert [event.kind for event in session.recorder.events][-2:] == ["lane-disabled", "game-over"]
    assert session.recorder.events[-1].reason == "mono-dead"


def test_replay_empty_take_spawns_through_tail():
    session = replay_take([], make_config(start_delay_ms=0.0), seed=1, tail_ms=5000.0)

    spawns = [event for event in session.recorder.events if event.kind == "spawn"]
    assert [event.time_ms for event in spawns] == [0.0, 2200.0, 4400.0]


def test_replay_is_deterministic_for_a_seed():
    config_kwargs = dict(start_delay_ms=0.0)
    take = [NoteOnEvent(float(t), 60 + t // 500) for t in range(0, 6000, 500)]

    frames = []
    for _ in range(2):
        session = replay_take(take, make_config(**config_kwargs), seed=42)
        frame = session.recorder.to_dataframe().drop(columns=["target_id"])
        frames.append(frame)

    pd.testing.assert_frame_equal(frames[0], frames[1])


class FakeManager:
    def __init__(self, messages=None, *, interrupt=False):
        self.messages = list(messages or [])
        self.interrupt = interrupt
        self.port = None
        self.stopped = False

    def start_listening(self, port_name):
        self.port = port_name

    def stop_listening(self):
        self.stopped = True

    def drain(self, callback):
        if self.interrupt:
            raise KeyboardInterrupt
        pending, self.messages = self.messages, []
        for message in pending:
            callback(message)
        return len(pending)


def test_run_live_feeds_port_messages_to_engine():
    manager = FakeManager([NoteMessage(20, 90, 0.0), NoteMessage(20, 0, 0.01)])
    config = make_config(policy=SpawnPolicy.ONE_AT_A_TIME)

    session = run_live("Fake Port", config, duration_s=0.0, manager=manager)

    assert manager.port == "Fake Port"
    assert manager.stopped is True
    assert session.engine.lane(LaneId.DEFAULT).lives == 2
    assert [event.pitch for event in session.take] == [20]


def test_run_live_stops_cleanly_on_interrupt():
    manager = FakeManager(interrupt=True)
    session = run_live("Fake Port", make_config(), manager=manager)
    assert manager.stopped is True
    assert session.game_over is False


def test_extra_listener_receives_notifications():
    log = EventLog()
    session = PracticeSession(make_config(), clock=ManualClock(), listener=log)
    target = Melody(64)
    session.engine.push_target(LaneId.DEFAULT, target)
    session.note_on(64)
    assert log.of_kind("success") == [("success", LaneId.DEFAULT, target.id)]
    assert [event.kind for event in session.recorder.events] == ["spawn", "success"]
