from __future__ import annotations

import pytest

from note_lanes.lanes import SpawnPolicy
from note_lanes.routing import LaneId
from note_lanes.targets import Melody


def test_wrong_note_blows_up_head_and_next_target_becomes_active(make_engine):
    h = make_engine(lives=3)
    for pitch in (64, 65, 67):
        h.engine.push_target(LaneId.DEFAULT, Melody(pitch))
    first_id = h.engine.active_target(LaneId.DEFAULT).id

    h.engine.on_note_on(65, 90)

    lane = h.engine.lane(LaneId.DEFAULT)
    assert lane.lives == 2
    assert lane.head.pitch == 65
    assert len(lane.queue) == 2
    assert h.log.of_kind("fail") == [("fail", LaneId.DEFAULT, first_id, "melody-wrong-note")]
    assert h.engine.score == 0


def test_matching_note_succeeds_and_scores(make_engine):
    h = make_engine()
    target = Melody(64)
    h.engine.push_target(LaneId.DEFAULT, target)

    h.engine.on_note_on(64, 100)

    assert h.engine.score == 1
    assert h.engine.lane(LaneId.DEFAULT).lives == 3
    assert h.engine.active_target(LaneId.DEFAULT) is None
    assert h.log.of_kind("success") == [("success", LaneId.DEFAULT, target.id)]


@pytest.mark.parametrize("pitch", [36, 63, 65, 76, 52])
def test_any_other_pitch_costs_exactly_one_life(make_engine, pitch):
    h = make_engine()
    h.engine.push_target(LaneId.DEFAULT, Melody(64))

    h.engine.on_note_on(pitch, 80)

    assert h.engine.lane(LaneId.DEFAULT).lives == 2
    assert h.engine.active_target(LaneId.DEFAULT) is None


def test_fail_notifications_are_ordered(make_engine):
    h = make_engine(lives=1)
    target = Melody(64)
    h.engine.push_target(LaneId.DEFAULT, target)

    h.engine.on_note_on(70, 80)

    assert [event[0] for event in h.log.events] == ["spawn", "lives", "fail", "disabled", "game-over"]
    assert h.log.of_kind("game-over") == [("game-over", "mono-dead")]
    assert h.engine.game_over is True


def test_treble_lane_wrong_note_in_dual_lane_mode(make_engine):
    h = make_engine(dual_lane=True)
    h.engine.push_target(LaneId.SECONDARY, Melody(79))

    h.engine.on_note_on(81, 64)

    treble = h.engine.lane(LaneId.SECONDARY)
    assert treble.lives == 2
    assert treble.head is None
    assert h.engine.lane(LaneId.PRIMARY).lives == 3


def test_disabled_lane_ignores_notes_and_lives_never_go_negative(make_engine):
    h = make_engine(lives=1)
    h.engine.push_target(LaneId.DEFAULT, Melody(64))
    h.engine.push_target(LaneId.DEFAULT, Melody(65))

    h.engine.on_note_on(60, 64)
    events_after_disable = list(h.log.events)
    h.engine.on_note_on(61, 64)
    h.engine.on_note_on(65, 64)

    lane = h.engine.lane(LaneId.DEFAULT)
    assert lane.lives == 0
    assert lane.enabled is False
    assert lane.head.pitch == 65
    assert h.log.events == events_after_disable


def test_game_over_waits_for_the_last_enabled_lane(make_engine):
    h = make_engine(dual_lane=True, lives=1)
    h.engine.push_target(LaneId.PRIMARY, Melody(40))
    h.engine.push_target(LaneId.SECONDARY, Melody(72))

    h.engine.on_note_on(41, 64)
    assert h.log.of_kind("disabled") == [("disabled", LaneId.PRIMARY)]
    assert h.log.of_kind("game-over") == []
    assert h.engine.game_over is False

    h.engine.on_note_on(73, 64)
    assert h.log.of_kind("game-over") == [("game-over", "piano-both-dead")]


def test_note_on_empty_lane_is_a_no_op(make_engine):
    h = make_engine()
    h.engine.on_note_on(60, 100)
    assert h.engine.lane(LaneId.DEFAULT).lives == 3
    assert h.log.events == []


def test_zero_velocity_is_a_release_not_an_attempt(make_engine):
    h = make_engine()
    h.engine.push_target(LaneId.DEFAULT, Melody(64))
    h.engine.on_note_on(64, 100)
    h.engine.push_target(LaneId.DEFAULT, Melody(64))

    h.engine.on_note_on(70, 0)

    assert h.engine.lane(LaneId.DEFAULT).lives == 3
    assert h.engine.lane(LaneId.DEFAULT).held == {64}


def test_relaxed_octave_matches_pitch_class(make_engine):
    h = make_engine(strict_octave=False)
    h.engine.push_target(LaneId.DEFAULT, Melody(64))
    h.engine.on_note_on(76, 100)
    assert h.engine.score == 1

    h.engine.push_target(LaneId.DEFAULT, Melody(64))
    h.engine.on_note_on(65, 100)
    assert h.engine.lane(LaneId.DEFAULT).lives == 2


def test_one_at_a_time_lane_respawns_after_a_miss(make_engine):
    h = make_engine(policy=SpawnPolicy.ONE_AT_A_TIME)
    lane = h.engine.lane(LaneId.DEFAULT)
    first = lane.head
    assert first is not None and len(lane.queue) == 1

    wrong = first.pitch + 1 if first.pitch < 84 else first.pitch - 1
    h.engine.on_note_on(wrong, 100)

    assert lane.lives == 2
    assert len(lane.queue) == 1
    assert lane.head.id != first.id


def test_lane_configured_without_lives_is_reported_disabled(make_engine):
    h = make_engine(dual_lane=True, lives=0)

    assert h.engine.game_over is True
    assert h.log.events == [
        ("disabled", LaneId.PRIMARY),
        ("disabled", LaneId.SECONDARY),
        ("game-over", "piano-both-dead"),
    ]


def test_single_lane_without_lives_leaves_the_other_playable(make_engine):
    h = make_engine(dual_lane=True)
    h.engine.config.lanes[LaneId.PRIMARY].lives = 0
    h.log.events.clear()

    h.engine.reset()

    assert h.log.events == [("disabled", LaneId.PRIMARY)]
    assert h.engine.game_over is False
    h.engine.push_target(LaneId.SECONDARY, Melody(72))
    h.engine.on_note_on(72, 90)
    assert h.engine.score == 1
