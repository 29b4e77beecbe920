"""Streamlit practice desk for the note-lanes trainer."""

from __future__ import annotations

import importlib
import importlib.util
import io
import json
import sys


if __package__ in {None, ""}:  # pragma: no cover - script-mode bootstrap
    # Allow ``streamlit run note_lanes/app.py`` without installation by
    # deriving the package context from the file location.
    from pathlib import Path

    module = sys.modules[__name__]
    package_dir = Path(__file__).resolve().parent
    package_name = package_dir.name

    sys_path_entry = str(package_dir.parent)
    if sys_path_entry not in sys.path:
        sys.path.insert(0, sys_path_entry)

    module.__package__ = package_name

    canonical_name = f"{package_name}.app"
    spec = importlib.util.spec_from_file_location(canonical_name, __file__)
    if spec is not None:
        module.__spec__ = spec
        if spec.loader is not None:
            module.__loader__ = spec.loader

    sys.modules.setdefault(canonical_name, module)
    if package_name not in sys.modules:
        importlib.import_module(package_name)

import pandas as pd
import plotly.graph_objects as go
import pretty_midi
import streamlit as st

from note_lanes.config import LaneSettings, SessionConfig
from note_lanes.lanes import LaneMode, SpawnPolicy
from note_lanes.midi_input import MidiBackendUnavailable, MidiInputManager
from note_lanes.report import summarize
from note_lanes.routing import LaneId, lanes_for_mode
from note_lanes.session import PracticeSession
from note_lanes.takes import take_to_pretty_midi


# C3..B4, which straddles the dual-lane split.
KEYBOARD_NOTES = [pretty_midi.note_number_to_name(pitch) for pitch in range(48, 72)]

LANE_TITLES = {
    LaneId.PRIMARY: "Bass lane",
    LaneId.SECONDARY: "Treble lane",
    LaneId.DEFAULT: "Single lane",
}


def _render_css() -> None:
    st.markdown(
        """
        <style>
        .lane-card {
            border-radius: 16px;
            padding: 1.25rem;
            background: linear-gradient(145deg, rgba(30, 41, 59, 0.88), rgba(15, 23, 42, 0.88));
            border: 1px solid rgba(148, 163, 184, 0.12);
            margin-bottom: 1rem;
            color: #f8fafc;
        }
        .lane-card.disabled {opacity: 0.45;}
        .lane-target {font-size: 2rem; font-weight: 700;}
        </style>
        """,
        unsafe_allow_html=True,
    )


def _settings_panel() -> SessionConfig:
    st.sidebar.markdown("## Session")
    dual_lane = st.sidebar.toggle("Piano mode (bass + treble lanes)", value=False)
    level = st.sidebar.slider("Level", min_value=1, max_value=10, value=1)
    policy = st.sidebar.selectbox(
        "Spawn policy",
        [policy.value for policy in SpawnPolicy],
        index=1,
        help="Queued lanes spawn on a cadence; one-at-a-time lanes respawn as soon as a target resolves.",
    )
    lives = st.sidebar.number_input("Lives per lane", min_value=1, max_value=9, value=3)
    strict_octave = st.sidebar.checkbox("Strict octave", value=True)

    lanes: dict[LaneId, LaneSettings] = {}
    for lane_id in lanes_for_mode(dual_lane):
        mode = st.sidebar.selectbox(
            f"{LANE_TITLES[lane_id]} mode",
            [mode.value for mode in LaneMode],
            key=f"mode-{lane_id.value}",
        )
        lanes[lane_id] = LaneSettings(lives=int(lives), mode=LaneMode(mode))

    return SessionConfig(
        dual_lane=dual_lane,
        level=int(level),
        spawn_policy=SpawnPolicy(policy),
        start_delay_ms=500.0,
        strict_octave=strict_octave,
        lanes=lanes,
    )


def _config_key(config: SessionConfig) -> str:
    # Level changes apply to the running session instead of restarting it.
    settings = config.to_dict()
    settings.pop("level")
    return json.dumps(settings, sort_keys=True)


def _initialise_state(config: SessionConfig) -> PracticeSession:
    config_key = _config_key(config)
    if st.session_state.get("config_key") != config_key or "session" not in st.session_state:
        st.session_state.session = PracticeSession(config)
        st.session_state.config_key = config_key
    elif st.session_state.session.engine.level != config.level:
        st.session_state.session.set_level(config.level)
    if "midi_manager" not in st.session_state:
        try:
            st.session_state.midi_manager = MidiInputManager()
            st.session_state.midi_status = "Disconnected"
        except MidiBackendUnavailable:
            st.session_state.midi_manager = None
            st.session_state.midi_status = "Backend unavailable"
    return st.session_state.session


def _lane_cards(session: PracticeSession) -> None:
    lanes = session.engine.snapshot()["lanes"]
    columns = st.columns(len(lanes))
    for column, lane in zip(columns, lanes):
        head = lane["head"]
        css_class = "lane-card" if lane["enabled"] else "lane-card disabled"
        held = ", ".join(pretty_midi.note_number_to_name(pitch) for pitch in lane["held"]) or "nothing"
        collected = len(lane["window_collected"])
        progress = f" · {collected}/{len(head['pitches'])} tones" if head and head["kind"] == "chord" and collected else ""
        with column:
            st.markdown(
                f"""
                <div class="{css_class}">
                    <h4>{LANE_TITLES[LaneId(lane["lane"])]} · {lane["mode"]}</h4>
                    <div class="lane-target">{head["label"] if head else "…"}{progress}</div>
                    <div>Lives: {"♥" * lane["lives"] or "none"} · queued {lane["queued"]}</div>
                    <div>Holding: {held}</div>
                </div>
                """,
                unsafe_allow_html=True,
            )


def _keyboard_block(session: PracticeSession) -> None:
    st.markdown("### On-screen keys")
    keyboard_cols = st.columns(len(KEYBOARD_NOTES))
    for col, note_name in zip(keyboard_cols, KEYBOARD_NOTES):
        with col:
            st.button(
                note_name,
                key=f"keyboard-{note_name}",
                use_container_width=True,
                on_click=session.note_on,
                args=(pretty_midi.note_name_to_number(note_name),),
            )


def _midi_block(session: PracticeSession) -> None:
    st.markdown("### USB MIDI input")
    manager: MidiInputManager | None = st.session_state.midi_manager

    if manager is None:
        st.info("Install `mido` and `python-rtmidi` to play from a USB keyboard.")
        return

    try:
        ports = manager.list_input_ports()
    except MidiBackendUnavailable as exc:
        st.warning(str(exc))
        return
    selected_port = st.selectbox("Available ports", ports or ["None detected"], disabled=not ports)

    col1, col2 = st.columns(2)
    with col1:
        if st.button("Connect", disabled=not ports or st.session_state.midi_status == "Connected"):
            manager.start_listening(selected_port)
            st.session_state.midi_status = "Connected"
    with col2:
        if st.button("Disconnect", disabled=st.session_state.midi_status != "Connected"):
            manager.stop_listening()
            st.session_state.midi_status = "Disconnected"

    st.caption(f"Status: {st.session_state.midi_status}")


@st.fragment(run_every=0.25)
def _live_panel() -> None:
    session: PracticeSession = st.session_state.session
    manager: MidiInputManager | None = st.session_state.get("midi_manager")
    if manager is not None and st.session_state.get("midi_status") == "Connected":
        manager.drain(session.handle_message)
    session.pump()

    engine = session.engine
    score_col, level_col, status_col = st.columns(3)
    score_col.metric("Score", engine.score)
    level_col.metric("Level", engine.level)
    status_col.metric("Status", "Game over" if engine.game_over else "Playing")
    _lane_cards(session)
    _keyboard_block(session)


def _lives_plot(frame: pd.DataFrame, session: PracticeSession) -> go.Figure:
    fig = go.Figure()
    for lane_id in session.engine.lanes:
        start_lives = session.config.lane_settings(lane_id).lives
        lane_rows = frame[(frame["kind"] == "lives") & (frame["lane"] == lane_id.value)]
        times = [0.0, *lane_rows["time_ms"].tolist()]
        lives = [start_lives, *lane_rows["lives"].tolist()]
        fig.add_trace(go.Scatter(x=times, y=lives, mode="lines+markers", line_shape="hv", name=LANE_TITLES[lane_id]))
    fig.update_layout(height=260, template="plotly_dark", xaxis_title="ms", yaxis_title="Lives")
    return fig


def _report_block(session: PracticeSession) -> None:
    st.markdown("### Session report")
    frame = session.recorder.to_dataframe()
    if frame.empty:
        st.caption("Nothing recorded yet.")
        return
    st.dataframe(summarize(frame), use_container_width=True)
    st.plotly_chart(_lives_plot(frame, session), use_container_width=True)
    with st.expander("Event log"):
        st.dataframe(frame, use_container_width=True, hide_index=True)

    if session.take:
        midi = take_to_pretty_midi(session.take)
        buffer = _midi_bytes(midi)
        st.download_button("Download take (MIDI)", data=buffer, file_name="take.mid", mime="audio/midi")


def _midi_bytes(midi: pretty_midi.PrettyMIDI) -> bytes:
    buffer = io.BytesIO()
    midi.write(buffer)
    return buffer.getvalue()


def main() -> None:
    st.set_page_config(page_title="Note Lanes", page_icon="🎹", layout="wide")
    _render_css()
    st.title("Note Lanes")

    config = _settings_panel()
    session = _initialise_state(config)
    if st.sidebar.button("Restart"):
        session.restart()

    _live_panel()
    st.divider()
    _midi_block(session)
    st.divider()
    _report_block(session)


if __name__ == "__main__":  # pragma: no cover
    main()
