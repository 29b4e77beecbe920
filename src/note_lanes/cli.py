"""Command-line helpers for Note Lanes."""

from __future__ import annotations

import argparse
import subprocess
import sys
from pathlib import Path
from typing import Sequence

from .config import ConfigError, SessionConfig, load_session_config, resolve_config_path
from .logging_utils import configure_logging


def _app_path() -> Path:
    return Path(__file__).with_name("app.py")


def _launch_streamlit(
    app_path: Path | None = None,
    *,
    streamlit_args: Sequence[str] | None = None,
) -> None:
    """Start the Streamlit runtime for the practice desk."""

    target = app_path or _app_path()
    args = [sys.executable, "-m", "streamlit", "run", str(target)]
    if streamlit_args:
        args.extend(streamlit_args)

    subprocess.run(args, check=True)


def _run_smoke_test(timeout: float = 5.0) -> None:
    """Run a headless smoke test to ensure the app loads without errors."""

    from streamlit.testing.v1 import AppTest

    app_test = AppTest.from_file(str(_app_path()))
    app_test.run(timeout=timeout)

    if app_test.exception:
        print("Streamlit smoke test failed:", app_test.exception)
        raise SystemExit(1)


def _load_config(path: str | None) -> SessionConfig:
    resolved = resolve_config_path(path)
    if resolved is None:
        return SessionConfig()
    try:
        return load_session_config(resolved)
    except (OSError, ConfigError) as exc:
        print(f"Unable to load config {resolved}: {exc}")
        raise SystemExit(2) from exc


def _list_ports() -> None:
    from .midi_input import MidiBackendUnavailable, MidiInputManager

    try:
        ports = MidiInputManager().list_input_ports()
    except MidiBackendUnavailable as exc:
        print(exc)
        raise SystemExit(1) from exc
    if not ports:
        print("No MIDI input ports detected.")
    for name in ports:
        print(name)


def _print_report(session) -> None:
    from .report import summarize

    engine = session.engine
    print(f"Score: {engine.score}  Level: {engine.level}  Game over: {'yes' if engine.game_over else 'no'}")
    summary = summarize(session.recorder.to_dataframe())
    if not summary.empty:
        print(summary.to_string())


def _run_replay(take_path: Path, config: SessionConfig, seed: int | None) -> None:
    from .session import replay_take
    from .takes import TakeFormatError, load_take

    try:
        take = load_take(take_path)
    except (OSError, TakeFormatError) as exc:
        print(f"Unable to load take {take_path}: {exc}")
        raise SystemExit(2) from exc
    _print_report(replay_take(take, config, seed=seed))


def _run_live(port: str, config: SessionConfig, duration: float | None, record: str | None) -> None:
    from .midi_input import MidiBackendUnavailable
    from .session import run_live
    from .takes import save_take

    try:
        session = run_live(port, config, duration_s=duration)
    except MidiBackendUnavailable as exc:
        print(exc)
        raise SystemExit(1) from exc
    _print_report(session)
    if record:
        print(f"Take written to {save_take(session.take, record)}")


def main(argv: Sequence[str] | None = None) -> None:
    """Launch the Streamlit practice desk or run a headless session."""

    parser = argparse.ArgumentParser(description="Note Lanes: lane-based note reading trainer")
    parser.add_argument(
        "--smoke-test",
        action="store_true",
        help="Run a quick headless Streamlit smoke test instead of launching the server.",
    )
    parser.add_argument("--list-ports", action="store_true", help="List MIDI input ports and exit.")
    parser.add_argument("--play", metavar="PORT", help="Practise headless from a MIDI input port.")
    parser.add_argument("--duration", type=float, default=None, help="Stop --play after this many seconds.")
    parser.add_argument("--record", metavar="PATH", help="Save the --play take as .mid or .csv.")
    parser.add_argument("--replay", metavar="TAKE", help="Replay a recorded take (.mid, .midi or .csv).")
    parser.add_argument("--config", default=None, help="Session config JSON (defaults to $NOTE_LANES_CONFIG).")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for target generation.")
    parser.add_argument("--log-level", default=None, help="Logging level (defaults to $NOTE_LANES_LOG_LEVEL).")
    parser.add_argument(
        "streamlit_args",
        nargs=argparse.REMAINDER,
        help=(
            "Any additional arguments after '--' are forwarded directly to Streamlit. "
            "Example: note-lanes -- --server.headless true"
        ),
    )

    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    if args.smoke_test:
        _run_smoke_test()
        return

    if args.list_ports:
        _list_ports()
        return

    if args.replay or args.play:
        config = _load_config(args.config)
        if args.replay:
            _run_replay(Path(args.replay), config, args.seed)
        else:
            _run_live(args.play, config, args.duration, args.record)
        return

    forwarded_args = [arg for arg in args.streamlit_args if arg != "--"] if args.streamlit_args else []

    _launch_streamlit(streamlit_args=forwarded_args)


if __name__ == "__main__":  # pragma: no cover
    main()
