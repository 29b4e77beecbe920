"""USB MIDI capture feeding note events to a practice session."""

from __future__ import annotations

import importlib
import queue
import threading
import time
from dataclasses import dataclass
from typing import Callable, List, Optional


class MidiBackendUnavailable(RuntimeError):
    """Raised when no MIDI backend can be initialised."""


def _load_mido():
    try:
        return importlib.import_module("mido")
    except ModuleNotFoundError as exc:  # pragma: no cover - optional dependency
        raise MidiBackendUnavailable("Install `mido` and `python-rtmidi` to enable MIDI input.") from exc


@dataclass(slots=True)
class NoteMessage:
    """A note-on (``velocity > 0``) or note-off (``velocity == 0``)."""

    pitch: int
    velocity: int
    timestamp: float

    @property
    def is_note_on(self) -> bool:
        return self.velocity > 0


class MidiInputManager:
    """Poll one MIDI input port on a background thread.

    The polling thread only enqueues messages. Evaluation happens when the
    owner calls :meth:`drain` from its own loop, which keeps the lane engine
    single-threaded.
    """

    def __init__(self, *, poll_interval: float = 0.002) -> None:
        self._mido = _load_mido()
        self._poll_interval = poll_interval
        self._listener: Optional[threading.Thread] = None
        self._queue: "queue.Queue[NoteMessage]" = queue.Queue()
        self._stop_event = threading.Event()
        self._port: Optional[object] = None
        self.port_name: Optional[str] = None

    @property
    def is_listening(self) -> bool:
        return self._listener is not None and self._listener.is_alive()

    def list_input_ports(self) -> List[str]:
        try:
            return list(self._mido.get_input_names())
        except (ImportError, OSError) as exc:
            raise MidiBackendUnavailable(f"MIDI backend failed to list ports: {exc}") from exc

    def start_listening(self, port_name: str) -> None:
        if self.is_listening:  # pragma: no cover - guard
            self.stop_listening()

        self._stop_event.clear()
        try:
            self._port = self._mido.open_input(port_name)
        except (ImportError, OSError) as exc:
            raise MidiBackendUnavailable(f"Unable to open MIDI port {port_name!r}: {exc}") from exc
        self.port_name = port_name

        def _poll() -> None:
            assert self._port is not None
            while not self._stop_event.is_set():
                for message in self._port.iter_pending():
                    if message.type == "note_on":
                        self._queue.put(NoteMessage(message.note, message.velocity, time.monotonic()))
                    elif message.type == "note_off":
                        self._queue.put(NoteMessage(message.note, 0, time.monotonic()))
                time.sleep(self._poll_interval)

        self._listener = threading.Thread(target=_poll, name="note-lanes-midi", daemon=True)
        self._listener.start()

    def stop_listening(self) -> None:
        if self._listener and self._listener.is_alive():
            self._stop_event.set()
            self._listener.join(timeout=2)
        if self._port is not None:
            self._port.close()
        self._listener = None
        self._port = None
        self.port_name = None

    def drain(self, callback: Callable[[NoteMessage], None]) -> int:
        handled = 0
        while True:
            try:
                message = self._queue.get_nowait()
            except queue.Empty:
                return handled
            callback(message)
            handled += 1

    def __del__(self):  # pragma: no cover - cleanup
        try:
            self.stop_listening()
        except AttributeError:
            pass
