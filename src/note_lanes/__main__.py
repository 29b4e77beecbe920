"""``python -m note_lanes`` entry point; same flags as the ``note-lanes`` script."""

from __future__ import annotations

from .cli import main

if __name__ == "__main__":  # pragma: no cover
    main()
