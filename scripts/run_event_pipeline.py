"""
Run the event pipeline from a source checkout.
"""

from __future__ import annotations

from event_ingest.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
