"""Module entrypoint.

Allows:
    python -m compat_log_triage
"""

from __future__ import annotations

from compat_log_triage.server.log_server import main

if __name__ == "__main__":
    main()
