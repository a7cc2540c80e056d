"""
Process-wide logging setup.

stderr only. Modules log snake_case event names with structured
``extra`` fields; this handler renders the message and leaves the
extras to whatever structured formatter a deployment installs.
"""

import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Install the stderr handler on the ``portal`` logger tree."""
    root = logging.getLogger("portal")
    root.setLevel(level)

    if any(getattr(h, "_portal_handler", False) for h in root.handlers):
        return

    handler = logging.StreamHandler(stream=sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._portal_handler = True  # type: ignore[attr-defined]
    root.addHandler(handler)
