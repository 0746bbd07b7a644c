from __future__ import annotations

import logging
import os
from typing import Optional


def setup_logging(level: Optional[str] = None) -> None:
    """Configure stdlib logging for the client.

    The GUI mirrors call events into its own log panel; this config targets
    console logs (useful when launching from a terminal). aiortc and aioice
    are chatty at DEBUG, so they stay at INFO unless VC_RTC_DEBUG is set.
    """

    effective_level = (level or os.environ.get("VC_CALL_LOG_LEVEL") or os.environ.get("VC_LOG_LEVEL") or "INFO").upper()

    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(
            level=effective_level,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
    else:
        root.setLevel(effective_level)

    if not os.environ.get("VC_RTC_DEBUG"):
        for name in ("aiortc", "aioice"):
            logging.getLogger(name).setLevel(max(logging.INFO, root.level))
