"""Console + JSON-lines logging for a page index run.

Console lines look like ``[14:02:11] [INFO] message``. When a log file is
set, each record is also appended to it as one JSON object per line so a
run can be inspected afterwards.
"""

from __future__ import annotations

import json
import threading
from datetime import datetime, timezone

LOG_FILE: str | None = None
VERBOSE = False

_LOCK = threading.Lock()


def configure(log_file: str | None = None, verbose: bool = False) -> None:
    global LOG_FILE, VERBOSE
    LOG_FILE = log_file
    VERBOSE = verbose


def log(msg: str, level: str = "INFO", **fields) -> None:
    if level == "DEBUG" and not VERBOSE and not LOG_FILE:
        return
    now = datetime.now()
    line = f"[{now.strftime('%H:%M:%S')}] [{level}] {msg}"
    if fields:
        line += " " + " ".join(f"{k}={v}" for k, v in fields.items())
    with _LOCK:
        if level != "DEBUG" or VERBOSE:
            print(line, flush=True)
        if LOG_FILE:
            record = {
                "time": now.astimezone(timezone.utc).isoformat(),
                "level": level,
                "message": msg,
            }
            record.update(fields)
            with open(LOG_FILE, "a", encoding="utf-8") as f:
                f.write(json.dumps(record, ensure_ascii=False, default=str) + "\n")


def log_separator(title: str = "") -> None:
    line = f"━━━ {title} " + "━" * max(0, 60 - len(title))
    log(line)
