"""
Central logging for discordsync.

- Console handler on stderr: INFO..CRITICAL by default
- Timed rotated file handler: DEBUG (logs/app.log, daily rotation)
- Per-run action file: DEBUG (logs/YYYY-MM-DD/<action>_<run_id>.log)
- Secret redaction: masks bot tokens/passwords in both msg and % args
- UTC timestamps in ISO-8601
"""

from __future__ import annotations

import logging
import logging.handlers
import os
import sys
import time
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

REDACTED = "***REDACTED***"

LOG_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(name)s | "
    "run=%(run_id)s action=%(action)s server=%(server)s declarations=%(declarations)s | "
    "%(message)s"
)


class MaskSecretsFilter(logging.Filter):
    """
    Redact Discord bot tokens, api keys and passwords from log records.
    """

    _patterns = [
        re.compile(r"(Authorization:\s*(?:Bot|Bearer)\s+)([A-Za-z0-9._-]+)", re.IGNORECASE),
        re.compile(r"(api[_-]?key\s*[=:]\s*)([A-Za-z0-9._-]+)", re.IGNORECASE),
        re.compile(r"(password\s*[=:]\s*)([^,\s]+)", re.IGNORECASE),
        re.compile(r"(\btoken\s*[=:]\s*)([A-Za-z0-9._-]+)", re.IGNORECASE),
    ]

    @classmethod
    def mask(cls, text: str) -> str:
        for pat in cls._patterns:
            text = pat.sub(r"\1" + REDACTED, text)
        return text

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.args, dict):
            record.args = {k: self.mask(str(v)) if isinstance(v, str) else v for k, v in record.args.items()}
        elif isinstance(record.args, tuple):
            record.args = tuple(self.mask(v) if isinstance(v, str) else v for v in record.args)
        if isinstance(record.msg, str):
            record.msg = self.mask(record.msg)
        return True


def _utc_formatter(fmt: str) -> logging.Formatter:
    f = logging.Formatter(fmt=fmt, datefmt="%Y-%m-%dT%H:%M:%SZ")
    f.converter = time.gmtime  # type: ignore[assignment]
    return f


def _level(name: str, default: int) -> int:
    return getattr(logging, str(name).upper(), default)


def _drop_handlers(logger: logging.Logger, kind: type, keep: Optional[str] = None) -> bool:
    """
    Remove handlers of `kind` from `logger`, except one writing to `keep`.
    Returns True when a handler writing to `keep` is still attached.
    """
    kept = False
    for h in list(logger.handlers):
        if type(h) is not kind:
            continue
        if keep is not None and os.path.abspath(getattr(h, "baseFilename", "")) == keep:
            kept = True
            continue
        logger.removeHandler(h)
        h.close()
    return kept


def _attach(logger: logging.Logger, handler: logging.Handler, level: int, formatter: logging.Formatter) -> None:
    handler.setLevel(level)
    handler.setFormatter(formatter)
    handler.addFilter(MaskSecretsFilter())
    logger.addHandler(handler)


def build_logger(
    *,
    name: str = "dsync",
    run_id: str,
    action: str,
    base_dir: str = "logs",
    console_level: str = "INFO",
    file_level: str = "DEBUG",
    extra: Optional[Dict[str, Any]] = None,
) -> logging.LoggerAdapter:
    """
    Configure and return a LoggerAdapter.

    Design:
      - A base logger `<name>` holds the console + rotating file handlers.
        Calling again re-points them (pytest swaps stdio and cwd between tests).
      - A child logger `<name>.<action>.<run_id>` holds the per-run file handler.
      - Records propagate to the base logger so they appear in all sinks.
    """
    formatter = _utc_formatter(LOG_FORMAT)
    f_level = _level(file_level, logging.DEBUG)

    base = logging.getLogger(name)
    base.setLevel(logging.DEBUG)

    # Exactly one console handler, bound to the current sys.stderr
    _drop_handlers(base, logging.StreamHandler)
    _attach(base, logging.StreamHandler(stream=sys.stderr), _level(console_level, logging.INFO), formatter)

    # Exactly one rotating file handler, for the current base_dir
    os.makedirs(base_dir, exist_ok=True)
    app_log = os.path.abspath(os.path.join(base_dir, "app.log"))
    if not _drop_handlers(base, logging.handlers.TimedRotatingFileHandler, keep=app_log):
        rh = logging.handlers.TimedRotatingFileHandler(
            app_log, when="midnight", backupCount=14, encoding="utf-8", utc=True, delay=False
        )
        _attach(base, rh, f_level, formatter)

    child = logging.getLogger(f"{name}.{action}.{run_id}")
    child.setLevel(logging.DEBUG)
    child.propagate = True

    if not getattr(child, "_dsync_action_configured", False):
        today = datetime.now(timezone.utc).strftime("%Y-%m-%d")
        dated_dir = os.path.join(base_dir, today)
        os.makedirs(dated_dir, exist_ok=True)
        action_file = Path(dated_dir) / f"{action}_{run_id}.log"
        _attach(child, logging.FileHandler(action_file, encoding="utf-8", delay=False), f_level, formatter)
        child._dsync_action_configured = True  # type: ignore[attr-defined]

    ctx = extra or {}
    adapter = logging.LoggerAdapter(
        child,
        {
            "run_id": run_id,
            "action": action,
            "server": ctx.get("server"),
            "declarations": ctx.get("declarations"),
        },
    )
    adapter.debug("Logger initialised")
    return adapter
