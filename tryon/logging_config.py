"""Process-wide logging setup."""

import json
import logging
from typing import Optional

from tryon.config import settings


def setup_logging(level: Optional[str] = None, json_logs: Optional[bool] = None) -> None:
    level = (level or settings.log_level).upper()
    if json_logs is None:
        json_logs = settings.json_logs

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    if json_logs:
        handler = logging.StreamHandler()
        handler.setFormatter(JSONLogFormatter())
        logging.getLogger().handlers = [handler]


class JSONLogFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        msg = {
            "time": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            msg["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(msg)
