import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from gemini_core.config.settings import settings

REDACTED = "[REDACTED]"


def redact_secret(text: str, secret: Optional[str]) -> str:
    """把文本中出现的密钥替换为占位符。"""

    if not text or not secret:
        return text
    return text.replace(secret, REDACTED)


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        msg = record.getMessage()
        if settings.log_redact_content:
            msg = (msg or "")[:64]
        payload = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "name": record.name,
            "msg": msg,
        }
        extra = getattr(record, "extra", None)
        if isinstance(extra, dict):
            payload.update(extra)
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return redact_secret(json.dumps(payload, ensure_ascii=False, default=str), settings.gemini_api_key)


def setup_logger() -> logging.Logger:
    logger = logging.getLogger("gemini_core")
    logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
    if logger.handlers:
        return logger
    log_dir = Path(settings.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    fh = logging.FileHandler(log_dir / "gemini.log", encoding="utf-8")
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(JsonFormatter())
    logger.addHandler(fh)
    return logger


logger = setup_logger()
