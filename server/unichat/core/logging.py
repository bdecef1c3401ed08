from __future__ import annotations
import logging
import re
from typing import Union


REDACT_PATTERNS = [
    re.compile(r"sk-[A-Za-z0-9_\-]{20,}"),  # OpenAI, Anthropic, DeepSeek keys
    re.compile(r"xai-[A-Za-z0-9]{20,}"),
    re.compile(r"AIza[0-9A-Za-z_\-]{30,}"),  # Google API keys
    re.compile(r"(?i)(bearer\s+)[A-Za-z0-9._\-]{12,}"),
]


def redact(value: str) -> str:
    redacted = value
    for pat in REDACT_PATTERNS:
        if pat.groups:
            redacted = pat.sub(lambda m: m.group(1) + "***", redacted)
        else:
            redacted = pat.sub("***", redacted)
    return redacted


class RedactingFormatter(logging.Formatter):
    # Redact the rendered line so %-args and tracebacks are covered too
    def format(self, record: logging.LogRecord) -> str:
        return redact(super().format(record))


def setup_logging(level: Union[int, str] = logging.INFO) -> None:
    logger = logging.getLogger()
    logger.setLevel(level)
    # Clear existing handlers in reload scenarios
    logger.handlers.clear()

    handler = logging.StreamHandler()
    formatter = RedactingFormatter(
        fmt="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%SZ",
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    # httpx logs every request line at INFO
    logging.getLogger("httpx").setLevel(max(logging.WARNING, logger.level))
    logging.getLogger("uvicorn.error").setLevel(level)
    logging.getLogger("uvicorn.access").setLevel(level)
