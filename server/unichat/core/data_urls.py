"""Data URL helpers."""
from __future__ import annotations
import base64
import re
from typing import Tuple, Union

DATA_URL_PATTERN = re.compile(r"^data:(?P<mime>[-.\w+/]+);base64,(?P<payload>[A-Za-z0-9+/=]*)$")


def parse_data_url(data_url: str) -> Tuple[str, str]:
    match = DATA_URL_PATTERN.fullmatch(data_url)
    if not match:
        raise ValueError("value must be a base64 data URL")
    return match.group("mime"), match.group("payload")


def to_data_url(mime_type: str, payload: Union[str, bytes]) -> str:
    """Wrap a payload into a data URL. Bytes are base64-encoded, strings are taken as base64 already."""
    if isinstance(payload, bytes):
        payload = base64.b64encode(payload).decode("ascii")
    elif payload.startswith("data:"):
        return payload
    return f"data:{mime_type};base64,{payload}"
