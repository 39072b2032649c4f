"""
WAQI token pass-through — the caller's token is forwarded to WAQI as-is.
"""
import os
from typing import Optional

from dotenv import load_dotenv
from fastapi import Header

load_dotenv()


def get_waqi_token(
    x_waqi_token: Optional[str] = Header(None, alias="X-WAQI-Token"),
) -> str:
    """
    Token from the X-WAQI-Token header, falling back to $WAQI_TOKEN.

    Returns an empty string when neither is set; acquire() rejects it.
    """
    if x_waqi_token and x_waqi_token.strip():
        return x_waqi_token.strip()
    return os.environ.get("WAQI_TOKEN", "").strip()
