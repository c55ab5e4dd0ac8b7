"""
core/config.py
~~~~~~~~~~~~~~
Process-wide settings read from the environment.

Everything here is resolved once at import time. Values are plain
attributes so callers can use ``settings.MIB_DIR`` directly.
"""

import os
from pathlib import Path


def _split_env(name: str, default: str) -> list:
    raw = os.getenv(name, default)
    return [part.strip() for part in raw.split(",") if part.strip()]


class Settings:
    BASE_DIR: Path = Path(__file__).resolve().parent.parent
    DATA_DIR: Path = Path(os.getenv("DATA_DIR", str(BASE_DIR.parent / "data")))

    # MIB sources
    MIB_DIR: Path = Path(os.getenv("MIB_DIR", str(DATA_DIR / "mibs")))
    MIB_COMPILED_DIR: Path = Path(
        os.getenv("MIB_COMPILED_DIR", str(DATA_DIR / "compiled_mibs"))
    )
    # Files with no extension are accepted too (net-snmp ships MIBs that way)
    MIB_EXTENSIONS: tuple = tuple(_split_env("MIB_EXTENSIONS", ".mib,.txt,.my"))
    MIB_EXTRA_SOURCES: list = _split_env(
        "MIB_EXTRA_SOURCES",
        "file:///usr/share/snmp/mibs,"
        "file:///usr/share/snmp/mibs/ietf,"
        "file:///usr/share/snmp/mibs/iana",
    )

    # overwrite | keep_first | error
    DUPLICATE_OID_POLICY: str = os.getenv("DUPLICATE_OID_POLICY", "overwrite").lower()

    # HTTP
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "5000"))
    ALLOWED_ORIGINS: list = _split_env(
        "ALLOWED_ORIGINS",
        os.getenv("FRONTEND_ORIGINS", "http://localhost:5173"),
    )

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
    LOG_FILE: str = os.getenv("LOG_FILE", "")


class Meta:
    NAME = "MIB Tree Browser"
    VERSION = "1.0.0"
    AUTHOR = "MIB Tree Browser contributors"
    DESCRIPTION = "Serves the OID tree of loaded SNMP MIB modules as JSON"


settings = Settings()
meta = Meta()
