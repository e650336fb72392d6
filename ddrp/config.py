"""
DDRP Configuration

Central settings loaded from environment variables.
"""

import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    """Immutable application settings."""

    # --- Protocol Versioning ---
    DDRP_VERSION: str = "0.2.0"
    DDRP_COMMIT: str = os.getenv("DDRP_COMMIT", "")

    # --- Ledger ---
    LEDGER_DIR: str = os.getenv("DDRP_LEDGER_DIR", "transactions")

    # --- Input Handling ---
    CANONICALIZE_TEXT: bool = _env_flag("DDRP_CANONICALIZE", "true")
    PDF_MIN_CHARS_PER_PAGE: int = int(
        os.getenv("DDRP_PDF_MIN_CHARS_PER_PAGE", "100")
    )


settings = Settings()
