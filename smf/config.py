"""
config.py — SMF Configuration
===============================
"""

import os


class Settings:
    """Manifest tooling configuration from environment."""

    BLOCK_SIZE: int = int(os.getenv("SMF_BLOCK_SIZE", "262144"))  # 256 KB
    STATE_KEY: int = int(os.getenv("SMF_STATE_KEY", "20"))  # 0x14
    FETCH_TIMEOUT: float = float(os.getenv("SMF_FETCH_TIMEOUT", "10"))
    LOG_LEVEL: str = os.getenv("SMF_LOG_LEVEL", "INFO")


settings = Settings()
