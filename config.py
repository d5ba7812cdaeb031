# config.py - Configuration management

import os
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Config:
    """
    Configuration class to manage database access and sweep settings
    """

    def __init__(self):
        # Database Configuration
        self.DB_NAME = os.getenv("DB_NAME", "forum")
        self.DB_USER = os.getenv("DB_USER", "postgres")
        self.DB_PASSWORD = os.getenv("DB_PASSWORD", "postgres")
        self.DB_HOST = os.getenv("DB_HOST", "localhost")
        self.DB_PORT = os.getenv("DB_PORT", "5432")

        # Sweep Configuration
        self.SWEEP_BATCH_SIZE = int(os.getenv("SWEEP_BATCH_SIZE", "100"))
        self.SWEEP_TIMEZONE = os.getenv("SWEEP_TIMEZONE", "UTC")
        self.SWEEP_RUN_HOUR = int(os.getenv("SWEEP_RUN_HOUR", "7"))  # 7 AM GMT, 1 AM CST

        # Link Checking
        self.LINK_CHECK_TIMEOUT = float(os.getenv("LINK_CHECK_TIMEOUT", "5"))
        self.BROKEN_STATUS_CODES = frozenset({404, 500})

        # Job Queue
        self.REINDEX_JOB_NAME = os.getenv("REINDEX_JOB_NAME", "reindex_search")

        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

        # Validate settings
        self._validate_config()

    def _validate_config(self):
        """Check that sweep settings are usable"""
        problems = []

        if self.SWEEP_BATCH_SIZE <= 0:
            problems.append(f"SWEEP_BATCH_SIZE must be positive (got {self.SWEEP_BATCH_SIZE})")
        if self.LINK_CHECK_TIMEOUT <= 0:
            problems.append(f"LINK_CHECK_TIMEOUT must be positive (got {self.LINK_CHECK_TIMEOUT})")
        if not 0 <= self.SWEEP_RUN_HOUR <= 23:
            problems.append(f"SWEEP_RUN_HOUR must be between 0 and 23 (got {self.SWEEP_RUN_HOUR})")

        try:
            ZoneInfo(self.SWEEP_TIMEZONE)
        except (ZoneInfoNotFoundError, ValueError):
            problems.append(f"SWEEP_TIMEZONE is not a known timezone: {self.SWEEP_TIMEZONE!r}")

        if problems:
            raise ValueError(
                "Invalid sweeper configuration:\n- " + "\n- ".join(problems) + "\n"
                "Please check your .env file."
            )

    @property
    def timezone(self):
        """Reference timezone used to compute the daily scan window"""
        return ZoneInfo(self.SWEEP_TIMEZONE)

    def __str__(self):
        """String representation for debugging (without exposing credentials)"""
        return f"""
Config Status:
- Database: {self.DB_USER}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}
- DB Password: {'✅' if self.DB_PASSWORD else '❌'}
- Batch Size: {self.SWEEP_BATCH_SIZE}
- Link Check Timeout: {self.LINK_CHECK_TIMEOUT}s
- Timezone: {self.SWEEP_TIMEZONE} (runs daily at {self.SWEEP_RUN_HOUR:02d}:00)
- Reindex Job: {self.REINDEX_JOB_NAME}
        """
