"""FunnelDash — Central Configuration via Pydantic Settings."""

import os
from typing import List, Literal, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables / .env file."""

    # ── RedTrack API ──
    redtrack_api_key: Optional[str] = None
    redtrack_api_url: str = "https://api.redtrack.io"
    redtrack_fetch_strategy: Literal["daily", "ranged"] = "daily"
    redtrack_request_delay: float = 2.5  # seconds between daily requests
    redtrack_page_size: int = 1000
    redtrack_max_pages: int = 50
    redtrack_campaign_filter: str = "NT"
    redtrack_allowed_managers: List[str] = ["NTE-ERICK", "NTE-BARROS"]
    redtrack_schema: str = "v2_redtrack_pipe"

    # ── Database ──
    database_url: str = ""
    insert_batch_size: int = 1000
    insert_fail_fast: bool = False

    # ── Dashboard ──
    dashboard_schema: str = "v1_csv_funnel"
    roi_mode: Literal["computed", "source"] = "computed"

    # ── App ──
    log_level: str = "INFO"

    @property
    def effective_database_url(self) -> str:
        """Return the configured database URL, otherwise fall back to SQLite."""
        if self.database_url:
            return self.database_url
        # Vercel has a read-only filesystem; use /tmp for SQLite
        if os.environ.get("VERCEL"):
            return "sqlite:////tmp/funneldash.db"
        return "sqlite:///./funneldash.db"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
