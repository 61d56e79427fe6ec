from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Supabase
    supabase_url: str = ""
    supabase_service_role_key: str = ""  # Service role key, the kv table is not exposed to anon

    # Key-value store layout
    kv_table_name: str = "kv_store"
    user_key_prefix: str = "user:id:"
    rank_cache_prefix: str = "rank:user:"

    # Rank engine
    # Children map is rebuilt from a full user scan; keep the window short
    children_map_ttl_seconds: float = 60.0
    # Hard cap on sponsor hops per upline walk (guards against corrupted chains)
    rank_max_upline_hops: int = 100

    # Application
    debug: bool = False

    # Scheduler settings
    # Enable/disable the internal APScheduler (set False for local dev to avoid noise)
    scheduler_enabled: bool = True
    # Hour (UTC) to run the full rank reconciliation (default: 3 AM UTC)
    rank_reconcile_hour: int = 3

    @property
    def supabase_enabled(self) -> bool:
        """Check if Supabase is configured (has URL and service role key)."""
        return bool(self.supabase_url and self.supabase_service_role_key)


settings = Settings()
