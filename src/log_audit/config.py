"""Settings (pydantic-settings, loaded from env vars)."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # --- Control plane ---
    CONTROL_PLANE_BASE_URL: str = "http://127.0.0.1:3000"
    CONTROL_PLANE_ACTOR: str = "admin"  # admin, operator, readonly
    HTTP_TIMEOUT_SECONDS: float = 30.0

    # --- Paging ---
    TRADE_PAGE_SIZE: int = 500
    TRADE_ROW_CAP: int = 2000
    AUDIT_PAGE_SIZE: int = 500
    RPC_HINT_ROW_CAP: int = 2000

    # --- Signatures / samples ---
    SIGNATURE_LIMIT: int = 200
    SAMPLE_LIMIT: int = 200

    # --- Match windows ---
    FORWARD_MATCH_WINDOW_SECONDS: int = 12 * 3600
    BACKWARD_MATCH_WINDOW_SECONDS: int = 10 * 60
    RPC_HINT_BEFORE_SECONDS: int = 5 * 60
    RPC_HINT_AFTER_SECONDS: int = 20 * 60
    RPC_HINT_EARLY_PENALTY_MS: int = 4000

    # --- RPC hint stream ---
    RPC_LOGGER_NAME: str = "freqtrade.rpc.rpc_manager"
    RPC_TEXT_QUERY: str = "entry"

    # --- Aggregation ---
    PROFIT_BUCKET_THRESHOLD_PCT: float = 0.2

    model_config = {"env_prefix": "", "case_sensitive": True}
