from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "postgresql://postgres:postgres@db:5432/pawlog"
    anthropic_api_key: str = ""

    vision_model: str = "claude-sonnet-4-5-20250929"
    analysis_max_tokens: int = 1000

    # Anthropic API timeout settings (seconds)
    anthropic_timeout: int = 30  # Single vision call, no web search
    anthropic_connect_timeout: int = 10  # Connection establishment

    # Inline image payload limits (base64 characters)
    image_data_min_length: int = 100
    image_data_max_length: int = 10 * 1024 * 1024

    # Object storage
    upload_dir: str = "uploads"
    image_fetch_timeout: int = 15

    # Entry resolution: .../<entry_path_bucket>/<entry_path_namespace>/<entry_id>/...
    entry_path_namespace: str = "otayori"
    entry_path_bucket: str = "dog-images"
    placeholder_content: str = "AI analysis placeholder entry"

    # Query limits
    candidate_limit: int = 20
    history_limit: int = 50

    # Auth settings
    session_secret_key: str = ""  # Required in production
    session_cookie_name: str = "pawlog_session"
    session_max_age: int = 86400 * 7  # 7 days
    session_cookie_secure: bool = False  # True in production

    log_level: str = "INFO"

    class Config:
        env_file = ".env"


settings = Settings()
