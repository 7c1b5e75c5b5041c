from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="UP2B_", env_file=".env", env_file_encoding="utf-8")

    app_name: str = "up2b"
    debug: bool = False
    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "info"
    log_json: bool = False
    cors_origins: list[str] = ["*"]

    config_path: str = "~/.config/up2b/config.json"
    request_timeout: float = 5.0
    user_agent: str = (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )
    chevereto_max_retries: int = 3
    chevereto_page_size: int = 80
    git_default_path: str = "up2b"


settings = Settings()
