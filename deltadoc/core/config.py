from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str
    jwt_secret: str
    jwt_algorithm: str = "HS256"
    sql_echo: bool = False

    # Логирование
    log_level: str = "INFO"
    log_json: bool = False

    # Параметры движка истории версий
    diff_window: int = 50
    diff_min_match: int = 3
    snapshot_interval: int = 10
    snapshot_max_delta_ops: int = 50000
    max_content_length: int = 1_000_000
    max_message_length: int = 1000
    version_conflict_retries: int = 3

    model_config = {"env_file": ".env", "extra": "ignore"}

settings = Settings()
