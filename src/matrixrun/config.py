from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_prefix": "MATRIXRUN_"}

    # Local run state
    results_dir: str = "results"

    # Detail poller (seconds). The testing service is not built for
    # high-frequency polling.
    poll_interval: float = 15

    # External services
    testing_url: str = "https://testing.googleapis.com/v1"
    storage_url: str = "https://storage.googleapis.com"
    access_token: str = ""
    request_timeout: float = 60.0

    # Use in-process mock adapters instead of the real services
    use_mock: bool = False

    # Logging
    log_level: str = "INFO"
