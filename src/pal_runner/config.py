"""Pydantic settings for the runner service."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = {"env_prefix": "PAL_"}

    # Sandbox ceilings
    timeout: int = 15  # minutes
    pid_limit: int = 25
    memory_quota: int = 100 * 1_048_576  # 100 MiB
    disk_quota: int = 50 * 1_048_576  # 50 MiB
    enforce_disk_quota: bool = True
    cpu_limit: float = 1.0
    cpu_share: float = 0.5
    stop_signal: str = "SIGKILL"

    # Container layout
    storage_root: str = "/var/lib/pal/projects"
    image_prefix: str = "pal-runner"
    working_dir: str = "/opt/runner"
    mount_path: str = "/usr/src/app"
    entrypoint: str = "./run.sh"

    # Code store
    code_store_url: str = "http://localhost:8000"
    code_store_api_key: str = ""

    cors_allowed_origins: list[str] = []
    log_level: str = "INFO"
