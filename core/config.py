from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings"""

    # API Settings
    app_name: str = "ScalpScan Comparison Service"
    api_version: str = "1.0.0"
    debug: bool = False

    # Upload Settings
    max_image_size: int = 20 * 1024 * 1024  # 20MB per image

    # Detector Settings
    detector_base_url: str = "https://serverless.roboflow.com"
    detector_workspace: str = "scalpscan"
    detector_api_key: str = ""  # Required, checked per request
    detector_timeout: Optional[float] = None  # No per-call deadline by default
    default_model: str = "scalp-density-detector"
    target_class: str = "bald"
    class_prompt: Optional[str] = "bald scalp"

    # Logging Settings
    log_dir: str = "/tmp/scalpscan/api_logs"
    log_level: str = "INFO"
    log_rotation_interval: str = "midnight"  # daily rotation at midnight
    log_rotation_count: int = 30  # keep 30 days of logs
    log_max_bytes: int = 10 * 1024 * 1024  # 10MB for error log
    log_backup_count: int = 5  # keep 5 backup files for error log

    def workflow_url(self, workflow_id: str) -> str:
        """Detector workflow endpoint for the given model"""
        return f"{self.detector_base_url.rstrip('/')}/{self.detector_workspace}/workflows/{workflow_id}"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


settings = Settings()
