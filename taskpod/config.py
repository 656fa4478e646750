from pydantic_settings import BaseSettings
from functools import lru_cache

class Settings(BaseSettings):
    # Images used by the synthesized init containers.
    # Should include full registry path for private registries
    creds_image: str = "gcr.io/tekton-releases/github.com/tektoncd/pipeline/cmd/creds-init:latest"
    shell_image: str = "busybox"
    entrypoint_image: str = "gcr.io/tekton-releases/github.com/tektoncd/pipeline/cmd/entrypoint:latest"

    # Default value of app.kubernetes.io/managed-by on compiled pods
    # TaskRun labels may override it
    managed_by_label_value: str = "tekton-pipelines"

    # Service account used when a TaskRun does not name one
    default_service_account: str = "default"

    # Logging level: DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_level: str = "INFO"

    class Config:
        env_prefix = "TASKPOD_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # Ignore extra fields from .env file
        case_sensitive = False

@lru_cache()
def get_settings():
    return Settings()
