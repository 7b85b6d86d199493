from pydantic_settings import BaseSettings
from functools import lru_cache
from pathlib import Path


class Settings(BaseSettings):
    # Repositories
    primary_repo_path: str = ""
    foreign_repo_paths: str = ""
    content_dir_name: str = "content"

    # Git
    git_remote: str = "origin"
    git_branch: str = "master"
    git_check_remote: bool = True
    git_timeout_seconds: int = 120

    # Subtitle operations
    st_ops_dir: str = ""
    skip_unsupported_hunks: bool = False
    derivation_workers: int = 4
    transfer_workers: int = 4

    # Redis
    redis_url: str = "redis://localhost:6379/0"
    redis_username: str = ""
    redis_password: str = ""

    debug: bool = False

    @property
    def redis_broker_url(self) -> str:
        """Build Redis URL with auth if username/password provided."""
        if self.redis_username or self.redis_password:
            from urllib.parse import urlparse, urlunparse
            parsed = urlparse(self.redis_url)
            netloc = ""
            if self.redis_username:
                netloc = self.redis_username
            if self.redis_password:
                netloc = f"{netloc}:{self.redis_password}"
            netloc = f"{netloc}@{parsed.hostname}"
            if parsed.port:
                netloc = f"{netloc}:{parsed.port}"
            return urlunparse((parsed.scheme, netloc, parsed.path, "", "", ""))
        return self.redis_url

    @property
    def foreign_repo_path_list(self) -> list[str]:
        return [p.strip() for p in self.foreign_repo_paths.split(",") if p.strip()]

    @property
    def st_ops_path(self) -> Path:
        """Directory holding cached subtitle operations, next to the primary repo by default."""
        if self.st_ops_dir:
            p = Path(self.st_ops_dir)
        else:
            p = Path(self.primary_repo_path or ".") / "subtitle_operations"
        p.mkdir(parents=True, exist_ok=True)
        return p

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
