"""Project configuration.

Settings are read from the project file (``api-deploy-agent.json`` or
``.yaml``) found in the working directory or one of its parents, and can be
overridden with ``API_DEPLOY_*`` environment variables.
"""

from pathlib import Path
from typing import Annotated

import yaml
from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, PydanticBaseSettingsSource, SettingsConfigDict

from api_deploy_agent.errors import SpecificationError

PROJECT_FILES = ("api-deploy-agent.json", "api-deploy-agent.yaml", "api-deploy-agent.yml")


class Settings(BaseSettings):
    """Runtime configuration of a project."""

    model_config = SettingsConfigDict(env_prefix="API_DEPLOY_", extra="ignore")

    project_root: Path = Path(".")
    apis_path: str = "apis"
    endpoints_path: str = "endpoints"
    lambdas_path: str = "lambdas"

    region: str = "us-east-1"
    environment: str = "DEV"  # prefix of remote resource names
    stage: str = "v0"  # API stage and Lambda alias
    api_deploy_delay: float = 35.0  # seconds between two API deployments

    plugins: Annotated[list[str], NoDecode] = ["lambda", "cors"]
    log_level: str = "INFO"

    @field_validator("plugins", mode="before")
    @classmethod
    def _split_plugins(cls, v):
        if isinstance(v, str):
            return [p.strip() for p in v.split(",") if p.strip()]
        return v

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Project file values arrive as init kwargs; the environment wins over them.
        return env_settings, init_settings, dotenv_settings, file_secret_settings

    @property
    def apis_dir(self) -> Path:
        return self.project_root / self.apis_path

    @property
    def endpoints_dir(self) -> Path:
        return self.project_root / self.endpoints_path

    @property
    def lambdas_dir(self) -> Path:
        return self.project_root / self.lambdas_path


def find_project_root(start: Path | None = None) -> tuple[Path, Path | None]:
    """Walk up from ``start`` looking for a project file.

    Returns the project root and the project file, or ``(start, None)``.
    """
    start = (start or Path.cwd()).resolve()
    for directory in (start, *start.parents):
        for name in PROJECT_FILES:
            candidate = directory / name
            if candidate.is_file():
                return directory, candidate
    return start, None


def load_settings(start: Path | None = None) -> Settings:
    """Build the settings of the project containing ``start``."""
    root, project_file = find_project_root(start)
    values: dict = {}
    if project_file is not None:
        try:
            values = yaml.safe_load(project_file.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as e:
            raise SpecificationError(project_file, str(e)) from e
        if not isinstance(values, dict):
            raise SpecificationError(project_file, "expected a mapping")
    values["project_root"] = root
    return Settings(**values)
