"""Runtime settings loaded from the environment (pydantic-settings)."""

from __future__ import annotations

import os

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_VSWHERE_DEFAULT = r"%ProgramFiles(x86)%\Microsoft Visual Studio\Installer\vswhere.exe"


class Settings(BaseSettings):
    """Settings for a debugify invocation. CLI flags take precedence over these."""

    model_config = SettingsConfigDict(
        env_prefix="DEBUGIFY_",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    nuget_packages: str = Field(
        default="",
        validation_alias=AliasChoices("NUGET_PACKAGES", "DEBUGIFY_NUGET_PACKAGES", "nuget_packages"),
        description="Override of the shared package cache root (same variable NuGet itself honours)",
    )
    dotnet_executable: str = Field(
        default="dotnet",
        description="dotnet CLI used for `dotnet pack`",
    )
    vswhere_path: str = Field(
        default_factory=lambda: os.path.expandvars(_VSWHERE_DEFAULT),
        description="vswhere.exe used to locate a desktop MSBuild when dotnet pack cannot build the project",
    )
    configuration: str = Field(
        default="Debug",
        description="Default build configuration",
    )


def get_settings() -> Settings:
    return Settings()
