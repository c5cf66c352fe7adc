"""
Shared configuration management for the compliance service.
"""

from datetime import date
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="COMPLIANCE_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")
    enable_docs: bool = Field(default=True)

    # Dynamic value sources (values substituted for {token} placeholders)
    institution_name: str = Field(default="Simple State University")
    term_name: str = Field(default="Fall 2025")
    term_start: str = Field(default="08/26/2024")
    term_end: str = Field(default="12/13/2024")
    syllabus_due_date: str = Field(default="08/19/2024")
    plan_due_date: str = Field(default="07/15/2024")
    total_students_lms: str = Field(default="12,345")
    total_students_she: str = Field(default="12,500")
    total_published_syllabi: str = Field(default="350")
    total_syllabi: str = Field(default="410")
    total_sections: str = Field(default="450")

    # Validation context
    validation_page_size: int = Field(default=5, ge=1)
    max_context_sections: int = Field(default=500, ge=1)

    # Undo/redo snapshots kept per condition group
    history_limit: int = Field(default=50, ge=1)

    # Pinned evaluation date (ISO); rejected at startup when malformed
    fixed_today: Optional[date] = Field(default=None)


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


def get_config(service_name: str, port: int) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port)
