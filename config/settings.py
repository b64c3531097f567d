#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Settings - Centralized configuration management
"""

from pathlib import Path
from typing import Optional
from pydantic_settings import BaseSettings

from .constants import (
    API_BASE_URL,
    API_TIMEOUT_SECONDS,
    POLL_INTERVAL_SECONDS,
    POLL_TIMEOUT_SECONDS,
    RUNNING_PLACEHOLDER_PERCENT,
    HIDE_RESET_DELAY_SECONDS,
    FIRST_PAINT_DELAY_SECONDS,
    LOG_LEVEL,
)


# Base directory
BASE_DIR = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    """Application settings"""

    # ========== Server ==========
    api_base_url: str = API_BASE_URL
    access_token: Optional[str] = None  # bearer credential, normally from the login flow
    request_timeout: float = API_TIMEOUT_SECONDS

    # ========== Polling ==========
    poll_interval: float = POLL_INTERVAL_SECONDS
    poll_timeout: float = POLL_TIMEOUT_SECONDS

    # ========== Re-scoring ==========
    default_ai_model: str = "auto"  # auto | qwen | volcengine

    # ========== Progress display ==========
    # Tuned by feel, not by requirement; keep them adjustable
    running_placeholder_percent: int = RUNNING_PLACEHOLDER_PERCENT
    hide_reset_delay: float = HIDE_RESET_DELAY_SECONDS
    first_paint_delay: float = FIRST_PAINT_DELAY_SECONDS

    # ========== Logging ==========
    log_level: str = LOG_LEVEL

    class Config:
        env_file = str(BASE_DIR / ".env")
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"  # Allow extra fields from .env that aren't defined in model

    def get_access_token(self) -> str:
        """Get bearer token, failing loudly when the operator is not logged in"""
        if not self.access_token:
            raise ValueError("ACCESS_TOKEN not set in environment or .env")
        return self.access_token

    def get_poll_config(self) -> dict:
        """Polling parameters as keyword arguments for PollConfig"""
        return {
            "interval": self.poll_interval,
            "timeout": self.poll_timeout,
        }

    def get_display_config(self) -> dict:
        """Display heuristics as keyword arguments for ProgressAggregator"""
        return {
            "running_placeholder_percent": self.running_placeholder_percent,
            "hide_reset_delay": self.hide_reset_delay,
            "first_paint_delay": self.first_paint_delay,
        }


# Global settings instance
settings = Settings()
