"""
CORS Configuration

Configures Cross-Origin Resource Sharing settings.
"""

import os
from dataclasses import dataclass, field, replace
from typing import List, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware


@dataclass
class CORSConfig:
    """CORS configuration settings."""

    allowed_origins: List[str] = field(default_factory=list)
    allow_credentials: bool = True

    allowed_methods: List[str] = field(default_factory=lambda: [
        "GET", "POST", "PUT", "PATCH", "OPTIONS"
    ])

    allowed_headers: List[str] = field(default_factory=lambda: [
        "Accept",
        "Content-Type",
        "Authorization",
        "X-Request-ID",
    ])

    expose_headers: List[str] = field(default_factory=lambda: [
        "X-Request-ID",
        "X-Rate-Limit-Remaining",
        "Retry-After",
    ])

    # Max age for preflight cache (in seconds)
    max_age: int = 3600

    # Development only
    allow_all_origins: bool = False


# Environment-specific configurations
CORS_CONFIGS = {
    "development": CORSConfig(
        allowed_origins=[
            "http://localhost:8081",      # Expo dev server
            "http://localhost:19006",     # Expo web
            "http://127.0.0.1:8081",
        ],
        allow_all_origins=True,
    ),
    "staging": CORSConfig(
        allowed_origins=[
            "https://staging.thesisvault.example.edu",
        ],
    ),
    "production": CORSConfig(
        allowed_origins=[
            "https://thesisvault.example.edu",
        ],
        max_age=7200,
    ),
}


def get_cors_config(environment: Optional[str] = None) -> CORSConfig:
    """Get CORS configuration for the environment."""
    if environment is None:
        environment = os.getenv("THESISVAULT_ENV", "development")

    base = CORS_CONFIGS.get(environment, CORS_CONFIGS["development"])
    config = replace(base, allowed_origins=list(base.allowed_origins))

    extra_origins = os.getenv("CORS_ALLOWED_ORIGINS", "")
    if extra_origins:
        config.allowed_origins.extend(
            origin.strip() for origin in extra_origins.split(",") if origin.strip()
        )

    return config


def setup_cors(app: FastAPI, config: Optional[CORSConfig] = None) -> None:
    """Configure CORS middleware for the FastAPI application."""
    if config is None:
        config = get_cors_config()

    allow_origins = ["*"] if config.allow_all_origins else config.allowed_origins

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=config.allow_credentials if not config.allow_all_origins else False,
        allow_methods=config.allowed_methods,
        allow_headers=config.allowed_headers,
        expose_headers=config.expose_headers,
        max_age=config.max_age,
    )
