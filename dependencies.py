"""
FastAPI dependency providers.

All injectable dependencies are defined here as plain functions used with
FastAPI's Depends() system. The objects themselves are built once in
create_app() and stored on app.state.
"""

from __future__ import annotations

from fastapi import Request

from config import AppSettings
from services.verification_service import VerificationService


def get_settings(request: Request) -> AppSettings:
    """Return the AppSettings instance stored on app.state."""
    return request.app.state.settings


def get_verification_service(request: Request) -> VerificationService:
    return request.app.state.verification_service
