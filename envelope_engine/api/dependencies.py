"""Dependency injection for FastAPI endpoints"""

from datetime import date

from fastapi import Request

from envelope_engine.config import Settings, settings


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_today() -> date:
    """Calculation date; overridden in tests to pin the calendar"""
    return date.today()


def get_settings() -> Settings:
    """Provide application settings"""
    return settings
