"""Dependency injection for FastAPI."""

from fastapi import Request

from .dispatch import ToolDispatcher


async def get_dispatcher(request: Request) -> ToolDispatcher:
    """Get the tool dispatcher from app state."""
    return request.app.state.dispatcher
