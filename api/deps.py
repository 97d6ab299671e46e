"""
API 共用 dependency
"""
from fastapi import Request

from core.runtime import Runtime


def get_runtime(request: Request) -> Runtime:
    """FastAPI dependency：取得啟動時建立的 Runtime"""
    return request.app.state.runtime
