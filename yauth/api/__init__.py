"""Web 接口模块"""

from .auth_api import create_auth_router

__all__ = ["create_auth_router"]
