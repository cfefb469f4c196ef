"""Web 服务模块"""

from devmux.web.app import create_app, start_server
from devmux.web.server import CompanionServer

__all__ = ["create_app", "start_server", "CompanionServer"]
