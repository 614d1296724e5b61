"""
REST Gateway

Uniform wrapper around the HCC2 REST surface:
- Server status, app definition and registration
- Data point registration
- Provisioning status and heartbeat
- Read, read-advanced and write
- Webhook subscription
"""

from .client import RestGateway
from .results import ApiResult

__all__ = ["RestGateway", "ApiResult"]
