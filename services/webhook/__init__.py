"""
Webhook Service

Responsibilities:
- Subscribe to configuration topics on the REST server
- Run the local listener that receives pushed values
- Queue received messages for the metrics loop
"""

from .service import WebhookService

__all__ = ["WebhookService"]
