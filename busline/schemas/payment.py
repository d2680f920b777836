from pydantic import BaseModel
from typing import Optional


class WebhookAck(BaseModel):
    received: bool
    message: Optional[str] = None
