"""
helpmate/schemas/subscription.py

Purpose: Subscription payloads
"""

from pydantic import BaseModel
from typing import Optional


class SubscriptionCreate(BaseModel):
    # Plan and cycle are checked against the catalogue by the service (400)
    plan: Optional[str] = None
    payment_cycle: str = "monthly"
    payment_id: Optional[str] = None
    subscription_id: Optional[str] = None
