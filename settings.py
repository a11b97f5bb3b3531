"""
Runtime configuration for the Rakhi Gifts store API.

Everything is read from the environment once, at process start, and passed
explicitly to the store, the payment gateway and the app factory.
"""

import os
from typing import Optional

from pydantic import BaseModel, Field


class Settings(BaseModel):
    database_url: str = Field("mongodb://localhost:27017", description="MongoDB connection string")
    database_name: str = Field("rakhi_store", description="Database holding the item table")
    item_table: str = Field("items", description="Collection used as the single item table")
    stripe_secret_key: Optional[str] = Field(None, description="Stripe API key")
    stripe_webhook_secret: Optional[str] = Field(None, description="Stripe webhook signing secret")
    frontend_origin: str = Field("http://localhost:3000", description="Base URL for checkout redirects")
    currency: str = Field("usd", description="ISO currency code charged at checkout")
    identity_header: str = Field("X-Auth-Subject", description="Header carrying the verified token subject")

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            database_url=os.getenv("DATABASE_URL", "mongodb://localhost:27017"),
            database_name=os.getenv("DATABASE_NAME", "rakhi_store"),
            item_table=os.getenv("ITEM_TABLE", "items"),
            stripe_secret_key=os.getenv("STRIPE_SECRET_KEY") or None,
            stripe_webhook_secret=os.getenv("STRIPE_WEBHOOK_SECRET") or None,
            frontend_origin=os.getenv("FRONTEND_ORIGIN", "http://localhost:3000"),
            currency=os.getenv("CURRENCY", "usd"),
            identity_header=os.getenv("IDENTITY_HEADER", "X-Auth-Subject"),
        )
