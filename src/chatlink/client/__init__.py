"""
Messaging client capability and construction.

The real client (browser automation against the messaging service) is an
external driver loaded by import path; this package defines what the
session manager expects from it.
"""

from chatlink.client.base import (
    ClientEvent,
    ClientOptions,
    ConnectionState,
    MessagingClient,
)

__all__ = ["ClientEvent", "ClientOptions", "ConnectionState", "MessagingClient"]
