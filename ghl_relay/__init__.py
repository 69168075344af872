"""Relay between the Evolution API WhatsApp gateway and GoHighLevel.

Inbound WhatsApp messages are normalized and forwarded to a GoHighLevel
webhook; GoHighLevel send requests are translated into Evolution API calls.
"""

__version__ = "1.0.0"
