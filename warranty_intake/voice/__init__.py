"""
Voice module for warranty intake via phone calls.

HTTP surface for the Vapi voice assistant:
- Call-setup gatekeeper webhook
- End-of-call intake webhook
"""

from .app import app, main

__all__ = ["app", "main"]
