"""
Warranty call intake.

Inbound voice-call gatekeeping, end-of-call extraction, homeowner address
matching and deduplicated warranty claim creation.
"""

__version__ = "1.0.0"
