#!/usr/bin/env python3
"""
Run script for the warranty call intake server.

Usage:
    python run_server.py

Make sure to:
1. Copy .env.example to .env and set VAPI_SECRET (and VAPI_API_KEY if different)
2. Expose the server publicly (e.g. ngrok http 8000)
3. In the Vapi dashboard, point the phone number's Server URL to
   {PUBLIC_URL}/vapi/gatekeeper and the assistant's Server URL to
   {PUBLIC_URL}/vapi/webhook, both with the same secret
"""

import logging

# Configure logging VERY early, before any other imports that might use it
# This suppresses noisy debug output from third-party libraries
logging.getLogger("python_multipart").setLevel(logging.WARNING)
logging.getLogger("python_multipart.multipart").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def main():
    """Run the intake server."""
    import uvicorn
    from warranty_intake.utils.config import get_settings

    settings = get_settings()

    print("=" * 60)
    print("Warranty Call Intake")
    print("=" * 60)
    print(f"Server: http://{settings.host}:{settings.port}")
    print(f"Database: {settings.database_path}")
    print(f"Transfer number: {settings.transfer_phone_number}")
    print(f"Address match threshold: {settings.address_match_threshold}")
    print(f"Secret configured: {'yes' if settings.vapi_secret else 'NO - all webhooks will be rejected'}")
    print("=" * 60)
    print()
    print("Endpoints:")
    print(f"  - Health: http://{settings.host}:{settings.port}/health")
    print(f"  - Gatekeeper: POST http://{settings.host}:{settings.port}/vapi/gatekeeper")
    print(f"  - End of call: POST http://{settings.host}:{settings.port}/vapi/webhook")
    print(f"  - Calls: http://{settings.host}:{settings.port}/calls")
    print()

    uvicorn.run(
        "warranty_intake.voice.app:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level="debug" if settings.debug else "info",
    )


if __name__ == "__main__":
    main()
