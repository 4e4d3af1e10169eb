"""
Entry point for running the UI bridge.

Usage:
    python -m ui_bridge

This starts the FastAPI server on http://0.0.0.0:8000
(override with UI_BRIDGE_HOST / UI_BRIDGE_PORT).
"""
import os

import uvicorn
from logging_setup import setup_logging

if __name__ == "__main__":
    # Initialize logging
    setup_logging(level="INFO", use_json=True)

    # Run the bridge server
    uvicorn.run(
        "ui_bridge.server:app",
        host=os.getenv("UI_BRIDGE_HOST", "0.0.0.0"),
        port=int(os.getenv("UI_BRIDGE_PORT", "8000")),
        log_level="info"
    )
