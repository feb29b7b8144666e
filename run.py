#!/usr/bin/env python3
"""Run script for focusdeck."""

import logging
import os

import uvicorn
from dotenv import load_dotenv

load_dotenv()

if __name__ == "__main__":
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(
        "focusdeck.api.app:app",
        host=os.getenv("FOCUSDECK_HOST", "0.0.0.0"),
        port=int(os.getenv("FOCUSDECK_PORT", "8000")),
        reload=True
    )
