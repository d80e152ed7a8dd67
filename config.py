"""
config.py – environment-driven settings for Mistakebook
"""

import logging
import os

# ── Paths ─────────────────────────────────────────────────────────────────────

BASE_DIR   = os.path.dirname(os.path.abspath(__file__))
STATIC_DIR = os.environ.get("STATIC_DIR", os.path.join(BASE_DIR, "static"))
IMAGES_DIR = os.path.join(STATIC_DIR, "images")

# Public URL prefix under which IMAGES_DIR is served (see the /static mount).
IMAGES_URL_PREFIX = "/static/images"

# ── MongoDB ───────────────────────────────────────────────────────────────────

MONGODB_URI          = os.environ.get("MONGODB_URI", "mongodb://localhost:27017")
MONGODB_DB           = os.environ.get("MONGODB_DB", "mistakebook")
QUESTIONS_COLLECTION = os.environ.get("QUESTIONS_COLLECTION", "questions")
MONGODB_TIMEOUT_MS   = int(os.environ.get("MONGODB_TIMEOUT_MS", 5000))

# ── Server ────────────────────────────────────────────────────────────────────

PORT      = int(os.environ.get("PORT", 8000))
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()


def configure_logging(level: str = LOG_LEVEL) -> None:
    """Install a single stream handler on the root logger (idempotent)."""
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )
