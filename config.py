from dotenv import load_dotenv
load_dotenv()  # Load environment variables from .env file

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent


class Config:
    """Settings read once from the environment at import time."""
    APP_NAME = os.getenv("APP_NAME", "Phone Shop POS")
    SHOP_NAME = os.getenv("SHOP_NAME", "Phone Shop POS")

    DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{BASE_DIR / 'pos.db'}")

    # Display currency, whole units only
    CURRENCY_CODE = os.getenv("CURRENCY_CODE", "TSh")

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    APP_LOG_DIR = os.getenv("APP_LOG_DIR")

    # How many change events the feed keeps for polling clients
    CHANGE_HISTORY_SIZE = int(os.getenv("CHANGE_HISTORY_SIZE", "500"))
