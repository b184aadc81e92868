import os
import logging
import logging.handlers

from config import Config

Log = logging.getLogger("phone_shop_pos")
Log.setLevel(Config.LOG_LEVEL)

if not Log.handlers:
    formatter = logging.Formatter(
        '%(asctime)s %(levelname)s: %(message)s', datefmt='%Y-%m-%d %H:%M:%S'
    )

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    Log.addHandler(console_handler)

    if Config.APP_LOG_DIR:
        os.makedirs(Config.APP_LOG_DIR, exist_ok=True)
        file_handler = logging.handlers.TimedRotatingFileHandler(
            os.path.join(Config.APP_LOG_DIR, "pos.log"),
            when="midnight",
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        Log.addHandler(file_handler)

__all__ = ["Log"]
