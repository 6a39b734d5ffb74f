import logging

from dotenv import load_dotenv

import hyni.config as config

load_dotenv()

default_level = config.LOGGING_LEVEL or "WARNING"
logging.basicConfig(
    level=default_level,
    format="%(asctime)s [%(levelname)s] [%(filename)s:%(lineno)d - %(funcName)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("hyni")

# Shortcut aliases
debug = logger.debug
info = logger.info
warning = logger.warning
error = logger.error
exception = logger.exception


def get_logger():
    return logger
