"""Environment configuration (.env aware) and logging setup."""
import os
import logging
from dotenv import load_dotenv

load_dotenv()

OUT_DIR = os.getenv("DPS_OUT_DIR", ".")
LOG_LEVEL = os.getenv("DPS_LOG_LEVEL", "INFO")
CA_PFX = os.getenv("DPS_CA_PFX")
CA_PASSWORD = os.getenv("DPS_CA_PASSWORD")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configureLogging(level=None):
    level = (level or LOG_LEVEL).upper()
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)
