import json
import logging.config
from pathlib import Path

__version__ = "1.0.0"

config_path = Path(__file__).parent / "logging" / "logging_config.json"
with open(config_path, "rt") as f:
    config = json.load(f)
logging.config.dictConfig(config)
