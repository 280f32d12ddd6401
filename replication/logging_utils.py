"""
Logging Setup
=============

Configures process logging from the ``task_settings.logging`` block.
"""

import json
import logging
import os
import traceback
from datetime import datetime, timezone
from typing import Dict

TEXT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class JsonFormatter(logging.Formatter):
    """One JSON object per log line."""
    
    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno
        }
        
        if record.exc_info:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": traceback.format_exception(*record.exc_info)
            }
        
        return json.dumps(log_entry, default=str)


def setup_logging(log_settings: Dict):
    """
    Setup logging configuration.
    
    Args:
        log_settings: dict with level, format (text | json), log_to_file, log_path
    """
    log_level = getattr(logging, log_settings.get("level", "INFO").upper())
    formatter = (
        JsonFormatter() if log_settings.get("format") == "json"
        else logging.Formatter(TEXT_FORMAT)
    )
    
    handlers = [logging.StreamHandler()]
    if log_settings.get("log_to_file"):
        log_path = log_settings.get("log_path", "logs/replication.log")
        os.makedirs(os.path.dirname(log_path) or ".", exist_ok=True)
        handlers.append(logging.FileHandler(log_path))
    
    for handler in handlers:
        handler.setFormatter(formatter)
    
    logging.basicConfig(level=log_level, handlers=handlers, force=True)
