"""
Constants for the retrace operation log.
"""
from pathlib import Path
import os

# Application information
APP_DESCRIPTION = "Reversible operation log for filesystem actions performed by automated agents"

# Paths
CONFIG_DIR = Path(os.path.expanduser("~/.config/retrace"))
CONFIG_FILE = CONFIG_DIR / "config.toml"
LOG_DIR = CONFIG_DIR / "logs"
DATA_DIR = CONFIG_DIR / "data"
BACKUP_DIR_NAME = "operation-backups"
OPERATIONS_FILE_TEMPLATE = "operations-{workspace_id}.json"

# Logging
LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level} | {extra[name]} | {message}"
LOG_ROTATION = "10 MB"
LOG_RETENTION = "10 days"

# Tracker
DEFAULT_MAX_OPERATIONS = 1000
DEFAULT_CASCADE_POLICY = "block"
NO_SESSION_KEY = "__no_session__"

# Backup suffixes for the edit strategies
UNDO_BACKUP_SUFFIX = "-current"
REDO_BACKUP_SUFFIX = "-redo"

# Backups older than this are removed by an explicit cleanup request
DEFAULT_BACKUP_MAX_AGE_DAYS = 7

# Environment variables
ENV_DATA_DIR = "RETRACE_DATA_DIR"
ENV_BACKUP_DIR = "RETRACE_BACKUP_DIR"
ENV_CASCADE_POLICY = "RETRACE_CASCADE_POLICY"
ENV_DEBUG = "RETRACE_DEBUG"
