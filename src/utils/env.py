"""
Secret lookup.

Secrets are read from the environment. Deployments that mount secrets as
files set <NAME>_FILE to the file path instead.
"""

import os
from typing import Optional

from src.utils.logging import get_logger

logger = get_logger(__name__)


def read_secret(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.environ.get(name)
    if value:
        return value.strip()

    file_path = os.environ.get(f"{name}_FILE")
    if file_path:
        try:
            with open(file_path, "r") as f:
                return f.read().strip()
        except OSError as e:
            logger.error(f"Could not read secret {name} from {file_path}: {e}")

    return default
