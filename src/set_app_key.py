"""Store or rotate the app key for a free-tier provider.

Usage:
    python set_app_key.py <provider> <key>
"""

import logging
import sys
from typing import List, Optional

from core.database import SessionLocal
from core.exceptions import ValidationError
from core.logging_config import setup_logging
from utils.app_key_manager import AppKeyManager

logger = logging.getLogger(__name__)


def set_app_key(provider: str, key: str) -> int:
    with SessionLocal() as db:
        try:
            model = AppKeyManager(db).upsert(provider, key)
        except ValidationError as e:
            print(f"Error: {e.message}")
            return 1
        print(f"Saved app key for {model.provider} (active={model.is_active})")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    if len(args) != 2:
        print("Usage: python set_app_key.py <provider> <key>")
        return 2
    return set_app_key(args[0], args[1])


if __name__ == "__main__":
    setup_logging()
    sys.exit(main())
