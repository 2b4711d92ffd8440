"""Grant the admin flag to an existing user.

Usage:
    python make_admin.py <email>

Bootstraps the first admin; later admins can be granted through the API.
"""

import logging
import sys
from typing import List, Optional

from core.database import SessionLocal
from core.logging_config import setup_logging
from utils.user_manager import UserManager

logger = logging.getLogger(__name__)


def make_admin(email: str) -> int:
    """Grant admin to the user with ``email``; returns a process exit code."""
    with SessionLocal() as db:
        user_manager = UserManager(db)
        user = user_manager.get_user_by_email(email)
        if user is None:
            print(f"User not found: {email}")
            return 1
        if user.is_admin:
            print(f"{user.email} is already an admin")
            return 0
        user_manager.set_admin(user.user_id, True)
    print(f"Granted admin access to {email}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    if len(args) != 1:
        print("Usage: python make_admin.py <email>")
        return 2
    return make_admin(args[0])


if __name__ == "__main__":
    setup_logging()
    sys.exit(main())
