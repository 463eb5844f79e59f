#!/usr/bin/env python3
"""
Issue Admin Token Script.

Mints a bearer token for the admin endpoints. There is no login flow; the
token is signed with ``SECRET_KEY`` and carries ``ADMIN_USERNAME`` as subject.

Usage:
    uv run python auto/issue_token.py
    uv run python auto/issue_token.py --minutes 60
"""

from argparse import ArgumentParser, Namespace
from datetime import timedelta
from pathlib import Path
from sys import path as sys_path

# Add project root to path for imports
project_root = Path(__file__).parent.parent
sys_path.insert(0, str(project_root))

from klog.configs import settings  # noqa: E402
from klog.managers.token_manager import create_access_token  # noqa: E402


def parse_args() -> Namespace:
    parser = ArgumentParser(description="Mint an admin access token")
    parser.add_argument(
        "--minutes",
        type=int,
        default=settings.ACCESS_TOKEN_EXPIRE_MINUTES,
        help="Token lifetime in minutes",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    token = create_access_token(settings.ADMIN_USERNAME, timedelta(minutes=args.minutes))
    print(token)


if __name__ == "__main__":
    main()
