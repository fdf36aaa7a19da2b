#!/usr/bin/env python3
"""
Generate Installation URL Script
Encodes user data into the path segment of an addon's install URL
Example usage: python generate_token.py '{"userId":"123","token":"abc"}' --base64
"""
import argparse
import sys
from typing import Any, Dict
from stremio_addon.core.config import settings
from stremio_addon.core.errors import ConfigurationDecodeError
from stremio_addon.utils.token import UserDataCodec, install_url


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Build a Stremio addon install URL from user data")
    parser.add_argument("user_data", help="User data as a JSON object")
    parser.add_argument(
        "--base64",
        action="store_true",
        default=settings.USER_DATA_IS_BASE64,
        help="URL-safe base64 encode the user data",
    )
    parser.add_argument("--base-url", default=settings.BASE_URL, help="Public URL of the addon")
    args = parser.parse_args(argv)

    try:
        user_data = UserDataCodec(Dict[str, Any]).decode(args.user_data)
    except ConfigurationDecodeError as e:
        print(f"❌ Invalid user data: {e}", file=sys.stderr)
        return 1

    segment = UserDataCodec(Dict[str, Any], base64_encoded=args.base64).encode(user_data)
    print(f"Segment:     {segment}")
    print(f"Install URL: {install_url(args.base_url, segment)}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
