# config/validation.py

"""
Environment variable validation for the Hostfully importer application.
Validates required environment variables at startup.
"""

import os
import sys
from typing import List, Tuple


def validate_environment(flask_env: str = None) -> Tuple[bool, List[str]]:
    """
    Validate required environment variables.

    Args:
        flask_env: Flask environment (development, production, testing)
                  If None, reads from FLASK_ENV environment variable

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    if flask_env is None:
        flask_env = os.environ.get("FLASK_ENV", "development")

    errors = []

    # Only validate in production
    if flask_env != "production":
        return True, []

    secret_key = os.environ.get("SECRET_KEY", "")
    if not secret_key or secret_key == "your-secret-key" or secret_key == "your_secret_key":
        errors.append(
            "SECRET_KEY is required in production and must not be the default value. "
            'Generate a secure key: python -c "import secrets; print(secrets.token_hex(32))"'
        )

    database_url = os.environ.get("DATABASE_URL")
    if not database_url:
        errors.append(
            "DATABASE_URL is required in production. "
            "Set it to your PostgreSQL connection string."
        )

    # Opt-in only: credentials may come from saved admin settings instead.
    if os.environ.get("HOSTFULLY_REQUIRE_ENV_CREDENTIALS", "false").lower() == "true":
        if not os.environ.get("HOSTFULLY_API_KEY"):
            errors.append("HOSTFULLY_API_KEY is required when HOSTFULLY_REQUIRE_ENV_CREDENTIALS=true")
        if not os.environ.get("HOSTFULLY_AGENCY_UID"):
            errors.append("HOSTFULLY_AGENCY_UID is required when HOSTFULLY_REQUIRE_ENV_CREDENTIALS=true")

    base_url = os.environ.get("HOSTFULLY_BASE_URL")
    if base_url and not base_url.startswith(("http://", "https://")):
        errors.append("HOSTFULLY_BASE_URL must be an absolute http(s) URL.")

    is_valid = len(errors) == 0
    return is_valid, errors


def validate_and_exit(flask_env: str = None) -> None:
    """
    Validate environment variables and exit with error if validation fails.
    Intended to be called at application startup.

    Args:
        flask_env: Flask environment (development, production, testing)
    """
    is_valid, errors = validate_environment(flask_env)

    if not is_valid:
        print("=" * 80, file=sys.stderr)
        print("ENVIRONMENT VALIDATION FAILED", file=sys.stderr)
        print("=" * 80, file=sys.stderr)
        print("\nThe following environment variables are missing or invalid:\n", file=sys.stderr)

        for i, error in enumerate(errors, 1):
            print(f"{i}. {error}", file=sys.stderr)

        print("\n" + "=" * 80, file=sys.stderr)
        print("Please check your .env file or environment variables.", file=sys.stderr)
        print("=" * 80, file=sys.stderr)

        sys.exit(1)
