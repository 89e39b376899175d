"""Pre-deploy sanity check for dashboard settings.

Loads ``AppSettings`` from an env file and rejects combinations that would
only fail later at request or refresh time::

    python -m scripts.check_env --env-file /srv/dashboard/.env
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from pydantic import ValidationError

from app.core.config import AppSettings, _load_env_file

EXIT_OK = 0
EXIT_MISSING_FILE = 1
EXIT_VALIDATION_ERROR = 2

GITHUB_MAX_PAGE_SIZE = 100


class ConfigurationError(Exception):
    """Raised when settings load but are mutually inconsistent."""


def _validate_settings(env_file: Path) -> AppSettings:
    _load_env_file(str(env_file))
    settings = AppSettings()  # type: ignore[call-arg]
    if settings.storage.blob_backend == "s3" and not settings.storage.s3_bucket:
        raise ConfigurationError("BLOB_BACKEND=s3 requires BLOB_S3_BUCKET to be set.")
    if not 1 <= settings.sync.page_size <= GITHUB_MAX_PAGE_SIZE:
        raise ConfigurationError(
            f"SYNC_PAGE_SIZE must be between 1 and {GITHUB_MAX_PAGE_SIZE}."
        )
    if settings.sync.max_pages < 1:
        raise ConfigurationError("SYNC_MAX_PAGES must be at least 1.")
    return settings


def _report(settings: AppSettings) -> None:
    # Secrets are never echoed.
    print(
        f"Settings OK: environment={settings.environment} "
        f"blob_backend={settings.storage.blob_backend} "
        f"db_path={settings.storage.db_path} "
        f"scopes={' '.join(settings.github.scopes)}"
    )


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Validate dashboard settings before deploy.")
    parser.add_argument("--env-file", default=".env", type=Path)
    args = parser.parse_args(argv)

    if not args.env_file.exists():
        print(f"Environment file {args.env_file} does not exist.", file=sys.stderr)
        return EXIT_MISSING_FILE

    try:
        settings = _validate_settings(args.env_file)
    except ValidationError as exc:
        print(f"Missing or invalid settings:\n{exc}", file=sys.stderr)
        return EXIT_VALIDATION_ERROR
    except ConfigurationError as exc:
        print(f"Settings are inconsistent: {exc}", file=sys.stderr)
        return EXIT_VALIDATION_ERROR

    _report(settings)
    return EXIT_OK


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
