"""Test helper that normalizes sys.path and environment defaults."""

from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]

if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


_DEFAULT_ENV_VARS: dict[str, str] = {
    "GITHUB_CLIENT_ID": "test-client-id",
    "GITHUB_CLIENT_SECRET": "test-client-secret",
    "STRIPE_SECRET": "sk_test_dummy",
    "STRIPE_WEBHOOK_SIGNING_SECRET": "whsec_test_secret",
    "STRIPE_PAYMENT_LINK_ID": "plink_test_123",
    "STRIPE_PAYMENT_LINK": "https://buy.stripe.com/test_123",
    "SESSION_SECRET": "test-session-secret",
    "SECURE_COOKIES": "false",
    "DASHBOARD_DB_PATH": str(Path(tempfile.mkdtemp(prefix="dashboard-tests-")) / "dashboard.db"),
}

for key, value in _DEFAULT_ENV_VARS.items():
    os.environ.setdefault(key, value)
