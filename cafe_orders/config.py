"""Application settings for the café ordering backend."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv


RECONCILE_POLICIES = {"optimistic", "conservative"}


def validate_currency(value: Optional[str]) -> str:
    v = (value or "ZAR").strip().upper()
    if len(v) != 3:
        raise ValueError("Invalid currency code: expected ISO4217 length 3")
    return v


def validate_policy(value: Optional[str]) -> str:
    v = (value or "conservative").strip().lower()
    if v not in RECONCILE_POLICIES:
        raise ValueError(f"Invalid reconciliation policy: {value!r} (expected optimistic or conservative)")
    return v


def _as_bool(value: Any, default: bool = False) -> bool:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def _as_int(value: Any, default: Optional[int]) -> Optional[int]:
    if value is None or value == "":
        return default
    return int(value)


@dataclass
class CafeOrdersConfig:
    """Settings for webhooks, reconciliation and the admin surface."""

    secret_key: str = "cafe-orders-dev"
    admin_username: str = "admin"
    admin_password: str = "latte"
    database_url: str = "sqlite:///data/cafe_orders.db"
    currency: str = "ZAR"
    site_url: str = "http://127.0.0.1:5000"

    payfast_merchant_id: str = ""
    payfast_merchant_key: str = ""
    payfast_passphrase: str = ""
    payfast_sandbox: bool = True

    yoco_webhook_secret: str = ""
    yoco_secret_key: str = ""
    yoco_api_url: str = "https://payments.yoco.com/api"

    reconcile_policy: str = "conservative"
    # None means the policy's own default threshold
    reconcile_threshold_minutes: Optional[int] = None
    reconcile_batch_size: int = 50

    notification_url: str = ""
    notification_timeout: int = 10

    @property
    def payfast_process_url(self) -> str:
        if self.payfast_sandbox:
            return "https://sandbox.payfast.co.za/eng/process"
        return "https://www.payfast.co.za/eng/process"

    @staticmethod
    def _load_settings_file(path: Path) -> Dict[str, Any]:
        if not path.exists():
            return {}
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise ValueError(f"cannot read settings file {path}: {exc}") from exc
        return data if isinstance(data, dict) else {}

    @classmethod
    def load(cls, settings_file: Optional[Path] = None) -> "CafeOrdersConfig":
        """Build settings from ``data/settings.json`` first, environment (and ``.env``) second."""

        project_root = Path(__file__).resolve().parent.parent
        # existing environment variables win over .env entries
        load_dotenv(project_root / ".env", override=False)
        path = settings_file or Path(os.getenv("CAFE_SETTINGS_FILE", project_root / "data" / "settings.json"))
        s = cls._load_settings_file(Path(path))

        def get(key: str, default: Any = None) -> Any:
            value = s.get(key)
            if value is None or value == "":
                value = os.getenv(key)
            return default if value is None else value

        return cls(
            secret_key=get("SECRET_KEY", cls.secret_key),
            admin_username=get("ADMIN_USERNAME", cls.admin_username),
            admin_password=get("ADMIN_PASSWORD", cls.admin_password),
            database_url=get("DATABASE_URL", cls.database_url),
            currency=validate_currency(get("CURRENCY")),
            site_url=str(get("SITE_URL", cls.site_url)).rstrip("/"),
            payfast_merchant_id=str(get("PAYFAST_MERCHANT_ID", "")),
            payfast_merchant_key=str(get("PAYFAST_MERCHANT_KEY", "")),
            payfast_passphrase=str(get("PAYFAST_PASSPHRASE", "")),
            payfast_sandbox=_as_bool(get("PAYFAST_SANDBOX"), True),
            yoco_webhook_secret=str(get("YOCO_WEBHOOK_SECRET", "")),
            yoco_secret_key=str(get("YOCO_SECRET_KEY", "")),
            yoco_api_url=str(get("YOCO_API_URL", cls.yoco_api_url)).rstrip("/"),
            reconcile_policy=validate_policy(get("RECONCILE_POLICY")),
            reconcile_threshold_minutes=_as_int(get("RECONCILE_THRESHOLD_MINUTES"), None),
            reconcile_batch_size=_as_int(get("RECONCILE_BATCH_SIZE"), 50),
            notification_url=str(get("NOTIFICATION_URL", "")),
            notification_timeout=_as_int(get("NOTIFICATION_TIMEOUT"), 10),
        )
