"""アラートのメール通知 (Resend).

通知はベストエフォート。未設定・送信失敗はログに残して False を返す。
"""

from __future__ import annotations

import html
import logging

import requests

from localrank.config import ALERTS_FROM_EMAIL, REQUEST_TIMEOUT, RESEND_API_KEY, RESEND_API_URL
from localrank.models import Alert

logger = logging.getLogger(__name__)


def format_alert_email(alert: Alert, cohort_name: str) -> tuple[str, str]:
    """アラートから (件名, HTML 本文) を組み立てる."""
    subject = f"Local SEO alert: {alert.message}"
    body = (
        f"<p>{html.escape(alert.message)}</p>"
        f"<p>Cohort: {html.escape(cohort_name)}</p>"
    )
    return subject, body


def send_alert_email(to: str, subject: str, body_html: str) -> bool:
    """メールを 1 通送信する.

    Returns:
        送信できたら True。
    """
    if not RESEND_API_KEY or not ALERTS_FROM_EMAIL:
        logger.debug("メール通知は未設定のためスキップ: to=%s", to)
        return False

    try:
        resp = requests.post(
            RESEND_API_URL,
            headers={
                "Authorization": f"Bearer {RESEND_API_KEY}",
                "Content-Type": "application/json",
            },
            json={
                "from": ALERTS_FROM_EMAIL,
                "to": to,
                "subject": subject,
                "html": body_html,
            },
            timeout=REQUEST_TIMEOUT,
        )
        resp.raise_for_status()
    except requests.RequestException as e:
        logger.warning("メール送信失敗: to=%s, error=%s", to, e)
        return False

    return True
