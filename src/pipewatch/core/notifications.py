"""Notification transports for fired alerts."""

from __future__ import annotations

import asyncio
import smtplib
from collections.abc import Callable
from email.message import EmailMessage
from html import escape
from typing import Any, Protocol

import httpx
import structlog

from pipewatch.config import Settings
from pipewatch.core.errors import NotificationDeliveryError
from pipewatch.models.alert import Alert
from pipewatch.models.rules import AlertSeverity, ChannelType

logger = structlog.get_logger(__name__)

SEVERITY_STYLE: dict[AlertSeverity, dict[str, str]] = {
    AlertSeverity.CRITICAL: {"emoji": ":rotating_light:", "color": "danger", "bg": "#dc3545"},
    AlertSeverity.WARNING: {"emoji": ":warning:", "color": "warning", "bg": "#ffc107"},
    AlertSeverity.INFO: {"emoji": ":information_source:", "color": "good", "bg": "#17a2b8"},
}


class NotificationSender(Protocol):
    async def send(
        self,
        channel_type: ChannelType,
        configuration: dict[str, Any],
        alert: Alert,
    ) -> None: ...


def format_duration(seconds: int) -> str:
    return f"{seconds // 60}m {seconds % 60}s"


class NotificationService:
    """Deliver alerts to Slack, email and generic webhooks.

    Every ``send_*`` method raises :class:`NotificationDeliveryError` when the
    channel is misconfigured or the remote end rejects the message.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        smtp_factory: Callable[[str, int], smtplib.SMTP] = smtplib.SMTP,
    ) -> None:
        self._settings = settings
        self._transport = transport
        self._smtp_factory = smtp_factory

    async def send(
        self,
        channel_type: ChannelType,
        configuration: dict[str, Any],
        alert: Alert,
    ) -> None:
        if channel_type is ChannelType.SLACK:
            await self.send_slack(alert, configuration)
        elif channel_type is ChannelType.EMAIL:
            await self.send_email(alert, configuration)
        elif channel_type is ChannelType.WEBHOOK:
            await self.send_webhook(alert, configuration)
        else:
            logger.warning("unknown_channel_type", channel=str(channel_type), alert_id=alert.id)
            msg = f"Unsupported channel type: {channel_type}"
            raise NotificationDeliveryError(msg)

    # Slack

    async def send_slack(self, alert: Alert, config: dict[str, Any]) -> None:
        webhook_url = config.get("webhookUrl") or config.get("webhook_url")
        if not webhook_url:
            raise NotificationDeliveryError("Slack webhook URL not configured")
        response = await self._request(
            "POST",
            str(webhook_url),
            json=self.build_slack_message(alert, config),
            headers={"Content-Type": "application/json"},
            timeout=self._settings.notification_timeout_seconds,
        )
        if response.status_code != 200:
            msg = f"Slack API returned status {response.status_code}"
            raise NotificationDeliveryError(msg)
        logger.info("slack_alert_sent", project=alert.project_name, alert_id=alert.id)

    def build_slack_message(self, alert: Alert, config: dict[str, Any]) -> dict[str, Any]:
        style = SEVERITY_STYLE.get(alert.severity, SEVERITY_STYLE[AlertSeverity.WARNING])
        build_url = self.build_url(alert)
        fields = [
            {"title": "Project", "value": alert.project_name, "short": True},
            {"title": "Build Number", "value": f"#{alert.build_number}", "short": True},
            {"title": "Severity", "value": alert.severity.value.upper(), "short": True},
            {
                "title": "Time",
                "value": alert.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
                "short": True,
            },
        ]
        build_data = alert.metadata.get("build_data") or {}
        if build_data.get("branch"):
            fields.append({"title": "Branch", "value": build_data["branch"], "short": True})
        if build_data.get("duration"):
            fields.append(
                {
                    "title": "Duration",
                    "value": format_duration(int(build_data["duration"])),
                    "short": True,
                }
            )
        if build_data.get("environment"):
            fields.append(
                {"title": "Environment", "value": build_data["environment"], "short": True}
            )

        actions = []
        if build_url:
            actions.append(
                {"type": "button", "text": "View Build", "url": build_url, "style": "primary"}
            )
        actions.append(
            {
                "type": "button",
                "text": "View Dashboard",
                "url": self._settings.dashboard_url,
                "style": "default",
            }
        )

        return {
            "channel": config.get("channel", "#deployments"),
            "username": config.get("username", "CI/CD Monitor"),
            "icon_emoji": config.get("iconEmoji", ":warning:"),
            "attachments": [
                {
                    "color": style["color"],
                    "title": f"{style['emoji']} {alert.rule_name}",
                    "title_link": build_url,
                    "text": alert.message,
                    "fields": fields,
                    "actions": actions,
                    "footer": "CI/CD Monitoring System",
                    "ts": int(alert.timestamp.timestamp()),
                }
            ],
        }

    # Email

    async def send_email(self, alert: Alert, config: dict[str, Any]) -> None:
        smtp_host = self._settings.smtp_host
        if not smtp_host:
            raise NotificationDeliveryError("Email transport not configured")
        if not (config.get("recipients") or config.get("to")):
            raise NotificationDeliveryError("Email recipients not configured")
        message = self.build_email(alert, config)
        try:
            await asyncio.to_thread(self._deliver_email, message, smtp_host)
        except (smtplib.SMTPException, OSError) as exc:
            msg = f"SMTP delivery failed: {exc}"
            raise NotificationDeliveryError(msg) from exc
        logger.info("email_alert_sent", project=alert.project_name, to=message["To"])

    def build_email(self, alert: Alert, config: dict[str, Any]) -> EmailMessage:
        severity = alert.severity.value.upper()
        build_url = self.build_url(alert)
        dashboard_url = self._settings.dashboard_url
        fired_at = alert.timestamp.strftime("%Y-%m-%d %H:%M:%S")

        message = EmailMessage()
        message["Subject"] = f"[{severity}] CI/CD Alert: {alert.rule_name} - {alert.project_name}"
        message["From"] = config.get("from") or self._settings.smtp_from
        message["To"] = _address_list(config.get("recipients") or config.get("to"))
        if config.get("cc"):
            message["Cc"] = _address_list(config["cc"])
        if config.get("bcc"):
            message["Bcc"] = _address_list(config["bcc"])

        lines = [
            "CI/CD MONITORING ALERT",
            "",
            f"Alert: {alert.rule_name}",
            f"Severity: {severity}",
            f"Project: {alert.project_name}",
            f"Build: #{alert.build_number}",
            f"Time: {fired_at}",
            "",
            f"Message: {alert.message}",
            "",
        ]
        if build_url:
            lines.append(f"Build URL: {build_url}")
        lines.append(f"Dashboard: {dashboard_url}")
        message.set_content("\n".join(lines))

        style = SEVERITY_STYLE.get(alert.severity, SEVERITY_STYLE[AlertSeverity.WARNING])
        rows = [("Severity", severity), ("Time", fired_at)]
        build_data = alert.metadata.get("build_data") or {}
        if build_data.get("branch"):
            rows.append(("Branch", str(build_data["branch"])))
        if build_data.get("duration"):
            rows.append(("Duration", format_duration(int(build_data["duration"]))))
        if build_data.get("environment"):
            rows.append(("Environment", str(build_data["environment"])))
        details = "".join(
            f"<tr><th align='left'>{escape(label)}</th><td>{escape(value)}</td></tr>"
            for label, value in rows
        )
        links = f"<a href='{escape(dashboard_url)}'>View Dashboard</a>"
        if build_url:
            links = f"<a href='{escape(build_url)}'>View Build</a> | " + links
        html = (
            "<html><body>"
            f"<h2 style='background:{style['bg']};color:#fff;padding:12px'>"
            f"{escape(alert.rule_name)}</h2>"
            f"<p>{escape(alert.project_name)} &middot; Build #{alert.build_number}</p>"
            f"<table>{details}</table>"
            f"<p><strong>Alert Message:</strong><br>{escape(alert.message)}</p>"
            f"<p>{links}</p>"
            "</body></html>"
        )
        message.add_alternative(html, subtype="html")
        return message

    def _deliver_email(self, message: EmailMessage, smtp_host: str) -> None:
        settings = self._settings
        server = self._smtp_factory(smtp_host, settings.smtp_port)
        try:
            if settings.smtp_use_tls:
                server.starttls()
            if settings.smtp_user and settings.smtp_password:
                server.login(settings.smtp_user, settings.smtp_password)
            server.send_message(message)
        finally:
            server.quit()

    # Webhook

    async def send_webhook(self, alert: Alert, config: dict[str, Any]) -> None:
        url = config.get("url")
        if not url:
            raise NotificationDeliveryError("Webhook URL not configured")

        headers = {
            "Content-Type": "application/json",
            "User-Agent": "pipewatch/0.1",
            **{str(key): str(value) for key, value in (config.get("headers") or {}).items()},
        }
        auth: httpx.BasicAuth | None = None
        auth_config = config.get("auth") or {}
        if auth_config.get("type") == "bearer":
            headers["Authorization"] = f"Bearer {auth_config.get('token', '')}"
        elif auth_config.get("type") == "basic":
            auth = httpx.BasicAuth(
                str(auth_config.get("username", "")),
                str(auth_config.get("password", "")),
            )

        timeout = config.get("timeout")
        response = await self._request(
            str(config.get("method") or "POST").upper(),
            str(url),
            json=self.build_webhook_payload(alert),
            headers=headers,
            auth=auth,
            timeout=float(timeout) if timeout else self._settings.notification_timeout_seconds,
        )
        if not 200 <= response.status_code < 300:
            msg = f"Webhook returned status {response.status_code}"
            raise NotificationDeliveryError(msg)
        logger.info("webhook_alert_sent", project=alert.project_name, url=str(url))

    @staticmethod
    def build_webhook_payload(alert: Alert) -> dict[str, Any]:
        return {
            "alert": {
                "id": alert.id,
                "rule_name": alert.rule_name,
                "severity": alert.severity.value,
                "message": alert.message,
                "project_name": alert.project_name,
                "build_number": alert.build_number,
                "timestamp": alert.timestamp.isoformat(),
                "metadata": alert.metadata,
            },
            "webhook": {"version": "1.0", "source": "pipewatch"},
        }

    def build_url(self, alert: Alert) -> str | None:
        base = self._settings.ci_base_url
        if base and alert.project_name and alert.build_number:
            return f"{base.rstrip('/')}/job/{alert.project_name}/{alert.build_number}/"
        return None

    async def _request(
        self,
        method: str,
        url: str,
        *,
        json: dict[str, Any],
        headers: dict[str, str],
        timeout: float,
        auth: httpx.BasicAuth | None = None,
    ) -> httpx.Response:
        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
                return await client.request(method, url, json=json, headers=headers, auth=auth)
        except httpx.TimeoutException as exc:
            msg = f"request to {url} timed out"
            raise NotificationDeliveryError(msg) from exc
        except httpx.HTTPError as exc:
            msg = f"request to {url} failed: {exc}"
            raise NotificationDeliveryError(msg) from exc


def _address_list(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return ", ".join(str(item) for item in value)
    return str(value)
