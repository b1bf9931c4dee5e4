"""ZeptoMail implementation of EmailProvider.

Mail goes out through the ZeptoMail v1.1 HTTP API using the injected
HttpClient. HTML bodies are rendered from templates/emails/ with Jinja2 and
every message also carries a plain-text part.

Delivery is best effort: any failure (missing API token, non-2xx answer,
transport error) is logged and reported as False. The caller decides what a
failed delivery means; a verification challenge stays valid either way.
"""

import os
from typing import Optional
from urllib.parse import urlencode

from jinja2 import Environment, FileSystemLoader, select_autoescape

from config import EmailSettings
from infrastructure.http_client import HttpClient
from shared.logging import get_logger

log = get_logger(__name__)

ZEPTO_API_URL = "https://api.zeptomail.com/v1.1/email"
_AUTH_SCHEME = "Zoho-enczapikey"
_ACCEPTED_STATUSES = frozenset({200, 201, 202})

_TEMPLATE_DIR = os.path.join(
    os.path.dirname(os.path.dirname(os.path.dirname(__file__))),
    "templates",
    "emails",
)


class ZeptoMailProvider:
    def __init__(
        self,
        settings: EmailSettings,
        http_client: HttpClient,
        client_url: str = "http://localhost:5173",
        app_name: str = "NextMind AI",
        ttl_minutes: int = 15,
        template_dir: str = _TEMPLATE_DIR,
    ) -> None:
        self._settings = settings
        self._http = http_client
        self._client_url = client_url.rstrip("/")
        self._app_name = app_name
        self._ttl_minutes = ttl_minutes
        self._templates = Environment(
            loader=FileSystemLoader(template_dir),
            autoescape=select_autoescape(["html"]),
        )

    def verification_url(self, token: str) -> str:
        """Link embedded in the verification email."""
        return f"{self._client_url}/verify-email?{urlencode({'token': token})}"

    async def send_verification_email(
        self, email: str, user_name: Optional[str], token: str, code: str
    ) -> bool:
        link = self.verification_url(token)
        greeting = f"Hello {user_name}," if user_name else "Hello,"
        html = self._render(
            "verification.html",
            verification_url=link,
            code=code,
            user_name=user_name,
            ttl_minutes=self._ttl_minutes,
        )
        text = "\n\n".join(
            [
                greeting,
                f"Open this link to verify your email address:\n{link}",
                f"Or enter this code: {code}",
                f"This code expires in {self._ttl_minutes} minutes. "
                "If you didn't request it, you can ignore this email.",
                f"The {self._app_name} team",
            ]
        )
        return await self._deliver(
            email,
            user_name,
            subject=f"Verify Your Email Address - {self._app_name}",
            html=html,
            text=text,
            kind="verification",
        )

    async def send_welcome_email(self, email: str, user_name: Optional[str]) -> bool:
        html = self._render(
            "welcome.html", user_name=user_name, client_url=self._client_url
        )
        name_part = f", {user_name}" if user_name else ""
        text = (
            f"Welcome to {self._app_name}{name_part}!\n\n"
            f"Your email address is verified. Get started at "
            f"{self._client_url}/dashboard"
        )
        return await self._deliver(
            email,
            user_name,
            subject=f"Welcome to {self._app_name}!",
            html=html,
            text=text,
            kind="welcome",
        )

    def _render(self, template_name: str, **context) -> str:
        template = self._templates.get_template(template_name)
        return template.render(app_name=self._app_name, **context)

    def _authorization(self) -> str:
        token = self._settings.zepto_api_token
        if token.startswith(f"{_AUTH_SCHEME} "):
            return token
        return f"{_AUTH_SCHEME} {token}"

    async def _deliver(
        self,
        to_email: str,
        to_name: Optional[str],
        *,
        subject: str,
        html: str,
        text: str,
        kind: str,
    ) -> bool:
        if not self._settings.zepto_api_token:
            log.error("email_not_configured", kind=kind)
            return False

        message = {
            "from": {
                "address": self._settings.zepto_from_email,
                "name": self._settings.zepto_from_name,
            },
            "to": [{"email_address": {"address": to_email, "name": to_name or to_email}}],
            "subject": subject,
            "htmlbody": html,
            "textbody": text,
        }
        headers = {
            "Authorization": self._authorization(),
            "Content-Type": "application/json",
        }

        try:
            response = await self._http.post(ZEPTO_API_URL, json=message, headers=headers)
        except Exception as e:
            log.error(
                "email_delivery_error",
                kind=kind,
                to_email=to_email,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

        if response.status_code not in _ACCEPTED_STATUSES:
            log.error(
                "email_delivery_rejected",
                kind=kind,
                to_email=to_email,
                status_code=response.status_code,
                body=response.text[:200],
            )
            return False

        log.info("email_delivered", kind=kind, to_email=to_email)
        return True
