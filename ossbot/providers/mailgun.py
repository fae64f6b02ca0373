"""Mailgun email client using the Mailgun REST API over httpx."""

from pathlib import Path
from typing import Any

import httpx
import markdown
import nh3
import structlog
from jinja2 import FileSystemLoader, StrictUndefined
from jinja2.sandbox import SandboxedEnvironment
from markupsafe import Markup

from ossbot.exceptions import EmailDeliveryError
from ossbot.providers.base import EmailClient
from ossbot.utils.retry import async_retry, server_error

log = structlog.get_logger(__name__)

TEMPLATE_DIR = Path(__file__).parent.parent / "templates"
STYLED_EMAIL_TEMPLATE = "styled_email.html.j2"

MARKDOWN_EXTENSIONS = ["fenced_code", "tables", "sane_lists"]


def render_markdown(text: str | None) -> Markup:
    """Render issue or comment Markdown to HTML that is safe to embed.

    Raw HTML written in the issue passes through Markdown untouched, so the
    output is sanitized before it is marked safe.
    """
    html = markdown.markdown(text or "", extensions=MARKDOWN_EXTENSIONS)
    return Markup(nh3.clean(html))


class EmailRenderer:
    """Renders notification emails from the packaged Jinja2 templates.

    Autoescaping is on for every variable; only the ``markdown`` filter
    output, which is sanitized, is inserted as HTML.
    """

    def __init__(self, template_dir: Path | None = None) -> None:
        self.template_dir = (template_dir or TEMPLATE_DIR).resolve()
        self.env = SandboxedEnvironment(
            loader=FileSystemLoader(str(self.template_dir)),
            undefined=StrictUndefined,
            autoescape=True,
        )
        self.env.filters["markdown"] = render_markdown

    def render_styled_email(self, header: str, body: str, link: str, action_label: str) -> str:
        template = self.env.get_template(STYLED_EMAIL_TEMPLATE)
        return template.render(header=header, body=body, link=link, action_label=action_label)


class MailgunEmailClient(EmailClient):
    """Sends styled notification emails through Mailgun."""

    def __init__(
        self,
        api_key: str,
        domain: str,
        sender: str,
        base_url: str = "https://api.mailgun.net/v3",
        timeout: float = 30.0,
        renderer: EmailRenderer | None = None,
    ):
        """Initialize Mailgun client.

        Args:
            api_key: Mailgun API key
            domain: Sending domain registered with Mailgun
            sender: Value of the From header
            base_url: Mailgun API base URL (EU accounts use api.eu.mailgun.net)
            timeout: Request timeout in seconds
            renderer: Email renderer, defaults to the packaged templates
        """
        self.api_key = api_key.strip() if api_key else api_key
        self.domain = domain
        self.sender = sender
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.renderer = renderer or EmailRenderer()
        self._client: httpx.AsyncClient | None = None

    async def connect(self) -> None:
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            auth=("api", self.api_key),
            timeout=self.timeout,
        )
        log.info("mailgun_connected", base_url=self.base_url, domain=self.domain)

    async def disconnect(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "MailgunEmailClient":
        await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.disconnect()

    async def send_styled_email(
        self,
        recipient: str,
        subject: str,
        header: str,
        body_html: str,
        link: str,
        action_label: str,
    ) -> None:
        html = self.renderer.render_styled_email(header=header, body=body_html, link=link, action_label=action_label)
        await self.send_email(recipient, subject, html)

    async def send_email(self, recipient: str, subject: str, html: str) -> None:
        """Send a raw HTML email.

        Raises:
            EmailDeliveryError: If Mailgun rejects the message or is unreachable
        """
        log.info("send_email", recipient=recipient, subject=subject)

        try:
            response = await self._post_message(
                {
                    "from": self.sender,
                    "to": recipient,
                    "subject": subject,
                    "html": html,
                }
            )
        except httpx.TransportError as e:
            raise EmailDeliveryError(f"Cannot reach Mailgun: {e}") from e

        if response.is_error:
            log.error(
                "mailgun_send_failed",
                recipient=recipient,
                status_code=response.status_code,
            )
            raise EmailDeliveryError(
                f"Mailgun rejected email to {recipient}",
                status_code=response.status_code,
                response_text=response.text,
            )

        log.debug("mailgun_send_ok", recipient=recipient, response=response.text)

    @async_retry(max_attempts=3, backoff_factor=2.0, exceptions=(httpx.TransportError,), retry_if=server_error)
    async def _post_message(self, data: dict[str, str]) -> httpx.Response:
        if self._client is None:
            raise EmailDeliveryError("Mailgun client is not connected")
        return await self._client.post(f"/{self.domain}/messages", data=data)
