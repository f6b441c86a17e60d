"""Destination publishers."""

import asyncio
import logging
import re
from pathlib import Path
from typing import Optional

import aiohttp

from ..core.errors import PublishError
from ..restoration.interfaces import Publisher

logger = logging.getLogger(__name__)

BUTTONDOWN_EMAILS_URL = "https://api.buttondown.email/v1/emails"


def slugify(title: str) -> str:
    slug = re.sub(r"[^\w\s-]", "", title.lower(), flags=re.UNICODE)
    slug = re.sub(r"[\s_-]+", "-", slug).strip("-")
    return slug or "untitled"


def _with_image(body: str, image_ref: Optional[str]) -> str:
    if not image_ref:
        return body
    return f"![]({image_ref})\n\n{body}"


class ButtondownPublisher(Publisher):
    """Publishes articles as Buttondown emails.

    A draft email is created first and then sent, so the article also shows
    up in the public archive. The draft id is the destination reference.
    """

    def __init__(self, api_key: str, timeout: float = 15.0, url: str = BUTTONDOWN_EMAILS_URL):
        self.api_key = api_key
        self.timeout = timeout
        self.url = url
        self.headers = {
            "Authorization": f"Token {api_key}",
            "Content-Type": "application/json",
        }

    @property
    def name(self) -> str:
        return "buttondown"

    async def publish(self, title: str, body: str, image_ref: Optional[str] = None) -> str:
        if not self.api_key:
            raise PublishError("No Buttondown API key provided")

        payload = {"subject": title, "body": _with_image(body, image_ref)}
        timeout = aiohttp.ClientTimeout(total=self.timeout)

        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                # Step 1: create draft
                async with session.post(
                    self.url, headers=self.headers, json=payload
                ) as response:
                    if response.status not in {200, 201}:
                        await self._raise_api_error(response, "create")
                    try:
                        data = await response.json()
                    except (aiohttp.ContentTypeError, ValueError) as e:
                        raise PublishError(f"Buttondown returned invalid JSON: {e}") from e
                    if not isinstance(data, dict):
                        raise PublishError("Buttondown response is not a JSON object")
                    draft_id = data.get("id")
                    if not draft_id:
                        raise PublishError("Buttondown response carried no email id")
                    logger.info(f"Draft created on Buttondown: {title}")

                # Step 2: send draft so it appears in archive
                send_url = f"{self.url}/{draft_id}/send"
                async with session.post(send_url, headers=self.headers) as send_resp:
                    if send_resp.status not in {200, 201, 202}:
                        await self._raise_api_error(send_resp, "send")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise PublishError(f"Network error publishing to Buttondown: {e}") from e

        logger.info(f"📬 Published to Buttondown: {title}")
        return str(draft_id)

    @staticmethod
    async def _raise_api_error(response, step: str):
        error_detail = await response.text()
        logger.error(f"Buttondown API error {response.status} ({step}):")
        for line in str(error_detail).splitlines():
            logger.error(f"Buttondown error detail: {line}")
        raise PublishError(f"Buttondown API error {response.status} during {step}")


class DirectoryPublisher(Publisher):
    """Writes each article to ``<out_dir>/<slug>.md``."""

    def __init__(self, out_dir: str = "out/published"):
        self.out_dir = Path(out_dir)

    @property
    def name(self) -> str:
        return "directory"

    async def publish(self, title: str, body: str, image_ref: Optional[str] = None) -> str:
        path = self.out_dir / f"{slugify(title)}.md"
        try:
            self.out_dir.mkdir(parents=True, exist_ok=True)
            path.write_text(
                f"# {title}\n\n{_with_image(body, image_ref)}\n", encoding="utf-8"
            )
        except OSError as e:
            raise PublishError(f"Cannot write {path}: {e}") from e

        logger.info(f"📝 Wrote {path}")
        return str(path)
