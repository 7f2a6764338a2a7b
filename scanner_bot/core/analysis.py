"""Round-trip a scanned file through Gemini and return its JSON reply."""
import asyncio
import logging
import mimetypes
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Optional

import aiohttp
from google import genai
from google.genai import types

from ..prompts import RECEIPT_EXTRACTION_PROMPT
from .exceptions import APIError, EmptyResponseError, UploadError, UpstreamProcessingError
from .rate_limit import RateLimitedExecutor, RetryError, create_gemini_executor

if TYPE_CHECKING:
    from ..config import Settings

logger = logging.getLogger(__name__)

_MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".pdf": "application/pdf",
}


def guess_mime_type(path: Path) -> str:
    """MIME type sent with the upload."""
    suffix = path.suffix.lower()
    if suffix in _MIME_TYPES:
        return _MIME_TYPES[suffix]
    guessed, _ = mimetypes.guess_type(path.name)
    return guessed or "application/octet-stream"


def state_name(asset: types.File) -> str:
    """Name of the remote asset state, e.g. ``PROCESSING`` or ``ACTIVE``."""
    state = getattr(asset, "state", None)
    if state is None:
        return "STATE_UNSPECIFIED"
    return getattr(state, "name", str(state))


def build_client(settings: "Settings") -> genai.Client:
    """Create the genai client with an aiohttp transport.

    Must be called from inside a running event loop (the connector binds to it).
    """
    http_options = types.HttpOptions(
        timeout=int(settings.request_timeout_seconds * 1000),
        async_client_args={
            "connector": aiohttp.TCPConnector(limit=50, limit_per_host=10),
        },
    )
    logger.info("🔐 Using Gemini Developer API with API key")
    return genai.Client(http_options=http_options, **settings.api_client_kwargs)


class GeminiAnalyzer:
    """Uploads a file, waits for it to be ACTIVE, asks for JSON and cleans up."""

    def __init__(
        self,
        client: genai.Client,
        settings: "Settings",
        executor: Optional[RateLimitedExecutor] = None,
        prompt: str = RECEIPT_EXTRACTION_PROMPT,
        sleep=asyncio.sleep,
        clock=time.monotonic
    ):
        self.client = client
        self.settings = settings
        self.executor = executor or create_gemini_executor(settings)
        self.prompt = prompt
        self._sleep = sleep
        self._clock = clock

    @property
    def model_name(self) -> str:
        return self.settings.model_name

    def accepts(self, path: Path) -> bool:
        """Only images and PDFs are sent to the model."""
        return self.settings.is_accepted(path)

    async def analyze(self, path: Path) -> str:
        """Return the raw JSON text from the first content part of the reply.

        Raises:
            UploadError: If the upload fails
            UpstreamProcessingError: If the asset does not become ACTIVE
            APIError: If polling or generation fails after retries
            EmptyResponseError: If the reply has no candidates or content
        """
        async with self.uploaded(path) as asset:
            asset = await self._wait_until_active(path, asset)
            return await self._generate(path, asset)

    @asynccontextmanager
    async def uploaded(self, path: Path) -> AsyncIterator[types.File]:
        """Upload ``path`` and delete the remote copy on every exit path."""
        mime_type = guess_mime_type(path)

        async def upload_operation():
            with path.open("rb") as fh:
                return await self.client.aio.files.upload(
                    file=fh,
                    config=types.UploadFileConfig(mime_type=mime_type, display_name=path.name),
                )

        try:
            asset = await self.executor.execute(upload_operation, operation_name=f"UPLOAD {path.name}")
        except RetryError as exc:
            raise UploadError(path, exc.last_exception) from exc

        logger.info(f"[ANALYZE] {path.name} - Uploaded as {asset.name} ({mime_type})")
        try:
            yield asset
        finally:
            await self._delete(path, asset.name)

    async def _delete(self, path: Path, asset_name: str) -> None:
        try:
            await self.executor.execute_once(
                lambda: self.client.aio.files.delete(name=asset_name),
                operation_name=f"DELETE {asset_name}",
            )
            logger.debug(f"[ANALYZE] {path.name} - Released remote asset {asset_name}")
        except Exception as exc:
            # The remote store expires uploads on its own; never mask the real outcome
            logger.warning(f"[ANALYZE] {path.name} - Could not delete remote asset {asset_name}: {exc}")

    async def _wait_until_active(self, path: Path, asset: types.File) -> types.File:
        deadline = self._clock() + self.settings.upload_processing_timeout
        asset_name = asset.name

        while state_name(asset) == "PROCESSING":
            if self._clock() >= deadline:
                raise UpstreamProcessingError(path, "PROCESSING (timed out)", asset_name)
            await self._sleep(self.settings.upload_poll_interval)
            try:
                asset = await self.executor.execute(
                    lambda: self.client.aio.files.get(name=asset_name),
                    operation_name=f"STATE {path.name}",
                )
            except RetryError as exc:
                raise APIError(path, exc.last_exception, self.model_name, exc.attempts) from exc

        state = state_name(asset)
        if state != "ACTIVE":
            raise UpstreamProcessingError(path, state, asset_name)
        return asset

    async def _generate(self, path: Path, asset: types.File) -> str:
        contents = [
            types.Part.from_uri(file_uri=asset.uri, mime_type=asset.mime_type or guess_mime_type(path)),
            self.prompt,
        ]
        config = types.GenerateContentConfig(response_mime_type="application/json")

        async def generate_operation():
            logger.info(f"[ANALYZE] {path.name} - Making API call ({self.model_name})")
            return await self.client.aio.models.generate_content(
                model=self.model_name,
                contents=contents,
                config=config,
            )

        try:
            response = await self.executor.execute(generate_operation, operation_name=f"GENERATE {path.name}")
        except RetryError as exc:
            raise APIError(path, exc.last_exception, self.model_name, exc.attempts) from exc

        text = first_text_part(response)
        if not text:
            raise EmptyResponseError(path, self.model_name)

        if self.settings.debug_responses:
            logger.info(f"[ANALYZE] {path.name} - Raw response: {text}")
        return text


def first_text_part(response) -> Optional[str]:
    """Text of the first part of the first candidate, if any."""
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return None
    content = getattr(candidates[0], "content", None)
    parts = getattr(content, "parts", None) or []
    if not parts:
        return None
    return getattr(parts[0], "text", None)
