"""
Media upload relay — turns a locally captured photo into a durable bucket URL.

Endpoint: POST {BUCKET_UPLOAD_URL}   multipart/form-data {files, uploadPath, isMulti}
The bucket's response shape is loosely typed, so the URL is dug out permissively:
direct string, object with url / Location / availableSizes.image, a list of
those, and finally any URL embedded in the raw body.
"""

import asyncio
import json
import os
import re
from typing import Any, Iterable, Optional
from urllib.parse import unquote, urlparse

import httpx

from fleetlog.config import settings
from fleetlog.errors import UploadError
from fleetlog.utils.json_parser import find_url, is_http_url
from fleetlog.utils.logger import get_logger

logger = get_logger(__name__)


def _local_path(local_image: str) -> str:
    if local_image.startswith("file://"):
        return unquote(urlparse(local_image).path)
    return local_image


def _read_bytes(path: str) -> bytes:
    with open(path, "rb") as f:
        return f.read()


def _content_type(filename: str) -> str:
    match = re.search(r"\.(\w+)$", filename)
    return f"image/{match.group(1).lower()}" if match else "image/jpeg"


def _url_from_candidate(item: Any) -> Optional[str]:
    if is_http_url(item):
        return item
    if isinstance(item, dict):
        sizes = item.get("availableSizes")
        if isinstance(sizes, dict) and sizes.get("image"):
            return sizes["image"]
        if item.get("url"):
            return item["url"]
        if item.get("Location"):
            return item["Location"]
    return None


def extract_upload_url(data: Any) -> Optional[str]:
    """Pick the uploaded file's URL out of a parsed bucket response."""
    if isinstance(data, list):
        candidates = data
    elif isinstance(data, dict) and isinstance(data.get("data"), list):
        candidates = data["data"]
    elif isinstance(data, dict) and isinstance(data.get("data"), dict):
        candidates = [data["data"], data]
    else:
        candidates = [data]

    for item in candidates:
        url = _url_from_candidate(item)
        if url:
            return url
    return find_url(json.dumps(data, default=str))


class MediaUploadRelay:
    def __init__(
        self,
        upload_url: str = settings.BUCKET_UPLOAD_URL,
        upload_path: str = settings.UPLOAD_PATH_TAG,
        timeout: float = settings.HTTP_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.upload_url = upload_url
        self.upload_path = upload_path
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def aclose(self):
        await self._client.aclose()

    async def upload_image(self, local_image: str) -> str:
        """
        Upload one photo and return its URL.
        Already-remote images come straight back, so retrying a failed submission
        never uploads the same photo twice.
        """
        if not local_image:
            raise UploadError("No image to upload")
        if is_http_url(local_image):
            return local_image

        path = _local_path(local_image)
        filename = os.path.basename(path) or "image.jpg"
        try:
            content = await asyncio.to_thread(_read_bytes, path)
        except OSError as e:
            logger.warning(f"[UPLOAD] Cannot read {path}: {e}")
            raise UploadError(f"Could not read image {filename}") from e

        try:
            response = await self._client.post(
                self.upload_url,
                files={"files": (filename, content, _content_type(filename))},
                data={"uploadPath": self.upload_path, "isMulti": "true"},
            )
        except httpx.HTTPError as e:
            logger.warning(f"[UPLOAD] {filename} — transport error: {e}")
            raise UploadError("Image upload failed") from e

        try:
            data = response.json()
        except ValueError:
            url = find_url(response.text)
            if response.is_success and url:
                logger.info(f"[UPLOAD] {filename} → {url} (from raw body)")
                return url
            raise UploadError("Image upload failed")

        if not response.is_success:
            message = data.get("message") if isinstance(data, dict) else None
            logger.warning(f"[UPLOAD] {filename} → HTTP {response.status_code}")
            raise UploadError(message or "Image upload failed")

        url = extract_upload_url(data)
        if not url:
            raise UploadError("Image upload response did not include a URL")
        logger.info(f"[UPLOAD] {filename} ({len(content)} bytes) → {url}")
        return url

    async def upload_all(self, images: Iterable[str]) -> list[str]:
        """
        Upload independent photos in parallel, URLs returned in input order.
        The first failure cancels the uploads still in flight and is re-raised.
        """
        tasks = [asyncio.create_task(self.upload_image(image)) for image in images]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
