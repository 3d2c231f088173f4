"""
PDF Storage Client

Resolves thesis PDF references against hosted object storage:
- Public URL construction for bucket/path pairs
- HEAD-based existence checks
- Bucket listing (diagnostics only)
"""

import asyncio
from typing import Optional, Sequence

import aiohttp
from loguru import logger

from thesisvault.errors import InvalidInputError, UpstreamError


def extract_filename(reference: str) -> str:
    """
    Last path segment of a URL or storage key, without any query string.

    >>> extract_filename("https://x/bucket/thesis-pdfs/a.pdf?token=abc")
    'a.pdf'
    """
    name = reference.split("/")[-1]
    return name.split("?")[0].strip()


class PdfStorage:
    """Client for the public side of the thesis file store."""

    DEFAULT_BUCKETS = ("thesis_files", "thesis-files", "thesisfiles")
    DEFAULT_FOLDERS = ("thesis-pdfs", "pdfs", "")

    def __init__(
        self,
        base_url: str,
        buckets: Optional[Sequence[str]] = None,
        folders: Optional[Sequence[str]] = None,
        api_key: Optional[str] = None,
        timeout_seconds: float = 10.0,
    ):
        """
        Initialize client.

        Args:
            base_url: Storage host, e.g. "https://project.example.co"
            buckets: Buckets probed in order when resolving bare file names
            folders: Folders probed inside each bucket ("" is the bucket root)
            api_key: Key for the listing endpoint
            timeout_seconds: Per-request timeout
        """
        self.base_url = base_url.rstrip("/")
        self.buckets = tuple(buckets) if buckets else self.DEFAULT_BUCKETS
        self.folders = tuple(folders) if folders is not None else self.DEFAULT_FOLDERS
        self.api_key = api_key
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)

    def public_url(self, bucket: str, path: str) -> str:
        """Public object URL for `path` inside `bucket`."""
        path = path.lstrip("/")
        return f"{self.base_url}/storage/v1/object/public/{bucket}/{path}"

    def candidate_urls(self, filename: str) -> list[str]:
        """Every bucket/folder location a bare file name may live at."""
        urls = []
        for bucket in self.buckets:
            for folder in self.folders:
                path = f"{folder}/{filename}" if folder else filename
                urls.append(self.public_url(bucket, path))
        return urls

    async def verify_exists(self, url: str) -> bool:
        """
        Check that a URL answers a HEAD request with 2xx.

        Network failures count as "not there".
        """
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.head(url, allow_redirects=True) as resp:
                    exists = 200 <= resp.status < 300
                    logger.debug(f"HEAD {url} -> {resp.status}")
                    return exists
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"PDF existence check failed for {url}: {e}")
            return False

    async def resolve_pdf_url(self, reference: Optional[str]) -> str:
        """
        Turn a stored PDF reference into a reachable URL.

        Full http(s) URLs are returned unchanged. Anything else is reduced
        to its file name and probed across the configured locations.

        Raises:
            InvalidInputError: empty reference
            UpstreamError: no location served the file
        """
        if not reference or not reference.strip():
            raise InvalidInputError("No PDF file reference provided")

        if reference.startswith(("http://", "https://")):
            return reference

        filename = extract_filename(reference)
        if not filename:
            raise InvalidInputError("PDF reference has no file name", detail=reference)

        for url in self.candidate_urls(filename):
            if await self.verify_exists(url):
                logger.info(f"Resolved PDF {filename} -> {url}")
                return url

        raise UpstreamError("PDF storage", detail=f"'{filename}' not found in any storage location")

    async def list_files(self, bucket: str, prefix: str = "", limit: int = 100) -> list[str]:
        """
        List object names under `prefix` (diagnostics only).

        Returns:
            Object names, or an empty list on failure
        """
        url = f"{self.base_url}/storage/v1/object/list/{bucket}"
        headers = {}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
            headers["apikey"] = self.api_key

        body = {"prefix": prefix, "limit": limit, "offset": 0}

        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.post(url, json=body, headers=headers) as resp:
                    if resp.status != 200:
                        error_text = await resp.text()
                        logger.error(f"Storage list error {resp.status}: {error_text}")
                        return []

                    data = await resp.json()
                    return [item.get("name") for item in data if item.get("name")]

        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Failed to list bucket {bucket}: {e}")
            return []
