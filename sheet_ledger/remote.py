"""Fetch a shared sheet export over HTTP."""

from __future__ import annotations

import re
from pathlib import Path
from urllib.parse import parse_qs, urlparse

import requests

from sheet_ledger.errors import RemoteFetchError
from sheet_ledger.logging_config import get_logger

log = get_logger(__name__)

MAX_REMOTE_FILE_MB = 20
MAX_REMOTE_FILE_BYTES = MAX_REMOTE_FILE_MB * 1024 * 1024
REQUEST_TIMEOUT = 60


def normalize_public_url(raw_url: str) -> str:
    """Turn a Google Sheets share link into its TSV export URL.

    Other URLs are returned unchanged.
    """
    parsed = urlparse(raw_url.strip())
    if parsed.scheme not in {"http", "https"}:
        raise RemoteFetchError("URL must start with http:// or https://")

    host = parsed.netloc.lower()
    query = parse_qs(parsed.query, keep_blank_values=True)
    if host == "docs.google.com":
        sheet_match = re.search(r"/spreadsheets/d/([^/]+)", parsed.path)
        if sheet_match:
            gid = query.get("gid", [""])[0]
            if not gid and parsed.fragment.startswith("gid="):
                gid = parsed.fragment.split("=", 1)[1]
            return (
                f"https://docs.google.com/spreadsheets/d/{sheet_match.group(1)}/export"
                f"?format=tsv&gid={gid or '0'}"
            )
    return raw_url.strip()


def remote_filename(raw_url: str, response: requests.Response) -> str:
    content_disposition = response.headers.get("content-disposition", "")
    match = re.search(r'filename="([^"]+)"|filename=([^;]+)', content_disposition, re.I)
    if match:
        for group in match.groups():
            if group:
                return Path(group.strip().strip('"')).name
    name = Path(urlparse(response.url or raw_url).path).name
    if "format=tsv" in (response.url or raw_url):
        return f"{name or 'export'}.tsv"
    return name or "downloaded_file"


def fetch_export(raw_url: str) -> tuple[str, bytes]:
    """Download ``raw_url`` and return ``(filename, content)``."""
    url = normalize_public_url(raw_url)
    try:
        response = requests.get(url, timeout=REQUEST_TIMEOUT, allow_redirects=True, stream=True)
    except requests.RequestException as exc:
        raise RemoteFetchError(f"Could not reach {url}: {exc}") from exc

    try:
        try:
            response.raise_for_status()
        except requests.HTTPError as exc:
            raise RemoteFetchError(f"Download failed: {exc}") from exc
        content_length = response.headers.get("Content-Length")
        if content_length and content_length.isdigit() and int(content_length) > MAX_REMOTE_FILE_BYTES:
            raise RemoteFetchError(f"Remote file is larger than {MAX_REMOTE_FILE_MB} MB.")

        chunks: list[bytes] = []
        downloaded = 0
        for chunk in response.iter_content(chunk_size=1024 * 1024):
            if not chunk:
                continue
            downloaded += len(chunk)
            if downloaded > MAX_REMOTE_FILE_BYTES:
                raise RemoteFetchError(f"Remote file is larger than {MAX_REMOTE_FILE_MB} MB.")
            chunks.append(chunk)
    except requests.RequestException as exc:
        raise RemoteFetchError(f"Download interrupted: {exc}") from exc
    finally:
        response.close()

    filename = remote_filename(raw_url, response)
    log.info("remote_fetched", url=url, filename=filename, size=downloaded)
    return filename, b"".join(chunks)
