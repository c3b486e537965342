"""
Object Storage Service - Single Responsibility: push one file to OSS, return its CDN URL.

Two-phase signed upload:
1. GET {endpoint}{signature_route}?objectName=..&contentType=.. -> pre-signed URL
2. PUT raw bytes to the pre-signed URL

The stored URL is then rewritten from the bucket host to the public CDN domain.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Dict, Iterable, Optional
from urllib.parse import urlsplit

import httpx

from ..errors import SignatureRequestFailed, StorageError, UploadFailed
from ..models import BatchUploadResult, StorageUploadResult

logger = logging.getLogger(__name__)

CONTENT_TYPES: Dict[str, str] = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".bmp": "image/bmp",
    ".svg": "image/svg+xml",
    ".pdf": "application/pdf",
    ".txt": "text/plain",
    ".json": "application/json",
    ".xml": "application/xml",
    ".html": "text/html",
    ".css": "text/css",
    ".js": "application/javascript",
}
DEFAULT_CONTENT_TYPE = "application/octet-stream"

ACL_PARAM = "x-amz-acl"
DEFAULT_PRESET = "aicontest"

PRESETS: Dict[str, Dict[str, str]] = {
    "zhiwen": {
        "endpoint": "https://pre-zw.xfyun.cn",
        "bucket": "zhiwen-assets",
        "cdn_domain": "https://zhiwen-cdn.xfyun.cn",
        "signature_route": "/api/developer/user/fileToken",
    },
    "aicontest": {
        "endpoint": "https://open-inc.xfyun.cn",
        "bucket": "aicontest",
        "cdn_domain": "https://openres.xfyun.cn",
        "signature_route": "/cmp/xfyundoc/getPresignedUrl",
    },
}


@dataclass(frozen=True)
class StorageConfig:
    """Immutable configuration for the signed-upload flow."""
    endpoint: str
    bucket: str
    cdn_domain: str
    signature_route: str
    cookie: str = ""
    signature_timeout: float = 10.0
    upload_timeout: float = 60.0
    force_ssl: bool = True
    strip_prefix: str = "/open_res"
    headers: Dict[str, str] = field(
        default_factory=lambda: {"X-Requested-With": "XMLHttpRequest", "device": "miniprogram-ci"}
    )
    preset: str = DEFAULT_PRESET

    @classmethod
    def from_preset(cls, preset: Optional[str] = None, **overrides) -> "StorageConfig":
        """
        Build from a named preset.

        An override replaces the preset value only when it is non-empty.
        Unknown preset names fall back to the default preset.
        """
        name = preset or DEFAULT_PRESET
        if name not in PRESETS:
            logger.warning("[storage] Unknown preset %r, using %r", name, DEFAULT_PRESET)
            name = DEFAULT_PRESET
        known = {f.name for f in fields(cls)}
        unknown = set(overrides) - known
        if unknown:
            raise TypeError(f"Unknown storage options: {', '.join(sorted(unknown))}")

        values = dict(PRESETS[name])
        for key, value in overrides.items():
            if value is None or value == "":
                continue
            values[key] = value
        values["preset"] = name
        return cls(**values)

    @property
    def signature_url(self) -> str:
        return f"{self.endpoint.rstrip('/')}{self.signature_route}"

    def with_cookie(self, cookie: Optional[str]) -> "StorageConfig":
        return replace(self, cookie=cookie) if cookie else self


def content_type_for(filename: str) -> str:
    """MIME type from the extension table; octet-stream when unknown."""
    return CONTENT_TYPES.get(Path(filename).suffix.lower(), DEFAULT_CONTENT_TYPE)


def build_object_key(filename: str, pure_name: bool = False, now_ms: Optional[int] = None) -> str:
    """``{unix_ms}/{name}`` so concurrent uploads of equal names do not collide."""
    if pure_name:
        return filename
    timestamp = now_ms if now_ms is not None else int(time.time() * 1000)
    path = Path(filename)
    return f"{timestamp}/{path.stem}{path.suffix}"


def force_https(url: str) -> str:
    if url.startswith("http://"):
        return "https://" + url[len("http://"):]
    return url


def _normalize_domain(domain: str) -> str:
    domain = domain.rstrip("/")
    if "://" not in domain:
        domain = f"https://{domain}"
    return domain


def to_cdn_url(url: str, cdn_domain: Optional[str], strip_prefix: str = "/open_res") -> str:
    """
    Turn a (pre-signed) object URL into its stable public address.

    Drops the query string; with a CDN domain, swaps scheme+host for it and
    removes the internal path prefix. URLs already on the CDN are returned as-is.
    """
    raw = url.split("?", 1)[0]
    if not cdn_domain:
        return raw

    domain = _normalize_domain(cdn_domain)
    if raw == domain or raw.startswith(domain + "/"):
        return raw

    path = urlsplit(raw).path
    if strip_prefix and (path == strip_prefix or path.startswith(strip_prefix + "/")):
        path = path[len(strip_prefix):]
    return domain + path


class ObjectStorageUploader:
    """
    Uploads files through the signature endpoint and returns CDN URLs.

    Stateless per call. Failures never raise past ``upload``; they come back
    as ``StorageUploadResult.fail``.
    """

    def __init__(self, config: StorageConfig, client: Optional[httpx.AsyncClient] = None):
        """
        Args:
            config: Storage configuration
            client: Optional shared HTTP client; a short-lived one is used per upload otherwise
        """
        self._config = config
        self._client = client

    @property
    def config(self) -> StorageConfig:
        return self._config

    async def upload(
        self,
        path: Path,
        pure_name: bool = False,
        force_ssl: Optional[bool] = None,
    ) -> StorageUploadResult:
        """Upload one file; returns ok(url, object_key) or fail(error)."""
        path = Path(path)
        try:
            if not path.is_file():
                raise UploadFailed(f"File not found: {path}")

            if self._client is not None:
                return await self._upload(self._client, path, pure_name, force_ssl)
            async with httpx.AsyncClient() as client:
                return await self._upload(client, path, pure_name, force_ssl)
        except StorageError as e:
            logger.error(f"[storage] Upload of {path.name} failed: {e}")
            return StorageUploadResult.fail(str(e))
        except (httpx.HTTPError, httpx.InvalidURL, OSError) as e:
            logger.error(f"[storage] Upload of {path.name} failed: {e}")
            return StorageUploadResult.fail(f"{type(e).__name__}: {e}")

    async def upload_batch(self, paths: Iterable[Path], pure_name: bool = False) -> BatchUploadResult:
        """Upload files one after another, in order."""
        paths = [Path(p) for p in paths]
        batch = BatchUploadResult()
        for index, path in enumerate(paths, start=1):
            logger.info(f"[storage] Batch progress: {index}/{len(paths)} ({path.name})")
            result = await self.upload(path, pure_name=pure_name)
            if result.success:
                batch.success_urls.append(result.url)
            else:
                batch.errors.append((path, result.error or "unknown error"))
            batch.results.append((path, result))

        logger.info(
            f"[storage] Batch finished: {len(batch.success_urls)} succeeded, {len(batch.errors)} failed"
        )
        return batch

    async def upload_bytes(
        self,
        data: bytes,
        filename: str,
        scratch_dir: Path,
        pure_name: bool = False,
    ) -> StorageUploadResult:
        """Upload in-memory content through a scratch file."""
        scratch_dir = Path(scratch_dir)
        try:
            scratch_dir.mkdir(parents=True, exist_ok=True)
            scratch_file = scratch_dir / Path(filename).name
            scratch_file.write_bytes(data)
        except OSError as e:
            logger.error(f"[storage] Could not stage {filename}: {e}")
            return StorageUploadResult.fail(f"Could not stage {filename}: {e}")

        try:
            return await self.upload(scratch_file, pure_name=pure_name)
        finally:
            try:
                scratch_file.unlink(missing_ok=True)
            except OSError as e:
                logger.warning(f"[storage] Failed to remove scratch file {scratch_file}: {e}")

    async def request_signature(
        self,
        client: httpx.AsyncClient,
        object_key: str,
        content_type: str,
    ) -> str:
        """Phase one: ask the signature endpoint for a pre-signed PUT URL."""
        headers = dict(self._config.headers)
        if self._config.cookie:
            headers["Cookie"] = self._config.cookie

        logger.debug(f"[storage] Requesting signature for {object_key}")
        try:
            response = await client.get(
                self._config.signature_url,
                params={"objectName": object_key, "contentType": content_type},
                headers=headers,
                timeout=self._config.signature_timeout,
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise SignatureRequestFailed(f"Signature request failed: {type(e).__name__}: {e}") from e

        if not response.is_success:
            raise SignatureRequestFailed(f"Signature request failed with status {response.status_code}")

        try:
            payload = response.json()
        except ValueError:
            raise SignatureRequestFailed("Signature response is not JSON")

        if not isinstance(payload, dict) or payload.get("code") != 0:
            desc = payload.get("desc") if isinstance(payload, dict) else None
            raise SignatureRequestFailed(desc or f"Signature request failed with status {response.status_code}")

        signed_url = payload.get("data")
        if not isinstance(signed_url, str) or not signed_url:
            raise SignatureRequestFailed("Signature response carried no upload URL")
        return signed_url

    async def _upload(
        self,
        client: httpx.AsyncClient,
        path: Path,
        pure_name: bool,
        force_ssl: Optional[bool],
    ) -> StorageUploadResult:
        object_key = build_object_key(path.name, pure_name)
        content_type = content_type_for(path.name)

        signed_url = await self.request_signature(client, object_key, content_type)

        use_ssl = self._config.force_ssl if force_ssl is None else force_ssl
        if use_ssl:
            signed_url = force_https(signed_url)

        try:
            acl = httpx.URL(signed_url).params.get(ACL_PARAM)
        except (httpx.InvalidURL, ValueError) as e:
            raise SignatureRequestFailed(f"Signature response carried an invalid upload URL: {e}") from e

        headers = {"Content-Type": content_type}
        if acl:
            headers[ACL_PARAM] = acl

        logger.info(f"[storage] Uploading {path.name} as {object_key}")
        try:
            response = await client.put(
                signed_url,
                content=path.read_bytes(),
                headers=headers,
                timeout=self._config.upload_timeout,
            )
        except httpx.HTTPError as e:
            raise UploadFailed(f"Upload failed: {type(e).__name__}: {e}") from e

        if response.status_code != 200:
            raise UploadFailed(f"Upload failed with status {response.status_code}")

        url = to_cdn_url(signed_url, self._config.cdn_domain, self._config.strip_prefix)
        logger.info(f"[storage] Uploaded: {url}")
        return StorageUploadResult.ok(url=url, object_key=object_key)
