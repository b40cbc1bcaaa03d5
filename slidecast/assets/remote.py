"""
Remote asset fetcher.

resolve(reference):
  1. local asset resolver hit            → return it
  2. remote/ cache hit (key = fingerprint of the reference) → return it
  3. metadata lookup → direct content URL → HTTP GET (configured user agent)
     streamed into a partial file, committed atomically under remote/

Remote references are treated as immutable: a fetched file is kept forever
and never re-fetched (remote/ is excluded from eviction).  Size limits and
staleness checks are deliberately not implemented.
"""
from __future__ import annotations

import logging
from pathlib import Path, PurePosixPath
from typing import Optional, Protocol

import requests

from slidecast.assets.resolver import AssetResolver, LocalAsset, strip_file_prefix
from slidecast.errors import AssetResolutionError
from slidecast.store.artifact_store import ArtifactStore
from slidecast.store.fingerprint import ArtifactKind, fingerprint

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 65_536


class MetadataLookup(Protocol):
    def content_url(self, reference: str) -> Optional[str]:
        """Return a direct download URL for *reference*, or None if unknown."""
        ...


class CommonsImageInfoLookup:
    """MediaWiki `prop=imageinfo` lookup (Wikimedia Commons by default)."""

    def __init__(
        self,
        api_url: str,
        session: requests.Session,
        user_agent: str,
        timeout: float = 30.0,
    ) -> None:
        self.api_url = api_url
        self.session = session
        self.user_agent = user_agent
        self.timeout = timeout

    def content_url(self, reference: str) -> Optional[str]:
        title = "File:" + strip_file_prefix(reference)
        params = {
            "action": "query",
            "titles": title,
            "prop": "imageinfo",
            "iiprop": "url",
            "format": "json",
            "formatversion": "2",
        }
        try:
            response = self.session.get(
                self.api_url,
                params=params,
                headers={"User-Agent": self.user_agent},
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise AssetResolutionError(f"metadata lookup failed for {title!r}: {exc}") from exc

        for page in data.get("query", {}).get("pages", []):
            for info in page.get("imageinfo", []):
                if info.get("url"):
                    return info["url"]
        return None


class RemoteAssetFetcher:

    def __init__(
        self,
        store: ArtifactStore,
        resolver: AssetResolver,
        lookup: MetadataLookup,
        session: requests.Session,
        user_agent: str,
        timeout: float = 30.0,
    ) -> None:
        self.store = store
        self.resolver = resolver
        self.lookup = lookup
        self.session = session
        self.user_agent = user_agent
        self.timeout = timeout

    def resolve(self, reference: str) -> LocalAsset:
        """
        Return a local copy of *reference*.

        Raises:
            AssetResolutionError: if the reference is neither local nor
                                  fetchable.  Nothing is cached on failure.
        """
        local = self.resolver.find(reference)
        if local is not None:
            return local

        normalized = reference.strip()
        key = fingerprint(ArtifactKind.REMOTE_ASSET, {"reference": normalized})
        ext = _extension(normalized)

        with self.store.reserve(ArtifactKind.REMOTE_ASSET, key, ext) as res:
            if not res.exists:
                url = self.lookup.content_url(normalized)
                if not url:
                    raise AssetResolutionError(
                        f"media reference {normalized!r} not found locally or remotely"
                    )
                partial = res.partial_path()
                self._download(url, partial)
                res.commit_file(partial)
                logger.info("Fetched remote asset %r → remote/%s", normalized, res.path.name)
            return LocalAsset(reference=reference, path=res.path, content_id=f"remote:{key}")

    def _download(self, url: str, destination: Path) -> None:
        try:
            with self.session.get(
                url,
                headers={"User-Agent": self.user_agent},
                stream=True,
                timeout=self.timeout,
            ) as response:
                response.raise_for_status()
                with open(destination, "wb") as fh:
                    for chunk in response.iter_content(chunk_size=_CHUNK_SIZE):
                        if chunk:
                            fh.write(chunk)
        except requests.RequestException as exc:
            raise AssetResolutionError(f"download failed for {url}: {exc}") from exc
        except OSError as exc:
            raise AssetResolutionError(f"cannot write downloaded asset {destination}: {exc}") from exc
        if destination.stat().st_size == 0:
            raise AssetResolutionError(f"download from {url} returned an empty body")


def _extension(reference: str) -> str:
    suffix = PurePosixPath(strip_file_prefix(reference)).suffix.lower().lstrip(".")
    if suffix.isalnum() and len(suffix) <= 5:
        return suffix
    return ""
