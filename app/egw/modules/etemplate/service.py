from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path

from app.egw.modules.etemplate import attrs, legacy_options, transforms
from app.egw.modules.etemplate.loader import TemplateSource, cache_key
from app.egw.storage import Storage, StorageError

logger = logging.getLogger(__name__)

CACHE_CONTENT_TYPE = "application/xml; charset=UTF-8"


@dataclass(frozen=True)
class LoadedTemplate:
    content: str
    from_cache: bool
    # seconds spent reading the cache or running the transforms
    elapsed: float


def pipeline_version() -> float:
    """Newest modification time of the rewrite code, any change invalidates all cache entries."""
    return max(Path(mod.__file__).stat().st_mtime for mod in (attrs, legacy_options, transforms))


def is_cache_fresh(cache: Storage, key: str, source_mtime: float) -> bool:
    cached_at = cache.mtime(key)
    return cached_at is not None and cached_at > max(source_mtime, pipeline_version())


def _read_cache(cache: Storage, key: str, source: TemplateSource) -> str | None:
    try:
        if not is_cache_fresh(cache, key, source.mtime):
            return None
        return cache.get_bytes(key).decode("utf-8")
    except (StorageError, UnicodeDecodeError) as e:
        logger.warning("eTemplate cache read failed key=%s: %s", key, e)
        return None


def load_template(source: TemplateSource, cache: Storage | None, key: str, name: str) -> LoadedTemplate:
    """
    Transformed template content, from the cache while it is newer than both
    the source and the rewrite code, otherwise transformed and written back.
    """
    start = time.perf_counter()
    if cache is not None:
        content = _read_cache(cache, key, source)
        if content is not None:
            return LoadedTemplate(content=content, from_cache=True, elapsed=time.perf_counter() - start)

    logger.info("eTemplate cache miss: transforming %s (%s)", source.location, source.origin)
    content = transforms.transform_template(source.read(), name)
    elapsed = time.perf_counter() - start

    if cache is not None:
        try:
            cache.put_bytes(key, content.encode("utf-8"), content_type=CACHE_CONTENT_TYPE)
        except StorageError as e:
            logger.warning("eTemplate cache write failed key=%s: %s", key, e)
    return LoadedTemplate(content=content, from_cache=False, elapsed=elapsed)


def purge_cached(cache: Storage, install_id: str, app: str, template_set: str, name: str) -> None:
    """Drop the cache entry of one template, e.g. after its override changed or went away."""
    key = cache_key(install_id, f"/{app}/templates/{template_set}/{name}.xet")
    cache.delete(key)
    logger.info("eTemplate cache purged key=%s", key)
