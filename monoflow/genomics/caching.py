"""
On-disk cache for downloaded symbol lookups
"""

import hashlib
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

import pandas as pd

logger = logging.getLogger(__name__)


class AnnotationCache:
    """Cache manager for identifier -> symbol lookup tables"""

    def __init__(self, cache_dir: Union[str, Path]):
        self.cache_dir = Path(cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)

    def _get_params_hash(self, params: Dict[str, Any]) -> str:
        sorted_params = json.dumps(params, sort_keys=True)
        return hashlib.md5(sorted_params.encode()).hexdigest()[:8]

    def get_cache_path(self, dataset: str, params: Dict[str, Any]) -> Path:
        """Get cache file path for a dataset and source parameters"""
        return self.cache_dir / f"{dataset}_{self._get_params_hash(params)}_symbols.tsv"

    def save_lookup(
        self, lookup: pd.DataFrame, dataset: str, params: Dict[str, Any]
    ) -> Path:
        cache_path = self.get_cache_path(dataset, params)
        lookup.to_csv(cache_path, sep="\t", index=False)
        logger.debug(f"Cached symbol lookup: {cache_path}")
        return cache_path

    def load_lookup(
        self, dataset: str, params: Dict[str, Any]
    ) -> Optional[pd.DataFrame]:
        """Load a cached lookup, or None when nothing is cached for these params"""
        cache_path = self.get_cache_path(dataset, params)

        if not cache_path.exists():
            return None

        try:
            lookup = pd.read_csv(cache_path, sep="\t", dtype=str)
        except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
            logger.warning(f"Ignoring unreadable symbol cache {cache_path}: {e}")
            return None

        logger.info(f"Loaded cached symbol lookup: {cache_path}")
        return lookup

    def clear_cache(self) -> int:
        """Delete all cached lookups"""
        cleared = 0

        for cache_file in self.cache_dir.glob("*_symbols.tsv"):
            cache_file.unlink()
            cleared += 1

        logger.info(f"Cleared {cleared} cache files")
        return cleared
