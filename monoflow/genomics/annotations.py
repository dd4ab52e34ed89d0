"""
Ensembl gene identifier to symbol annotation

Symbols come from a local lookup table when one is configured, otherwise
from Ensembl BioMart (cached on disk between runs).
"""

import re
from pathlib import Path
from typing import Iterable, Optional, Union

import pandas as pd
import requests

from ..config import Config
from ..exceptions import AnnotationError
from ..utils import get_logger
from .caching import AnnotationCache

logger = get_logger(__name__)

VERSION_SUFFIX = re.compile(r"\.\d+$")
LOOKUP_COLUMNS = ["ensembl_gene_id", "gene_symbol", "gene_biotype", "description"]

BIOMART_QUERY = """<?xml version="1.0" encoding="UTF-8"?>
<!DOCTYPE Query>
<Query virtualSchemaName="default" formatter="TSV" header="0" uniqueRows="0" count="" datasetConfigVersion="0.6">
    <Dataset name="{dataset}" interface="default">
        <Attribute name="ensembl_gene_id" />
        <Attribute name="external_gene_name" />
        <Attribute name="gene_biotype" />
        <Attribute name="description" />
    </Dataset>
</Query>"""


def strip_version(gene_id: str) -> str:
    """``ENSG00000187608.5`` -> ``ENSG00000187608``"""
    return VERSION_SUFFIX.sub("", str(gene_id))


def strip_versions(gene_ids: Iterable[str]) -> pd.Index:
    return pd.Index([strip_version(gene_id) for gene_id in gene_ids])


def deduplicate_lookup(lookup: pd.DataFrame) -> pd.DataFrame:
    """
    One symbol per identifier, keeping the first row in lookup order

    Identifiers are version-stripped first, so ``ENSG00000187608.9`` and
    ``ENSG00000187608.10`` count as the same gene. Rows without a symbol are not
    mappings and are dropped before the first-occurrence rule is applied.
    """
    lookup = lookup.assign(
        ensembl_gene_id=strip_versions(lookup["ensembl_gene_id"]).to_numpy()
    )
    symbols = lookup["gene_symbol"]
    has_symbol = symbols.notna() & (symbols.astype(str).str.strip() != "")

    deduplicated = lookup.loc[has_symbol].drop_duplicates(
        subset=["ensembl_gene_id"], keep="first"
    )

    n_dropped = int(has_symbol.sum()) - len(deduplicated)
    if n_dropped:
        logger.debug(f"Dropped {n_dropped} duplicate identifier mappings")

    return deduplicated


def annotate_results(results: pd.DataFrame, lookup: pd.DataFrame) -> pd.DataFrame:
    """
    Left-join gene symbols onto a gene-indexed result table

    Args:
        results: Table indexed by (possibly versioned) Ensembl gene id
        lookup: Table with ``ensembl_gene_id`` and ``gene_symbol`` columns

    Returns:
        Copy of ``results`` with ``ensembl_gene_id`` and ``gene_symbol``
        columns; row count and order are unchanged
    """
    mapping = deduplicate_lookup(lookup).set_index("ensembl_gene_id")["gene_symbol"]

    annotated = results.copy()
    stripped = pd.Series(strip_versions(results.index), index=results.index)

    annotated["ensembl_gene_id"] = stripped
    annotated["gene_symbol"] = stripped.map(mapping)

    n_missing = int(annotated["gene_symbol"].isna().sum())
    if len(annotated) and n_missing == len(annotated):
        logger.warning("No gene identifier matched the annotation lookup")
    else:
        logger.info(
            f"Annotated {len(annotated) - n_missing}/{len(annotated)} genes with symbols"
        )
    if n_missing:
        logger.debug(f"{n_missing} genes have no symbol mapping")

    return annotated


def read_lookup_file(lookup_file: Union[str, Path]) -> pd.DataFrame:
    """Read a lookup table (TSV, or CSV by suffix) with id and symbol columns"""
    path = Path(lookup_file)
    sep = "," if path.suffix.lower() == ".csv" else "\t"

    try:
        lookup = pd.read_csv(path, sep=sep, dtype=str)
    except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        raise AnnotationError(f"Cannot read annotation lookup {path}: {e}") from e

    missing = [col for col in LOOKUP_COLUMNS[:2] if col not in lookup.columns]
    if missing:
        raise AnnotationError(f"Annotation lookup {path} lacks columns: {missing}")

    logger.info(f"Loaded {len(lookup)} identifier mappings from {path}")
    return lookup


class BiomartClient:
    """Minimal Ensembl BioMart client for gene symbol mappings"""

    def __init__(
        self,
        url: str = "https://www.ensembl.org/biomart/martservice",
        timeout: int = 60,
        session: Optional[requests.Session] = None,
    ):
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

    def fetch_mapping(self, dataset: str = "hsapiens_gene_ensembl") -> pd.DataFrame:
        """
        Download identifier -> symbol mappings in BioMart's row order

        Raises:
            AnnotationError: HTTP failure or an empty / error response
        """
        logger.info(f"Fetching Ensembl to gene symbol mapping from BioMart ({dataset})")

        query = BIOMART_QUERY.format(dataset=dataset)

        try:
            response = self.session.post(
                self.url, data={"query": query}, timeout=self.timeout
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise AnnotationError(f"BioMart request failed: {e}") from e

        text = response.text.strip()
        if not text:
            raise AnnotationError("BioMart returned empty response")
        if text.startswith("Query ERROR"):
            raise AnnotationError(f"BioMart rejected the query: {text[:200]}")

        rows = []
        for line in text.split("\n"):
            parts = line.rstrip("\r").split("\t")
            if len(parts) < 2 or not parts[0]:
                continue
            parts = parts + [""] * (len(LOOKUP_COLUMNS) - len(parts))
            rows.append(parts[: len(LOOKUP_COLUMNS)])

        if not rows:
            raise AnnotationError("No gene mappings found in BioMart response")

        mapping = pd.DataFrame(rows, columns=LOOKUP_COLUMNS)
        mapping = mapping.mask(mapping == "")

        logger.info(f"Retrieved {len(mapping)} gene mappings from BioMart")
        return mapping


class SymbolLookup:
    """Resolves the configured symbol source to a lookup table"""

    def __init__(self, config: Config, client: Optional[BiomartClient] = None):
        self.config = config
        self.params = config.annotation
        self.client = client or BiomartClient(
            url=self.params.get(
                "biomart_url", "https://www.ensembl.org/biomart/martservice"
            ),
            timeout=self.params.get("timeout", 60),
        )

        cache_dir = self.params.get("cache_dir")
        if cache_dir is None and config.output_dir:
            cache_dir = Path(config.output_dir) / "cache"
        self.cache = AnnotationCache(cache_dir) if cache_dir else None

    def _cache_params(self):
        return {"url": self.client.url, "dataset": self.params.get("dataset")}

    def resolve(self) -> pd.DataFrame:
        lookup_file = self.params.get("lookup_file")
        if lookup_file:
            return read_lookup_file(lookup_file)

        dataset = self.params.get("dataset", "hsapiens_gene_ensembl")

        if self.cache is not None:
            cached = self.cache.load_lookup(dataset, self._cache_params())
            if cached is not None:
                return cached

        lookup = self.client.fetch_mapping(dataset)

        if self.cache is not None:
            self.cache.save_lookup(lookup, dataset, self._cache_params())

        return lookup

    def annotate(self, results: pd.DataFrame) -> pd.DataFrame:
        return annotate_results(results, self.resolve())
