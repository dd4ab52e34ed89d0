"""
Input and environment checks for MonoFlow

Count tables and lookup files are checked from their header line only, so
``validate-config`` and ``check-env`` stay fast on full-size inputs.
"""

import logging
import os
import platform
import re
import sys
from importlib import import_module, metadata
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

logger = logging.getLogger(__name__)

# import name -> distribution name on the package index
REQUIRED_PACKAGES = {
    "numpy": "numpy",
    "pandas": "pandas",
    "scipy": "scipy",
    "matplotlib": "matplotlib",
    "seaborn": "seaborn",
    "sklearn": "scikit-learn",
    "pydeseq2": "pydeseq2",
    "requests": "requests",
    "yaml": "pyyaml",
    "click": "click",
    "colorlog": "colorlog",
}

MINIMUM_VERSIONS = {"pydeseq2": "0.5.0"}

COUNT_TABLE_ANNOTATION = ("Chr", "Start", "End", "Strand", "Length")
LOOKUP_TABLE_COLUMNS = ("ensembl_gene_id", "gene_symbol")


def validate_file_exists(file_path: Union[str, Path], file_type: str = "File") -> bool:
    """True when ``file_path`` is an existing regular file; logs why not otherwise"""
    path = Path(file_path)
    if path.is_file():
        return True

    reason = "is not a file" if path.exists() else "not found"
    logger.error(f"{file_type} {reason}: {path}")
    return False


def validate_directory_exists(
    dir_path: Union[str, Path], create_if_missing: bool = False
) -> bool:
    """
    Check that ``dir_path`` is a directory, optionally creating it

    Returns:
        True if the directory exists or was created
    """
    path = Path(dir_path)
    if path.is_dir():
        return True

    if path.exists():
        logger.error(f"Path is not a directory: {path}")
        return False

    if not create_if_missing:
        logger.error(f"Directory not found: {path}")
        return False

    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.error(f"Could not create directory {path}: {e}")
        return False

    logger.info(f"Created directory: {path}")
    return True


def _read_header(path: Path, comment: Optional[str] = "#", sep: str = "\t") -> List[str]:
    """First non-blank, non-comment line split into column names"""
    with open(path, "r") as handle:
        for line in handle:
            if not line.strip() or (comment and line.startswith(comment)):
                continue
            return [name.strip().strip('"') for name in line.rstrip("\r\n").split(sep)]
    return []


def validate_count_table(
    counts_file: Union[str, Path],
    comment: Optional[str] = "#",
    annotation_columns: Sequence[str] = COUNT_TABLE_ANNOTATION,
) -> List[str]:
    """
    Header-level checks on a featureCounts table

    Args:
        counts_file: Tab-separated featureCounts output
        comment: Prefix marking comment lines
        annotation_columns: Columns expected between the gene id and the samples

    Returns:
        List of issues, empty when the header looks usable
    """
    path = Path(counts_file)
    if not validate_file_exists(path, "Counts file"):
        return [f"Counts file does not exist: {path}"]

    header = _read_header(path, comment)
    if not header:
        return [f"Counts file has no header line: {path}"]

    issues = []
    missing = [col for col in annotation_columns if col not in header]
    if missing:
        issues.append(f"Counts file {path} lacks annotation columns: {missing}")

    n_samples = len(header) - 1 - (len(annotation_columns) - len(missing))
    if n_samples < 1:
        issues.append(f"Counts file {path} has no sample columns")

    return issues


def validate_lookup_file(lookup_file: Union[str, Path]) -> List[str]:
    """Check a symbol lookup table exists and names its id and symbol columns"""
    path = Path(lookup_file)
    if not validate_file_exists(path, "Annotation lookup"):
        return [f"Annotation lookup file does not exist: {path}"]

    sep = "," if path.suffix.lower() == ".csv" else "\t"
    header = _read_header(path, comment=None, sep=sep)

    missing = [col for col in LOOKUP_TABLE_COLUMNS if col not in header]
    if missing:
        return [f"Annotation lookup {path} lacks columns: {missing}"]

    return []


def _version_tuple(version: str) -> Tuple[int, ...]:
    match = re.match(r"\d+(\.\d+)*", version)
    if match is None:
        return ()
    return tuple(int(part) for part in match.group(0).split("."))


def check_package_versions(
    packages: Mapping[str, str] = REQUIRED_PACKAGES,
) -> Dict[str, Optional[str]]:
    """
    Installed version of each package

    Args:
        packages: Mapping of import name -> distribution name

    Returns:
        Import name -> version string, or None when the import fails
    """
    versions: Dict[str, Optional[str]] = {}

    for name, distribution in packages.items():
        try:
            module = import_module(name)
        except ImportError:
            logger.debug(f"Package {name}: not available")
            versions[name] = None
            continue

        try:
            versions[name] = metadata.version(distribution)
        except metadata.PackageNotFoundError:
            versions[name] = getattr(module, "__version__", "unknown")

    return versions


def validate_environment(
    minimum_versions: Mapping[str, str] = MINIMUM_VERSIONS,
) -> List[str]:
    """
    Check the interpreter and the installed scientific stack

    Returns:
        List of validation issues found
    """
    issues = []

    logger.info("Validating MonoFlow environment...")

    if sys.version_info < (3, 9):
        issues.append(f"Python 3.9+ required, found {platform.python_version()}")

    versions = check_package_versions()

    missing = [name for name, version in versions.items() if version is None]
    if missing:
        issues.append(f"Missing Python packages: {', '.join(missing)}")

    for name, minimum in minimum_versions.items():
        installed = versions.get(name)
        if not installed or installed == "unknown":
            continue
        if _version_tuple(installed) < _version_tuple(minimum):
            issues.append(f"{name} {installed} is older than the required {minimum}")

    if issues:
        logger.warning(f"Environment validation found {len(issues)} issues")
        for issue in issues:
            logger.warning(f"  - {issue}")
    else:
        logger.info("Environment validation passed")

    return issues


def validate_output_permissions(output_dir: Union[str, Path]) -> bool:
    """Create ``output_dir`` if needed and check the process may write there"""
    path = Path(output_dir)

    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.error(f"Cannot create output directory {path}: {e}")
        return False

    if not os.access(path, os.W_OK):
        logger.error(f"Output directory not writable: {path}")
        return False

    return True


def get_system_info() -> Dict[str, Any]:
    """Interpreter, platform and package versions for bug reports"""
    return {
        "platform": platform.platform(),
        "python_version": platform.python_version(),
        "python_executable": sys.executable,
        "working_directory": os.getcwd(),
        "packages": check_package_versions(),
    }
