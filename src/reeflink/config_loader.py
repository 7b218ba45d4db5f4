"""
Dataset catalogue loading for the reeflink pipeline.

The catalogue (data/datasets.yml) names every remote dataset the workshop
reads, grouped by kind:
- features: geoParquet feature datasets with a source -> pipeline column mapping
- sst: Zarr array stores with variable and dimension names

Environment overrides for individual URLs live in ``config.settings.Config``.
"""

from pathlib import Path
from typing import Any, Optional

import yaml

from .domain.models import ID_COLUMN, RAW_GEOMETRY_COLUMN, WGS84

DEFAULT_CATALOG = Path(__file__).parent / "data" / "datasets.yml"

DATASET_KINDS = ("features", "sst")


def load_catalog(catalog_path: Optional[str | Path] = None) -> dict[str, dict[str, Any]]:
    """
    Load the dataset catalogue and flatten it to ``{name: entry}``.

    Each entry gains a ``kind`` key naming the section it came from.

    Args:
        catalog_path: Path to a catalogue YAML file (defaults to the packaged one)

    Returns:
        Dictionary of dataset entries keyed by dataset name

    Raises:
        FileNotFoundError: If the catalogue does not exist
        ValueError: If the catalogue is not valid YAML or an entry is incomplete
    """
    path = Path(catalog_path) if catalog_path else DEFAULT_CATALOG
    if not path.exists():
        raise FileNotFoundError(f"Dataset catalogue not found: {path}")

    try:
        with open(path, encoding='utf-8') as f:
            raw = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e

    datasets = {}
    for kind in DATASET_KINDS:
        for name, entry in (raw.get(kind) or {}).items():
            if not entry or not entry.get('url'):
                raise ValueError(f"Dataset '{name}' in {path} has no url")
            if name in datasets:
                raise ValueError(f"Dataset '{name}' is defined more than once in {path}")

            entry = dict(entry)
            entry['kind'] = kind
            if kind == "features":
                entry.setdefault('crs', WGS84)
                entry.setdefault('columns', {})
                _check_feature_columns(name, entry['columns'], path)
            datasets[name] = entry

    return datasets


def _check_feature_columns(name: str, columns: dict[str, str], path: Path) -> None:
    """An explicit mapping must produce the identifier and raw geometry columns."""
    if not columns:
        return
    missing = [c for c in (ID_COLUMN, RAW_GEOMETRY_COLUMN) if c not in columns.values()]
    if missing:
        raise ValueError(f"Dataset '{name}' in {path}: columns must map to {missing}")


def get_dataset(name: str, catalog_path: Optional[str | Path] = None) -> dict[str, Any]:
    """
    Look up a single dataset entry.

    Raises:
        ValueError: If the dataset is not in the catalogue
    """
    datasets = load_catalog(catalog_path)
    if name not in datasets:
        available = sorted(datasets.keys())
        raise ValueError(f"Dataset '{name}' not found. Available: {available}")
    return datasets[name]


def get_available_datasets(catalog_path: Optional[str | Path] = None) -> list[str]:
    """Names of all datasets in the catalogue."""
    return list(load_catalog(catalog_path).keys())
