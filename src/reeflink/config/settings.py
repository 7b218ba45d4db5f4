"""
Configuration management for the reeflink pipeline.

Usage:
    from reeflink.config.settings import Config
    config = Config()
    url = config.source.features_url

Environment Variables:
    REEFLINK_FEATURES_URL: Override for the GBR features geoParquet root
    REEFLINK_SST_URL: Override for the SST Zarr store
    REEFLINK_S3_REGION: Region used for anonymous S3 reads
    REEFLINK_CATALOG: Path to an alternative dataset catalogue (YAML)
    REEFLINK_OUTPUT_DIR: Default directory for maps and exports
    REEFLINK_BASEMAP_CACHE: Directory holding downloaded base map data
    DUCKDB_MEMORY_LIMIT: Memory limit for DuckDB
    DUCKDB_THREADS: Number of threads for DuckDB
    DUCKDB_TEMP_DIR: Spill directory for DuckDB
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

REMOTE_SCHEMES = ('s3://', 'gs://', 'gcs://', 'http://', 'https://')

DEFAULT_FEATURES_DATASET = "gbr_features"


@dataclass
class SourceConfig:
    """Remote dataset locations."""
    features_url: Optional[str] = None
    sst_url: Optional[str] = None
    s3_region: str = "ap-southeast-2"
    catalog_path: Optional[str] = None

    def __post_init__(self):
        """Validate source configuration."""
        if not self.s3_region:
            raise ValueError("S3 region cannot be empty")

        for url in (self.features_url, self.sst_url):
            if url is not None and not url.strip():
                raise ValueError("Dataset URL cannot be blank")


@dataclass
class ProcessingConfig:
    """Resources handed to each DuckDB connection."""
    memory_limit: str = "4GB"
    threads: int = 4
    temp_dir: Optional[str] = None

    def __post_init__(self):
        if self.threads < 1:
            raise ValueError(f"threads must be at least 1, got {self.threads}")

        # DuckDB accepts a number followed by a unit
        if not self.memory_limit[:-2].strip().replace('.', '', 1).isdigit() \
                or self.memory_limit[-2:] not in ('MB', 'GB', 'TB'):
            raise ValueError(f"memory limit '{self.memory_limit}' must look like 512MB, 4GB or 1TB")


@dataclass
class OutputConfig:
    """Output locations for maps, exports and cached base map data."""
    out_dir: str = "outputs"
    basemap_cache: str = "boundaries_cache"

    def __post_init__(self):
        if not self.out_dir:
            raise ValueError("Output directory cannot be empty")


class ConfigurationError(Exception):
    """Settings are missing, malformed or inconsistent."""


class Config:
    """
    Settings for one reeflink run, read from the process environment.

    Dotenv files are consulted before the environment is read; values already
    present in the environment win. Candidates, first match first:

    - ``env_file`` when given (it must exist)
    - ``.env.<environment>`` in the project root
    - ``.env`` in the project root

    Dataset locations not set in the environment fall back to the YAML
    catalogue shipped with the package (see ``reeflink.config_loader``).

    Example:
        config = Config(env_file=Path("/workshop/reef.env"))
        url = config.resolve_features_url()
    """

    def __init__(self,
                 environment: Optional[str] = None,
                 env_file: Optional[Path] = None,
                 validate_on_init: bool = True):
        """
        Args:
            environment: Name used to pick ``.env.<environment>`` (default: $ENVIRONMENT or development)
            env_file: Explicit dotenv file, replaces the project-root lookup
            validate_on_init: Run cross-section checks immediately
        """
        self.environment = environment or os.getenv("ENVIRONMENT", "development")
        self.project_root = self._find_project_root()
        self.env_files = self._read_env_files(env_file)

        self._load_source_config()
        self._load_processing_config()
        self._load_output_config()

        if validate_on_init:
            self.validate()

    def _find_project_root(self) -> Path:
        """Nearest ancestor holding pyproject.toml or .git, else the working directory."""
        here = Path(__file__).resolve()
        for parent in here.parents:
            if (parent / 'pyproject.toml').exists() or (parent / '.git').exists():
                return parent
        return Path.cwd()

    def _read_env_files(self, env_file: Optional[Path]) -> list[Path]:
        if env_file is not None:
            if not env_file.exists():
                raise ConfigurationError(f"Specified env file not found: {env_file}")
            candidates = [env_file]
        else:
            candidates = [
                self.project_root / f".env.{self.environment}",
                self.project_root / ".env",
            ]

        used = [path for path in candidates if path.exists()]
        for path in used:
            load_dotenv(path)
            logger.info(f"Loaded settings from {path}")

        if not used:
            logger.debug("No dotenv file found; using the process environment")
        return used

    def _load_source_config(self) -> None:
        """Dataset locations; unset URLs are resolved from the catalogue later."""
        try:
            self.source = SourceConfig(
                features_url=os.getenv("REEFLINK_FEATURES_URL"),
                sst_url=os.getenv("REEFLINK_SST_URL"),
                s3_region=os.getenv("REEFLINK_S3_REGION", "ap-southeast-2"),
                catalog_path=os.getenv("REEFLINK_CATALOG"),
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid source configuration: {e}")

    def _load_processing_config(self) -> None:
        try:
            self.processing = ProcessingConfig(
                memory_limit=os.getenv("DUCKDB_MEMORY_LIMIT", "4GB"),
                threads=int(os.getenv("DUCKDB_THREADS", "4")),
                temp_dir=os.getenv("DUCKDB_TEMP_DIR"),
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid DuckDB configuration: {e}")

    def _load_output_config(self) -> None:
        try:
            self.output = OutputConfig(
                out_dir=os.getenv("REEFLINK_OUTPUT_DIR", "outputs"),
                basemap_cache=os.getenv("REEFLINK_BASEMAP_CACHE", "boundaries_cache"),
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid output configuration: {e}")

    def get_duckdb_settings(self) -> dict[str, Any]:
        """SET statements for a new DuckDB connection, as name -> value."""
        settings: dict[str, Any] = {
            'memory_limit': self.processing.memory_limit,
            'threads': self.processing.threads,
        }
        if self.processing.temp_dir:
            settings['temp_directory'] = self.processing.temp_dir
        return settings

    def resolve_features_url(self, dataset: str = DEFAULT_FEATURES_DATASET) -> str:
        """
        URL of a feature dataset.

        REEFLINK_FEATURES_URL overrides the default dataset only; every
        other dataset is read from the catalogue.
        """
        if self.source.features_url and dataset == DEFAULT_FEATURES_DATASET:
            return self.source.features_url

        from ..config_loader import get_dataset
        return get_dataset(dataset, self.source.catalog_path)['url']

    def resolve_sst_url(self) -> str:
        """SST store URL from the environment, else from the dataset catalogue."""
        if self.source.sst_url:
            return self.source.sst_url

        from ..config_loader import get_dataset
        return get_dataset("noaa_crw_sst", self.source.catalog_path)['url']

    def validate(self) -> None:
        """
        Checks that span sections or touch the filesystem.

        Raises:
            ConfigurationError: Listing every problem found
        """
        problems = []

        if self.processing.threads > 32:
            problems.append(f"{self.processing.threads} DuckDB threads requested; at most 32 are allowed")

        if self.source.catalog_path and not Path(self.source.catalog_path).exists():
            problems.append(f"Dataset catalogue not found: {self.source.catalog_path}")

        if problems:
            raise ConfigurationError("Configuration validation failed:\n" + "\n".join(f"  - {p}" for p in problems))

        logger.debug(f"Configuration OK (root={self.project_root}, environment={self.environment})")

    def __repr__(self) -> str:
        return (f"Config(environment={self.environment!r}, features_url={self.source.features_url!r}, "
                f"memory_limit={self.processing.memory_limit!r})")
