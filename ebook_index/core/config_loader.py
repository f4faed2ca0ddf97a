"""
Configuration loader for the ebook index.

Loads settings from config.json and provides typed access via dataclasses.
Supports singleton pattern for global access and runtime reload capability.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from .exceptions import ConfigurationError


@dataclass
class PathsConfig:
    """Configuration for file system paths."""
    index_file: Path
    data_file: Path
    batch_directory: Path
    split_directory: Path
    logs_directory: Path


@dataclass
class ExtractionConfig:
    """Configuration for PDF/EPUB text extraction guards."""
    primary_backend: str
    fallback_backend: str
    max_file_size_mb: int
    max_memory_mb: int
    skip_large_files: bool
    extract_partial_content: bool
    max_pages: int
    supported_extensions: List[str]


@dataclass
class IndexingConfig:
    """Configuration for index building and persistence."""
    compress: bool
    use_batch_processing: bool
    batch_size: int
    max_files: int
    excerpt_length: int
    document_chunk_size: int
    index_chunk_size: int
    max_single_file_chars: int
    rebuild_on_manifest_change: bool
    log_progress_every: int


@dataclass
class TokenizationConfig:
    """Configuration for the tokenizer pipeline."""
    min_token_length: int
    remove_stopwords: bool
    use_stemming: bool
    custom_stopwords: List[str]


@dataclass
class SearchConfig:
    """Configuration for search functionality."""
    default_limit: int
    fuzzy_penalty: float
    excerpt_context: int
    top_terms: int


@dataclass
class LoggingConfig:
    """Configuration for logging behavior."""
    level: str
    format: str
    max_file_size_mb: int
    backup_count: int


@dataclass
class Config:
    """
    Main configuration container holding all config sections.

    Provides singleton access via get_config() function.
    """
    paths: PathsConfig
    extraction: ExtractionConfig
    indexing: IndexingConfig
    tokenization: TokenizationConfig
    search: SearchConfig
    logging: LoggingConfig
    project_root: Path = field(default_factory=Path)

    @classmethod
    def from_file(cls, config_path: Path) -> "Config":
        """
        Load configuration from a JSON file.

        Args:
            config_path: Path to the config.json file.

        Returns:
            Populated Config instance.

        Raises:
            ConfigurationError: If file is missing or invalid.
        """
        config_path = Path(config_path)

        if not config_path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {config_path}",
                {"path": str(config_path)}
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(
                f"Invalid JSON in config file: {e}",
                {"path": str(config_path)}
            )

        if not isinstance(data, dict):
            raise ConfigurationError(
                "Config file must contain a JSON object",
                {"path": str(config_path)}
            )

        project_root = config_path.resolve().parent.parent

        return cls._parse_config(data, project_root)

    @classmethod
    def defaults(cls, project_root: Path = None) -> "Config":
        """Build a Config with every default value, rooted at project_root."""
        return cls._parse_config({}, Path(project_root or Path.cwd()))

    @classmethod
    def _parse_config(cls, data: dict, project_root: Path) -> "Config":
        """Parse raw config dict into typed Config object."""
        paths_data = data.get("paths", {})
        paths = PathsConfig(
            index_file=cls._resolve_path(paths_data.get("index_file", "output/search-index.json"), project_root),
            data_file=cls._resolve_path(paths_data.get("data_file", "output/data.json"), project_root),
            batch_directory=cls._resolve_path(paths_data.get("batch_directory", "output/batch-indexes"), project_root),
            split_directory=cls._resolve_path(paths_data.get("split_directory", "output/search-indexes"), project_root),
            logs_directory=cls._resolve_path(paths_data.get("logs_directory", "output/logs"), project_root)
        )

        ext_data = data.get("extraction", {})
        extraction = ExtractionConfig(
            primary_backend=ext_data.get("primary_backend", "pypdf"),
            fallback_backend=ext_data.get("fallback_backend", "pdfplumber"),
            max_file_size_mb=ext_data.get("max_file_size_mb", 100),
            max_memory_mb=ext_data.get("max_memory_mb", 2048),
            skip_large_files=ext_data.get("skip_large_files", True),
            extract_partial_content=ext_data.get("extract_partial_content", True),
            max_pages=ext_data.get("max_pages", 0),
            supported_extensions=ext_data.get("supported_extensions", [".pdf", ".epub"])
        )

        idx_data = data.get("indexing", {})
        indexing = IndexingConfig(
            compress=idx_data.get("compress", True),
            use_batch_processing=idx_data.get("use_batch_processing", True),
            batch_size=idx_data.get("batch_size", 10),
            max_files=idx_data.get("max_files", 100),
            excerpt_length=idx_data.get("excerpt_length", 1000),
            document_chunk_size=idx_data.get("document_chunk_size", 1000),
            index_chunk_size=idx_data.get("index_chunk_size", 10000),
            max_single_file_chars=idx_data.get("max_single_file_chars", 536870888),
            rebuild_on_manifest_change=idx_data.get("rebuild_on_manifest_change", True),
            log_progress_every=idx_data.get("log_progress_every", 10)
        )

        tok_data = data.get("tokenization", {})
        tokenization = TokenizationConfig(
            min_token_length=tok_data.get("min_token_length", 3),
            remove_stopwords=tok_data.get("remove_stopwords", True),
            use_stemming=tok_data.get("use_stemming", True),
            custom_stopwords=tok_data.get("custom_stopwords", [])
        )

        search_data = data.get("search", {})
        search = SearchConfig(
            default_limit=search_data.get("default_limit", 10),
            fuzzy_penalty=search_data.get("fuzzy_penalty", 0.5),
            excerpt_context=search_data.get("excerpt_context", 100),
            top_terms=search_data.get("top_terms", 10)
        )

        log_data = data.get("logging", {})
        logging_cfg = LoggingConfig(
            level=log_data.get("level", "INFO"),
            format=log_data.get("format", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"),
            max_file_size_mb=log_data.get("max_file_size_mb", 10),
            backup_count=log_data.get("backup_count", 5)
        )

        return cls(
            paths=paths,
            extraction=extraction,
            indexing=indexing,
            tokenization=tokenization,
            search=search,
            logging=logging_cfg,
            project_root=project_root
        )

    @staticmethod
    def _resolve_path(path_str: str, project_root: Path) -> Path:
        """Resolve a path string, making relative paths absolute."""
        path = Path(path_str).expanduser()
        if path.is_absolute():
            return path
        return project_root / path


_config_instance: Optional[Config] = None


def get_config(config_path: Path = None) -> Config:
    """
    Get the singleton Config instance.

    Args:
        config_path: Optional path to config file. If not provided,
                    searches upward from current directory.

    Returns:
        The global Config instance.

    Raises:
        ConfigurationError: If config cannot be loaded.
    """
    global _config_instance

    if _config_instance is None or config_path is not None:
        if config_path is None:
            config_path = _find_config_file()
        _config_instance = Config.from_file(config_path)

    return _config_instance


def load_config_or_default() -> Config:
    """
    Get the singleton Config, falling back to defaults when no file exists.

    An existing but invalid config file still raises ConfigurationError.
    """
    global _config_instance

    if _config_instance is None:
        try:
            config_path = _find_config_file()
        except ConfigurationError:
            _config_instance = Config.defaults()
        else:
            _config_instance = Config.from_file(config_path)

    return _config_instance


def _find_config_file() -> Path:
    """Search upward from current directory to find config/config.json."""
    current = Path.cwd()

    for _ in range(10):
        config_path = current / "config" / "config.json"
        if config_path.exists():
            return config_path

        parent = current.parent
        if parent == current:
            break
        current = parent

    raise ConfigurationError(
        "Could not find config/config.json in current directory or parents"
    )


def reload_config(config_path: Path = None) -> Config:
    """
    Force reload of configuration.

    Args:
        config_path: Optional path to config file.

    Returns:
        Fresh Config instance.
    """
    global _config_instance
    _config_instance = None
    return get_config(config_path)
