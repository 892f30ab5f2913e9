"""OptiDB - PostgreSQL performance advisor built on pg_stat_statements."""

__version__ = "0.3.0"
__license__ = "MIT"

# Exception hierarchy (import first so other modules can use it)
from optidb.exceptions import (
    OptiDBError,
    ConfigurationError,
    SnapshotError,
    CollectorError,
    AugmenterError,
)

# Data model
from optidb.models import (
    IndexInfo,
    QueryReport,
    QueryStats,
    Recommendation,
    RecommendationType,
    RiskLevel,
    TableInfo,
    WorkloadSnapshot,
)

# Configuration
from optidb.config import Config, EngineConfig, get_config, reset_config

# Lexical analysis
from optidb.analyzer import (
    QueryFingerprint,
    extract_tables,
    fingerprint_query,
    normalize_query,
    short_id,
)

# Recommendation synthesis
from optidb.recommend import RecommendationGenerator

# Engine and augmenters
from optidb.engine import RuleEngine
from optidb.augmenter import Augmenter, ClaudeAugmenter

__all__ = [
    "__version__",
    # Exceptions
    "OptiDBError",
    "ConfigurationError",
    "SnapshotError",
    "CollectorError",
    "AugmenterError",
    # Models
    "IndexInfo",
    "QueryReport",
    "QueryStats",
    "Recommendation",
    "RecommendationType",
    "RiskLevel",
    "TableInfo",
    "WorkloadSnapshot",
    # Config
    "Config",
    "EngineConfig",
    "get_config",
    "reset_config",
    # Analysis
    "QueryFingerprint",
    "extract_tables",
    "fingerprint_query",
    "normalize_query",
    "short_id",
    "RecommendationGenerator",
    "RuleEngine",
    "Augmenter",
    "ClaudeAugmenter",
]
