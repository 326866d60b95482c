"""
Data models for the Insight Engine.
"""

from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional


class BasicType(str, Enum):
    """Statistical type inferred from storage type and cardinality."""
    NUMERIC = "numeric"
    CATEGORICAL = "categorical"
    DATETIME = "datetime"
    TEXT = "text"


class SemanticType(str, Enum):
    """Business meaning matched from a column name."""
    AMOUNT = "amount"
    TIME = "time"
    STATUS = "status"
    CATEGORY = "category"
    ID = "id"


class AlgorithmType(str, Enum):
    """Analysis algorithms whose output can be turned into insights."""
    ANOMALY = "anomaly"
    CLUSTERING = "clustering"
    REGRESSION = "regression"


class BinningStrategyType(str, Enum):
    """Histogram binning strategies."""
    LOGARITHMIC = "logarithmic"
    CLIPPED = "clipped"
    LINEAR = "linear"


# ============================================================================
# Column profiling
# ============================================================================

@dataclass(frozen=True)
class ColumnProfile:
    """
    Type, semantics and statistics of one table column.

    Statistics (min .. p99) are only filled for columns classified numeric.
    """
    name: str
    raw_type: str
    basic_type: BasicType
    semantic_type: Optional[SemanticType]
    cardinality: int
    null_rate: float
    min: Optional[float] = None
    max: Optional[float] = None
    mean: Optional[float] = None
    median: Optional[float] = None
    stddev: Optional[float] = None
    p25: Optional[float] = None
    p50: Optional[float] = None
    p75: Optional[float] = None
    p80: Optional[float] = None
    p99: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["basic_type"] = self.basic_type.value
        data["semantic_type"] = self.semantic_type.value if self.semantic_type else None
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ColumnProfile":
        values = dict(data)
        values["basic_type"] = BasicType(values["basic_type"])
        semantic = values.get("semantic_type")
        values["semantic_type"] = SemanticType(semantic) if semantic else None
        return cls(**values)


@dataclass
class InsightConfig:
    """Everything the chart generators need to know about one table."""
    table_name: str
    columns: List[ColumnProfile]
    row_count: int
    sampling_enabled: bool
    sampling_rate: float
    numeric_columns: List[ColumnProfile] = field(default_factory=list)
    categorical_columns: List[ColumnProfile] = field(default_factory=list)
    datetime_columns: List[ColumnProfile] = field(default_factory=list)
    status_columns: List[ColumnProfile] = field(default_factory=list)
    category_columns: List[ColumnProfile] = field(default_factory=list)

    _PROFILE_LISTS = (
        "columns",
        "numeric_columns",
        "categorical_columns",
        "datetime_columns",
        "status_columns",
        "category_columns",
    )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "table_name": self.table_name,
            "row_count": self.row_count,
            "sampling_enabled": self.sampling_enabled,
            "sampling_rate": self.sampling_rate,
        }
        for name in self._PROFILE_LISTS:
            data[name] = [c.to_dict() for c in getattr(self, name)]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InsightConfig":
        lists = {
            name: [ColumnProfile.from_dict(c) for c in data.get(name, [])]
            for name in cls._PROFILE_LISTS
        }
        return cls(
            table_name=data["table_name"],
            row_count=data["row_count"],
            sampling_enabled=data["sampling_enabled"],
            sampling_rate=data["sampling_rate"],
            **lists,
        )


# ============================================================================
# Chart results
# ============================================================================

@dataclass
class SummaryResult:
    """Global summary: one profile per money-like column."""
    columns: List[ColumnProfile] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"columns": [c.to_dict() for c in self.columns]}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SummaryResult":
        return cls(columns=[ColumnProfile.from_dict(c) for c in data.get("columns", [])])


@dataclass
class DistributionSeries:
    column_name: str
    data: List[int] = field(default_factory=list)


@dataclass
class MultiLineChartData:
    """Several histograms sharing the x-axis of the first series."""
    x_axis: List[float] = field(default_factory=list)
    series: List[DistributionSeries] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MultiLineChartData":
        return cls(
            x_axis=list(data.get("x_axis", [])),
            series=[DistributionSeries(**s) for s in data.get("series", [])],
        )


@dataclass
class CategoricalValue:
    value: str
    count: int


@dataclass
class CategoricalResult:
    """Top values of a status or category column, sorted by count."""
    column_name: str
    values: List[CategoricalValue] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CategoricalResult":
        return cls(
            column_name=data["column_name"],
            values=[CategoricalValue(**v) for v in data.get("values", [])],
        )


@dataclass
class CategoricalBreakdown:
    """Top-value tables for every status column and every category column."""
    status: List[CategoricalResult] = field(default_factory=list)
    category: List[CategoricalResult] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CategoricalBreakdown":
        return cls(
            status=[CategoricalResult.from_dict(r) for r in data.get("status", [])],
            category=[CategoricalResult.from_dict(r) for r in data.get("category", [])],
        )


@dataclass
class ColumnStatistics:
    """Inputs for choosing a binning strategy."""
    min: float
    max: float
    q1: float
    q3: float
    row_count: int


@dataclass
class BinningResult:
    """Chosen strategy plus the SQL expression that computes each value's bin."""
    strategy: BinningStrategyType
    expression: str
    bin_width: Optional[float] = None
    upper_fence: Optional[float] = None


# ============================================================================
# Cache
# ============================================================================

@dataclass
class CacheEntry:
    """
    One cached value.

    Timestamps are epoch milliseconds; size_bytes is the UTF-8 length of the
    JSON-serialized data and is what the byte budget accounts for.
    """
    key: str
    data: Any
    created_at: float
    last_access_at: float
    size_bytes: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CacheEntry":
        return cls(**data)


@dataclass
class CacheMetadata:
    total_size: int
    max_size: int
    entry_count: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CacheMetadata":
        return cls(**data)


# ============================================================================
# Analysis inputs (produced by the external anomaly / clustering kernels)
# ============================================================================

@dataclass
class AnomalyRecord:
    """One scored record from the anomaly detector."""
    id: str
    score: float
    is_abnormal: bool
    features: Dict[str, float] = field(default_factory=dict)
    rank: Optional[int] = None


@dataclass
class AnomalyAnalysisResult:
    anomalies: List[AnomalyRecord] = field(default_factory=list)
    threshold: float = 0.8
    feature_columns: List[str] = field(default_factory=list)
    order_id_column: str = "order_id"


@dataclass
class CustomerClusterRecord:
    """One customer with its cluster assignment and RFM values."""
    customer_id: str
    cluster_id: int
    recency: float
    frequency: float
    monetary: float
    aov: Optional[float] = None
    discount_sensitivity: Optional[float] = None
    churn_risk: Optional[float] = None


@dataclass(frozen=True)
class ClusterMetadata:
    """Aggregated statistics for one cluster."""
    cluster_id: int
    customer_count: int
    avg_recency: float
    avg_frequency: float
    avg_monetary: float
    total_value: float
    label: Optional[str] = None
    radar_values: Dict[str, float] = field(default_factory=dict)
    avg_aov: Optional[float] = None
    avg_discount_sensitivity: Optional[float] = None
    avg_churn_risk: Optional[float] = None

    def with_label(self, label: str) -> "ClusterMetadata":
        return replace(self, label=label)


@dataclass
class ClusteringAnalysisResult:
    total_customers: int
    clusters: List[ClusterMetadata] = field(default_factory=list)
    customers: List[CustomerClusterRecord] = field(default_factory=list)


# ============================================================================
# Aggregated digests and LLM context
# ============================================================================

@dataclass
class NumericFeatureStats:
    """Feature statistics over the anomaly set, with the table-wide baseline."""
    avg: float
    min: float
    max: float
    global_avg: Optional[float] = None

    @property
    def deviation_pct(self) -> Optional[float]:
        """Relative deviation of the anomaly average from the global average."""
        if not self.global_avg:
            return None
        return (self.avg - self.global_avg) / self.global_avg * 100


@dataclass
class ClusterSummary:
    cluster_id: int
    customer_count: int
    avg_recency: float
    avg_frequency: float
    avg_monetary: float
    total_value: float
    value_share: float
    label: Optional[str] = None


@dataclass
class RFMStats:
    global_avg_recency: float
    global_avg_frequency: float
    global_avg_monetary: float


@dataclass
class SampleCustomer:
    customer_id: str
    recency: float
    frequency: float
    monetary: float


@dataclass
class ClusterSample:
    cluster_id: int
    customers: List[SampleCustomer] = field(default_factory=list)


@dataclass
class AggregatedFeatures:
    """
    Compact digest of an analysis run.

    Anomaly runs fill the first block, clustering runs the second.
    """
    # Anomaly-specific
    total_anomalies: Optional[int] = None
    average_score: Optional[float] = None
    numeric_features: Dict[str, NumericFeatureStats] = field(default_factory=dict)
    top_patterns: Dict[str, Any] = field(default_factory=dict)
    suspicious_patterns: Dict[str, Any] = field(default_factory=dict)

    # Clustering-specific
    total_customers: Optional[int] = None
    clusters: List[ClusterSummary] = field(default_factory=list)
    rfm_stats: Optional[RFMStats] = None
    sample_customers: List[ClusterSample] = field(default_factory=list)


@dataclass
class TableColumn:
    name: str
    type: str
    nullable: bool


@dataclass
class TableMetadata:
    table_name: str
    row_count: int
    column_count: int
    columns: List[TableColumn] = field(default_factory=list)


@dataclass
class InsightContext:
    """Semantic description of a table handed to the prompt builders."""
    algorithm_type: AlgorithmType
    table_metadata: TableMetadata
    feature_definitions: Dict[str, str] = field(default_factory=dict)
    business_domain: str = "ecommerce"
