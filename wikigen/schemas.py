from dataclasses import dataclass, field
from enum import Enum


ASCENSION_TIERS = ("1", "10", "20", "30", "40", "50", "60")
REQUIRED_LOCALE = "ja"


class Specialty(str, Enum):
    ATTACK = "attack"
    STUN = "stun"
    ANOMALY = "anomaly"
    SUPPORT = "support"
    DEFENSE = "defense"
    RUPTURE = "rupture"


class Stats(str, Enum):
    ETHER = "ether"
    FIRE = "fire"
    ICE = "ice"
    PHYSICAL = "physical"
    ELECTRIC = "electric"
    FROST_ATTRIBUTE = "frostAttribute"
    AURIC_INK = "auricInk"


class AttackType(str, Enum):
    SLASH = "slash"
    PIERCE = "pierce"
    STRIKE = "strike"


class Rarity(str, Enum):
    A = "A"
    S = "S"


class AssistType(str, Enum):
    DEFENSIVE = "defensive"
    EVASIVE = "evasive"


class FailureStage(str, Enum):
    FETCH = "fetch"
    MAPPING = "mapping"


class PipelineState(str, Enum):
    IDLE = "idle"
    PARSING = "parsing"
    PROCESSING = "processing"
    GENERATING = "generating"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class PageReference:
    page_id: str
    wiki_url: str | None = None


@dataclass(frozen=True)
class EntryRecord:
    id: str
    display_name: str
    source_locator: PageReference

    @property
    def page_id(self) -> str:
        return self.source_locator.page_id


@dataclass(frozen=True)
class Attributes:
    hp: list[int]
    atk: list[int]
    def_: list[int]
    impact: int
    crit_rate: float
    crit_dmg: float
    anomaly_mastery: int
    anomaly_proficiency: int
    pen_ratio: float
    energy: float


@dataclass(frozen=True)
class NormalizedRecord:
    id: str
    name: dict[str, str]
    full_name: dict[str, str]
    specialty: Specialty
    stats: Stats
    attack_type: list[AttackType]
    faction: int
    rarity: Rarity
    attr: Attributes
    release_version: float | None = None
    assist_type: AssistType | None = None


@dataclass(frozen=True)
class Success:
    entry: EntryRecord
    record: NormalizedRecord
    attempts: int = 1

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Failure:
    entry: EntryRecord
    stage: FailureStage
    error: str
    attempts: int = 1

    @property
    def ok(self) -> bool:
        return False


ProcessingOutcome = Success | Failure


@dataclass(frozen=True)
class FinalStatistics:
    total: int
    successful: int
    failed: int
    skipped: int
    retry_count: int
    elapsed_seconds: float
    average_item_seconds: float
    items_per_second: float
    success_rate: float


@dataclass
class BatchStatistics:
    total: int = 0
    successful: int = 0
    failed: int = 0
    skipped: int = 0
    retry_count: int = 0
    elapsed_seconds: float = 0.0

    @property
    def processed(self) -> int:
        return self.successful + self.failed

    @property
    def success_rate(self) -> float:
        # Percentage of attempted entries; skipped entries are excluded.
        attempted = self.total - self.skipped
        if attempted <= 0:
            return 0.0
        return self.successful / attempted * 100

    @property
    def items_per_second(self) -> float:
        if self.elapsed_seconds <= 0:
            return 0.0
        return self.processed / self.elapsed_seconds

    @property
    def average_item_seconds(self) -> float:
        if self.processed == 0:
            return 0.0
        return self.elapsed_seconds / self.processed

    def freeze(self) -> FinalStatistics:
        return FinalStatistics(
            total=self.total,
            successful=self.successful,
            failed=self.failed,
            skipped=self.skipped,
            retry_count=self.retry_count,
            elapsed_seconds=self.elapsed_seconds,
            average_item_seconds=self.average_item_seconds,
            items_per_second=self.items_per_second,
            success_rate=self.success_rate,
        )


@dataclass(frozen=True)
class ProgressEvent:
    current: int
    total: int
    current_item_label: str
    stage: str
    items_per_second: float
    estimated_time_remaining: float | None
    memory_usage_mb: float | None
    success_count: int
    failure_count: int
    retry_count: int

    @property
    def percentage(self) -> float:
        if self.total <= 0:
            return 0.0
        return round(self.current / self.total * 100, 1)


@dataclass(frozen=True)
class PipelineResult:
    run_key: str
    status: str
    success: bool
    records: list[NormalizedRecord]
    failures: list[Failure]
    statistics: FinalStatistics
    output_path: str
    report_path: str | None = None
    error: str | None = None
    outcomes: list[ProcessingOutcome] = field(default_factory=list)
