from dataclasses import dataclass, field
from typing import Any

MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]

MONTH_INDEX = {name.lower(): i for i, name in enumerate(MONTH_NAMES)}

# year -> [{month_name: [record, ...]}, ...] in first-seen order
PeriodIndex = dict[int, list[dict[str, list[dict]]]]


@dataclass(frozen=True)
class GenerationUnit:
    """One AI call: a month of records or a quarter of monthly outputs."""

    year: int
    period: str
    month_index: int
    items: list[Any]
    prompt: str
    source_count: int
    label: str = ""

    @property
    def display_label(self) -> str:
        return self.label or f"{self.period} {self.year}"


@dataclass(frozen=True)
class SummaryResult:
    period: str
    year: int
    month_index: int
    ai_output: dict
    source_record_count: int
    period_start_date: str

    def as_dict(self) -> dict:
        return {
            "period": self.period,
            "year": self.year,
            "month_index": self.month_index,
            "summary": self.ai_output,
            "count": self.source_record_count,
            "startdate": self.period_start_date,
        }


@dataclass(frozen=True)
class GenerationError:
    period: str
    year: int
    error: str

    def as_dict(self) -> dict:
        return {"period": self.period, "year": self.year, "error": self.error}


# year -> period label -> result
SummaryMap = dict[int, dict[str, SummaryResult]]


@dataclass
class FanOutResult:
    results: SummaryMap = field(default_factory=dict)
    errors: list[GenerationError] = field(default_factory=list)

    @property
    def result_count(self) -> int:
        return sum(len(periods) for periods in self.results.values())
