"""
Per-file outcomes and the aggregated result of a conversion run.
"""

from dataclasses import dataclass, field
from typing import Iterable, List, Union

from media2web.stats import FileStats


@dataclass(frozen=True)
class ConversionSuccess:
    """A file that was converted."""

    stats: FileStats

    @property
    def input_name(self) -> str:
        return self.stats.input_name

    @property
    def output_name(self) -> str:
        return self.stats.output_name

    @property
    def input_size(self) -> str:
        return self.stats.input_size

    @property
    def output_size(self) -> str:
        return self.stats.output_size

    @property
    def reduction(self) -> str:
        return self.stats.reduction


@dataclass(frozen=True)
class ConversionFailure:
    """A file that could not be converted."""

    file: str
    error: str


ConversionOutcome = Union[ConversionSuccess, ConversionFailure]


@dataclass
class ConversionResult:
    """Successes and failures of one run, each in scheduler output order."""

    successes: List[ConversionSuccess] = field(default_factory=list)
    failures: List[ConversionFailure] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.successes) + len(self.failures)

    @property
    def ok(self) -> bool:
        """True when every file converted."""
        return not self.failures


def classify_results(outcomes: Iterable[ConversionOutcome]) -> ConversionResult:
    """Partition outcomes by kind, keeping relative order within each group."""
    result = ConversionResult()
    for outcome in outcomes:
        if isinstance(outcome, ConversionSuccess):
            result.successes.append(outcome)
        elif isinstance(outcome, ConversionFailure):
            result.failures.append(outcome)
        else:
            raise TypeError(f"Unexpected conversion outcome: {outcome!r}")
    return result
