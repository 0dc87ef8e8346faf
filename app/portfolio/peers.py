"""Benchmark peer-group resolution."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from app.core.logging import get_logger

from .interfaces import ReferenceStore


logger = get_logger("portfolio.peers")


class BenchmarkSlot(str, Enum):
    BENCHMARK1 = "BENCHMARK1"
    BENCHMARK2 = "BENCHMARK2"
    BENCHMARK3 = "BENCHMARK3"
    BENCHMARK_CUSTOM = "BENCHMARK_CUSTOM"


# Benchmark symbol -> membership column in weightings_universe
BENCHMARK_MEMBERSHIP_COLUMNS: dict[str, str] = {
    symbol: symbol.lower()
    for symbol in (
        "SPY", "QQQ", "SOXX", "SMH", "ARKK",
        "XLK", "XLF", "XLC", "XLY", "XLP", "XLE",
        "XLV", "XLI", "XLB", "XLRE", "XLU",
        "IGV", "ITA",
    )
}

# Placeholder marking "not a member"
MEMBERSHIP_PLACEHOLDER = "-"


def membership_column(benchmark: str) -> str | None:
    return BENCHMARK_MEMBERSHIP_COLUMNS.get(benchmark.strip().upper())


def is_member_cell(value: Any) -> bool:
    """A membership cell counts when it is set and not the placeholder."""
    if value is None:
        return False
    text = str(value).strip()
    return bool(text) and text != MEMBERSHIP_PLACEHOLDER


@dataclass
class PeerGroup:
    ticker: str
    slot: BenchmarkSlot
    benchmark: str | None = None
    members: list[str] = field(default_factory=list)
    reason: str | None = None

    @property
    def is_empty(self) -> bool:
        return not self.members

    def to_dict(self) -> dict[str, Any]:
        return {
            "ticker": self.ticker,
            "slot": self.slot.value,
            "benchmark": self.benchmark,
            "members": list(self.members),
            "reason": self.reason,
        }


class PeerGroupResolver:
    """Resolves a ticker's peer group from its benchmark assignment.

    The group is the benchmark's constituents plus the ticker itself, so the
    ticker's own value always participates in ranking.
    """

    def __init__(self, reference_store: ReferenceStore):
        self._store = reference_store

    async def resolve(self, ticker: str, slot: BenchmarkSlot | str = BenchmarkSlot.BENCHMARK1) -> PeerGroup:
        ticker = ticker.strip().upper()
        slot = BenchmarkSlot(slot)

        benchmark = await self._store.get_benchmark_assignment(ticker, slot.value)
        if not benchmark:
            return PeerGroup(
                ticker=ticker,
                slot=slot,
                reason=f"No benchmark assigned to {ticker} in {slot.value}",
            )

        benchmark = benchmark.strip().upper()
        if membership_column(benchmark) is None:
            return PeerGroup(
                ticker=ticker,
                slot=slot,
                benchmark=benchmark,
                reason=f"No membership column configured for benchmark {benchmark}",
            )

        members = await self._store.get_benchmark_members(benchmark)
        if not members:
            return PeerGroup(
                ticker=ticker,
                slot=slot,
                benchmark=benchmark,
                reason=f"No constituents found for benchmark {benchmark}",
            )

        members = list(members)
        if ticker not in {m.upper() for m in members}:
            members.append(ticker)

        logger.info(f"{ticker} resolved to {benchmark} with {len(members)} peers")
        return PeerGroup(ticker=ticker, slot=slot, benchmark=benchmark, members=members)
