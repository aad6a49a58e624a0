"""Usage and cost accounting types."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class Cost:
    generation: float = 0.0
    platform: float = 0.0
    total: float = 0.0

    def __add__(self, other: Cost) -> Cost:
        return Cost(
            generation=self.generation + other.generation,
            platform=self.platform + other.platform,
            total=self.total + other.total,
        )

    def copy(self) -> Cost:
        return Cost(self.generation, self.platform, self.total)


@dataclass
class Usage:
    requests: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    cost: Cost = field(default_factory=Cost)
    # Per-source totals, only present when nested agents contributed usage.
    breakdown: dict[str, Usage] | None = None

    def __add__(self, other: Usage) -> Usage:
        """Sum totals. Breakdowns are not merged; the left operand's is kept."""
        return Usage(
            requests=self.requests + other.requests,
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
            cost=self.cost + other.cost,
            breakdown=self.breakdown,
        )

    def totals(self) -> Usage:
        """Copy of the aggregate figures without breakdown."""
        return Usage(
            requests=self.requests,
            input_tokens=self.input_tokens,
            output_tokens=self.output_tokens,
            total_tokens=self.total_tokens,
            cost=self.cost.copy(),
        )

    def copy(self) -> Usage:
        usage = self.totals()
        if self.breakdown is not None:
            usage.breakdown = {name: entry.totals() for name, entry in self.breakdown.items()}
        return usage

    @classmethod
    def single_request(
        cls,
        input_tokens: int = 0,
        output_tokens: int = 0,
        cost: Cost | None = None,
    ) -> Usage:
        return cls(
            requests=1,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=input_tokens + output_tokens,
            cost=cost or Cost(),
        )

    def to_dict(self) -> dict:
        data: dict = {
            "requests": self.requests,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "total_tokens": self.total_tokens,
            "cost": {
                "generation": self.cost.generation,
                "platform": self.cost.platform,
                "total": self.cost.total,
            },
        }
        if self.breakdown is not None:
            data["breakdown"] = {name: entry.to_dict() for name, entry in self.breakdown.items()}
        return data
