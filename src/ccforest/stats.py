# SPDX-License-Identifier: BSD-3-Clause
# Copyright (c) 2025-2026 @yosagi
"""
Statistics aggregation

Cost, token and response-time totals over any set of messages. Absent
fields contribute nothing; accumulation is order-independent, so partial
results over partitions can be merged.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional

from .entries import AssistantEntry, Message, UserEntry


@dataclass(frozen=True)
class TokenTotals:
    input: int = 0
    output: int = 0
    cache_creation: int = 0
    cache_read: int = 0

    @property
    def total(self) -> int:
        return self.input + self.output + self.cache_creation + self.cache_read

    def __add__(self, other: 'TokenTotals') -> 'TokenTotals':
        return TokenTotals(
            input=self.input + other.input,
            output=self.output + other.output,
            cache_creation=self.cache_creation + other.cache_creation,
            cache_read=self.cache_read + other.cache_read
        )


@dataclass(frozen=True)
class MessageCount:
    user: int = 0
    assistant: int = 0

    @property
    def total(self) -> int:
        return self.user + self.assistant


@dataclass(frozen=True)
class Stats:
    total_cost_usd: float = 0.0
    total_tokens: TokenTotals = field(default_factory=TokenTotals)
    average_response_time_ms: float = 0.0
    message_count: MessageCount = field(default_factory=MessageCount)
    models: Dict[str, int] = field(default_factory=dict)  # assistant messages per model

    def to_dict(self) -> Dict[str, Any]:
        return {
            'totalCostUSD': self.total_cost_usd,
            'totalTokens': {
                'input': self.total_tokens.input,
                'output': self.total_tokens.output,
                'cacheCreation': self.total_tokens.cache_creation,
                'cacheRead': self.total_tokens.cache_read,
            },
            'averageResponseTimeMs': self.average_response_time_ms,
            'messageCount': {
                'user': self.message_count.user,
                'assistant': self.message_count.assistant,
            },
            'models': dict(self.models),
        }


def _non_negative(value: Optional[float]) -> float:
    """Absent or negative values count as zero"""
    if value is None or value < 0:
        return 0
    return value


class StatsAccumulator:
    """Running sums; merge() combines accumulators built over partitions"""

    def __init__(self):
        self.cost_usd = 0.0
        self.tokens = TokenTotals()
        self.duration_sum_ms = 0.0
        self.duration_samples = 0
        self.user_count = 0
        self.assistant_count = 0
        self.models: Dict[str, int] = {}

    def add(self, message: Message) -> 'StatsAccumulator':
        if isinstance(message, UserEntry):
            self.user_count += 1
        elif isinstance(message, AssistantEntry):
            self.assistant_count += 1
            self.cost_usd += _non_negative(message.cost_usd)

            if message.duration_ms is not None and message.duration_ms >= 0:
                self.duration_sum_ms += message.duration_ms
                self.duration_samples += 1

            usage = message.usage
            if usage is not None:
                self.tokens = self.tokens + TokenTotals(
                    input=int(_non_negative(usage.input_tokens)),
                    output=int(_non_negative(usage.output_tokens)),
                    cache_creation=int(_non_negative(usage.cache_creation_input_tokens)),
                    cache_read=int(_non_negative(usage.cache_read_input_tokens))
                )

            if message.model:
                self.models[message.model] = self.models.get(message.model, 0) + 1
        return self

    def update(self, messages: Iterable[Message]) -> 'StatsAccumulator':
        for message in messages:
            self.add(message)
        return self

    def merge(self, other: 'StatsAccumulator') -> 'StatsAccumulator':
        """Fold another accumulator into this one"""
        self.cost_usd += other.cost_usd
        self.tokens = self.tokens + other.tokens
        self.duration_sum_ms += other.duration_sum_ms
        self.duration_samples += other.duration_samples
        self.user_count += other.user_count
        self.assistant_count += other.assistant_count
        for model, count in other.models.items():
            self.models[model] = self.models.get(model, 0) + count
        return self

    def result(self) -> Stats:
        if self.duration_samples:
            average = self.duration_sum_ms / self.duration_samples
        else:
            average = 0.0
        return Stats(
            total_cost_usd=self.cost_usd,
            total_tokens=self.tokens,
            average_response_time_ms=average,
            message_count=MessageCount(user=self.user_count, assistant=self.assistant_count),
            models=dict(self.models)
        )


def compute_stats(messages: Iterable[Message]) -> Stats:
    """
    Aggregate statistics over messages in a single pass

    Args:
        messages: Any message sequence (whole conversation or one branch)

    Returns:
        Stats; average response time is 0 when no message has durationMs
    """
    return StatsAccumulator().update(messages).result()
