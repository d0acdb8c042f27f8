from typing import Callable, Iterable
import math

from project_context.domain.models import Message

CHARS_PER_TOKEN = 4

TokenEstimator = Callable[[str], int]


def estimate_tokens(text: str) -> int:
    """Approximate token count: one token per four characters, rounded up"""
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def count_message_tokens(messages: Iterable[Message], estimate: TokenEstimator = estimate_tokens) -> int:
    return sum(estimate(message.content) for message in messages)
