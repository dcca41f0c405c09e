"""Sample graph for the taozen CLI.

This file can be run with:
    taozen run examples/sample_graph.py

Or in dry-run mode:
    taozen run examples/sample_graph.py --dry-run
"""

import asyncio
import random

from taozen import Graph, RetryConfig

graph = Graph("word-stats", description="Fetch two texts, count words, merge the counts")


async def fetch_left(inputs):
    await asyncio.sleep(0.1)
    return "the quick brown fox jumps over the lazy dog"


async def fetch_right(inputs):
    await asyncio.sleep(0.05)
    # Flaky source, recovered by the retry policy
    if random.random() < 0.5:
        raise ConnectionError("source unavailable")
    return "the dog sleeps while the fox runs"


def count_words(source):
    def count(inputs):
        counts = {}
        for word in inputs.get(source).split():
            counts[word] = counts.get(word, 0) + 1
        return counts

    return count


def merge(inputs):
    merged = {}
    for counts in inputs.get_raw().values():
        for word, n in counts.items():
            merged[word] = merged.get(word, 0) + n
    return dict(sorted(merged.items(), key=lambda item: -item[1])[:3])


left = graph.step("fetch_left").exe(fetch_left).timeout(1000)
right = graph.step("fetch_right").exe(fetch_right).retry(RetryConfig(max_attempts=5, initial_delay_ms=50))
left_counts = graph.step("count_left").exe(count_words(left)).after(left)
right_counts = graph.step("count_right").exe(count_words(right)).after(right)
top = graph.step("top_words").exe(merge).after(left_counts, right_counts)
