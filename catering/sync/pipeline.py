"""
Sequential per-item pipeline for network work.

Items run one at a time, in order. Each item passes through the steps in
sequence; a step that raises fails that item only and the pipeline moves on
to the next one.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Generic, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Step = Callable[[Any], Awaitable[Any]]
ProgressCallback = Callable[[int, int, str], None]


@dataclass
class ItemFailure(Generic[T]):
    item: T
    error: Exception


@dataclass
class PipelineResult(Generic[T]):
    completed: List[Any] = field(default_factory=list)
    failed: List[ItemFailure] = field(default_factory=list)


class SequentialPipeline(Generic[T]):
    """
    Run ``steps`` over each item in turn.

    The output of one step is the input of the next; the first step receives
    the item itself. ``describe`` names an item for progress reporting.
    """

    def __init__(self, steps: List[Step], describe: Callable[[T], str] = str):
        if not steps:
            raise ValueError("pipeline needs at least one step")
        self.steps = steps
        self.describe = describe

    async def run(self, items: List[T], on_progress: Optional[ProgressCallback] = None) -> PipelineResult:
        result: PipelineResult = PipelineResult()
        total = len(items)

        for index, item in enumerate(items):
            name = self.describe(item)
            if on_progress:
                on_progress(index + 1, total, name)

            try:
                value: Any = item
                for step in self.steps:
                    value = await step(value)
            except Exception as e:
                logger.error("Failed to process %s: %s", name, e)
                result.failed.append(ItemFailure(item=item, error=e))
                continue

            result.completed.append(value)

        return result
