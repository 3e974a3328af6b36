"""Run one extraction request through the pipeline.

build prompt → call model once → normalize response → fall back on failure.

Invalid requests raise InvalidRequest before any model traffic. Every other
failure degrades to a Fallback result that carries the reason, so callers
always get a usable record.
"""

import asyncio
import logging
from typing import assert_never

from mealkit.config import MealkitConfig
from mealkit.errors import ModelInvocationError
from mealkit.extract.fallback import fallback_record
from mealkit.extract.llm_client import LLMClient
from mealkit.extract.models import Fallback, Ok, TaskKind
from mealkit.extract.normalizer import NormalizationFailure, Normalized, normalize
from mealkit.extract.prompts import build_prompt

logger = logging.getLogger(__name__)

OFFLINE_REASON = "offline: model call skipped"


def _degrade(request, task: TaskKind, reason: str) -> Fallback:
    logger.warning(f"{task.value}: using fallback record ({reason})")
    return Fallback(task=task, record=fallback_record(request), reason=reason)


async def aextract(
    request,
    llm: LLMClient | None = None,
    config: MealkitConfig | None = None,
    offline: bool = False,
) -> Ok | Fallback:
    """Extract a structured record for ``request``.

    Args:
        request: Any of the extraction request models
        llm: Client to call. Built from ``config`` for the request's task if omitted
        config: Settings used to build a client when ``llm`` is None
        offline: Skip the model entirely and return the fallback record

    Raises:
        InvalidRequest: A required request field is missing or malformed
    """
    task = TaskKind(request.task)
    prompt = build_prompt(request)
    logger.debug(f"{task.value} prompt:\n{prompt.user}")

    if offline:
        return _degrade(request, task, OFFLINE_REASON)

    if llm is None:
        llm = LLMClient.for_task(config or MealkitConfig(), task)

    try:
        text = await llm.acall(prompt.user, system_message=prompt.system)
    except ModelInvocationError as e:
        return _degrade(request, task, f"{e.kind}: {e}")

    outcome = normalize(text, request)
    match outcome:
        case Normalized(record=record):
            logger.info(f"{task.value}: extracted with {llm.model}")
            return Ok(task=task, record=record)
        case NormalizationFailure(reason=reason):
            logger.debug(f"Unusable response from {llm.model}: {text[:500]}")
            return _degrade(request, task, f"normalization_failed: {reason}")
        case _:
            assert_never(outcome)


def extract(
    request,
    llm: LLMClient | None = None,
    config: MealkitConfig | None = None,
    offline: bool = False,
) -> Ok | Fallback:
    """Sync version of aextract()."""
    return asyncio.run(aextract(request, llm=llm, config=config, offline=offline))


def reports_success(result: Ok | Fallback) -> bool:
    """Whether the caller-facing ``success`` flag should be true.

    A degraded recipe analysis is only a guess from the URL slug, so it is
    reported as unsuccessful. Every other fallback is a usable record.
    """
    match result:
        case Ok():
            return True
        case Fallback(task=TaskKind.RECIPE_ANALYSIS):
            return False
        case Fallback():
            return True
        case _:
            assert_never(result)
