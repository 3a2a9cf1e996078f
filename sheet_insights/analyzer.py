"""
Core orchestration / pipeline.

Flow:
1. Receive an AnalysisRequest (row records, query, chart type)
2. Build the prompt: size-capped dataset JSON + query + chart type
3. Stream the completion from the injected completion source
4. Accumulate -> extract <think> reasoning -> recover JSON -> normalize chart shape
5. Return an AnalysisResult; any failure degrades to the empty result
"""

import os
import json
import logging
from typing import Tuple

from .charts import normalize
from .llm_client import CompletionSource
from .recovery import accumulate, recover_result
from .schemas import AnalysisRequest, AnalysisResult

logger = logging.getLogger(__name__)

# Prompt file paths
BASE_DIR = os.path.dirname(os.path.abspath(__file__))
PROMPT_PATHS = {
    "object": os.path.join(BASE_DIR, "prompts", "analysis_system.txt"),
    "array": os.path.join(BASE_DIR, "prompts", "analysis_array_system.txt"),
}

# Serialized dataset budget; only the dataset is ever truncated.
MAX_DATASET_CHARS = 15000

FAILURE_MESSAGE = "Analysis failed"


def _read_prompt(path: str) -> str:
    """Read a prompt text file."""
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def build_prompts(
    request: AnalysisRequest,
    max_dataset_chars: int = MAX_DATASET_CHARS,
    response_mode: str = "object",
) -> Tuple[str, str]:
    """Return (system_prompt, user_prompt) for a request."""
    system_prompt = _read_prompt(PROMPT_PATHS[response_mode])
    dataset_json = json.dumps(request.dataset, ensure_ascii=False, default=str)
    if len(dataset_json) > max_dataset_chars:
        logger.info(f"Truncating dataset JSON from {len(dataset_json)} to {max_dataset_chars} chars")
        dataset_json = dataset_json[:max_dataset_chars]

    user_prompt = (
        f"Dataset: {dataset_json}\n\n"
        f"Query: {request.query}\n\n"
        f"Chart Type: {request.chart_type}\n"
    )
    return system_prompt, user_prompt


class Analyzer:
    """
    Runs one analysis per call. Holds no per-request state, so a single
    instance can serve concurrent requests.
    """

    def __init__(
        self,
        completion_source: CompletionSource,
        max_dataset_chars: int = MAX_DATASET_CHARS,
        response_mode: str = "object",
    ):
        if response_mode not in PROMPT_PATHS:
            raise ValueError(f"Unknown response mode: {response_mode}")
        self.completion_source = completion_source
        self.max_dataset_chars = max_dataset_chars
        self.response_mode = response_mode

    async def analyze(self, request: AnalysisRequest) -> AnalysisResult:
        """
        Main analysis pipeline.

        Args:
            request: dataset rows, user query and chart type

        Returns:
            AnalysisResult with data/summary/reasoning, or the empty result
        """
        # 1) Build prompts
        try:
            system_prompt, user_prompt = build_prompts(
                request,
                max_dataset_chars=self.max_dataset_chars,
                response_mode=self.response_mode,
            )
        except OSError as e:
            logger.error(f"Prompt file not found for mode {self.response_mode}: {e}")
            return AnalysisResult.empty(error=FAILURE_MESSAGE)

        # 2) Stream the completion into one buffer
        try:
            raw_result = await accumulate(
                self.completion_source.stream(system_prompt, user_prompt)
            )
        except Exception as e:
            logger.error(f"LLM call failed: {type(e).__name__}: {e}")
            return AnalysisResult.empty(error=FAILURE_MESSAGE)

        logger.debug(f"Raw LLM Response: {raw_result}")

        # 3) Recover the structured result, then shape it for the chart
        result = recover_result(raw_result, expected_shape=self.response_mode)
        if result.is_empty:
            logger.warning("LLM response yielded no chart data")
        return normalize(result, request.chart_type)
