# promptcraft/processors/analyzer.py
import json
import time

from promptcraft import errors, monitoring
from promptcraft.llm_wrapper import LLMClient
from promptcraft.processors.response_parsing import (
    drop_invalid_properties, load_schema, parse_json_response,
)
from promptcraft.schemas import AnalysisResult

STAGE = "analysis"

ANALYSIS_RESPONSE_SCHEMA = load_schema("analysis_response_schema.json", {"type": "object"})

ANALYSIS_SYSTEM_PROMPT = """
You are a prompt analysis expert. Analyze the prompt you are given and identify its weaknesses, ambiguities, and missing elements.

Return ONLY a JSON object, no markdown and no commentary:
{
  "summary": "brief analysis summary (1-3 sentences)",
  "gaps": ["missing piece of information", "..."],
  "weaknesses": ["ambiguity or weakness", "..."],
  "clarityScore": 0-100
}

Rules:
- gaps are things the prompt does not say but the reader needs (audience, format, length, constraints, context).
- weaknesses are things the prompt says badly (vague wording, conflicting goals, no success criteria).
- clarityScore rates how well a capable assistant could act on the prompt as written; 100 means nothing to ask.
"""

ANALYSIS_USER_PROMPT_TEMPLATE = 'Analyze this prompt: "{}"'


def _mock_analysis(prompt: str) -> str:
    """Deterministic analysis for dev/test mode."""
    words = prompt.split()
    gaps = []
    if len(words) < 12:
        gaps.append("Target audience is not specified")
        gaps.append("Desired output format is not specified")
    if "?" not in prompt and not any(w.lower() in ("must", "should") for w in words):
        gaps.append("No constraints or success criteria are given")
    return json.dumps({
        "summary": f"The prompt has {len(words)} words and leaves key details to interpretation.",
        "gaps": gaps,
        "weaknesses": ["Goal is stated without context"] if len(words) < 25 else [],
        "clarityScore": min(90, 20 + 3 * len(words)),
    })


def _call_llm(client: LLMClient, prompt: str) -> str:
    """
    Single LLM call returning raw content. Mock mode replies with a canned analysis.
    Isolated so tests can monkeypatch without touching the SDK.
    """
    resp = client.chat(
        messages=[
            {"role": "system", "content": ANALYSIS_SYSTEM_PROMPT},
            {"role": "user", "content": ANALYSIS_USER_PROMPT_TEMPLATE.format(prompt)},
        ],
        model=client.model_for(STAGE),
        max_tokens=1000,
        temperature=0.0,
        json_mode=True,
        mock_text=_mock_analysis(prompt) if client.mock else None,
    )
    return resp["text"]


def analyze_prompt(client: LLMClient, prompt: str) -> AnalysisResult:
    """
    Ask the LLM for a critique of the prompt.
    Missing or mistyped fields fall back to defaults (empty lists, score 0);
    output that is not a JSON object raises UpstreamError.
    """
    start = time.time()
    try:
        raw = _call_llm(client, prompt)
        parsed = parse_json_response(raw, STAGE)
        parsed = drop_invalid_properties(parsed, ANALYSIS_RESPONSE_SCHEMA, STAGE)
    except errors.UpstreamError:
        monitoring.observe_llm_call(start, STAGE, "fail")
        raise
    monitoring.observe_llm_call(start, STAGE, "success")

    return AnalysisResult(
        summary=parsed.get("summary") or "Unable to analyze prompt",
        gaps=parsed.get("gaps") or [],
        weaknesses=parsed.get("weaknesses") or [],
        clarity_score=parsed.get("clarityScore") or 0,
    )
