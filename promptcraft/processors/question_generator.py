# promptcraft/processors/question_generator.py
import json
import time
from typing import Any, Dict, List

from promptcraft import errors, monitoring
from promptcraft.llm_wrapper import LLMClient
from promptcraft.processors.response_parsing import (
    drop_invalid_properties, load_schema, parse_json_response,
)
from promptcraft.schemas import AnalysisResult, Question, QuestionType

STAGE = "questions"

QUESTIONS_RESPONSE_SCHEMA = load_schema(
    "questions_response_schema.json",
    {"type": "object", "properties": {"questions": {"type": "array", "items": {"type": "object"}}}},
)
_ITEM_SCHEMA = QUESTIONS_RESPONSE_SCHEMA.get("properties", {}).get("questions", {}).get("items", {"type": "object"})

_TYPE_VALUES = {t.value for t in QuestionType}

DEFAULT_QUESTION_TEXT = "What additional information can you provide?"

QUESTIONS_SYSTEM_PROMPT = """
You are an expert at generating clarifying questions to improve prompts. Based on the original prompt and its analysis, generate 3-5 targeted questions that will gather the missing information.

Return ONLY a JSON object, no markdown and no commentary:
{
  "questions": [
    {
      "id": "unique identifier, e.g. q1",
      "question": "the question text",
      "type": "text" | "choice" | "scale" | "checkbox",
      "options": ["only for choice and checkbox types"]
    }
  ]
}

Rules:
- Ask about the gaps first, then the weaknesses.
- Use "choice" when one of a few answers is expected, "checkbox" when several may apply,
  "scale" for a 1-5 rating (e.g. desired depth or formality), "text" otherwise.
- Never ask something the prompt already answers.
"""

QUESTIONS_USER_PROMPT_TEMPLATE = """Original prompt: "{prompt}"

Analysis summary: {summary}
Identified gaps: {gaps}
Weaknesses: {weaknesses}"""


def _build_user_prompt(prompt: str, analysis: AnalysisResult) -> str:
    return QUESTIONS_USER_PROMPT_TEMPLATE.format(
        prompt=prompt,
        summary=analysis.summary,
        gaps=", ".join(analysis.gaps) or "None",
        weaknesses=", ".join(analysis.weaknesses) or "None",
    )


def _mock_questions(prompt: str, analysis: AnalysisResult) -> str:
    """Deterministic questions for dev/test mode."""
    questions: List[Dict[str, Any]] = [
        {"id": "audience", "question": "Who is the intended audience for the result?", "type": "text"},
        {
            "id": "format",
            "question": "What output format do you want?",
            "type": "choice",
            "options": ["Bullet points", "Paragraphs", "Table", "Step-by-step list"],
        },
        {"id": "depth", "question": "How in-depth should the response be?", "type": "scale"},
    ]
    if analysis.weaknesses:
        questions.append({
            "id": "constraints",
            "question": "Which constraints apply?",
            "type": "checkbox",
            "options": ["Word limit", "Specific tone", "Cite sources", "Avoid jargon"],
        })
    return json.dumps({"questions": questions})


def _call_llm(client: LLMClient, prompt: str, analysis: AnalysisResult) -> str:
    """
    Single LLM call returning raw content. Mock mode replies with canned questions.
    Isolated so tests can monkeypatch without touching the SDK.
    """
    resp = client.chat(
        messages=[
            {"role": "system", "content": QUESTIONS_SYSTEM_PROMPT},
            {"role": "user", "content": _build_user_prompt(prompt, analysis)},
        ],
        model=client.model_for(STAGE),
        max_tokens=1500,
        temperature=0.2,
        json_mode=True,
        mock_text=_mock_questions(prompt, analysis) if client.mock else None,
    )
    return resp["text"]


def _normalize_questions(raw_items: List[Any]) -> List[Question]:
    questions: List[Question] = []
    seen = set()
    for index, item in enumerate(raw_items):
        if not isinstance(item, dict):
            continue
        item = drop_invalid_properties(item, _ITEM_SCHEMA, STAGE)

        qid = (item.get("id") or "").strip()
        if not qid or qid in seen:
            qid = f"q{index + 1}"
        # the positional id can itself collide with a model-supplied one
        while qid in seen:
            qid = f"{qid}_"
        seen.add(qid)

        qtype = item.get("type")
        if qtype not in _TYPE_VALUES:
            qtype = QuestionType.text.value

        questions.append(Question(
            id=qid,
            question=(item.get("question") or "").strip() or DEFAULT_QUESTION_TEXT,
            type=qtype,
            options=item.get("options") or None,
            required=item.get("required", True),
        ))
    return questions


def generate_questions(client: LLMClient, prompt: str, analysis: AnalysisResult) -> List[Question]:
    """
    Generate follow-up questions for a prompt and its analysis.
    Always returns at least one question; raises UpstreamError when the model
    output is not JSON.
    """
    start = time.time()
    try:
        raw = _call_llm(client, prompt, analysis)
        parsed = parse_json_response(raw, STAGE)
        if isinstance(parsed, list):
            parsed = {"questions": parsed}
        if not isinstance(parsed, dict):
            raise errors.UpstreamError(f"{STAGE}: expected a JSON object, got {type(parsed).__name__}")
    except errors.UpstreamError:
        monitoring.observe_llm_call(start, STAGE, "fail")
        raise
    monitoring.observe_llm_call(start, STAGE, "success")

    raw_items = parsed.get("questions")
    questions = _normalize_questions(raw_items if isinstance(raw_items, list) else [])
    if not questions:
        questions = [Question(id="q1", question=DEFAULT_QUESTION_TEXT, type=QuestionType.text)]
    return questions
