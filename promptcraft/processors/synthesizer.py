# promptcraft/processors/synthesizer.py
import time
from typing import Dict, List, Optional

from promptcraft import errors, monitoring
from promptcraft.llm_wrapper import LLMClient
from promptcraft.processors.response_parsing import strip_fences
from promptcraft.schemas import AnalysisResult, Answer, EnhancementStyle, Question

STAGE = "synthesis"

STYLE_INSTRUCTIONS: Dict[EnhancementStyle, str] = {
    EnhancementStyle.detailed: """The enhanced prompt should be:
- Extremely detailed and comprehensive
- Include all necessary context and background information
- Define clear success criteria and specifications
- Specify all constraints, requirements, and edge cases
- Provide step-by-step guidance when applicable
- Be thorough and leave nothing to interpretation""",

    EnhancementStyle.creative: """The enhanced prompt should be:
- Inspiring and imaginative
- Encourage creative thinking and innovative solutions
- Use vivid, engaging language
- Focus on possibilities and artistic expression
- Allow for multiple interpretations and approaches
- Emphasize originality and unique perspectives""",

    EnhancementStyle.technical: """The enhanced prompt should be:
- Precise and technical in nature
- Include specific technical requirements and constraints
- Use industry-standard terminology and specifications
- Define clear metrics and measurable outcomes
- Focus on implementation details and best practices
- Be structured logically for technical execution""",

    EnhancementStyle.conversational: """The enhanced prompt should be:
- Written in a natural, conversational tone
- Easy to understand and approachable
- Use everyday language while being clear
- Feel like guidance from a helpful colleague
- Be engaging and personable
- Balance clarity with warmth and accessibility""",
}

SYNTHESIS_SYSTEM_PROMPT = """
You are a prompt enhancement expert. Take the original prompt and the user's answers to clarifying questions, then write a comprehensive, well-structured prompt that addresses every identified gap and weakness.
Return only the enhanced prompt text: no preamble, no markdown fences, no explanation.
"""

SYNTHESIS_USER_PROMPT_TEMPLATE = """Style: {style}
{instructions}

Original prompt: "{prompt}"

Analysis issues identified: {gaps}

User's answers to clarifying questions:
{transcript}

Create an enhanced version of this prompt that incorporates all the additional information, addresses the identified issues, and follows the style guidelines above."""


def _answer_text(answer: Answer) -> str:
    if isinstance(answer.answer, list):
        return ", ".join(answer.answer)
    return str(answer.answer)


def build_transcript(questions: Optional[List[Question]], answers: List[Answer]) -> str:
    by_id = {q.id: q.question for q in (questions or [])}
    return "\n\n".join(
        f"Q: {by_id.get(a.question_id, 'Unknown')}\nA: {_answer_text(a)}" for a in answers
    )


def _build_user_prompt(prompt: str, analysis: Optional[AnalysisResult],
                       questions: Optional[List[Question]], answers: List[Answer],
                       style: EnhancementStyle) -> str:
    gaps = ", ".join(analysis.gaps) if analysis and analysis.gaps else "None"
    return SYNTHESIS_USER_PROMPT_TEMPLATE.format(
        style=style.value,
        instructions=STYLE_INSTRUCTIONS[style],
        prompt=prompt,
        gaps=gaps,
        transcript=build_transcript(questions, answers),
    )


def _mock_synthesis(prompt: str, questions: Optional[List[Question]],
                    answers: List[Answer], style: EnhancementStyle) -> str:
    """Deterministic enhanced prompt for dev/test mode."""
    by_id = {q.id: q.question for q in (questions or [])}
    lines = [prompt.strip(), "", f"Write this in a {style.value} style.", "", "Requirements:"]
    for a in answers:
        lines.append(f"- {by_id.get(a.question_id, a.question_id)} {_answer_text(a)}")
    return "\n".join(lines)


def _call_llm(client: LLMClient, prompt: str, analysis: Optional[AnalysisResult],
              questions: Optional[List[Question]], answers: List[Answer],
              style: EnhancementStyle) -> str:
    """
    Single LLM call returning raw content. Mock mode replies with a canned synthesis.
    Isolated so tests can monkeypatch without touching the SDK.
    """
    resp = client.chat(
        messages=[
            {"role": "system", "content": SYNTHESIS_SYSTEM_PROMPT},
            {"role": "user", "content": _build_user_prompt(prompt, analysis, questions, answers, style)},
        ],
        model=client.model_for(STAGE),
        max_tokens=4096,
        temperature=0.7,
        mock_text=_mock_synthesis(prompt, questions, answers, style) if client.mock else None,
    )
    return resp["text"]


def synthesize_prompt(client: LLMClient, prompt: str, analysis: Optional[AnalysisResult],
                      questions: Optional[List[Question]], answers: List[Answer],
                      style: EnhancementStyle = EnhancementStyle.detailed) -> str:
    """
    Merge prompt, analysis and answers into the enhanced prompt text.
    Empty model output falls back to the original prompt; provider errors
    propagate as UpstreamError.
    """
    start = time.time()
    try:
        raw = _call_llm(client, prompt, analysis, questions, answers, EnhancementStyle(style))
    except errors.UpstreamError:
        monitoring.observe_llm_call(start, STAGE, "fail")
        raise
    monitoring.observe_llm_call(start, STAGE, "success")
    return strip_fences(raw or "") or prompt
