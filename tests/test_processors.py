# tests/test_processors.py
"""
Analyzer / question generator / synthesizer parsing and defaults.
The isolated _call_llm functions are monkeypatched, so no SDK is touched.
"""
import json

import pytest

import promptcraft.processors.analyzer as analyzer
import promptcraft.processors.question_generator as qgen
import promptcraft.processors.synthesizer as synth
from promptcraft import errors
from promptcraft.config import LLMSettings
from promptcraft.llm_wrapper import LLMClient
from promptcraft.schemas import AnalysisResult, Answer, EnhancementStyle, Question, QuestionType

ANALYSIS = AnalysisResult(summary="Vague", gaps=["audience", "length"], weaknesses=["no goal"], clarity_score=30)


@pytest.fixture
def live_client():
    return LLMClient(LLMSettings(provider="openai", openai_api_key="sk-test", mock=False))


@pytest.fixture
def mock_client():
    return LLMClient(LLMSettings(mock=True))


# ---------------------------------------------------------------------------
# analyzer
# ---------------------------------------------------------------------------
def test_analysis_parses_fenced_json(monkeypatch, live_client):
    payload = json.dumps({"summary": "Clear enough", "gaps": ["tone"], "weaknesses": [], "clarityScore": 71})
    monkeypatch.setattr(analyzer, "_call_llm", lambda client, prompt: f"```json\n{payload}\n```")
    result = analyzer.analyze_prompt(live_client, "Write a haiku")
    assert result.summary == "Clear enough"
    assert result.gaps == ["tone"]
    assert result.clarity_score == 71


def test_analysis_defaults_missing_and_mistyped_fields(monkeypatch, live_client):
    payload = json.dumps({"gaps": "not-a-list", "clarityScore": "high"})
    monkeypatch.setattr(analyzer, "_call_llm", lambda client, prompt: payload)
    result = analyzer.analyze_prompt(live_client, "Write a haiku")
    assert result.summary == "Unable to analyze prompt"
    assert result.gaps == []
    assert result.weaknesses == []
    assert result.clarity_score == 0


@pytest.mark.parametrize("score,expected", [(-20, 0), (250, 100), (64.5, 64.5)])
def test_analysis_clamps_score(monkeypatch, live_client, score, expected):
    payload = json.dumps({"summary": "s", "gaps": [], "weaknesses": [], "clarityScore": score})
    monkeypatch.setattr(analyzer, "_call_llm", lambda client, prompt: payload)
    assert analyzer.analyze_prompt(live_client, "x").clarity_score == expected


@pytest.mark.parametrize("raw", ["Sorry, I can't help with that.", '["just", "a", "list"]'])
def test_analysis_unusable_output_raises(monkeypatch, live_client, raw):
    monkeypatch.setattr(analyzer, "_call_llm", lambda client, prompt: raw)
    with pytest.raises(errors.UpstreamError):
        analyzer.analyze_prompt(live_client, "Write a haiku")


def test_analysis_mock_mode_is_deterministic(mock_client):
    first = analyzer.analyze_prompt(mock_client, "Write a blog post")
    second = analyzer.analyze_prompt(mock_client, "Write a blog post")
    assert first == second
    assert 0 <= first.clarity_score <= 100
    assert first.gaps


# ---------------------------------------------------------------------------
# question generator
# ---------------------------------------------------------------------------
def test_questions_normalized(monkeypatch, live_client):
    payload = json.dumps({"questions": [
        {"id": "tone", "question": "Which tone?", "type": "choice", "options": ["Formal", "Casual"]},
        {"question": "Anything else?"},                                   # no id, no type
        {"id": "tone", "question": "Duplicate id", "type": "text"},       # duplicate id
        {"id": "len", "question": "How long?", "type": "slider"},         # unknown type
        {"id": "pick", "question": "Pick some", "type": "checkbox"},      # checkbox without options
        {"id": "rate", "question": "Rate it", "type": "scale", "options": ["1", "2"]},
        "not an object",
    ]})
    monkeypatch.setattr(qgen, "_call_llm", lambda client, prompt, analysis: payload)
    questions = qgen.generate_questions(live_client, "Write a haiku", ANALYSIS)

    assert [q.id for q in questions] == ["tone", "q2", "q3", "len", "pick", "rate"]
    assert questions[0].options == ["Formal", "Casual"]
    assert questions[1].type == QuestionType.text
    assert questions[3].type == QuestionType.text
    assert questions[4].type == QuestionType.text and questions[4].options is None
    assert questions[5].type == QuestionType.scale and questions[5].options is None
    assert all(q.required for q in questions)


def test_questions_accept_bare_array(monkeypatch, live_client):
    payload = json.dumps([{"id": "a", "question": "Audience?", "type": "text"}])
    monkeypatch.setattr(qgen, "_call_llm", lambda client, prompt, analysis: payload)
    questions = qgen.generate_questions(live_client, "Write a haiku", ANALYSIS)
    assert [q.id for q in questions] == ["a"]


def test_questions_empty_list_falls_back(monkeypatch, live_client):
    monkeypatch.setattr(qgen, "_call_llm", lambda client, prompt, analysis: '{"questions": []}')
    questions = qgen.generate_questions(live_client, "Write a haiku", ANALYSIS)
    assert len(questions) == 1
    assert questions[0].id == "q1"
    assert questions[0].question == qgen.DEFAULT_QUESTION_TEXT


def test_questions_malformed_output_raises(monkeypatch, live_client):
    monkeypatch.setattr(qgen, "_call_llm", lambda client, prompt, analysis: "no json here")
    with pytest.raises(errors.UpstreamError):
        qgen.generate_questions(live_client, "Write a haiku", ANALYSIS)


def test_question_options_omitted_on_the_wire():
    q = Question(id="q1", question="Audience?", type="text")
    assert "options" not in q.model_dump(mode="json", by_alias=True)


def test_questions_user_prompt_includes_analysis():
    text = qgen._build_user_prompt("Write a haiku", ANALYSIS)
    assert "audience, length" in text
    assert "no goal" in text


# ---------------------------------------------------------------------------
# synthesizer
# ---------------------------------------------------------------------------
QUESTIONS = [
    Question(id="q1", question="Who is it for?", type="text"),
    Question(id="q2", question="Which topics?", type="checkbox", options=["cats", "dogs"]),
]
ANSWERS = [
    Answer(question_id="q1", answer="kids"),
    Answer(question_id="q2", answer=["cats", "dogs"]),
]


def test_synthesis_returns_model_text(monkeypatch, live_client):
    monkeypatch.setattr(synth, "_call_llm", lambda *a: "  A haiku for kids about cats and dogs.  ")
    out = synth.synthesize_prompt(live_client, "Write a haiku", ANALYSIS, QUESTIONS, ANSWERS, "creative")
    assert out == "A haiku for kids about cats and dogs."


def test_synthesis_empty_output_falls_back_to_original(monkeypatch, live_client):
    monkeypatch.setattr(synth, "_call_llm", lambda *a: "")
    out = synth.synthesize_prompt(live_client, "Write a haiku", ANALYSIS, QUESTIONS, ANSWERS)
    assert out == "Write a haiku"


def test_synthesis_provider_error_propagates(monkeypatch, live_client):
    def boom(*a):
        raise errors.UpstreamError("LLM call failed (openai): 500")

    monkeypatch.setattr(synth, "_call_llm", boom)
    with pytest.raises(errors.UpstreamError):
        synth.synthesize_prompt(live_client, "Write a haiku", ANALYSIS, QUESTIONS, ANSWERS)


def test_synthesis_prompt_carries_style_and_transcript():
    text = synth._build_user_prompt("Write a haiku", ANALYSIS, QUESTIONS, ANSWERS, EnhancementStyle.technical)
    assert "Style: technical" in text
    assert synth.STYLE_INSTRUCTIONS[EnhancementStyle.technical] in text
    assert "Q: Who is it for?\nA: kids" in text
    assert "A: cats, dogs" in text
    assert "audience, length" in text


def test_every_style_has_instructions():
    assert set(synth.STYLE_INSTRUCTIONS) == set(EnhancementStyle)


def test_transcript_marks_unknown_questions():
    text = synth.build_transcript(QUESTIONS, [Answer(question_id="zz", answer=3)])
    assert text == "Q: Unknown\nA: 3"


# ---------------------------------------------------------------------------
# schema loading
# ---------------------------------------------------------------------------
def test_load_schema_reads_repo_schemas():
    from promptcraft.processors.response_parsing import load_schema

    schema = load_schema("analysis_response_schema.json", {"type": "object"})
    assert "clarityScore" in schema["properties"]


@pytest.mark.parametrize("contents", [None, "{not json"])
def test_load_schema_falls_back_with_warning(monkeypatch, tmp_path, caplog, contents):
    import logging

    from promptcraft.processors import response_parsing

    if contents is not None:
        (tmp_path / "broken.json").write_text(contents)
    monkeypatch.setattr(response_parsing, "_SCHEMA_DIR", tmp_path)
    fallback = {"type": "object"}

    with caplog.at_level(logging.WARNING, logger="promptcraft"):
        assert response_parsing.load_schema("broken.json", fallback) is fallback
    assert any("Could not load response schema" in r.getMessage() for r in caplog.records)
