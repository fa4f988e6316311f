"""
Shared fixtures. Environment is pinned before any promptcraft import so the
cached settings never point at a real provider or database.
"""
import os

os.environ["MOCK_LLM"] = "true"
os.environ["MOCK_AUTH"] = "true"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("LOG_AS_JSON", "false")

import datetime
from typing import List, Optional

import pytest

from promptcraft import db as dbmod
from promptcraft import errors
from promptcraft.collaborator import PromptCollaborator
from promptcraft.schemas import AnalysisResult, Answer, EnhancementStyle, Question


class FakeCollaborator(PromptCollaborator):
    """Canned LLM capabilities; flip the fail_* flags to simulate provider errors."""

    def __init__(self):
        self.clarity_score = 42
        self.questions = [
            Question(id="q1", question="Who is the audience?", type="text"),
            Question(id="q2", question="Which format?", type="choice", options=["List", "Prose"]),
            Question(id="q3", question="How detailed?", type="scale"),
        ]
        self.enhanced_text = "Write a friendly two-paragraph summary of the report for new engineers."
        self.fail_analyze = False
        self.fail_questions = False
        self.fail_synthesize = False
        self.synthesize_calls = []

    def analyze(self, prompt_text: str) -> AnalysisResult:
        if self.fail_analyze:
            raise errors.UpstreamError("analysis: provider timeout")
        return AnalysisResult(
            summary="Too vague.",
            gaps=["audience", "format"],
            weaknesses=["no success criteria"],
            clarity_score=self.clarity_score,
        )

    def generate_questions(self, prompt_text: str, analysis: AnalysisResult) -> List[Question]:
        if self.fail_questions:
            raise errors.UpstreamError("questions: bad json")
        return list(self.questions)

    def synthesize(self, prompt_text: str, analysis: Optional[AnalysisResult],
                   questions: Optional[List[Question]], answers: List[Answer],
                   style: EnhancementStyle) -> str:
        self.synthesize_calls.append({"prompt": prompt_text, "answers": answers, "style": style})
        if self.fail_synthesize:
            raise errors.UpstreamError("synthesis: 503")
        return self.enhanced_text


@pytest.fixture
def answers_payload():
    """One well-shaped answer per default fake question."""
    return [
        {"questionId": "q1", "answer": "new engineers"},
        {"questionId": "q2", "answer": "Prose"},
        {"questionId": "q3", "answer": 4},
    ]


@pytest.fixture
def ticking_clock(monkeypatch):
    """Each created record is one second newer than the previous one."""
    from promptcraft import models

    state = {"now": datetime.datetime(2025, 1, 1, 12, 0, 0)}

    def fake_utcnow():
        state["now"] += datetime.timedelta(seconds=1)
        return state["now"]

    monkeypatch.setattr(models, "utcnow", fake_utcnow)


@pytest.fixture
def db_url(tmp_path):
    url = f"sqlite:///{tmp_path / 'promptcraft_test.db'}"
    dbmod.reconfigure(url)
    dbmod.init_db()
    yield url


@pytest.fixture
def store(db_url):
    return dbmod.EnhancementStore()


@pytest.fixture
def fake_collaborator():
    return FakeCollaborator()


@pytest.fixture
def workflow(store, fake_collaborator):
    from promptcraft.workflow import EnhancementWorkflow
    return EnhancementWorkflow(store, fake_collaborator)


@pytest.fixture
def client(db_url, fake_collaborator, monkeypatch):
    from fastapi.testclient import TestClient
    from promptcraft import app as app_module

    monkeypatch.setattr(app_module.workflow, "collaborator", fake_collaborator)
    return TestClient(app_module.app)
