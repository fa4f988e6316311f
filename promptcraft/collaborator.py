# promptcraft/collaborator.py
from abc import ABC, abstractmethod
from typing import List, Optional

# Import modules (not bare functions) so monkeypatching in tests works correctly
import promptcraft.processors.analyzer as _analyzer
import promptcraft.processors.question_generator as _question_generator
import promptcraft.processors.synthesizer as _synthesizer
from promptcraft.llm_wrapper import LLMClient
from promptcraft.schemas import AnalysisResult, Answer, EnhancementStyle, Question


class PromptCollaborator(ABC):
    """The three LLM capabilities the enhancement workflow depends on."""

    @abstractmethod
    def analyze(self, prompt_text: str) -> AnalysisResult:
        ...

    @abstractmethod
    def generate_questions(self, prompt_text: str, analysis: AnalysisResult) -> List[Question]:
        ...

    @abstractmethod
    def synthesize(self, prompt_text: str, analysis: Optional[AnalysisResult],
                   questions: Optional[List[Question]], answers: List[Answer],
                   style: EnhancementStyle) -> str:
        ...


class LLMCollaborator(PromptCollaborator):
    def __init__(self, client: LLMClient):
        self.client = client

    def analyze(self, prompt_text: str) -> AnalysisResult:
        return _analyzer.analyze_prompt(self.client, prompt_text)

    def generate_questions(self, prompt_text: str, analysis: AnalysisResult) -> List[Question]:
        return _question_generator.generate_questions(self.client, prompt_text, analysis)

    def synthesize(self, prompt_text, analysis, questions, answers, style):
        return _synthesizer.synthesize_prompt(self.client, prompt_text, analysis, questions, answers, style)
