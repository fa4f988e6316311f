# promptcraft/workflow.py
import math
from typing import Dict, List, Optional, Union

from promptcraft import errors, monitoring
from promptcraft.collaborator import PromptCollaborator
from promptcraft.db import EnhancementStore
from promptcraft.schemas import (
    ENHANCED_CLARITY_SCORE, Answer, Enhancement, EnhancementStyle,
    ImprovementSummary, Question, QuestionType,
)

# answer shape expected for each question type
_ANSWER_SHAPES = {
    QuestionType.text: (str,),
    QuestionType.choice: (str,),
    QuestionType.checkbox: (list,),
    QuestionType.scale: (int, float),
}


def _coerce_style(style: Union[str, EnhancementStyle, None]) -> Optional[EnhancementStyle]:
    if style is None:
        return None
    try:
        return EnhancementStyle(style)
    except ValueError:
        raise errors.ValidationError(f"Invalid style: {style}") from None


def improvement_summary(original_prompt: str, enhanced_prompt: str,
                        analysis_clarity: Optional[float]) -> ImprovementSummary:
    original_length = len(original_prompt)
    enhanced_length = len(enhanced_prompt)
    # half-up to two places
    ratio = math.floor(enhanced_length / original_length * 100 + 0.5) / 100 if original_length else 0.0
    return ImprovementSummary(
        original_length=original_length,
        enhanced_length=enhanced_length,
        improvement_ratio=ratio,
        clarity_score=analysis_clarity or 0,
        # constant, not scored
        enhanced_clarity_score=ENHANCED_CLARITY_SCORE,
    )


class EnhancementWorkflow:
    """
    created -> analyzed -> completed.

    start():  create record, analyze, generate questions      (created -> analyzed)
    answer(): validate answers, synthesize, store the result  (analyzed -> completed)
    fetch():  read-only
    """

    def __init__(self, store: EnhancementStore, collaborator: PromptCollaborator):
        self.store = store
        self.collaborator = collaborator

    def start(self, original_prompt: str,
              style: Union[str, EnhancementStyle, None] = None) -> Enhancement:
        if not original_prompt or not original_prompt.strip():
            raise errors.ValidationError("Prompt is required")
        style = _coerce_style(style) or EnhancementStyle.detailed

        record = self.store.create(original_prompt, style)
        log_extra = {"enhancement_id": record.id, "style": style.value}
        monitoring.logger.info("Enhancement created", extra=log_extra)

        # The record stays persisted (unanalyzed) if either call fails
        try:
            analysis = self.collaborator.analyze(original_prompt)
            questions = self.collaborator.generate_questions(original_prompt, analysis)
            if not questions:
                raise errors.UpstreamError("questions: no follow-up questions returned")
        except errors.UpstreamError:
            monitoring.inc_transition("analyze", "fail")
            monitoring.logger.exception("Prompt analysis failed", extra=log_extra)
            raise errors.UpstreamError("Failed to analyze prompt")

        updated = self.store.update(record.id, analysis_results=analysis, follow_up_questions=questions)
        if updated is None:
            raise errors.NotFoundError()
        monitoring.inc_transition("analyze", "success")
        monitoring.logger.info(
            "Enhancement analyzed",
            extra={**log_extra, "clarity_score": analysis.clarity_score, "questions": len(questions)},
        )
        return updated

    def _validate_answers(self, questions: List[Question], answers: List[Answer]):
        by_id: Dict[str, Question] = {q.id: q for q in questions}
        seen = set()
        for a in answers:
            question = by_id.get(a.question_id)
            if question is None:
                raise errors.ValidationError(f"Unknown question id: {a.question_id}")
            if a.question_id in seen:
                raise errors.ValidationError(f"Duplicate answer for question: {a.question_id}")
            seen.add(a.question_id)
            if not isinstance(a.answer, _ANSWER_SHAPES[question.type]):
                raise errors.ValidationError(
                    f"Answer to {a.question_id} does not match question type {question.type.value}"
                )
            if isinstance(a.answer, float) and not math.isfinite(a.answer):
                raise errors.ValidationError(f"Answer to {a.question_id} must be a finite number")
        if len(answers) != len(questions):
            raise errors.ValidationError(
                f"Expected {len(questions)} answers, got {len(answers)}"
            )

    def answer(self, enhancement_id: str, answers: List[Answer],
               style: Union[str, EnhancementStyle, None] = None) -> Enhancement:
        record = self.fetch(enhancement_id)
        if record.follow_up_questions is None:
            raise errors.ValidationError("Enhancement has not been analyzed")
        self._validate_answers(record.follow_up_questions, answers)

        effective_style = _coerce_style(style) or record.style or EnhancementStyle.detailed
        log_extra = {"enhancement_id": record.id, "style": effective_style.value}

        try:
            enhanced = self.collaborator.synthesize(
                record.original_prompt,
                record.analysis_results,
                record.follow_up_questions,
                answers,
                effective_style,
            )
        except errors.UpstreamError:
            monitoring.inc_transition("enhance", "fail")
            monitoring.logger.exception("Prompt synthesis failed", extra=log_extra)
            raise errors.UpstreamError("Failed to enhance prompt")

        clarity = record.analysis_results.clarity_score if record.analysis_results else 0
        summary = improvement_summary(record.original_prompt, enhanced, clarity)

        updated = self.store.update(
            record.id,
            answers=answers,
            enhanced_prompt=enhanced,
            improvement_summary=summary,
            completed=True,
        )
        if updated is None:
            raise errors.NotFoundError()
        monitoring.inc_transition("enhance", "success")
        monitoring.logger.info(
            "Enhancement completed",
            extra={**log_extra, "improvement_ratio": summary.improvement_ratio},
        )
        return updated

    def fetch(self, enhancement_id: str) -> Enhancement:
        record = self.store.get(enhancement_id)
        if record is None:
            raise errors.NotFoundError()
        return record
