import logging
import random
from typing import Optional

from quiz_sensei.ai_engine import CompletionGateway
from quiz_sensei.schemas.deep_dive import DeepDiveRequest, DeepDiveResult
from quiz_sensei.schemas.quiz import QuestionSet, QuestionsRequest, QuestionType
from quiz_sensei.schemas.title import TitleRequest, TitleResult
from quiz_sensei.services.post_processing import shuffle_answers, shuffle_markdown_choices
from quiz_sensei.services.prompts import (
    PromptPolicy,
    build_deep_dive_prompt,
    build_questions_prompt,
    build_title_prompt,
)

logger = logging.getLogger(__name__)

TITLE_TEMPERATURE = 0.7
QUESTIONS_TEMPERATURE = 0.7
QUESTIONS_MAX_TOKENS = 2000


# ── Title ────────────────────────────────────────────────────────────────────

async def generate_title(gateway: CompletionGateway, request: TitleRequest) -> Optional[TitleResult]:
    """Generate a short title and description in the language of the input."""
    logger.info(f"[TITLE] Starting: {len(request.user_input)} chars")
    prompt = build_title_prompt(request)
    result = await gateway.complete(
        prompt.system, prompt.user, TitleResult, temperature=TITLE_TEMPERATURE
    )
    if result is not None:
        logger.info("[TITLE] ✓ Generated")
    return result


# ── Questions ────────────────────────────────────────────────────────────────

async def generate_questions(
    gateway: CompletionGateway,
    request: QuestionsRequest,
    policy: PromptPolicy,
    rng: Optional[random.Random] = None,
) -> Optional[QuestionSet]:
    """
    Generate a question set. Multiple-choice answers are shuffled so the
    correct option does not sit where the model tends to put it.
    """
    logger.info(
        f"[QUESTIONS] Starting: {request.question_amount} {request.type.value} "
        f"questions, difficulty={request.difficulty.value}, policy={policy.value}"
    )
    prompt = build_questions_prompt(request, policy)
    result = await gateway.complete(
        prompt.system,
        prompt.user,
        QuestionSet,
        temperature=QUESTIONS_TEMPERATURE,
        max_tokens=QUESTIONS_MAX_TOKENS,
    )
    if result is None:
        return None

    if request.type == QuestionType.multiple_choice:
        result = shuffle_answers(result, rng)

    logger.info(f"[QUESTIONS] ✓ Generated {len(result.questions)} questions")
    return result


# ── Deep Dive ────────────────────────────────────────────────────────────────

async def generate_deep_dive(
    gateway: CompletionGateway,
    request: DeepDiveRequest,
    policy: PromptPolicy,
    shuffle_choices: bool = True,
    rng: Optional[random.Random] = None,
) -> Optional[DeepDiveResult]:
    """
    Generate a markdown explanation. Only the kuwait-curriculum prompt asks for
    review questions with lettered choices, so only its output is shuffled;
    lettered lists in other explanations are ordered steps.
    """
    logger.info(f"[DEEP-DIVE] Starting: {len(request.question)} chars, policy={policy.value}")
    prompt = build_deep_dive_prompt(request, policy)
    result = await gateway.complete(prompt.system, prompt.user, DeepDiveResult)
    if result is None:
        return None

    if shuffle_choices and policy == PromptPolicy.kuwait_curriculum:
        result = DeepDiveResult(markdown=shuffle_markdown_choices(result.markdown, rng))

    logger.info(f"[DEEP-DIVE] ✓ Generated {len(result.markdown)} chars of markdown")
    return result
