import logging
from typing import Any, Optional, Union

from aiogram import Router, F
from aiogram.filters import CommandStart, CommandObject
from aiogram.fsm.context import FSMContext
from aiogram.types import Message, CallbackQuery, InlineKeyboardMarkup

from npsbot.domain.entities import SurveySession
from npsbot.domain.enums import QuestionId, SurveyStage, TERMINAL_STAGES
from npsbot.domain.exceptions import (
    CodeNotFound,
    InvalidTransitionError,
    StepValidationError,
    SurveyCompletionError,
)
from npsbot.presentation.keyboards.survey import back_kb, publish_kb, score_kb, summary_kb, welcome_kb
from npsbot.presentation.states import STAGE_STATES, SurveySG
from npsbot.use_cases.survey import SurveyStateMachine, progress
from npsbot.utils.formatters import format_answer, format_progress

logger = logging.getLogger(__name__)

router = Router()

QUESTIONS = {
    QuestionId.RECOMMEND_SCORE: "How likely are you to recommend us to a friend, colleague, or another company?",
    QuestionId.RECOMMEND_REASON: "What is the main reason for giving this score?",
    QuestionId.REHIRE_SCORE: "How likely are you to hire a new service from us?",
    QuestionId.TESTIMONIAL: "Leave your testimonial about your experience working with us.",
    QuestionId.CAN_PUBLISH: "Thank you for your testimonial! May we publish it on our website and social media?",
}

STAGE_QUESTIONS = {
    SurveyStage.RECOMMEND: QuestionId.RECOMMEND_SCORE,
    SurveyStage.REASON: QuestionId.RECOMMEND_REASON,
    SurveyStage.REHIRE: QuestionId.REHIRE_SCORE,
    SurveyStage.TESTIMONIAL: QuestionId.TESTIMONIAL,
    SurveyStage.PUBLISH: QuestionId.CAN_PUBLISH,
}

STAGE_KEYBOARDS = {
    SurveyStage.RECOMMEND: score_kb,
    SurveyStage.REASON: back_kb,
    SurveyStage.REHIRE: score_kb,
    SurveyStage.TESTIMONIAL: back_kb,
    SurveyStage.PUBLISH: publish_kb,
}

ASK_CODE_TEXT = "🔑 Please enter the survey code you received:"
INVALID_CODE_TEXT = (
    "❌ <b>Invalid code.</b>\n\n"
    "We could not find this code. Check it and send it again."
)
EXPIRED_TEXT = "Your survey session has expired. Send /start to begin again."


async def load_session(state: FSMContext) -> Optional[SurveySession]:
    data = await state.get_data()
    raw = data.get("survey")
    return SurveySession.from_dict(raw) if raw else None


async def save_session(state: FSMContext, session: SurveySession) -> None:
    if session.stage in TERMINAL_STAGES:
        await state.clear()
        return
    await state.update_data(survey=session.to_dict())
    await state.set_state(STAGE_STATES[session.stage])


def render(session: SurveySession) -> tuple[str, Optional[InlineKeyboardMarkup]]:
    stage = session.stage

    if stage == SurveyStage.WELCOME:
        text = (
            "👋 <b>Your opinion is very important to us</b>\n\n"
            "Participate in our satisfaction survey. It's just 5 questions."
        )
        return text, welcome_kb()

    if stage in STAGE_QUESTIONS:
        question_id = STAGE_QUESTIONS[stage]
        step, total = progress(stage)
        text = f"{format_progress(step, total)}\n\n<b>{QUESTIONS[question_id]}</b>"
        if question_id in (QuestionId.RECOMMEND_SCORE, QuestionId.REHIRE_SCORE):
            text += "\n\n1 - Not likely · 10 - Very likely"
        previous = session.answers.get(question_id.value)
        if previous is not None:
            text += f"\n\n<i>Your current answer:</i> {format_answer(previous)}"
        return text, STAGE_KEYBOARDS[stage]()

    if stage == SurveyStage.SUMMARY:
        lines = ["📝 <b>Your answers</b>\n"]
        for question_id, question in QUESTIONS.items():
            lines.append(f"<b>{question}</b>\n{format_answer(session.answers.get(question_id.value))}\n")
        return "\n".join(lines), summary_kb()

    if stage == SurveyStage.THANK_YOU:
        return "🙏 <b>Thank you!</b>\n\nYour answers were sent successfully.", None

    return (
        "🔒 <b>This code has already been used.</b>\n\n"
        "Each survey code can be answered only once. Thank you for your participation!",
        None
    )


async def show(message: Message, session: SurveySession) -> None:
    text, keyboard = render(session)
    await message.answer(text, parse_mode="HTML", reply_markup=keyboard)


async def enter_code(message: Message, state: FSMContext, survey_machine: SurveyStateMachine, code: str) -> None:
    try:
        session = await survey_machine.enter(code)
    except CodeNotFound:
        logger.info(f"Rejected unknown survey code from user {message.from_user.id}")
        await state.set_state(SurveySG.wait_code)
        await message.answer(INVALID_CODE_TEXT, parse_mode="HTML")
        return
    await save_session(state, session)
    await show(message, session)


async def step(
    event: Union[Message, CallbackQuery],
    state: FSMContext,
    survey_machine: SurveyStateMachine,
    value: Any = None,
    backward: bool = False,
) -> None:
    message = event if isinstance(event, Message) else event.message
    session = await load_session(state)
    if session is None:
        await message.answer(EXPIRED_TEXT)
        return

    try:
        if backward:
            await survey_machine.back(session)
        else:
            await survey_machine.advance(session, value)
    except StepValidationError as e:
        await message.answer(f"⚠️ {e.message}")
        return
    except SurveyCompletionError:
        await message.answer(
            "⚠️ <b>We could not send your answers.</b>\n\nPlease try again.",
            parse_mode="HTML",
            reply_markup=summary_kb()
        )
        return
    except InvalidTransitionError as e:
        logger.warning(f"Ignored transition for code {session.code}: {e}")
        return

    await save_session(state, session)
    await show(message, session)


@router.message(CommandStart())
async def cmd_start(message: Message, command: CommandObject, state: FSMContext, survey_machine: SurveyStateMachine):
    await state.clear()
    # Deep link t.me/<bot>?start=<code> pre-fills the code; it is checked like a typed one
    if command.args:
        await enter_code(message, state, survey_machine, command.args)
        return
    await state.set_state(SurveySG.wait_code)
    await message.answer(ASK_CODE_TEXT)


@router.message(SurveySG.wait_code, F.text)
async def on_code(message: Message, state: FSMContext, survey_machine: SurveyStateMachine):
    await enter_code(message, state, survey_machine, message.text)


@router.callback_query(SurveySG.welcome, F.data == "survey:start")
async def on_start_survey(callback: CallbackQuery, state: FSMContext, survey_machine: SurveyStateMachine):
    await callback.answer()
    await step(callback, state, survey_machine)


@router.callback_query(F.data.startswith("score:"), SurveySG.recommend)
@router.callback_query(F.data.startswith("score:"), SurveySG.rehire)
async def on_score(callback: CallbackQuery, state: FSMContext, survey_machine: SurveyStateMachine):
    await callback.answer()
    # Selecting a score commits it; there is no separate confirmation
    await step(callback, state, survey_machine, callback.data.split(":")[1])


@router.message(SurveySG.reason)
@router.message(SurveySG.testimonial)
async def on_text_answer(message: Message, state: FSMContext, survey_machine: SurveyStateMachine):
    await step(message, state, survey_machine, message.text or "")


@router.callback_query(SurveySG.publish, F.data.startswith("publish:"))
async def on_publish(callback: CallbackQuery, state: FSMContext, survey_machine: SurveyStateMachine):
    await callback.answer()
    await step(callback, state, survey_machine, callback.data.split(":")[1])


@router.callback_query(SurveySG.summary, F.data == "survey:submit")
async def on_submit(callback: CallbackQuery, state: FSMContext, survey_machine: SurveyStateMachine):
    await callback.answer()
    await step(callback, state, survey_machine)


@router.callback_query(F.data == "survey:back")
async def on_back(callback: CallbackQuery, state: FSMContext, survey_machine: SurveyStateMachine):
    await callback.answer()
    await step(callback, state, survey_machine, backward=True)
