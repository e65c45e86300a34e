from aiogram.utils.keyboard import InlineKeyboardBuilder
from aiogram.types import InlineKeyboardMarkup, InlineKeyboardButton

from npsbot.use_cases.survey import MIN_SCORE, MAX_SCORE

BACK_BUTTON = InlineKeyboardButton(text="⬅️ Back", callback_data="survey:back")

def welcome_kb() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[
        [InlineKeyboardButton(text="▶️ Start", callback_data="survey:start")]
    ])

def score_kb() -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    for score in range(MIN_SCORE, MAX_SCORE + 1):
        builder.button(text=str(score), callback_data=f"score:{score}")
    builder.adjust(5)
    builder.row(BACK_BUTTON)
    return builder.as_markup()

def back_kb() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[[BACK_BUTTON]])

def publish_kb() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[
        [
            InlineKeyboardButton(text="✅ Yes", callback_data="publish:yes"),
            InlineKeyboardButton(text="❌ No", callback_data="publish:no")
        ],
        [BACK_BUTTON]
    ])

def summary_kb() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[
        [InlineKeyboardButton(text="📨 Send answers", callback_data="survey:submit")],
        [BACK_BUTTON]
    ])
