from aiogram.types import ReplyKeyboardMarkup, KeyboardButton

NPS_REPORT = "📊 NPS report"
CODES_LIST = "📋 Generated codes"
EXCEL_EXPORT = "📥 Responses Excel"
BACKUP = "💾 Database backup"

admin_kb = ReplyKeyboardMarkup(
    keyboard=[
        [
            KeyboardButton(text=NPS_REPORT),
            KeyboardButton(text=CODES_LIST)
        ],
        [
            KeyboardButton(text=EXCEL_EXPORT),
            KeyboardButton(text=BACKUP)
        ]
    ],
    resize_keyboard=True
)
