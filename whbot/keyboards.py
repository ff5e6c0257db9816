from aiogram.types import ReplyKeyboardMarkup, KeyboardButton, InlineKeyboardMarkup
from aiogram.utils.keyboard import InlineKeyboardBuilder


def main_menu_kb() -> ReplyKeyboardMarkup:
    return ReplyKeyboardMarkup(
        keyboard=[
            [KeyboardButton(text="👛 Кошельки"), KeyboardButton(text="📊 Сводка")],
            [KeyboardButton(text="💸 Операции"), KeyboardButton(text="🎯 Цели")],
            [KeyboardButton(text="🧾 Чеки"), KeyboardButton(text="🔐 Авторизация")],
            [KeyboardButton(text="ℹ️ Помощь")],
        ],
        resize_keyboard=True,
    )


def section_auth_kb() -> InlineKeyboardMarkup:
    b = InlineKeyboardBuilder()
    b.button(text="Войти", callback_data="auth:login")
    b.button(text="Статус", callback_data="auth:me")
    b.button(text="Выйти", callback_data="auth:logout")
    b.button(text="⬅️ Назад", callback_data="back:main")
    b.adjust(1)
    return b.as_markup()
