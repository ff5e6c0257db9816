from __future__ import annotations

import logging

from aiogram import Router, F
from aiogram.exceptions import TelegramBadRequest
from aiogram.filters import Command
from aiogram.fsm.context import FSMContext
from aiogram.types import Message, CallbackQuery

from .keyboards import main_menu_kb, section_auth_kb
from .service import BotService
from .states import LoginState

router = Router()
logger = logging.getLogger(__name__)

HELP_TEXT = (
    "👋 Привет! Я — бот твоего кошелька.\n\n"
    "Навигация:\n"
    "• /menu — открыть меню\n"
    "• /help — помощь\n"
    "• /me — статус\n"
)

MENU_COMMANDS = {
    "👛 Кошельки": "/wallets",
    "📊 Сводка": "/dashboard",
    "💸 Операции": "/transactions",
    "🎯 Цели": "/goals",
    "🧾 Чеки": "/pending",
}


async def _send(msg: Message, svc: BotService, text: str):
    chat_id = msg.chat.id
    try:
        resp = await svc.handle(chat_id, text)

        if not resp:
            await msg.answer("✅ Готово.")
            return

        await msg.answer("\n".join(resp))

    except Exception as e:
        logger.exception("Command failed. chat_id=%s cmd=%r error=%s", chat_id, text.split()[0] if text else "", e)
        await msg.answer("⚠️ Ошибка сервиса. Попробуй ещё раз чуть позже.")


# ========= MAIN MENU =========

@router.message(Command("start"))
@router.message(Command("menu"))
async def start_menu(m: Message):
    await m.answer("Главное меню:", reply_markup=main_menu_kb())


@router.message(Command("help"))
@router.message(F.text == "ℹ️ Помощь")
async def help_menu(m: Message):
    await m.answer(HELP_TEXT)


@router.message(F.text.in_(MENU_COMMANDS))
async def menu_section(m: Message, svc: BotService):
    await _send(m, svc, MENU_COMMANDS[m.text])


@router.message(F.text == "🔐 Авторизация")
async def menu_auth(m: Message):
    await m.answer("Раздел: Авторизация", reply_markup=section_auth_kb())


@router.callback_query(F.data == "back:main")
async def back_main(c: CallbackQuery):
    await c.answer()
    await c.message.answer("Главное меню:", reply_markup=main_menu_kb())


# ========= AUTH =========

@router.callback_query(F.data == "auth:login")
async def auth_login(c: CallbackQuery, state: FSMContext):
    await c.answer()
    await state.set_state(LoginState.waiting_email)
    await c.message.answer("Введи email:")


@router.callback_query(F.data == "auth:me")
async def auth_me(c: CallbackQuery, svc: BotService):
    await c.answer()
    await _send(c.message, svc, "/me")


@router.callback_query(F.data == "auth:logout")
async def auth_logout(c: CallbackQuery, state: FSMContext, svc: BotService):
    await c.answer()
    await state.clear()
    await _send(c.message, svc, "/logout")


@router.message(LoginState.waiting_email)
async def login_email(m: Message, state: FSMContext):
    email = (m.text or "").strip()
    if "@" not in email or " " in email:
        await m.answer("Это не похоже на email. Введи ещё раз:")
        return
    await state.update_data(email=email)
    await state.set_state(LoginState.waiting_password)
    await m.answer("Введи пароль:")


@router.message(LoginState.waiting_password)
async def login_password(m: Message, state: FSMContext, svc: BotService):
    data = await state.get_data()
    await state.clear()
    password = (m.text or "").strip()
    try:
        await m.delete()
    except TelegramBadRequest:
        logger.info("Could not delete password message in chat_id=%s", m.chat.id)
    await _send(m, svc, f"/login {data.get('email', '')} {password}")


# ========= fallback =========

@router.message(F.text.startswith("/"))
async def manual_command(m: Message, svc: BotService):
    await _send(m, svc, m.text)


@router.message()
async def any_text_fallback(m: Message):
    await m.answer("Я понимаю только команды и кнопки меню 🙂\nОткрой /menu")
