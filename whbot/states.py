from aiogram.fsm.state import State, StatesGroup


class LoginState(StatesGroup):
    waiting_email = State()
    waiting_password = State()
