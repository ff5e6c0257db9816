from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from whclient.api_client import ApiClient
from whclient.auth_client import AuthClient
from whclient.finance_client import FinanceClient, format_currency
from whclient.models import ApiResponse

logger = logging.getLogger(__name__)

ClientFactory = Callable[[int], ApiClient]

LOGIN_HINT = "Войти: /login <email> <пароль>"
EXPIRED_NOTICE = "⏳ Сессия истекла. Войди заново: /login <email> <пароль>"


def _cmd(text: str) -> str:
    t = (text or "").strip()
    if not t.startswith("/"):
        return ""
    return t.split()[0].lower()


def _money(amount: Any, currency: Optional[str]) -> str:
    try:
        return format_currency(float(amount or 0), code=currency)
    except (TypeError, ValueError):
        return f"{amount} {currency or ''}".strip()


@dataclass
class ChatSession:
    api: ApiClient
    auth: AuthClient
    finance: FinanceClient
    unsubscribe: Callable[[], None] = field(default=lambda: None)


class BotService:
    """Chat commands on top of one ApiClient per chat.

    Each chat's client has its own credential namespace and its own
    session-expired listener; when it fires the chat session is dropped and a
    notice waits in the outbox for the next tick.
    """

    def __init__(self, client_factory: ClientFactory):
        self.client_factory = client_factory
        self.sessions: Dict[int, ChatSession] = {}
        self.outbox: List[Dict[str, Any]] = []

    def session(self, chat_id: int) -> ChatSession:
        s = self.sessions.get(chat_id)
        if s is None:
            api = self.client_factory(chat_id)
            s = ChatSession(api=api, auth=AuthClient(api), finance=FinanceClient(api))
            s.unsubscribe = api.on_session_expired(lambda: self._session_expired(chat_id))
            self.sessions[chat_id] = s
        return s

    def _session_expired(self, chat_id: int) -> None:
        logger.info("Session expired for chat_id=%s", chat_id)
        s = self.sessions.pop(chat_id, None)
        if s is not None:
            s.unsubscribe()
        self.outbox.append({"chat_id": chat_id, "message": EXPIRED_NOTICE})

    async def tick_notifications(self) -> List[Dict[str, Any]]:
        items, self.outbox = self.outbox, []
        return items

    async def handle(self, chat_id: int, text: str) -> List[str]:
        text = (text or "").strip()
        cmd = _cmd(text)
        args = text.split()[1:]
        s = self.session(chat_id)

        if cmd in ("/start", "/menu", "/help"):
            return [
                "Доступные команды:",
                "/login <email> <пароль>",
                "/me — статус",
                "/wallets, /balance <id>, /dashboard",
                "/transactions, /goals, /pending",
                "/logout",
            ]

        if cmd == "/login":
            if len(args) < 2:
                return [LOGIN_HINT]
            res = await s.auth.sign_in(args[0], args[1])
            if not res.success:
                return [f"❌ {res.message or 'Не удалось войти'}"]
            user = await s.api.store.get_user_data()
            name = user.user_name if user else args[0]
            return [f"✅ Вы авторизованы, {name}!", "Команды: /wallets, /dashboard, /help"]

        if cmd == "/logout":
            # stop listening first so a failed server sign-out does not queue an expiry notice
            self.sessions.pop(chat_id, None)
            s.unsubscribe()
            await s.auth.sign_out()
            return ["Сеанс завершён."]

        if cmd == "/me":
            if not await s.auth.is_signed_in():
                return ["Статус: Не авторизован.", LOGIN_HINT]
            user = await s.api.store.get_user_data()
            if user:
                return ["Статус: Авторизован ✅", f"Имя: {user.user_name}", f"Email: {user.email or '-'}"]
            return ["Статус: Авторизован ✅"]

        if cmd == "/wallets":
            return self._render(await s.finance.wallets_list(), self._fmt_wallets)
        if cmd == "/balance":
            if not args:
                return ["Использование: /balance <id кошелька>"]
            return self._render(await s.finance.wallet_balance(args[0]), self._fmt_balance)
        if cmd == "/dashboard":
            return self._render(await s.finance.dashboard_summary(), self._fmt_summary)
        if cmd == "/transactions":
            return self._render(await s.finance.transactions_list(page=1, limit=10), self._fmt_transactions)
        if cmd == "/goals":
            return self._render(await s.finance.goals_list(), self._fmt_goals)
        if cmd == "/pending":
            return self._render(await s.finance.ocr_pending(), self._fmt_pending)

        if cmd:
            return ["Неизвестная команда.", "Открой /help"]
        return ["Я понимаю только команды и кнопки меню 🙂", "Открой /menu"]

    def _render(self, res: ApiResponse, fmt: Callable[[Any], List[str]]) -> List[str]:
        if res.needs_login:
            return ["🔒 Ты не авторизован.", LOGIN_HINT]
        if not res.success:
            return [f"⚠️ {res.message or 'Ошибка сервиса'}"]
        return fmt(res.data) or ["Пусто."]

    @staticmethod
    def _fmt_wallets(data: Any) -> List[str]:
        wallets = (data or {}).get("wallets") or []
        return [f"#{w.get('id')} {w.get('name')}: {_money(w.get('balance'), w.get('currency'))}" for w in wallets]

    @staticmethod
    def _fmt_balance(data: Any) -> List[str]:
        data = data or {}
        return [
            f"Кошелёк #{data.get('wallet_id')}",
            f"Баланс: {_money(data.get('current_balance'), data.get('currency'))}",
            f"Операций: {data.get('transaction_count', 0)}",
        ]

    @staticmethod
    def _fmt_summary(data: Any) -> List[str]:
        data = (data or {}).get("summary", data) or {}
        return [f"{k}: {v}" for k, v in data.items() if not isinstance(v, (dict, list))]

    @staticmethod
    def _fmt_transactions(data: Any) -> List[str]:
        txs = (data or {}).get("transactions") or []
        return [
            f"{t.get('date', '')} {t.get('name') or t.get('type', '')}: {_money(t.get('amount'), t.get('currency'))}".strip()
            for t in txs
        ]

    @staticmethod
    def _fmt_goals(data: Any) -> List[str]:
        goals = (data or {}).get("goals") or []
        return [f"🎯 {g.get('name')}: {g.get('current_amount', 0)}/{g.get('target_amount', 0)}" for g in goals]

    @staticmethod
    def _fmt_pending(data: Any) -> List[str]:
        data = data or {}
        return [f"Чеков в обработке: {data.get('count', 0)}"]
