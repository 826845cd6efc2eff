"""Recipient lookup backed by the users section of the application config."""

from typing import Optional

from ratingtracker.config import AppConfig
from ratingtracker.notify.base import MessageKind, RecipientDirectory


class ConfigRecipientDirectory(RecipientDirectory):
    def __init__(self, config: AppConfig):
        self._users = config.users
        self._watchlists = config.watchlists

    def read_message_recipients(self, kind: MessageKind, ticker: Optional[str] = None) -> list[str]:
        kind = MessageKind(kind)
        recipients = []
        for user in self._users:
            if kind.value not in user.subscriptions:
                continue
            if kind is MessageKind.STOCK_UPDATE and ticker is not None:
                if not self._is_subscribed(user.tickers, user.watchlists, ticker):
                    continue
            recipients.append(user.phone)
        return list(dict.fromkeys(recipients))

    def _is_subscribed(self, tickers: list[str], watchlists: list[str], ticker: str) -> bool:
        if ticker in tickers:
            return True
        return any(ticker in self._watchlists.get(name, []) for name in watchlists)
