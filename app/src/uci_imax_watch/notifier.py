import logging

import requests

from .models import NotifyResult

TELEGRAM_API = "https://api.telegram.org"


class Notifier:
    def send(self, text: str) -> NotifyResult:
        raise NotImplementedError


class NullNotifier(Notifier):
    def send(self, text: str) -> NotifyResult:
        logging.getLogger(__name__).info("notify_skipped reason=not_configured")
        return NotifyResult(delivered=False, detail="not_configured")


class TelegramNotifier(Notifier):
    def __init__(
        self,
        token: str,
        chat_id: str,
        timeout_seconds: float = 10.0,
        session: requests.Session | None = None,
    ) -> None:
        self._url = f"{TELEGRAM_API}/bot{token}/sendMessage"
        self._chat_id = chat_id
        self._timeout = timeout_seconds
        self._session = session or requests.Session()

    def send(self, text: str) -> NotifyResult:
        logger = logging.getLogger(__name__)
        try:
            response = self._session.post(
                self._url,
                json={"chat_id": self._chat_id, "text": text},
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            # The token is part of the URL; log the type only
            logger.warning("notify_failed chat_id=%s error=%s", self._chat_id, type(exc).__name__)
            return NotifyResult(delivered=False, detail=str(type(exc).__name__))
        if response.status_code != 200:
            logger.warning(
                "notify_failed chat_id=%s status=%s body=%s",
                self._chat_id,
                response.status_code,
                response.text[:200],
            )
            return NotifyResult(delivered=False, detail=f"http_{response.status_code}")
        logger.info("notify_sent chat_id=%s", self._chat_id)
        return NotifyResult(delivered=True, detail="ok")


def build_notifier(config, logger: logging.Logger) -> Notifier:
    token = getattr(config, "telegram_bot_token", None)
    chat_id = getattr(config, "telegram_chat_id", None)
    if not token or not chat_id:
        logger.warning("notifier_disabled reason=missing_telegram_credentials")
        return NullNotifier()
    return TelegramNotifier(token, chat_id, config.telegram_timeout_seconds)
