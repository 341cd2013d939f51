import json
import logging
from pathlib import Path
from typing import Callable, Optional

from config import settings

logger = logging.getLogger(__name__)

CredentialListener = Callable[[str], None]


class CredentialService:
    """
    Holds the user's OpenAI API key.

    The key lives in memory and is mirrored to a small JSON file on this
    machine so it survives a page reload. Listeners are called with the new
    value whenever it changes.
    """

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path or settings.credential_file)
        self._listeners: list[CredentialListener] = []
        self._value = self._load()

    def _load(self) -> str:
        """Read the stored key, tolerating a missing or corrupt file."""
        try:
            if self.path.exists():
                with open(self.path, 'r') as f:
                    data = json.load(f)
                return str(data.get("api_key", "")).strip()
        except Exception as e:
            logger.error(f"Failed to load stored API key: {e}")
        return ""

    def _persist(self, value: str) -> None:
        try:
            if value:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                with open(self.path, 'w') as f:
                    json.dump({"api_key": value}, f)
            elif self.path.exists():
                self.path.unlink()
        except Exception as e:
            logger.error(f"Failed to store API key: {e}")
            raise RuntimeError(f"Could not save API key: {str(e)}")

    def get(self) -> str:
        """Current key, or an empty string when none is set."""
        return self._value

    def set(self, api_key: Optional[str]) -> str:
        """
        Store a new key. A blank value clears it.

        The key only becomes current once it is saved; if saving fails the
        previous key stays in effect and RuntimeError is raised.
        """
        value = (api_key or "").strip()
        if value == self._value:
            return value
        self._persist(value)
        self._value = value
        logger.info("API key cleared" if not value else "API key updated")
        self._notify()
        return value

    def clear(self) -> None:
        self.set("")

    @property
    def configured(self) -> bool:
        return bool(self._value)

    def masked(self) -> Optional[str]:
        """Key with all but the prefix and last four characters hidden."""
        if not self._value:
            return None
        if len(self._value) <= 8:
            return "*" * len(self._value)
        return f"{self._value[:3]}...{self._value[-4:]}"

    def subscribe(self, listener: CredentialListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self._value)
            except Exception as e:
                logger.error(f"Credential listener failed: {e}")
