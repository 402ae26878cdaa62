"""Password-encrypted local store for favourites, holdings, alerts and settings.

The whole store is one JSON document encrypted with Fernet. The Fernet key is
derived from the user's password with PBKDF2-HMAC-SHA256 and a random salt
kept in clear text next to the token, so the password itself is never stored.
"""

import base64
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from ..core.errors import StoreAuthenticationError, StoreError
from .models import AlertDirection, Holding, PriceAlert

logger = logging.getLogger(__name__)

STORE_VERSION = 1
DEFAULT_ITERATIONS = 480_000
SALT_BYTES = 16


def derive_key(password: str, salt: bytes, iterations: int) -> bytes:
    """Derive a Fernet key from a password.

    Args:
        password: User password
        salt: Per-store random salt
        iterations: PBKDF2 iteration count

    Returns:
        URL-safe base64 encoded 32 byte key
    """
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt,
        iterations=iterations,
    )
    return base64.urlsafe_b64encode(kdf.derive(password.encode("utf-8")))


def _empty_tables() -> Dict[str, Any]:
    return {"favourites": [], "holdings": {}, "alerts": [], "settings": {}}


class SecureStore:
    """Encrypted key-value tables persisted to a single file.

    Every mutating call rewrites the file before returning. The class is not
    thread-safe; ``SessionStore`` serializes access to it.
    """

    def __init__(self, path: Path, fernet: Fernet, salt: bytes, iterations: int,
                 tables: Dict[str, Any]):
        self.path = path
        self._fernet = fernet
        self._salt = salt
        self._iterations = iterations
        self._tables = tables

    @staticmethod
    def exists(path: Union[str, Path]) -> bool:
        """Check whether a store file is present at ``path``."""
        return Path(path).exists()

    @classmethod
    def open(cls, path: Union[str, Path], password: str,
             iterations: int = DEFAULT_ITERATIONS) -> 'SecureStore':
        """Open the store at ``path``, creating it when absent.

        Args:
            path: Store file location
            password: Password the key is derived from
            iterations: PBKDF2 iterations for a newly created store

        Returns:
            Unlocked store

        Raises:
            StoreAuthenticationError: If the password is wrong or the file is corrupted
            StoreError: If the file cannot be read or created
        """
        path = Path(path)

        if not path.exists():
            salt = os.urandom(SALT_BYTES)
            fernet = Fernet(derive_key(password, salt, iterations))
            store = cls(path, fernet, salt, iterations, _empty_tables())
            store._write()
            logger.info(f"Created new store at {path}")
            return store

        try:
            envelope = json.loads(path.read_text(encoding="utf-8"))
            salt = base64.b64decode(envelope["salt"])
            file_iterations = int(envelope.get("iterations", iterations))
            token = envelope["token"].encode("ascii")
        except OSError as e:
            raise StoreError(f"Failed to read store: {e}") from e
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise StoreAuthenticationError("Wrong password or corrupted database") from e

        fernet = Fernet(derive_key(password, salt, file_iterations))
        try:
            tables = json.loads(fernet.decrypt(token).decode("utf-8"))
        except (InvalidToken, ValueError) as e:
            raise StoreAuthenticationError("Wrong password or corrupted database") from e

        merged = _empty_tables()
        merged.update(tables)
        logger.debug(f"Opened store at {path}")
        return cls(path, fernet, salt, file_iterations, merged)

    def _write(self) -> None:
        """Encrypt the tables and atomically replace the store file."""
        payload = json.dumps(self._tables, sort_keys=True).encode("utf-8")
        envelope = {
            "version": STORE_VERSION,
            "salt": base64.b64encode(self._salt).decode("ascii"),
            "iterations": self._iterations,
            "token": self._fernet.encrypt(payload).decode("ascii"),
        }

        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(envelope, f)
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise StoreError(f"Failed to write store: {e}") from e

    # Favourites

    def is_favourite(self, coin_id: str) -> bool:
        return coin_id in self._tables["favourites"]

    def add_favourite(self, coin_id: str) -> None:
        if not self.is_favourite(coin_id):
            self._tables["favourites"].append(coin_id)
            self._write()

    def remove_favourite(self, coin_id: str) -> None:
        if self.is_favourite(coin_id):
            self._tables["favourites"].remove(coin_id)
            self._write()

    def toggle_favourite(self, coin_id: str) -> bool:
        """Flip favourite membership.

        Returns:
            True if the coin is a favourite afterwards
        """
        if self.is_favourite(coin_id):
            self.remove_favourite(coin_id)
            return False
        self.add_favourite(coin_id)
        return True

    def get_favourites(self) -> List[str]:
        return list(self._tables["favourites"])

    # Holdings

    def set_holding(self, coin_id: str, amount: float, buy_price: Optional[float] = None) -> None:
        """Insert, update or delete a holding.

        Args:
            coin_id: Coin id
            amount: New quantity; zero or negative deletes the holding
            buy_price: New buy price; None keeps the recorded one
        """
        holdings = self._tables["holdings"]
        if amount <= 0:
            if holdings.pop(coin_id, None) is not None:
                self._write()
            return

        existing = holdings.get(coin_id, {})
        holdings[coin_id] = {
            "amount": amount,
            "buy_price": buy_price if buy_price is not None else existing.get("buy_price"),
        }
        self._write()

    def set_buy_price(self, coin_id: str, price: float) -> None:
        """Record the buy price of an existing holding; unknown coins are ignored."""
        holding = self._tables["holdings"].get(coin_id)
        if holding is None:
            return
        holding["buy_price"] = price
        self._write()

    def get_holdings(self) -> List[Holding]:
        """Get holdings with a positive amount."""
        return [
            Holding.from_dict({"coin_id": coin_id, **row})
            for coin_id, row in self._tables["holdings"].items()
            if row.get("amount", 0) > 0
        ]

    # Alerts

    def add_alert(self, coin_id: str, target_price: float, direction: AlertDirection) -> PriceAlert:
        alert = PriceAlert(coin_id=coin_id, target_price=target_price, direction=direction)
        self._tables["alerts"].append(alert.to_dict())
        self._write()
        return alert

    def get_alerts(self) -> List[PriceAlert]:
        return [PriceAlert.from_dict(row) for row in self._tables["alerts"]]

    def mark_alert_triggered(self, coin_id: str, target_price: float) -> None:
        """Flag every alert matching coin and target as triggered."""
        changed = False
        for row in self._tables["alerts"]:
            if row["coin_id"] == coin_id and row["target_price"] == target_price and not row["triggered"]:
                row["triggered"] = True
                changed = True
        if changed:
            self._write()

    def delete_alert(self, coin_id: str, target_price: float) -> None:
        before = len(self._tables["alerts"])
        self._tables["alerts"] = [
            row for row in self._tables["alerts"]
            if not (row["coin_id"] == coin_id and row["target_price"] == target_price)
        ]
        if len(self._tables["alerts"]) != before:
            self._write()

    def delete_triggered_alerts(self, coin_id: str) -> int:
        """Remove triggered alerts of one coin.

        Returns:
            Number of alerts removed
        """
        before = len(self._tables["alerts"])
        self._tables["alerts"] = [
            row for row in self._tables["alerts"]
            if not (row["coin_id"] == coin_id and row["triggered"])
        ]
        removed = before - len(self._tables["alerts"])
        if removed:
            self._write()
        return removed

    # Settings

    def get_setting(self, key: str) -> Optional[str]:
        return self._tables["settings"].get(key)

    def set_setting(self, key: str, value: str) -> None:
        """Store a setting; an empty value deletes it."""
        settings = self._tables["settings"]
        if not value:
            if settings.pop(key, None) is not None:
                self._write()
            return
        settings[key] = value
        self._write()
