from __future__ import annotations

import json
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path

from auth.models import CredentialPair


class CredentialStore(ABC):
    """Holds the current credential pair.

    Methods are synchronous: the gateway reads the store between checking
    and setting its renewal flag, where it must not suspend.
    """

    @abstractmethod
    def get(self) -> CredentialPair | None:
        raise NotImplementedError

    @abstractmethod
    def set(self, pair: CredentialPair) -> None:
        raise NotImplementedError

    @abstractmethod
    def clear(self) -> None:
        raise NotImplementedError


class MemoryCredentialStore(CredentialStore):
    def __init__(self, pair: CredentialPair | None = None) -> None:
        self._pair = pair

    def get(self) -> CredentialPair | None:
        return self._pair

    def set(self, pair: CredentialPair) -> None:
        self._pair = pair

    def clear(self) -> None:
        self._pair = None


class FileCredentialStore(CredentialStore):
    def __init__(self, path: str | Path = ".credentials.json") -> None:
        self._path = Path(path)

    def get(self) -> CredentialPair | None:
        if not self._path.exists():
            return None

        raw = json.loads(self._path.read_text(encoding="utf-8"))
        if not isinstance(raw, dict):
            raise RuntimeError("Credential store file is invalid; expected top-level JSON object.")
        return CredentialPair.from_payload(raw)

    def set(self, pair: CredentialPair) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(
            prefix=f"{self._path.name}.",
            suffix=".tmp",
            dir=self._path.parent,
        )
        tmp_path = Path(tmp_name)

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(pair.to_payload(), handle, indent=2, sort_keys=True)
            os.replace(tmp_path, self._path)
        finally:
            if tmp_path.exists():
                tmp_path.unlink()

    def clear(self) -> None:
        self._path.unlink(missing_ok=True)
