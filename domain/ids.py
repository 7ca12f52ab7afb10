# domain/ids.py
from dataclasses import dataclass

from domain.exceptions import ValidationError


@dataclass(frozen=True)
class RunId:
    value: str


@dataclass(frozen=True)
class Fingerprint:
    value: str

    def __post_init__(self) -> None:
        if not self.value or not self.value.strip():
            raise ValidationError("Fingerprint must not be empty")

    def short(self) -> str:
        return self.value[:12]

    def __str__(self) -> str:
        return self.value
