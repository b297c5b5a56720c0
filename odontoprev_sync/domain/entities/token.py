"""
Token de autenticacion cacheado.
"""
from dataclasses import dataclass


@dataclass(frozen=True)
class Token:
    """
    Token emitido por una autoridad de OdontoPrev.

    Los tiempos son segundos de un reloj monotono. El token se considera
    valido mientras now < issued_at + ttl_seconds - safety_margin_seconds.
    """

    value: str
    issued_at: float
    ttl_seconds: float
    safety_margin_seconds: float = 300.0

    @property
    def refresh_at(self) -> float:
        return self.issued_at + self.ttl_seconds - self.safety_margin_seconds

    def is_valid(self, now: float) -> bool:
        return bool(self.value) and now < self.refresh_at

    def __repr__(self) -> str:
        # Nunca exponer el valor en logs
        return f"<Token(issued_at={self.issued_at}, ttl={self.ttl_seconds})>"
