"""Environment scopes and scoped credential sets."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, SecretStr


class EnvironmentScope(str, Enum):
    """A named credential boundary.  Each scope owns a disjoint secret set."""

    DEV = "dev"
    PRODUCTION = "production"


class CredentialSet(BaseModel):
    """The credentials visible to one stage.

    ``scope`` is ``None`` for stages that declare no environment; such a set
    is always empty.
    """

    model_config = ConfigDict(frozen=True)

    scope: EnvironmentScope | None = None
    values: dict[str, SecretStr] = {}

    @property
    def names(self) -> list[str]:
        return sorted(self.values)

    def __len__(self) -> int:
        return len(self.values)

    def __contains__(self, name: object) -> bool:
        return name in self.values

    def reveal(self, name: str) -> str:
        """Return the plain value of one credential."""
        return self.values[name].get_secret_value()

    def as_env(self) -> dict[str, str]:
        """Plain ``{name: value}`` mapping for a subprocess environment."""
        return {name: secret.get_secret_value() for name, secret in self.values.items()}
