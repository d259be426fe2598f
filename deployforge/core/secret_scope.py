"""Secret scope resolution — which credentials a stage may see.

Credentials are bound to exactly one EnvironmentScope.  A stage declared
under scope X receives the credentials bound to X and nothing else.  In
forward-all mode every secret of every scope is collected first, then the
set is filtered at the stage's scope boundary; the filter is applied in
both modes and cannot be bypassed.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from typing import Protocol, runtime_checkable

from pydantic import SecretStr

from deployforge.core.errors import ScopeViolation, SecretNotFoundError
from deployforge.models.secrets import CredentialSet, EnvironmentScope

logger = logging.getLogger(__name__)


@runtime_checkable
class CredentialStore(Protocol):
    """Scoped secret lookup by (scope, name)."""

    def names(self, scope: EnvironmentScope) -> list[str]:
        """Return the secret names bound to *scope*."""
        ...

    def get(self, scope: EnvironmentScope, name: str) -> str:
        """Return the secret value; raise ``SecretNotFoundError`` if absent."""
        ...


class InMemoryCredentialStore:
    """Credential store held in a dict: ``{scope: {name: value}}``."""

    def __init__(
        self, bindings: Mapping[EnvironmentScope, Mapping[str, str]] | None = None
    ) -> None:
        self._bindings: dict[EnvironmentScope, dict[str, str]] = {
            scope: dict(values) for scope, values in (bindings or {}).items()
        }

    def bind(self, scope: EnvironmentScope, name: str, value: str) -> None:
        self._bindings.setdefault(scope, {})[name] = value

    def names(self, scope: EnvironmentScope) -> list[str]:
        return sorted(self._bindings.get(scope, {}))

    def get(self, scope: EnvironmentScope, name: str) -> str:
        try:
            return self._bindings.get(scope, {})[name]
        except KeyError:
            raise SecretNotFoundError(
                f"No secret {name!r} bound to scope {scope.value!r}"
            ) from None


class EnvironmentCredentialStore:
    """Credential store backed by process environment variables.

    ``DEPLOYFORGE_DEV_SECRET_RAILWAY_TOKEN`` binds ``RAILWAY_TOKEN`` to the
    dev scope; ``DEPLOYFORGE_PRODUCTION_SECRET_RAILWAY_TOKEN`` binds the
    production value.
    """

    def __init__(self, environ: Mapping[str, str] | None = None) -> None:
        self._environ = environ if environ is not None else os.environ

    @staticmethod
    def _prefix(scope: EnvironmentScope) -> str:
        return f"DEPLOYFORGE_{scope.value.upper()}_SECRET_"

    def names(self, scope: EnvironmentScope) -> list[str]:
        prefix = self._prefix(scope)
        return sorted(
            key.removeprefix(prefix)
            for key in self._environ
            if key.startswith(prefix) and len(key) > len(prefix)
        )

    def get(self, scope: EnvironmentScope, name: str) -> str:
        key = f"{self._prefix(scope)}{name}"
        if key not in self._environ:
            raise SecretNotFoundError(
                f"No secret {name!r} bound to scope {scope.value!r} (expected ${key})"
            )
        return self._environ[key]


def without_scoped_secrets(environ: Mapping[str, str]) -> dict[str, str]:
    """Copy *environ* minus every scope's ``DEPLOYFORGE_<SCOPE>_SECRET_*`` binding.

    Subprocesses start from this copy.  The only secrets they receive are
    the ones the resolver hands their stage.
    """
    prefixes = tuple(EnvironmentCredentialStore._prefix(scope) for scope in EnvironmentScope)
    return {key: value for key, value in environ.items() if not key.startswith(prefixes)}


class SecretScopeResolver:
    """Resolves the credential set visible to a stage.

    Parameters
    ----------
    store:
        The credential store to read from.
    forward_all:
        Collect every secret of every scope before filtering, mirroring
        blanket secret inheritance.  The scope filter still applies.
    """

    def __init__(self, store: CredentialStore, *, forward_all: bool = True) -> None:
        self._store = store
        self._forward_all = forward_all

    def resolve(
        self,
        scope: EnvironmentScope | None,
        names: list[str] | None = None,
    ) -> CredentialSet:
        """Return exactly the credentials bound to *scope*.

        A stage with no declared scope always gets an empty set.  When
        *names* is given only those secrets are returned; each must be bound
        to *scope* or ``ScopeViolation``/``SecretNotFoundError`` is raised.
        """
        if scope is None:
            return CredentialSet()

        if self._forward_all:
            candidates = self._forward_everything()
        else:
            bound = set(self._store.names(scope))
            wanted = names if names is not None else sorted(bound)
            candidates = {
                (scope, name): self._store.get(scope, name)
                for name in wanted
                if name in bound
            }

        # Scope boundary: only bindings of the stage's own scope pass.
        visible = {
            name: SecretStr(value)
            for (bound_scope, name), value in candidates.items()
            if bound_scope == scope
        }

        if names is not None:
            selected: dict[str, SecretStr] = {}
            for name in names:
                if name not in visible:
                    self._raise_missing(scope, name)
                selected[name] = visible[name]
            visible = selected

        logger.debug(
            "Resolved %d credential(s) for scope %s", len(visible), scope.value
        )
        return CredentialSet(scope=scope, values=visible)

    def lookup(
        self,
        stage_scope: EnvironmentScope | None,
        secret_scope: EnvironmentScope,
        name: str,
    ) -> str:
        """Read one secret on behalf of a stage.

        Raises ``ScopeViolation`` if the secret's scope is not the stage's.
        """
        if stage_scope != secret_scope:
            raise ScopeViolation(
                f"Stage scope {stage_scope.value if stage_scope else 'none'!r} "
                f"cannot read {secret_scope.value!r} secret {name!r}"
            )
        return self.resolve(stage_scope, [name]).reveal(name)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _forward_everything(self) -> dict[tuple[EnvironmentScope, str], str]:
        forwarded: dict[tuple[EnvironmentScope, str], str] = {}
        for bound_scope in EnvironmentScope:
            for name in self._store.names(bound_scope):
                forwarded[(bound_scope, name)] = self._store.get(bound_scope, name)
        return forwarded

    def _raise_missing(self, scope: EnvironmentScope, name: str) -> None:
        other_scopes = [
            other for other in EnvironmentScope
            if other != scope and name in self._store.names(other)
        ]
        if other_scopes:
            raise ScopeViolation(
                f"Secret {name!r} is bound to {other_scopes[0].value!r}, "
                f"not visible from scope {scope.value!r}"
            )
        raise SecretNotFoundError(f"No secret {name!r} bound to scope {scope.value!r}")
