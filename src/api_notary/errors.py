"""Build-time errors raised while notarizing routes and assembling documents.

Every error here is fatal to application startup: a host must not serve a
partially built document.
"""

from typing import Any


class NotaryError(Exception):
    """Base class for all api-notary errors."""


class DerivationError(NotaryError):
    """A type cannot be mapped to a schema and has no override."""

    def __init__(self, type_: Any, reason: str = "no schema can be derived"):
        self.type_ = type_
        self.reason = reason
        super().__init__(f"Cannot derive schema for {type_!r}: {reason}")


class NameCollisionError(DerivationError):
    """Two distinct schemas were registered under the same canonical name."""

    def __init__(self, name: str, existing: Any, incoming: Any):
        self.name = name
        self.existing = existing
        self.incoming = incoming
        super().__init__(
            incoming,
            f"schema name '{name}' is already registered for {existing!r} with a different shape",
        )


class ConflictError(NotaryError):
    """Parameter or response declarations disagree within one route."""

    def __init__(self, route: str, detail: str):
        self.route = route
        self.detail = detail
        super().__init__(f"{route}: {detail}")


class AssemblyError(NotaryError):
    """An internal schema reference cannot be resolved."""

    def __init__(self, ref: str, where: str):
        self.ref = ref
        self.where = where
        super().__init__(f"Unresolved schema reference '{ref}' in {where}")


class RegistryFrozenError(NotaryError):
    """A build-phase registry was written to after it was frozen."""
