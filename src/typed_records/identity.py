"""Identity accessors shared by every identifier-bearing type."""

from __future__ import annotations

from abc import ABC, abstractmethod


class IdentityTraits(ABC):
    """Capability contract for anything that carries a record identifier.

    Each identifier representation implements it once; consumers only ever
    call these three accessors.
    """

    @abstractmethod
    def get_tbl_id(self) -> str:
        """Return the full canonical ``collection:key`` string."""

    @abstractmethod
    def get_id(self) -> str:
        """Return the bare key, without the reserved brackets."""

    @abstractmethod
    def get_tbl(self) -> str:
        """Return the collection name."""


class EmbeddedIdentity(IdentityTraits):
    """Mixin for record shapes that embed an identifier value.

    Subclasses provide ``identity_value()``; the accessors delegate to it.
    """

    @abstractmethod
    def identity_value(self) -> IdentityTraits:
        """Return the embedded identifier."""

    def get_tbl_id(self) -> str:
        return self.identity_value().get_tbl_id()

    def get_id(self) -> str:
        return self.identity_value().get_id()

    def get_tbl(self) -> str:
        return self.identity_value().get_tbl()
