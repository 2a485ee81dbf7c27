"""Provider registry: stored credentials and the active-credential pointer.

Every mutation is written to disk before the call returns.
"""

import re
from dataclasses import replace
from pathlib import Path
from typing import Any, List, Optional, Tuple

import structlog

from . import ProviderCredential, new_id
from .json_file import load_json, save_json
from ..config.models import PROVIDERS, ProviderKind, normalize_model
from ..config.settings import get_api_key


logger = structlog.get_logger()

# Keys pasted from web pages sometimes carry invisible characters
_UNPRINTABLE = re.compile(r"[^\x20-\x7E]")


def clean_api_key(api_key: str) -> str:
    """Strip characters that cannot appear in an HTTP header."""
    return _UNPRINTABLE.sub("", api_key).strip()


class ProviderRegistry:
    """Holds provider credentials in insertion order.

    At most one credential is marked active. Selection falls back to the
    first enabled credential when the marked one is missing or disabled.
    """

    def __init__(self, path: Optional[Path] = None) -> None:
        """Initialize the registry.

        Args:
            path: JSON file backing the registry, or None for memory only
        """
        self._path = path
        self._credentials: List[ProviderCredential] = []
        self._active_id: Optional[str] = None

    # ==================== Persistence ====================

    def load(self) -> None:
        """Load credentials, normalizing stale records.

        An unreadable file yields an empty registry.
        """
        self._credentials = []
        self._active_id = None
        if self._path is None:
            return

        data = load_json(self._path, default=dict)
        if not isinstance(data, dict):
            data = {}

        records = data.get("credentials")
        if not isinstance(records, list):
            records = []

        changed = False
        for record in records:
            try:
                credential = ProviderCredential.from_dict(record)
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                logger.warning("credential_record_skipped", error=str(e))
                changed = True
                continue

            normalized = self._normalize(credential)
            if normalized != credential:
                changed = True
            self._credentials.append(normalized)

        active_id = data.get("active_id")
        self._active_id = active_id if isinstance(active_id, str) else None

        if changed:
            self._save()
        logger.info("credentials_loaded", count=len(self._credentials))

    def _save(self) -> None:
        if self._path is None:
            return
        save_json(self._path, {
            "credentials": [c.to_dict() for c in self._credentials],
            "active_id": self._active_id,
        })

    @staticmethod
    def _normalize(credential: ProviderCredential) -> ProviderCredential:
        return replace(
            credential,
            api_key=clean_api_key(credential.api_key),
            model=normalize_model(credential.provider, credential.model),
        )

    # ==================== Selection ====================

    @property
    def credentials(self) -> Tuple[ProviderCredential, ...]:
        """All credentials in insertion order."""
        return tuple(self._credentials)

    @property
    def active_id(self) -> Optional[str]:
        """The explicitly marked active credential ID, if any."""
        return self._active_id

    def get(self, credential_id: str) -> Optional[ProviderCredential]:
        """Get a credential by ID."""
        for credential in self._credentials:
            if credential.id == credential_id:
                return credential
        return None

    def active_credential(self) -> Optional[ProviderCredential]:
        """Resolve the credential that should service new requests.

        Returns:
            The marked credential if enabled, else the first enabled one,
            else None
        """
        if self._active_id:
            marked = self.get(self._active_id)
            if marked is not None and marked.enabled:
                return marked

        for credential in self._credentials:
            if credential.enabled:
                return credential
        return None

    def fallback_order(
        self, exclude: Optional[str] = None
    ) -> Tuple[ProviderCredential, ...]:
        """Enabled credentials other than `exclude`, in insertion order."""
        return tuple(
            c for c in self._credentials if c.enabled and c.id != exclude
        )

    def has_usable_credential(self) -> bool:
        """Check whether any credential is enabled."""
        return any(c.enabled for c in self._credentials)

    # ==================== Mutations ====================

    def add(
        self,
        provider: ProviderKind,
        api_key: str = "",
        model: str = "",
        label: str = "",
    ) -> ProviderCredential:
        """Add a credential.

        The first enabled credential becomes active automatically.

        Args:
            provider: Backend kind
            api_key: Secret key material
            model: Model ID (provider default if empty or unknown)
            label: Human label (defaults to "<Provider> Key")

        Returns:
            The stored credential
        """
        spec = PROVIDERS[provider]
        credential = ProviderCredential(
            id=new_id(),
            provider=provider,
            api_key=clean_api_key(api_key),
            model=normalize_model(provider, model),
            label=label.strip() or f"{spec.display_name} Key",
        )
        self._credentials.append(credential)

        if sum(1 for c in self._credentials if c.enabled) == 1:
            self._active_id = credential.id

        self._save()
        logger.info(
            "credential_added", credential_id=credential.id, provider=provider.value
        )
        return credential

    def remove(self, credential_id: str) -> bool:
        """Remove a credential.

        Removing the active credential clears the active pointer.

        Returns:
            True if removed, False if not found
        """
        remaining = [c for c in self._credentials if c.id != credential_id]
        if len(remaining) == len(self._credentials):
            return False

        self._credentials = remaining
        if self._active_id == credential_id:
            self._active_id = None
        self._save()
        logger.info("credential_removed", credential_id=credential_id)
        return True

    def _update(self, credential_id: str, **changes: Any) -> ProviderCredential:
        for i, credential in enumerate(self._credentials):
            if credential.id == credential_id:
                updated = replace(credential, **changes)
                self._credentials[i] = updated
                self._save()
                return updated
        raise KeyError(credential_id)

    def set_enabled(self, credential_id: str, enabled: bool) -> ProviderCredential:
        """Enable or disable a credential."""
        return self._update(credential_id, enabled=enabled)

    def toggle(self, credential_id: str) -> ProviderCredential:
        """Flip a credential's enabled flag."""
        credential = self.get(credential_id)
        if credential is None:
            raise KeyError(credential_id)
        return self.set_enabled(credential_id, not credential.enabled)

    def set_model(self, credential_id: str, model: str) -> ProviderCredential:
        """Change the model a credential uses."""
        credential = self.get(credential_id)
        if credential is None:
            raise KeyError(credential_id)
        return self._update(
            credential_id, model=normalize_model(credential.provider, model)
        )

    def set_active(self, credential_id: Optional[str]) -> None:
        """Mark a credential as active, or clear the pointer with None."""
        if credential_id is not None and self.get(credential_id) is None:
            raise KeyError(credential_id)
        self._active_id = credential_id
        self._save()

    def import_from_environment(self) -> List[ProviderCredential]:
        """Add credentials for provider keys found in the environment.

        Providers that already have a stored credential are skipped.

        Returns:
            The credentials that were added
        """
        added = []
        known = {c.provider for c in self._credentials}
        for kind in PROVIDERS:
            if kind in known:
                continue
            api_key = get_api_key(kind.value)
            if api_key:
                added.append(self.add(kind, api_key, label=f"{kind.value} (environment)"))
        return added
