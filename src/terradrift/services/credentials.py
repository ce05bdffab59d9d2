"""Process-environment credential scoping for auth profiles."""

import os
import threading
from contextlib import contextmanager
from typing import Dict, MutableMapping, Optional, Set, Tuple

from terradrift.errors import CredentialApplyError
from terradrift.models import CredentialProfile, ProviderKind

PROVIDER_ENV_MAP: Dict[ProviderKind, Dict[str, str]] = {
    ProviderKind.AWS: {
        "access_key_id": "AWS_ACCESS_KEY_ID",
        "secret_access_key": "AWS_SECRET_ACCESS_KEY",
        "session_token": "AWS_SESSION_TOKEN",
        "region": "AWS_DEFAULT_REGION",
    },
    ProviderKind.AZURE: {
        "client_id": "ARM_CLIENT_ID",
        "client_secret": "ARM_CLIENT_SECRET",
        "subscription_id": "ARM_SUBSCRIPTION_ID",
        "tenant_id": "ARM_TENANT_ID",
    },
    ProviderKind.GCP: {
        "credentials_file": "GOOGLE_APPLICATION_CREDENTIALS",
        "project": "GOOGLE_CLOUD_PROJECT",
    },
}

CREDENTIAL_ENV_VARS: Tuple[str, ...] = tuple(
    name for mapping in PROVIDER_ENV_MAP.values() for name in mapping.values()
)


class CredentialScope:
    """Sets and clears provider credentials in the process environment."""

    def __init__(self, logger, environ: Optional[MutableMapping[str, str]] = None):
        self.logger = logger
        self.environ = os.environ if environ is None else environ
        self._applied: Set[str] = set()
        self._lock = threading.Lock()

    def apply(self, profile: CredentialProfile):
        mapping = PROVIDER_ENV_MAP.get(profile.provider, {})
        for key, value in profile.config.items():
            if value is None:
                raise CredentialApplyError(
                    f"Auth profile '{profile.name}' has no value for '{key}'."
                )
            name = mapping.get(key, key)
            with self._lock:
                self._applied.add(name)
            try:
                self.environ[name] = str(value)
            except (TypeError, ValueError, OSError) as exc:
                raise CredentialApplyError(
                    f"Could not set '{name}' for auth profile '{profile.name}': {exc}"
                ) from exc
        self.logger.debug(
            "Applied %s credentials from auth profile '%s'", profile.provider.value, profile.name
        )

    def clear(self):
        """Unsets the fixed provider variables and every name set by ``apply``."""
        with self._lock:
            names = set(CREDENTIAL_ENV_VARS) | self._applied
            self._applied = set()
        for name in names:
            self.environ.pop(name, None)

    @contextmanager
    def scoped(self, profile: Optional[CredentialProfile]):
        """Applies ``profile`` for the body of the block and always clears afterwards."""
        try:
            if profile is not None:
                self.apply(profile)
            yield
        finally:
            self.clear()
