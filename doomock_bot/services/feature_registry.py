"""
Static table of feature handlers, built once at startup.

Lookups from the routers go through `resolve`, which applies the `main`
alias and hides features that are disabled or failed to initialize.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from handlers.base_feature import FeatureHandler
from utils.logger import get_logger

logger = get_logger(__name__)

MODULE_ALIASES: Dict[str, str] = {"main": "system"}


class FeatureInitError(RuntimeError):
    """A feature could not be initialized (aborts startup when the feature is required)."""

    def __init__(self, key: str, cause: BaseException):
        super().__init__(f"Required feature '{key}' failed to initialize: {cause}")
        self.key = key
        self.cause = cause


@dataclass
class FeatureRegistration:
    key: str
    handler: FeatureHandler
    display_name: str
    icon: str = "📦"
    description: str = ""
    priority: int = 100
    required: bool = False
    enabled: bool = True
    show_in_menu: bool = True
    commands: Tuple[str, ...] = ()
    initialized: bool = False

    @property
    def is_routable(self) -> bool:
        return self.enabled and self.initialized


def canonical_key(module_key: str) -> str:
    return MODULE_ALIASES.get(module_key, module_key)


class FeatureRegistry:
    def __init__(self, registrations: Iterable[FeatureRegistration] = ()):
        self._registrations: Dict[str, FeatureRegistration] = {}
        for registration in registrations:
            self.add(registration)

    def add(self, registration: FeatureRegistration) -> None:
        if not registration.key:
            raise ValueError("feature key must be non-empty")
        if registration.key in MODULE_ALIASES:
            raise ValueError(f"feature key '{registration.key}' is reserved as an alias")
        if registration.key in self._registrations:
            raise ValueError(f"feature '{registration.key}' is already registered")
        self._registrations[registration.key] = registration

    def get(self, key: str) -> Optional[FeatureRegistration]:
        """Registration by exact key, regardless of state."""
        return self._registrations.get(key)

    def resolve(self, module_key: str) -> Optional[FeatureRegistration]:
        """Routable registration for `module_key` after aliasing, else None."""
        registration = self._registrations.get(canonical_key(module_key))
        if registration is None or not registration.is_routable:
            return None
        return registration

    def all(self) -> List[FeatureRegistration]:
        """Every registration by ascending priority, whatever its state."""
        return sorted(self._registrations.values(), key=lambda r: r.priority)

    def ordered(self) -> List[FeatureRegistration]:
        """Routable registrations by ascending priority (ties keep registration order)."""
        return sorted(
            (r for r in self._registrations.values() if r.is_routable),
            key=lambda r: r.priority,
        )

    def menu_entries(self) -> List[FeatureRegistration]:
        return [r for r in self.ordered() if r.show_in_menu]

    async def set_enabled(self, key: str, enabled: bool) -> bool:
        """
        Toggle a feature at runtime. Returns False for unknown keys.

        A feature that was disabled at startup is initialized the first time it
        is enabled; if that fails it stays disabled and FeatureInitError is raised.
        """
        registration = self._registrations.get(key)
        if registration is None:
            return False
        if registration.required and not enabled:
            raise ValueError(f"required feature '{key}' cannot be disabled")
        if enabled and not registration.initialized:
            try:
                await registration.handler.initialize()
            except Exception as e:
                logger.error(f"Feature '{key}' failed to initialize on enable: {e}")
                raise FeatureInitError(key, e) from e
            registration.initialized = True
        registration.enabled = enabled
        logger.info(f"Feature '{key}' {'enabled' if enabled else 'disabled'}")
        return True

    async def initialize_all(self) -> None:
        for registration in self.all():
            if not registration.enabled:
                logger.info(f"Feature '{registration.key}' is disabled, skipping initialization")
                continue
            try:
                await registration.handler.initialize()
            except Exception as e:
                if registration.required:
                    logger.error(f"Required feature '{registration.key}' failed to initialize: {e}")
                    raise FeatureInitError(registration.key, e) from e
                logger.warning(f"Optional feature '{registration.key}' failed to initialize and was removed: {e}")
                del self._registrations[registration.key]
                continue
            registration.initialized = True
            logger.info(f"Feature '{registration.key}' initialized (priority {registration.priority})")

    async def cleanup_all(self) -> None:
        for registration in self._registrations.values():
            if not registration.initialized:
                continue
            try:
                await registration.handler.cleanup()
            except Exception as e:
                logger.error(f"Cleanup of feature '{registration.key}' failed: {e}")
            registration.initialized = False

    def status(self) -> Dict[str, str]:
        result = {}
        for registration in self.all():
            if not registration.enabled:
                result[registration.key] = "disabled"
            elif registration.initialized:
                result[registration.key] = "ready"
            else:
                result[registration.key] = "pending"
        return result

    def __contains__(self, key: str) -> bool:
        return key in self._registrations

    def __len__(self) -> int:
        return len(self._registrations)
