"""Language profile catalog."""

from .profiles import BUILTIN_PROFILES, EXECUTABLE_SUFFIX, AddressingScheme, LanguageProfile
from .registry import ProfileRegistry, default_registry, detect, resolve

__all__ = [
    "AddressingScheme",
    "BUILTIN_PROFILES",
    "default_registry",
    "detect",
    "EXECUTABLE_SUFFIX",
    "LanguageProfile",
    "ProfileRegistry",
    "resolve",
]
