"""
Sensitive value masking for log output.

Log events and console audit records pass through the masking engine so
passwords, tokens and keys never reach the log stream in clear text.
"""

from typing import Any, Dict, Optional, Set

from ..config import MaskingSettings

MASK = "****"

# Substrings that mark a key as sensitive even when not configured
SENSITIVE_PATTERNS = ("password", "passwd", "pwd", "secret", "token", "authorization", "api_key", "apikey")


class MaskingEngine:
    """
    Handles sensitive data masking with configurable rules.

    Features:
    - Baseline masking for common sensitive keys
    - Partial masking (keep prefixes/suffixes, email masking)
    - Deep traversal of nested dicts and lists
    """

    def __init__(self, settings: Optional[MaskingSettings] = None) -> None:
        self.settings = settings or MaskingSettings()
        self._mask_keys: Set[str] = {key.lower() for key in self.settings.baseline_keys}
        self._partial_rules: Dict[str, Dict[str, Any]] = {
            key.lower(): rule for key, rule in self.settings.partial_rules.items()
        }

    def mask(self, obj: Any) -> Any:
        """Return a masked copy of obj."""
        if isinstance(obj, dict):
            masked = {}
            for key, value in obj.items():
                if isinstance(key, str) and self.should_mask_key(key):
                    masked[key] = self.mask_value(key, value)
                else:
                    masked[key] = self.mask(value)
            return masked

        if isinstance(obj, (list, tuple)):
            return [self.mask(item) for item in obj]

        return obj

    def should_mask_key(self, key: str) -> bool:
        """Case-insensitive exact, substring and heuristic key matching."""
        key_lower = key.lower()

        for mask_key in self._mask_keys.union(self._partial_rules):
            if mask_key in key_lower:
                return True

        return any(pattern in key_lower for pattern in SENSITIVE_PATTERNS)

    def mask_value(self, key: str, value: Any) -> Any:
        """Apply the partial rule for key, or mask completely."""
        if value is None:
            return None

        str_value = str(value)
        key_lower = key.lower()

        rule = self._partial_rules.get(key_lower)
        if rule is None:
            for rule_key, rule_config in self._partial_rules.items():
                if rule_key in key_lower:
                    rule = rule_config
                    break

        if rule:
            return self._apply_partial_masking(str_value, rule)
        return self._apply_full_masking(str_value)

    def _apply_partial_masking(self, value: str, rule: Dict[str, Any]) -> str:
        if not value:
            return MASK

        if rule.get("mask_email"):
            return self.mask_email(value)

        if "keep_prefix" in rule:
            prefix_len = int(rule["keep_prefix"])
            if len(value) <= prefix_len:
                return MASK
            return f"{value[:prefix_len]}{MASK}"

        if "keep_suffix" in rule:
            suffix_len = int(rule["keep_suffix"])
            if len(value) <= suffix_len:
                return MASK
            return f"{MASK}{value[-suffix_len:]}"

        return self._apply_full_masking(value)

    def _apply_full_masking(self, value: str) -> str:
        if len(value) <= 16:
            return MASK
        return f"{MASK}[{len(value)} chars]"

    def mask_email(self, email: str) -> str:
        """
        Mask an email as first char, up to five stars, last char, domain.

        john.doe@example.com -> j*****e@example.com
        """
        if not email or "@" not in email:
            return MASK

        local_part, domain = email.split("@", 1)
        if not domain:
            return MASK

        if len(local_part) <= 2:
            masked_local = MASK
        else:
            stars = "*" * min(5, len(local_part) - 2)
            masked_local = f"{local_part[0]}{stars}{local_part[-1]}"

        return f"{masked_local}@{domain}"


class MaskingProcessor:
    """structlog processor masking sensitive keys in each event dict."""

    def __init__(self, engine: MaskingEngine) -> None:
        self.engine = engine

    def __call__(self, logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
        masked: Dict[str, Any] = self.engine.mask(event_dict)
        return masked
