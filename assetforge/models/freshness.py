"""Freshness policy — when an existing artifact is regenerated."""

from __future__ import annotations

from enum import Enum


class FreshnessPolicy(str, Enum):
    """Rule evaluated once per request to decide on regeneration."""

    ALWAYS = "always"
    IF_NEWER = "if-newer"
    NEVER = "never"

    @classmethod
    def coerce(cls, value: FreshnessPolicy | str | bool | None) -> FreshnessPolicy:
        """Normalize the spellings accepted in configuration.

        ``True`` means always, ``False`` means never, ``None`` means the
        default (if-newer). ``"ifnewer"`` is accepted for ``"if-newer"``.
        """
        if isinstance(value, cls):
            return value
        if value is None:
            return cls.IF_NEWER
        if value is True:
            return cls.ALWAYS
        if value is False:
            return cls.NEVER
        normalized = str(value).strip().lower().replace("_", "-")
        if normalized == "ifnewer":
            normalized = cls.IF_NEWER.value
        try:
            return cls(normalized)
        except ValueError:
            allowed = ", ".join(p.value for p in cls)
            raise ValueError(
                f"Unknown freshness policy {value!r}. Allowed: {allowed}"
            ) from None
