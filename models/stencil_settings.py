from __future__ import annotations
from dataclasses import dataclass, replace, asdict
from typing import Any, Mapping

from models.errors import InvalidParameterError

_TRUE_WORDS = {"true", "1", "on", "yes"}
_FALSE_WORDS = {"false", "0", "off", "no", ""}

MAX_BLUR_RADIUS = 255  # largest kernel size accepted


@dataclass(frozen=True)
class StencilSettings:
    """
    Value-object holding the three knobs of the stencil transform
    plus the inversion toggle.
    """
    low_threshold:  int = 30      # [0, 255] lower hysteresis bound
    high_threshold: int = 100     # [0, 255] upper hysteresis bound
    blur_radius:    int = 2       # Gaussian kernel size, odd >= 1 after coercion
    inverted:       bool = True   # black lines on white when True

    # ── Coercion / validation ────────────────────────────────────────
    @staticmethod
    def _as_int(name: str, value: Any) -> int:
        if isinstance(value, bool):
            raise InvalidParameterError(name, value, "expected an integer")
        if isinstance(value, int):
            return value
        if isinstance(value, float):
            if not value.is_integer():
                raise InvalidParameterError(name, value, "expected an integer")
            return int(value)
        if isinstance(value, str):
            text = value.strip()
            try:
                return int(text)
            except ValueError:
                try:
                    number = float(text)
                except ValueError:
                    raise InvalidParameterError(name, value, "not a number") from None
                return StencilSettings._as_int(name, number)
        raise InvalidParameterError(name, value, "expected an integer")

    @staticmethod
    def _as_bool(name: str, value: Any) -> bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, int) and value in (0, 1):
            return bool(value)
        if isinstance(value, str):
            word = value.strip().lower()
            if word in _TRUE_WORDS:
                return True
            if word in _FALSE_WORDS:
                return False
        raise InvalidParameterError(name, value, "expected a boolean")

    @classmethod
    def _threshold(cls, name: str, value: Any) -> int:
        number = cls._as_int(name, value)
        if not 0 <= number <= 255:
            raise InvalidParameterError(name, value, "must be within [0, 255]")
        return number

    @classmethod
    def _kernel_size(cls, value: Any) -> int:
        number = cls._as_int("blur_radius", value)
        if number < 1:
            raise InvalidParameterError("blur_radius", value, "must be a positive integer")
        if number > MAX_BLUR_RADIUS:
            raise InvalidParameterError("blur_radius", value, f"must be at most {MAX_BLUR_RADIUS}")
        return number if number % 2 == 1 else number + 1

    def normalized(self) -> "StencilSettings":
        """
        Return a coerced copy: integers for the numeric fields and an odd
        blur radius (even values move up to the next odd one).
        """
        return StencilSettings(
            low_threshold=self._threshold("low_threshold", self.low_threshold),
            high_threshold=self._threshold("high_threshold", self.high_threshold),
            blur_radius=self._kernel_size(self.blur_radius),
            inverted=self._as_bool("inverted", self.inverted),
        )

    # ── Helpers for front-ends ───────────────────────────────────────
    def with_changes(self, **changes) -> "StencilSettings":
        """Merge a partial update, ignoring keys whose value is None."""
        unknown = set(changes) - set(asdict(self))
        if unknown:
            name = sorted(unknown)[0]
            raise InvalidParameterError(name, changes[name], "unknown setting")
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    @classmethod
    def from_mapping(
        cls,
        data: Mapping[str, Any],
        defaults: "StencilSettings | None" = None,
        *,
        checkbox: bool = False,
    ) -> "StencilSettings":
        """
        Build settings from a request form or JSON body.

        Missing keys fall back to ``defaults``. With ``checkbox=True`` an
        absent ``inverted`` key means False, the way an unticked HTML
        checkbox is simply left out of a form post.
        """
        base = defaults or cls()
        changes = {
            key: data.get(key)
            for key in ("low_threshold", "high_threshold", "blur_radius", "inverted")
        }
        for key in ("low_threshold", "high_threshold", "blur_radius"):
            if isinstance(changes[key], str) and not changes[key].strip():
                changes[key] = None
        if checkbox and changes["inverted"] is None:
            changes["inverted"] = False
        return base.with_changes(**changes).normalized()

    def as_dict(self) -> dict:
        return asdict(self)
