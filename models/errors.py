class StencilError(ValueError):
    """Base class for everything the stencil transform refuses to process."""


class InvalidImageError(StencilError):
    """Input bytes could not be decoded as a raster image."""


class InvalidParameterError(StencilError):
    """A stencil setting is outside its valid domain after coercion."""

    def __init__(self, name: str, value, reason: str):
        self.name = name
        self.value = value
        super().__init__(f"Invalid {name}={value!r}: {reason}")
