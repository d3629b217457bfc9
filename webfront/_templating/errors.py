"""Error types used by the templating helpers."""


class TemplateError(RuntimeError):
    """Base class for failures raised while compiling or rendering templates."""

    def __init__(self, name: str, message: str) -> None:
        super().__init__(f"{name}: {message}")
        self.name = name


class TemplateCompileError(TemplateError):
    """Raised when a template file cannot be parsed."""


class TemplateNotFound(TemplateError):
    """Raised when no compiled template carries the requested name."""

    def __init__(self, name: str) -> None:
        super().__init__(name, "template not found")


class TemplateRenderError(TemplateError):
    """Raised when a template cannot be executed with its environment."""
