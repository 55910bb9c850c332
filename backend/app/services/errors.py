"""Exceptions raised inside the engine (never across the pipeline boundary)."""


class EngineError(Exception):
    """Base class for enhanced AST engine failures."""


class UnsupportedLanguageError(EngineError):
    """The file extension has no tree-sitter grammar (e.g. ``.json``, ``.css``)."""

    def __init__(self, filename: str):
        self.filename = filename
        super().__init__(f"No grammar available for {filename}")


class AstEngineTimeout(EngineError):
    """The enhanced engine did not finish within the configured timeout."""

    def __init__(self, filename: str, timeout: float):
        self.filename = filename
        self.timeout = timeout
        super().__init__(f"AST analysis of {filename} exceeded {timeout:.1f}s")
