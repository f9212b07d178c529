"""Search-filter tokenizing, SQL store helpers and process launching for ML tracking backends."""

__version__ = "0.1.0"
__all__ = ["lexer", "sql", "command"]