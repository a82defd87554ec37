"""mysqlit - context-aware completion for an interactive MySQL client."""

__all__ = [
    "__version__",
    "CompletionEngine",
    "SchemaCache",
]

__version__ = "0.1.0"

from mysqlit.domains.query.completion import CompletionEngine  # noqa: E402
from mysqlit.domains.schema.cache import SchemaCache  # noqa: E402
