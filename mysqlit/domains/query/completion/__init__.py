"""SQL completion engine.

Provides context-aware completion for an interactive MySQL prompt:
- Statement keywords at the start of a statement
- Database names after USE, table names after FROM / JOIN / INTO / UPDATE
- Column names from the tables the statement references, with alias support
- SHOW sub-commands
"""

from .completion import CompletionEngine, CompletionResult, get_completions, get_context
from .context import (
    AfterExpression,
    AfterFrom,
    AfterShowKeyword,
    AfterUse,
    ColumnContext,
    CompletionContext,
    MalformedInputIgnored,
    StatementStart,
    TableRef,
    Unknown,
    classify,
    extract_table_refs,
)
from .core import (
    CLAUSE_CONTINUATIONS,
    SHOW_SUB_KEYWORDS,
    STATEMENT_KEYWORDS,
    Candidate,
    CandidateKind,
    longest_common_prefix,
    rank,
)
from .display import candidate_label
from .tokenizer import Token, TokenKind, tokenize

__all__ = [
    # Engine
    "CompletionEngine",
    "CompletionResult",
    "get_completions",
    "get_context",
    # Context
    "AfterExpression",
    "AfterFrom",
    "AfterShowKeyword",
    "AfterUse",
    "ColumnContext",
    "CompletionContext",
    "MalformedInputIgnored",
    "StatementStart",
    "TableRef",
    "Unknown",
    "classify",
    "extract_table_refs",
    # Candidates
    "CLAUSE_CONTINUATIONS",
    "SHOW_SUB_KEYWORDS",
    "STATEMENT_KEYWORDS",
    "Candidate",
    "CandidateKind",
    "candidate_label",
    "longest_common_prefix",
    "rank",
    # Tokens
    "Token",
    "TokenKind",
    "tokenize",
]
