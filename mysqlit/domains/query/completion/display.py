"""Rich-rendered completion labels for the read loop."""

from __future__ import annotations

from rich.text import Text

from mysqlit.shared.core.utils import starts_with_folded

from .core import Candidate, CandidateKind

KIND_ICONS = {
    CandidateKind.KEYWORD: "K",
    CandidateKind.DATABASE: "D",
    CandidateKind.TABLE: "T",
    CandidateKind.COLUMN: "C",
    CandidateKind.SUB_COMMAND: "S",
}

KIND_STYLES = {
    CandidateKind.KEYWORD: "bold magenta",
    CandidateKind.DATABASE: "green",
    CandidateKind.TABLE: "cyan",
    CandidateKind.COLUMN: "yellow",
    CandidateKind.SUB_COMMAND: "magenta",
}


def candidate_label(candidate: Candidate, partial: str = "", *, show_detail: bool = True) -> Text:
    """Build a one-line label: kind icon, name with the typed prefix highlighted, detail.

    Args:
        candidate: Candidate to render
        partial: Text the user has typed; its matched prefix is highlighted
        show_detail: Append the candidate's detail in dim style

    Returns:
        A ``rich.text.Text`` ready to print.
    """
    style = KIND_STYLES.get(candidate.kind, "")
    label = Text()
    label.append(f"[{KIND_ICONS.get(candidate.kind, '?')}] ", style="dim")
    name = Text(candidate.text, style=style)
    if partial and starts_with_folded(candidate.text, partial):
        name.stylize("bold underline", 0, len(partial))
    label.append_text(name)
    if show_detail and candidate.detail:
        label.append(f"  {candidate.detail}", style="dim")
    return label


def hint_text(hint: str) -> Text:
    """Greyed inline hint shown after the cursor."""
    return Text(hint, style="dim")
