"""Rendering of technologies, progress and statistics for the terminal.

Functions return lists of lines rather than printing, so the CLI decides
where output goes. Column layout: one column per status, ordered along the
status cycle.
"""
import re
import shutil
import textwrap
from datetime import date
from typing import Dict, List, Mapping, Optional, Sequence

from models import STATUSES, ProgressSummary, Status, Technology
from store import Statistics
from theme import color, HEADER_COLOR, STATUS_COLOR, ID_COLOR, EMPTY_COLOR, BOLD

HEADER_TITLES: Dict[Status, str] = {
    Status.NOT_STARTED: "NOT STARTED",
    Status.IN_PROGRESS: "IN PROGRESS",
    Status.COMPLETED: "COMPLETED",
}
STATUS_ICONS: Dict[Status, str] = {
    Status.NOT_STARTED: "✗",
    Status.IN_PROGRESS: "…",
    Status.COMPLETED: "✓",
}
MIN_COL_WIDTH = 18
SEP = " | "
BAR_WIDTH = 30
ANSI_RE = re.compile(r"\x1b\[[0-9;]*m")


def visible_len(s: str) -> int:
    return len(ANSI_RE.sub('', s))


def _pad(s: str, width: int) -> str:
    return s + ' ' * max(0, width - visible_len(s))


def terminal_width() -> int:
    return shutil.get_terminal_size((120, 30)).columns


# -------------------- progress --------------------
def progress_bar(percent: int, width: int = BAR_WIDTH) -> str:
    filled = int(round(max(0, min(100, percent)) / 100 * width))
    return "[" + "█" * filled + "░" * (width - filled) + "]"


def render_progress(summary: ProgressSummary) -> List[str]:
    line = (f"{progress_bar(summary.percent)} {summary.percent}%  "
            f"({summary.completed}/{summary.total} completed)")
    counts = "   ".join(
        color(f"{HEADER_TITLES[s].title()}: {summary.count(s)}", STATUS_COLOR[s]) for s in STATUSES
    )
    return [color(line, HEADER_COLOR, BOLD), counts]


# -------------------- board --------------------
def _label(tech: Technology) -> str:
    text = tech.title
    if tech.deadline is not None:
        text += f" (due {tech.deadline.isoformat()})"
    return text


def column_widths(columns: Mapping[Status, Sequence[Technology]], term_width: int) -> Dict[Status, int]:
    """Fit the three columns to the terminal, shrinking the widest first."""
    sep_total = len(SEP) * (len(STATUSES) - 1)
    widths: Dict[Status, int] = {}
    for status in STATUSES:
        longest = len(HEADER_TITLES[status])
        for tech in columns[status]:
            longest = max(longest, len(f"{tech.id}. ") + len(_label(tech)))
        widths[status] = max(MIN_COL_WIDTH, longest)
    target = max(term_width - sep_total, len(STATUSES) * MIN_COL_WIDTH)
    while sum(widths.values()) > target:
        widest = max(STATUSES, key=lambda s: widths[s])
        if widths[widest] <= MIN_COL_WIDTH:
            break
        widths[widest] -= 1
    return widths


def _wrap_technology(tech: Technology, width: int) -> List[str]:
    prefix = f"{tech.id}. "
    body = textwrap.wrap(_label(tech), width=max(1, width - len(prefix))) or ['<untitled>']
    lines = [color(f"{tech.id}.", ID_COLOR) + ' ' + color(body[0], STATUS_COLOR[tech.status])]
    indent = ' ' * len(prefix)
    lines.extend(indent + color(part, STATUS_COLOR[tech.status]) for part in body[1:])
    return lines


def render_board(technologies: Sequence[Technology], term_width: Optional[int] = None) -> List[str]:
    columns: Dict[Status, List[Technology]] = {s: [] for s in STATUSES}
    for tech in technologies:
        columns[tech.status].append(tech)
    widths = column_widths(columns, term_width or terminal_width())
    cells: Dict[Status, List[str]] = {}
    for status in STATUSES:
        if not columns[status]:
            cells[status] = [color('(empty)', EMPTY_COLOR)]
            continue
        cells[status] = [line for tech in columns[status] for line in _wrap_technology(tech, widths[status])]
    out = [
        SEP.join(_pad(color(HEADER_TITLES[s], HEADER_COLOR, BOLD), widths[s]) for s in STATUSES),
        SEP.join(color('-' * widths[s], HEADER_COLOR) for s in STATUSES),
    ]
    for r in range(max(len(c) for c in cells.values())):
        row = [_pad(cells[s][r] if r < len(cells[s]) else '', widths[s]) for s in STATUSES]
        out.append(SEP.join(row).rstrip())
    return out


def render_list(technologies: Sequence[Technology]) -> List[str]:
    """One line per technology; used for filtered results."""
    if not technologies:
        return [color('No matching technologies.', EMPTY_COLOR)]
    lines = []
    for tech in technologies:
        icon = color(STATUS_ICONS[tech.status], STATUS_COLOR[tech.status])
        line = f"{color(str(tech.id) + '.', ID_COLOR)} {icon} {tech.title}"
        if tech.description:
            line += f" - {tech.description}"
        lines.append(line)
    return lines


def render_details(tech: Technology) -> List[str]:
    return [
        color(f"{tech.id}. {tech.title}", HEADER_COLOR, BOLD),
        f"  Status:      {color(tech.status.value, STATUS_COLOR[tech.status])}",
        f"  Description: {tech.description or '-'}",
        f"  Deadline:    {tech.deadline.isoformat() if tech.deadline else '-'}",
        f"  Notes:       {tech.notes or '-'}",
    ]


# -------------------- statistics --------------------
def render_statistics(stats: Statistics, today: date) -> List[str]:
    lines = [color("Statistics", HEADER_COLOR, BOLD), '']
    lines.extend(render_progress(stats.progress))
    total = stats.progress.total
    lines.append('')
    for status in STATUSES:
        count = stats.progress.count(status)
        share = (100 * count // total) if total else 0
        bar = progress_bar(share, width=20)
        lines.append(f"  {HEADER_TITLES[status]:<12} {color(bar, STATUS_COLOR[status])} {count}")
    lines.append('')
    lines.append(color("Deadlines", HEADER_COLOR, BOLD))
    if not stats.upcoming:
        lines.append(color('  (none set)', EMPTY_COLOR))
    for tech in stats.upcoming:
        days = (tech.deadline - today).days
        if tech in stats.overdue:
            when = f"overdue by {-days}d"
        elif tech.status is Status.COMPLETED:
            when = "done"
        else:
            when = f"in {days}d"
        lines.append(f"  {tech.deadline.isoformat()}  {tech.title} ({when})")
    return lines
