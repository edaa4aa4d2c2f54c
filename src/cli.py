"""Command-line interface loop for the technology tracker.

The store is injected; the CLI only parses commands, calls store operations
and redraws. Persistence happens inside the store after each change.
"""
import logging
import shlex
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional

import click

from display import render_board, render_details, render_list, render_progress, render_statistics
from models import InvalidInput, Status, TechId
from store import EDITABLE_FIELDS, ProgressStore

logger = logging.getLogger(__name__)

# --- terminal control helpers ---
# ESC[3J (scrollback), ESC[H (home), ESC[2J (screen), ESC[H (home)
CLEAR_SEQ = "\033[3J\033[H\033[2J\033[H"


def _clear_screen() -> None:
    click.echo(CLEAR_SEQ, nl=False)


def _enter_alt_screen() -> None:
    click.echo("\033[?1049h", nl=False)


def _leave_alt_screen() -> None:
    click.echo("\033[?1049l", nl=False)


STATUS_ALIASES: Dict[str, Status] = {
    'ns': Status.NOT_STARTED,
    'todo': Status.NOT_STARTED,
    'not-started': Status.NOT_STARTED,
    'ip': Status.IN_PROGRESS,
    'in-progress': Status.IN_PROGRESS,
    'c': Status.COMPLETED,
    'done': Status.COMPLETED,
    'completed': Status.COMPLETED,
}


def parse_id(raw: str) -> TechId:
    """Numeric ids become ints; anything else is kept as a string id."""
    token = raw.strip().rstrip('.')
    return int(token) if token.isdigit() else token


def parse_deadline(raw: str) -> Optional[date]:
    """ISO date, or none/-/empty to clear. Raises ValueError otherwise."""
    value = raw.strip().lower()
    if value in {'', 'none', '-'}:
        return None
    return date.fromisoformat(value)


class CLI:
    def __init__(self, store: ProgressStore, alt_screen: bool = True,
                 today: Optional[date] = None):
        self.store = store
        self.alt_screen = alt_screen
        self.today = today
        self.messages: List[str] = []
        self.view_status: str = 'all'
        self.view_search: Optional[str] = None

    def say(self, text: str) -> None:
        self.messages.append(text)

    # -------------------- drawing --------------------
    def draw(self) -> None:
        _clear_screen()
        click.echo("Technology Tracker:")
        for line in render_progress(self.store.progress()):
            click.echo(line)
        click.echo('')
        if self.view_status == 'all' and not self.view_search:
            lines = render_board(self.store.technologies)
        else:
            click.echo(f"Filter: status={self.view_status} search={self.view_search or '-'}")
            lines = render_list(self.store.filter(self.view_status, self.view_search))
        for line in lines:
            click.echo(line)
        if self.messages:
            click.echo('')
            for msg in self.messages:
                click.echo(msg)
            self.messages = []

    def _page(self, lines: List[str]) -> None:
        _clear_screen()
        for line in lines:
            click.echo(line)
        click.prompt("\nPress Enter to return to the board", default='', show_default=False,
                     prompt_suffix='')

    def run(self) -> None:
        """Main REPL loop; the board is cleared and redrawn each cycle."""
        exit_message: Optional[str] = None
        if self.alt_screen:
            _enter_alt_screen()
        try:
            while True:
                self.draw()
                line = click.prompt("\n", default='', show_default=False, prompt_suffix=': ').strip()
                if not line:
                    continue
                if line.lower() == 'exit':
                    exit_message = "Goodbye."
                    break
                self.handle_command(line)
        except (KeyboardInterrupt, EOFError, click.Abort):
            exit_message = "Interrupted. Goodbye."
        finally:
            if self.alt_screen:
                _leave_alt_screen()
            if exit_message:
                click.echo(exit_message)

    # -------------------- command dispatch --------------------
    def handle_command(self, line: str) -> None:
        try:
            tokens = shlex.split(line)
        except ValueError as exc:
            self.say(f"Cannot parse command: {exc}")
            return
        if not tokens:
            return
        cmd, args = tokens[0].lower(), tokens[1:]
        logger.debug('Command %s %s', cmd, args)
        handler = self.COMMANDS.get(cmd)
        if handler is None:
            self.say("Unknown command. Type 'help' for instructions.")
            return
        try:
            handler(self, args)
        except InvalidInput as exc:
            self.say(str(exc))

    # ---- individual command helpers ----
    def _cmd_help(self, args: List[str]) -> None:
        self._page([
            "Commands:",
            "  ls [status] [search...]   Filter the view (ls alone shows the board)",
            "  show <id>                 Show details, notes and deadline",
            "  cycle <id> (or c <id>)    Advance status: not-started -> in-progress -> completed",
            "  set <id> <status>         Set status; aliases: ns, ip, c (or done)",
            "  bulk <status> <id...>     Set status on several technologies",
            "  add [title [| description]]  Add a technology (prompts without a title)",
            "  edit <id> field=value...  Edit title, description, status, notes, deadline",
            "  note <id> <text...>       Replace notes",
            "  due <id> <YYYY-MM-DD|none> Set or clear the deadline",
            "  all-done                  Mark every technology completed",
            "  reset                     Reset every status to not-started",
            "  random                    Start a random not-started technology",
            "  stats                     Show statistics and deadlines",
            "  export <file>             Write progress to a JSON file",
            "  import <file>             Replace progress from a JSON file",
            "  help                      Show this help",
            "  exit                      Quit (progress is saved continuously)",
        ])

    def _cmd_ls(self, args: List[str]) -> None:
        status = 'all'
        if args and (args[0].lower() == 'all' or args[0].lower() in STATUS_ALIASES):
            first = args.pop(0).lower()
            status = 'all' if first == 'all' else STATUS_ALIASES[first].value
        self.view_status = status
        self.view_search = ' '.join(args) or None

    def _cmd_show(self, args: List[str]) -> None:
        if len(args) != 1:
            self.say("Usage: show <id>")
            return
        tech = self.store.get(parse_id(args[0]))
        if tech is None:
            self.say(f"Technology {args[0]} not found.")
            return
        self._page(render_details(tech))

    def _cmd_cycle(self, args: List[str]) -> None:
        if len(args) != 1:
            self.say("Usage: cycle <id>")
            return
        self.store.cycle_status(parse_id(args[0]))

    def _status_arg(self, raw: str) -> Optional[Status]:
        status = STATUS_ALIASES.get(raw.lower())
        if status is None:
            self.say("Invalid status.")
        return status

    def _cmd_set(self, args: List[str]) -> None:
        if len(args) != 2:
            self.say("Usage: set <id> <status>; statuses: ns/ip/c")
            return
        status = self._status_arg(args[1])
        if status is not None:
            self.store.update_status(parse_id(args[0]), status)

    def _cmd_bulk(self, args: List[str]) -> None:
        if len(args) < 2:
            self.say("Usage: bulk <status> <id> [<id>...]")
            return
        status = self._status_arg(args[0])
        if status is not None:
            self.store.bulk_update_status([parse_id(a) for a in args[1:]], status)

    def _cmd_add(self, args: List[str]) -> None:
        if args:
            title, _, description = ' '.join(args).partition('|')
        else:
            title = click.prompt("Enter title", default='', show_default=False)
            description = click.prompt("Enter description", default='', show_default=False)
        tech = self.store.add_technology(title.strip(), description.strip())
        self.say(f'Added "{tech.title}" as {tech.id}.')

    def _cmd_edit(self, args: List[str]) -> None:
        if len(args) < 2:
            self.say(f"Usage: edit <id> field=value ...; fields: {', '.join(EDITABLE_FIELDS)}")
            return
        patch: Dict[str, Any] = {}
        for pair in args[1:]:
            name, sep, value = pair.partition('=')
            if not sep:
                self.say(f"Expected field=value, got {pair!r}.")
                return
            name = name.strip().lower()
            if name == 'status':
                status = self._status_arg(value)
                if status is None:
                    return
                patch[name] = status
            elif name == 'deadline':
                try:
                    patch[name] = parse_deadline(value)
                except ValueError:
                    self.say("Invalid date; use YYYY-MM-DD or none.")
                    return
            else:
                patch[name] = value
        self.store.edit_technology(parse_id(args[0]), **patch)

    def _cmd_note(self, args: List[str]) -> None:
        if not args:
            self.say("Usage: note <id> <text...>")
            return
        self.store.update_notes(parse_id(args[0]), ' '.join(args[1:]))

    def _cmd_due(self, args: List[str]) -> None:
        if len(args) != 2:
            self.say("Usage: due <id> <YYYY-MM-DD|none>")
            return
        try:
            deadline = parse_deadline(args[1])
        except ValueError:
            self.say("Invalid date; use YYYY-MM-DD or none.")
            return
        self.store.update_deadline(parse_id(args[0]), deadline)

    def _cmd_all_done(self, args: List[str]) -> None:
        self.store.mark_all_completed()

    def _cmd_reset(self, args: List[str]) -> None:
        self.store.reset_all_statuses()

    def _cmd_random(self, args: List[str]) -> None:
        chosen = self.store.random_select_next()
        if chosen is None:
            self.say("Nothing left to start.")
        else:
            self.say(f'Next up: "{chosen.title}".')

    def _cmd_stats(self, args: List[str]) -> None:
        today = self.today or date.today()
        self._page(render_statistics(self.store.statistics(today), today))

    def _cmd_export(self, args: List[str]) -> None:
        if len(args) != 1:
            self.say("Usage: export <file>")
            return
        try:
            Path(args[0]).write_text(self.store.export_snapshot(), encoding='utf-8')
        except OSError as exc:
            self.say(f"Export failed: {exc}")
            return
        self.say(f"Exported to {args[0]}.")

    def _cmd_import(self, args: List[str]) -> None:
        if len(args) != 1:
            self.say("Usage: import <file>")
            return
        try:
            text = Path(args[0]).read_text(encoding='utf-8')
        except OSError as exc:
            self.say(f"Import failed: {exc}")
            return
        count = self.store.import_snapshot(text)
        self.say(f"Imported {count} technologies.")

    COMMANDS = {
        'help': _cmd_help,
        'ls': _cmd_ls,
        'show': _cmd_show,
        'cycle': _cmd_cycle,
        'c': _cmd_cycle,
        'set': _cmd_set,
        'bulk': _cmd_bulk,
        'add': _cmd_add,
        'edit': _cmd_edit,
        'note': _cmd_note,
        'due': _cmd_due,
        'all-done': _cmd_all_done,
        'reset': _cmd_reset,
        'random': _cmd_random,
        'stats': _cmd_stats,
        'export': _cmd_export,
        'import': _cmd_import,
    }
