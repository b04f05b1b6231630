"""Interactive CLI application."""
import logging
import sys
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.prompt import IntPrompt, Prompt
from rich.table import Table

from leitner.config import SrsSettings, load_config, save_settings
from leitner.cram import CramEngine, CramFilters
from leitner.db import DEFAULT_DB_PATH, init_db
from leitner.errors import LeitnerError
from leitner.library import get_card, get_or_create_user, list_decks, list_folders, load_library
from leitner.models import ForgottenCardAction, QueueMix, ReviewOrder, Scope, SessionKind, SessionState
from leitner.notify import count_due_cards
from leitner.sessions import ReviewSessionEngine
from leitner.stats import box_distribution, reviews_past_days, today_summary
from leitner.undo import undo_last_review

console = Console()
logger = logging.getLogger(__name__)

RATING_CHOICES = ["again", "hard", "good", "easy", "skip", "undo", "stop"]


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=verbose)],
        force=True,
    )


def show_welcome(due: int):
    console.print(Panel(
        f"[bold]Leitner Review[/bold]\n[dim]{due} card(s) due today[/dim]",
        title="Welcome", border_style="blue",
    ))


def show_menu():
    console.print("\n[bold]Commands:[/bold]")
    commands = [
        ("review", "Review due cards in a deck or folder"),
        ("cram", "Practise cards regardless of due dates"),
        ("undo", "Undo the last rating"),
        ("stats", "Box distribution and recent reviews"),
        ("load", "Load decks from a YAML file"),
        ("settings", "Daily limits and review order"),
        ("quit", "Exit"),
    ]
    for cmd, desc in commands:
        console.print(f"  [cyan]{cmd:<14}[/cyan] {desc}")


def choose_scope(db_path: str, user_id: int) -> Optional[Scope]:
    decks = list_decks(db_path, user_id)
    folders = list_folders(db_path, user_id)
    if not decks:
        console.print("[yellow]No decks yet. Use 'load' to add some.[/yellow]")
        return None

    table = Table(title="Your Library")
    table.add_column("Kind")
    table.add_column("ID", justify="right")
    table.add_column("Name", style="cyan")
    table.add_column("Cards", justify="right")
    for f in folders:
        table.add_row("folder", str(f["id"]), "  " * f["depth"] + f["name"], "")
    for d in decks:
        table.add_row("deck", str(d["id"]), d["name"], str(d["card_count"]))
    console.print(table)

    kind = "deck"
    if folders:
        kind = Prompt.ask("Study a deck or a folder", choices=["deck", "folder"], default="deck")
    if kind == "folder":
        return Scope.folder(IntPrompt.ask("Folder ID", choices=[str(f["id"]) for f in folders]))
    return Scope.deck(IntPrompt.ask("Deck ID", choices=[str(d["id"]) for d in decks]))


def run_session(engine: ReviewSessionEngine, session: SessionState) -> None:
    if session.total == 0:
        console.print("[yellow]No cards due right now![/yellow]")
        return
    label = "Cram" if session.kind is SessionKind.CRAM else "Review"
    console.print(f"\n[bold]{label} Session[/bold] ({session.total} cards)\n")

    while session.current_card_id is not None:
        card = get_card(engine.db_path, session.current_card_id)
        completed, total = session.progress
        console.print(Panel(card["front"], title=f"Card {completed + 1}/{total}", border_style="cyan"))
        Prompt.ask("[dim]Press Enter to reveal answer[/dim]", default="")
        console.print(Panel(card["back"], border_style="green"))
        choice = Prompt.ask("Rate yourself", choices=RATING_CHOICES, default="good")

        if choice == "stop":
            break
        if choice == "skip":
            engine.skip_card(session.session_id, card["id"])
        elif choice == "undo":
            try:
                card_id = engine.undo_last_review(session.session_id)
                console.print(f"[dim]Undid the rating for card {card_id}.[/dim]")
            except LeitnerError as e:
                console.print(f"[yellow]{e}[/yellow]")
        else:
            try:
                result = engine.submit_rating(session.session_id, card["id"], choice)
            except LeitnerError as e:
                console.print(f"[red]{e}[/red]")
                break
            if result.position is not None:
                console.print(
                    f"[dim]Box {result.position.current_box}, due {result.position.due_date.isoformat()}[/dim]"
                )
        console.print()

    tally = ", ".join(f"{r.value.lower()}: {n}" for r, n in session.ratings.items()) or "none"
    console.print(f"[bold]Reviewed {session.completed}/{session.total}[/bold] ({tally})\n")
    engine.end(session.session_id)


def cmd_review(engine: ReviewSessionEngine, user_id: int):
    scope = choose_scope(engine.db_path, user_id)
    if scope is None:
        return
    run_session(engine, engine.start(user_id, scope))


def cmd_cram(cram: CramEngine, user_id: int):
    scope = choose_scope(cram.sessions.db_path, user_id)
    if scope is None:
        return
    include_learned = Prompt.ask("Include learned cards", choices=["y", "n"], default="n") == "y"
    apply_to_srs = Prompt.ask("Update the schedule with these ratings", choices=["y", "n"], default="n") == "y"
    session = cram.start(user_id, scope, CramFilters(include_learned=include_learned), apply_to_srs=apply_to_srs)
    run_session(cram.sessions, session)


def cmd_undo(engine: ReviewSessionEngine, user_id: int):
    card_id = undo_last_review(
        engine.db_path, user_id, now=engine.now(), window_seconds=engine.config.undo_window_seconds
    )
    console.print(f"[green]Undid the last rating (card {card_id}).[/green]")


def cmd_stats(engine: ReviewSessionEngine, user_id: int):
    today = engine.today_for(user_id)
    summary = today_summary(engine.db_path, user_id, today, engine.config.default_settings)
    console.print(Panel(
        f"New cards: [bold]{summary['new_cards_consumed']}[/bold]/{summary['new_cards_per_day']}  |  "
        f"Reviews: [bold]{summary['reviews_consumed']}[/bold]/{summary['max_reviews_per_day']}",
        title=f"Today ({summary['day']})", border_style="blue",
    ))

    table = Table(title="Cards per Box")
    table.add_column("Box", justify="right")
    table.add_column("Interval", justify="right")
    table.add_column("Cards", justify="right")
    intervals = engine.table.as_dict()
    for box, count in box_distribution(engine.db_path, user_id, table=engine.table).items():
        table.add_row(str(box), f"{intervals[box]}d", str(count))
    console.print(table)

    history = reviews_past_days(engine.db_path, user_id, today)
    console.print(f"\n  Last 7 days: {' '.join(str(n) for n in history)}")


def cmd_load(db_path: str, user_id: int):
    file_path = Prompt.ask("File path")
    if not Path(file_path).exists():
        console.print(f"[red]File not found: {file_path}[/red]")
        return
    counts = load_library(db_path, user_id, file_path)
    console.print(
        f"[green]Loaded {counts['cards']} cards in {counts['decks']} decks "
        f"({counts['folders']} folders)[/green]"
    )


def cmd_settings(engine: ReviewSessionEngine, user_id: int):
    current = engine.settings_for(user_id)
    settings = SrsSettings(
        review_order=ReviewOrder(Prompt.ask(
            "Review order", choices=[o.value for o in ReviewOrder], default=current.review_order.value,
        )),
        queue_mix=QueueMix(Prompt.ask(
            "Queue mix", choices=[m.value for m in QueueMix], default=current.queue_mix.value,
        )),
        forgotten_card_action=ForgottenCardAction(Prompt.ask(
            "Forgotten cards", choices=[a.value for a in ForgottenCardAction],
            default=current.forgotten_card_action.value,
        )),
        move_down_boxes=IntPrompt.ask("Boxes to move down", default=current.move_down_boxes),
        new_cards_per_day=IntPrompt.ask("New cards per day", default=current.new_cards_per_day),
        max_reviews_per_day=IntPrompt.ask("Max reviews per day", default=current.max_reviews_per_day),
        timezone=Prompt.ask("Timezone", default=current.timezone),
        notification_enabled=current.notification_enabled,
    )
    save_settings(engine.db_path, user_id, settings)
    console.print("[green]Settings saved.[/green]")


def main(db_path: str = DEFAULT_DB_PATH, config_path: Optional[str] = None):
    configure_logging(verbose="-v" in sys.argv[1:] or "--verbose" in sys.argv[1:])
    config = load_config(config_path)
    init_db(db_path)
    engine = ReviewSessionEngine(db_path, config)
    cram = CramEngine(engine)

    username = Prompt.ask("Username", default="me").strip()
    user_id = get_or_create_user(db_path, username)
    show_welcome(count_due_cards(db_path, user_id, engine.today_for(user_id)))

    while True:
        show_menu()
        choice = Prompt.ask("\n[bold]>[/bold]", default="review").strip().lower()
        try:
            if choice == "review":
                cmd_review(engine, user_id)
            elif choice == "cram":
                cmd_cram(cram, user_id)
            elif choice == "undo":
                cmd_undo(engine, user_id)
            elif choice == "stats":
                cmd_stats(engine, user_id)
            elif choice == "load":
                cmd_load(db_path, user_id)
            elif choice == "settings":
                cmd_settings(engine, user_id)
            elif choice in ("quit", "exit", "q"):
                console.print("[dim]See you tomorrow![/dim]")
                break
            else:
                console.print("[red]Unknown command. Try again.[/red]")
        except KeyboardInterrupt:
            console.print("\n[dim]Use 'quit' to exit.[/dim]")
        except LeitnerError as e:
            console.print(f"[red]Error: {e}[/red]")
        except Exception as e:
            logger.exception("event=command_failed command=%s", choice)
            console.print(f"[red]Error: {e}[/red]")


if __name__ == "__main__":
    main()
