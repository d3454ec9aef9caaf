"""Command-line interface for puctree."""

from pathlib import Path
from typing import Optional

import chess
import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from puctree import __version__
from puctree.chess import ChessBoard, UCIEngine
from puctree.core.configs import AppConfig, load_app_config
from puctree.core.utils.logging import setup_logging
from puctree.mcts import MCTS, Node, SearchReport

app = typer.Typer(
    name="puctree",
    help="puctree: PUCT Monte Carlo Tree Search over engine-scored chess positions",
    add_completion=False,
)
console = Console()


def _collect_overrides(
    overrides: Optional[list[str]],
    *,
    engine: Optional[str] = None,
    move_time: Optional[int] = None,
    workers: Optional[int] = None,
    multipv: Optional[int] = None,
    log_level: Optional[str] = None,
) -> list[str]:
    """Turn the shortcut options into OmegaConf dotlist overrides."""
    result = list(overrides or [])
    if engine is not None:
        result.append(f"engine.binary_path={engine}")
    if move_time is not None:
        result.append(f"mcts.move_time_ms={move_time}")
    if workers is not None:
        result.append(f"mcts.num_workers={workers}")
    if multipv is not None:
        result.append(f"engine.num_moves={multipv}")
    if log_level is not None:
        result.append(f"logging.level={log_level}")
    return result


def _load(config: Optional[Path], overrides: list[str]) -> AppConfig:
    try:
        cfg = load_app_config(config, overrides)
    except (FileNotFoundError, ValueError, TypeError) as e:
        console.print(f"[bold red]Invalid configuration:[/bold red] {e}")
        raise typer.Exit(code=2) from e
    setup_logging(cfg.logging.level, cfg.logging.file)
    return cfg


def _start_engine(cfg: AppConfig) -> UCIEngine:
    try:
        return UCIEngine(
            cfg.engine.binary_path,
            move_time_ms=cfg.engine.move_time_ms,
            hash_mb=cfg.engine.hash_mb,
            timeout=cfg.engine.timeout,
        )
    except FileNotFoundError as e:
        console.print(f"[bold red]{e}[/bold red]")
        raise typer.Exit(code=1) from e


def _print_report(report: SearchReport, node: Node) -> None:
    console.print(report.summary())

    table = Table(show_header=True, header_style="bold")
    table.add_column("Action")
    table.add_column("Raw", justify="right")
    table.add_column("Value", justify="right")
    table.add_column("P", justify="right")
    table.add_column("Q", justify="right")
    table.add_column("N", justify="right")
    table.add_column("Q+U", justify="right")

    for s in report.root_stats:
        table.add_row(
            s.action.encoding,
            f"{s.action.raw_value:+.2f}",
            f"{s.action.value:+.3f}",
            f"{s.prior:.3f}",
            f"{s.q:.3f}",
            f"{s.visits:,d}",
            f"{s.ucb:.3f}",
        )
    console.print(table)

    if report.best_action is not None:
        pv = " ".join(a.encoding for a in node.principal_variation())
        console.print(f"[bold green]Best move:[/bold green] {report.best_action.encoding}  [dim]pv {pv}[/dim]")


@app.command()
def version() -> None:
    """Print version information."""
    console.print(f"[bold blue]puctree[/bold blue] v{__version__}")


@app.command()
def search(
    fen: str = typer.Option(chess.STARTING_FEN, "--fen", "-f", help="Position to search"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML config file"),
    engine: Optional[str] = typer.Option(None, "--engine", "-e", help="UCI engine binary"),
    move_time: Optional[int] = typer.Option(None, "--move-time", "-t", help="Search time in milliseconds"),
    workers: Optional[int] = typer.Option(None, "--workers", "-w", help="Parallel search threads"),
    multipv: Optional[int] = typer.Option(None, "--multipv", help="Candidate moves per position"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Log level"),
    overrides: Optional[list[str]] = typer.Argument(None, help="Config overrides, e.g. mcts.c_puct=2.5"),
) -> None:
    """Search a chess position and print the root statistics."""
    cfg = _load(
        config,
        _collect_overrides(
            overrides, engine=engine, move_time=move_time, workers=workers, multipv=multipv, log_level=log_level
        ),
    )
    mcts = MCTS(cfg.mcts.to_mcts_config())

    with _start_engine(cfg) as uci:
        node = Node(ChessBoard(uci, fen, cfg.engine.num_moves))
        console.print(f"[bold cyan]Searching[/bold cyan] {fen} with {mcts.name}")
        report = mcts.search(node)
        _print_report(report, node)


@app.command()
def play(
    fen: str = typer.Option(chess.STARTING_FEN, "--fen", "-f", help="Starting position"),
    plies: int = typer.Option(10, "--plies", "-n", help="Number of half-moves to play"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML config file"),
    engine: Optional[str] = typer.Option(None, "--engine", "-e", help="UCI engine binary"),
    move_time: Optional[int] = typer.Option(None, "--move-time", "-t", help="Search time per move in milliseconds"),
    workers: Optional[int] = typer.Option(None, "--workers", "-w", help="Parallel search threads"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Log level"),
    overrides: Optional[list[str]] = typer.Argument(None, help="Config overrides, e.g. mcts.c_puct=2.5"),
) -> None:
    """Self-play from a position, reusing the chosen subtree between moves."""
    cfg = _load(
        config,
        _collect_overrides(overrides, engine=engine, move_time=move_time, workers=workers, log_level=log_level),
    )
    mcts = MCTS(cfg.mcts.to_mcts_config())

    with _start_engine(cfg) as uci:
        node = Node(ChessBoard(uci, fen, cfg.engine.num_moves))
        for ply in range(1, plies + 1):
            if node.is_terminal():
                console.print(f"[yellow]Game over[/yellow] after {ply - 1} plies")
                break

            report = mcts.search(node)
            child = node.best_child()
            if child is None:
                console.print("[yellow]Search produced no visits; increase the move time[/yellow]")
                break

            action = node.actions[child.child_index]
            logger.debug(f"Ply {ply}: {action.encoding} after {report.simulations} simulations")
            console.print(
                f"{ply:3d}. {action.encoding:<6} Q={node.Q[child.child_index]:+.3f} "
                f"N={int(node.N[child.child_index]):,d} sims={report.simulations:,d}"
            )
            node = child

        console.print(f"[bold]Final position:[/bold] {node.game_state.as_string()}")


if __name__ == "__main__":
    app()
