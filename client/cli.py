"""Interactive terminal client for the weather lookup backend."""
from __future__ import annotations

import argparse
import logging
import sys
from concurrent.futures import Future
from typing import List, Optional, TextIO

from client.api import WeatherAPIClient
from client.config import BUSY_POLICIES, ClientConfig
from client.controller import SearchController
from client.errors import SearchError
from client.preferences import CELSIUS, FAHRENHEIT, Preferences
from client.view import ERROR, ConsoleView
from core.entities import Coordinates


logger = logging.getLogger(__name__)

HELP = """Comandos:
  <ciudad>            buscar el clima de una ciudad
  :coords LAT LON     buscar por coordenadas
  :unit C|F           cambiar la unidad de temperatura
  :fav                agregar o quitar la ubicación actual de favoritos
  :favs               listar favoritos
  :history            ver búsquedas recientes
  :quit               salir"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="weather-lookup", description=__doc__)
    parser.add_argument("query", nargs="*", help="City to look up once and exit")
    parser.add_argument("--backend", help="Backend base URL")
    parser.add_argument("--timeout", type=float, help="Per request timeout in seconds")
    parser.add_argument("--busy-policy", choices=BUSY_POLICIES)
    parser.add_argument("--no-state", action="store_true", help="Do not persist preferences")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def build_config(args: argparse.Namespace) -> ClientConfig:
    config = ClientConfig()
    if args.backend:
        config.backend_url = args.backend
    if args.timeout:
        config.timeout = args.timeout
    if args.busy_policy:
        config.busy_policy = args.busy_policy
    return config


class Session:
    """One interactive session; ``pending`` is the lookup started by the last line."""

    def __init__(self, controller: SearchController, client: WeatherAPIClient, view: ConsoleView) -> None:
        self.controller = controller
        self.client = client
        self.view = view
        self.pending: Optional[Future] = None

    def wait(self) -> None:
        if self.pending is not None:
            self.pending.result()
            self.pending = None

    def handle(self, line: str) -> bool:
        """Run one REPL line; returns ``False`` when the session should end."""
        command, _, rest = line.partition(" ")
        if command in (":quit", ":q", ":exit"):
            return False
        handle_command(command, rest.strip(), line, self)
        return True


def handle_command(command: str, rest: str, line: str, session: Session) -> None:
    controller, client, view = session.controller, session.client, session.view
    if command == ":help":
        view.stream.write(HELP + "\n")
    elif command == ":coords":
        try:
            lat, lon = (float(part) for part in rest.replace(",", " ").split())
        except ValueError:
            view.set_status("Uso: :coords LAT LON", ERROR)
        else:
            session.pending = controller.lookup(Coordinates(lat, lon))
    elif command == ":unit":
        unit = rest.upper()
        if unit not in (CELSIUS, FAHRENHEIT):
            view.set_status("Uso: :unit C|F", ERROR)
        else:
            controller.refresh_units(unit)
    elif command == ":fav":
        if controller.toggle_current_favorite() is None and controller.last_result is None:
            view.set_status("Primero buscá una ciudad", ERROR)
    elif command == ":favs":
        try:
            favorites = client.list_favorites()
        except SearchError as exc:
            view.set_status(exc.message, ERROR)
        else:
            view.show_history([favorite["city"] for favorite in favorites])
    elif command == ":history":
        view.show_history(controller.preferences.history())
    else:
        session.pending = controller.lookup(line)


def run(argv: Optional[List[str]] = None, stdin: TextIO = sys.stdin, stdout: TextIO = sys.stdout) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        config = build_config(args)
    except ValueError as exc:
        stdout.write(f"{exc}\n")
        return 2

    preferences = Preferences(None if args.no_state else config.state_path, history_size=config.history_size)
    client = WeatherAPIClient(config.backend_url, timeout=config.timeout)
    view = ConsoleView(stdout, unit=lambda: preferences.unit)

    with SearchController(client, view, preferences=preferences, config=config) as controller:
        if args.query:
            future = controller.lookup(" ".join(args.query))
            if future is not None:
                future.result()
            return 0 if controller.has_rendered else 1

        stdout.write(HELP + "\n")
        session = Session(controller, client, view)
        session.pending = controller.start()
        session.wait()
        for raw in stdin:
            line = raw.strip()
            if not line:
                continue
            if not session.handle(line):
                break
            session.wait()
    return 0


def main() -> None:
    sys.exit(run())


__all__ = ["Session", "build_parser", "handle_command", "main", "run"]
