"""Management command to inspect and toggle favorites."""
from __future__ import annotations

import json
from typing import Any

from django.core.management.base import BaseCommand, CommandError

from backend.api.views import get_session_factory
from backend.core import models


class Command(BaseCommand):
    help = "List favorites or toggle a city in the favorites list"

    def add_arguments(self, parser) -> None:  # noqa: D401
        group = parser.add_mutually_exclusive_group(required=True)
        group.add_argument("--list", action="store_true", help="Print favorites, newest first")
        group.add_argument("--toggle", metavar="CITY", help="Add or remove CITY")
        parser.add_argument("--lat", type=float)
        parser.add_argument("--lon", type=float)

    def handle(self, *args: Any, **options: Any) -> None:  # noqa: D401
        factory = get_session_factory()
        if options.get("list"):
            with models.session_scope(factory) as session:
                favorites = models.list_favorites(session)
            self.stdout.write(json.dumps([f.as_dict() for f in favorites], ensure_ascii=False))
            return

        city = options.get("toggle") or ""
        if not city.strip():
            raise CommandError("CITY must not be empty")
        result = models.toggle_favorite(city, options.get("lat"), options.get("lon"), session_factory=factory)
        self.stdout.write(json.dumps(result.as_dict(), ensure_ascii=False))
