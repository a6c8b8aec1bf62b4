"""Wiring of settings, store, and services for a request handler."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from .config import Settings, load_settings
from .identity import AuthProvider, IdentityResolver, SideEffectFailure
from .logging_config import setup_logging
from .pledges import PledgeService
from .store import MissionsStore


@dataclass
class MissionsOffice:
    settings: Settings
    store: MissionsStore
    resolver: IdentityResolver
    pledges: PledgeService


def open_office(
    settings: Settings | None = None,
    auth_provider: AuthProvider | None = None,
    on_side_effect_failure: Callable[[SideEffectFailure], None] | None = None,
) -> MissionsOffice:
    settings = settings or load_settings()
    setup_logging(settings.log_level)

    store = MissionsStore(settings.db_path)
    store.init_db()

    return MissionsOffice(
        settings=settings,
        store=store,
        resolver=IdentityResolver(
            store,
            auth_provider=auth_provider,
            on_side_effect_failure=on_side_effect_failure,
            max_attempts=settings.resolver_attempts,
        ),
        pledges=PledgeService(store),
    )
