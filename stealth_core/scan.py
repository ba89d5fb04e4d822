# stealth_core/scan.py
"""
Scan a stream of announcements for payments to one account.

Each check is independent, so with workers > 1 they are fanned out over a
thread pool. Results always come back in input order.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, List, Mapping, Optional, Union

from .config import Settings
from .keypair import KeyPair
from .models import Announcement
from .protocol import verify_announcement
from .registry import KeyRegistry
from .results import Match, VerificationResult

logger = logging.getLogger(__name__)


def scan_announcements(
    announcements: Iterable[Union[Announcement, Mapping]],
    registry: KeyRegistry,
    viewing_private_key: Union[str, KeyPair],
    account: str,
    workers: Optional[int] = None,
    settings: Optional[Settings] = None,
) -> List[VerificationResult]:
    """
    Verify every announcement for `account`, in input order.

    `workers` defaults to `settings.scan_workers`, reading the environment
    when no settings are given.
    """
    if workers is None:
        workers = (settings or Settings.from_env()).scan_workers
    pending = list(announcements)
    if not pending:
        logger.info("[scanner] no pending announcements")
        return []

    def check(announcement):
        return verify_announcement(announcement, registry, viewing_private_key, account)

    if workers > 1:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            results = list(pool.map(check, pending))
    else:
        results = [check(a) for a in pending]

    matched = sum(1 for r in results if r.is_for_user)
    logger.info("[scanner] scanned %d announcement(s) for %s: %d match(es)", len(results), account, matched)
    return results


def find_user_funds(
    announcements: Iterable[Union[Announcement, Mapping]],
    registry: KeyRegistry,
    viewing_private_key: Union[str, KeyPair],
    account: str,
    workers: Optional[int] = None,
    settings: Optional[Settings] = None,
) -> List[Match]:
    """Only the announcements that pay `account`."""
    results = scan_announcements(
        announcements, registry, viewing_private_key, account, workers=workers, settings=settings
    )
    return [r for r in results if isinstance(r, Match)]
