"""Remote version catalog backed by a scraped directory listing."""

import logging
from typing import Callable, List, Optional

from constants import Constants, SymbolicTargets
from errors import CatalogEmpty
from common.logging_utils import extra_context, is_debug_enabled
from .models import SemanticVersion
from .parser import extract_stable_versions, extract_versions, parse_version

logger = logging.getLogger(__name__)


class VersionCatalog:
    """Answers "what versions exist" from one fetch of the remote listing.

    Each query refetches; nothing is cached or persisted. Retrying is the
    fetch collaborator's business, not the catalog's.
    """

    def __init__(self, fetch: Optional[Callable[[str], str]] = None, listing_url: Optional[str] = None):
        if fetch is None:
            from common.http_client import fetch_text  # pylint: disable=import-outside-toplevel
            fetch = fetch_text
        self._fetch = fetch
        self.listing_url = listing_url or Constants.LISTING_URL

    def _snapshot(self) -> str:
        return self._fetch(self.listing_url)

    def list(self) -> List[SemanticVersion]:
        """All versions in the listing, ascending."""
        versions = extract_versions(self._snapshot())
        if is_debug_enabled(logger):
            logger.debug(
                "Catalog snapshot",
                extra=extra_context(
                    event="catalog_snapshot",
                    component="catalog",
                    action="list",
                    count=len(versions),
                ),
            )
        return versions

    def latest(self) -> SemanticVersion:
        """Highest version in the listing.

        Raises:
            CatalogEmpty: nothing in the listing parsed as a version.
        """
        versions = extract_versions(self._snapshot())
        if not versions:
            raise CatalogEmpty(self.listing_url)
        return versions[-1]

    def latest_stable(self) -> SemanticVersion:
        """Highest even-minor version in the listing."""
        versions = extract_stable_versions(self._snapshot())
        if not versions:
            raise CatalogEmpty(self.listing_url)
        return versions[-1]

    def resolve(self, target: str) -> SemanticVersion:
        """Turn a symbolic or literal target into a concrete version.

        Literal versions are not checked against the listing; an unknown one
        fails later when its archive is fetched.
        """
        name = (target or "").strip().lower()
        if name == SymbolicTargets.LATEST.value:
            version = self.latest()
        elif name == SymbolicTargets.STABLE.value:
            version = self.latest_stable()
        else:
            return parse_version(target)
        logger.info("Resolved %s to %s", name, version)
        return version
