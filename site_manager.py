import logging
import re
from typing import List, Optional

from core.errors import CodeError
from core.models import Site
from stores.site_store import SiteStore

logger = logging.getLogger(__name__)

SITE_NAME_RE = re.compile(r"^[a-z0-9][a-z0-9_-]{0,63}$")


class SiteManager:
    """Site directory: name ↔ id resolution plus subscriptions."""

    def __init__(self, site_store: SiteStore):
        self.store = site_store

    @staticmethod
    def normalize(site: str) -> str:
        return (site or "").strip().lower()

    def get_site_by_name(self, site: str) -> Optional[Site]:
        return self.store.get_site_by_name(self.normalize(site))

    def get_site_by_id(self, site_id: int) -> Optional[Site]:
        return self.store.get_site_by_id(site_id)

    def create_site(self, site: str, name: str = "") -> Site:
        site = self.normalize(site)
        if not SITE_NAME_RE.match(site):
            raise CodeError("invalid-site-name", f"Invalid site name: {site!r}")
        if self.store.get_site_by_name(site):
            raise CodeError("site-exists", f"Site {site} already exists")
        created = self.store.create_site(site, name or site)
        logger.info(f"Created site {created.site} (id={created.site_id})")
        return created

    def subscribe(self, site_id: int, user_id: int) -> bool:
        return self.store.subscribe(site_id, user_id)

    def unsubscribe(self, site_id: int, user_id: int) -> bool:
        return self.store.unsubscribe(site_id, user_id)

    def get_subscribers(self, site_id: int) -> List[int]:
        return self.store.get_subscribers(site_id)
