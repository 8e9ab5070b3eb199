"""Free-form region name resolution."""
import logging
import re
import select
import sys
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, TextIO, Tuple

from rich.console import Console

from ..cache.store import MISS, CacheStore
from ..errors import RegionNotFound

logger = logging.getLogger(__name__)

REGIONS_CACHE_KEY = "azure_regions"
SUBSTRING_BONUS = 5


@dataclass(frozen=True)
class Region:
    """A canonical Azure region."""
    name: str
    display_name: str

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "displayName": self.display_name}


def tokenize(text: str) -> List[str]:
    """Split on whitespace and '/', lowercased."""
    return [t for t in re.split(r'[\s/]+', text.lower()) if t]


def score_candidate(user_input: str, region: Region) -> int:
    """Score how well user_input matches region.

    Every (input token, candidate token) pair that matches counts one point,
    computed separately against the identifier and the display name; the
    larger of the two is kept. A display name containing the input, or
    contained in it, earns a fixed bonus.
    """
    input_tokens = tokenize(user_input)
    name_tokens = tokenize(region.name)
    display_tokens = tokenize(region.display_name)

    score_name = sum(1 for t in input_tokens for n in name_tokens if t == n)
    score_display = sum(1 for t in input_tokens for d in display_tokens if t == d)
    score = max(score_name, score_display)

    lowered_input = user_input.lower()
    lowered_display = region.display_name.lower()
    if lowered_display and (lowered_input in lowered_display or lowered_display in lowered_input):
        score += SUBSTRING_BONUS
    return score


def best_match(user_input: str, regions: List[Region]) -> Tuple[Optional[Region], int]:
    """Return the highest scoring region; ties keep the earliest candidate."""
    best, best_score = None, 0
    for region in regions:
        score = score_candidate(user_input, region)
        if score > best_score:
            best, best_score = region, score
    return best, best_score


def load_subscription_locations(subscription_id: str, credential) -> List[Dict[str, str]]:
    """List the regions visible to a subscription via the Subscriptions API."""
    from azure.mgmt.subscription import SubscriptionClient

    client = SubscriptionClient(credential)
    return [
        {"name": loc.name, "displayName": loc.display_name or loc.name}
        for loc in client.subscriptions.list_locations(subscription_id)
    ]


class RegionResolver:
    """Resolves user input such as "Sweden Central" or "swedencentral" to a Region."""

    def __init__(self, cache: CacheStore, loader: Optional[Callable[[], List[Dict[str, str]]]] = None,
                 confirm: bool = True, confirm_timeout: float = 10.0,
                 input_stream: Optional[TextIO] = None, console: Optional[Console] = None):
        """Initialize the resolver.

        Args:
            cache: Cache store holding the region list.
            loader: Returns [{"name", "displayName"}] when the cache misses.
            confirm: Ask before accepting a fuzzy match.
            confirm_timeout: Seconds to wait for an answer before accepting.
            input_stream: Stream answers are read from, defaults to stdin.
            console: Console the prompt is written to.
        """
        self.cache = cache
        self.loader = loader
        self.confirm = confirm
        self.confirm_timeout = confirm_timeout
        self.input_stream = input_stream
        self.console = console or Console(stderr=True)
        self._regions: Optional[List[Region]] = None

    def list_regions(self) -> List[Region]:
        """Return the canonical region list, fetched at most once per run."""
        if self._regions is not None:
            return self._regions

        raw = self.cache.get(REGIONS_CACHE_KEY)
        if raw is MISS or not isinstance(raw, list):
            raw = []
            if self.loader is not None:
                try:
                    raw = self.loader()
                except Exception as e:
                    logger.warning("Could not load region list: %s", e)
                    raw = []
                if raw:
                    self.cache.put(REGIONS_CACHE_KEY, raw)

        regions = []
        for item in raw:
            if isinstance(item, dict) and item.get("name"):
                regions.append(Region(item["name"], item.get("displayName") or item["name"]))
        self._regions = regions
        return regions

    def display_name(self, region_id: str) -> str:
        for region in self.list_regions():
            if region.name.lower() == region_id.lower():
                return region.display_name
        return region_id

    def resolve(self, user_input: str) -> Region:
        """Resolve free-form input to a canonical region.

        Args:
            user_input: Region identifier or display name, in any case.

        Returns:
            Region: The matched region.

        Raises:
            RegionNotFound: If nothing matches or the user rejects the match.
        """
        text = (user_input or "").strip()
        if not text:
            raise RegionNotFound(user_input, "Region name is empty")

        regions = self.list_regions()
        if not regions:
            canonical = re.sub(r'\s+', '', text).lower()
            logger.warning("Region list unavailable; using '%s' as given", canonical)
            return Region(canonical, text)

        lowered = text.lower()
        for region in regions:
            if region.name.lower() == lowered or region.display_name.lower() == lowered:
                return region

        match, score = best_match(text, regions)
        if match is None:
            raise RegionNotFound(user_input)

        logger.info("Fuzzy matched '%s' to %s (%s), score %d", text, match.name, match.display_name, score)
        if not self._confirm_match(text, match):
            raise RegionNotFound(user_input, f"Region match for '{user_input}' was rejected")
        return match

    def _confirm_match(self, text: str, match: Region) -> bool:
        stream = self.input_stream or sys.stdin
        if not self.confirm or not stream.isatty():
            return True

        self.console.print(
            f"[yellow]Did you mean [bold]{match.display_name}[/bold] ({match.name}) for '{text}'? "
            f"[Y/n] (auto-accept in {self.confirm_timeout:g}s)[/]"
        )
        ready, _, _ = select.select([stream], [], [], self.confirm_timeout)
        if not ready:
            self.console.print("[dim]No answer, continuing with the match[/]")
            return True

        answer = stream.readline().strip().lower()
        return answer not in ("n", "no")
