"""Tests for region name resolution."""
import io
from unittest.mock import MagicMock, patch

import pytest
from planner.cache.store import CacheStore
from planner.errors import RegionNotFound
from planner.regions.resolver import Region, RegionResolver, best_match, score_candidate, tokenize

LOCATIONS = [
    {"name": "eastus", "displayName": "East US"},
    {"name": "eastus2", "displayName": "East US 2"},
    {"name": "swedencentral", "displayName": "Sweden Central"},
    {"name": "westeurope", "displayName": "West Europe"},
]


class TtyStream(io.StringIO):
    """StringIO that claims to be a terminal."""

    def isatty(self):
        return True


@pytest.fixture
def cache(tmp_path):
    return CacheStore(str(tmp_path / "cache"))


@pytest.fixture
def loader():
    return MagicMock(return_value=LOCATIONS)


def make_resolver(cache, loader, stream=None, confirm=True):
    return RegionResolver(cache, loader=loader, confirm=confirm, confirm_timeout=0,
                          input_stream=stream or io.StringIO(), console=MagicMock())


@pytest.mark.parametrize("text", ["swedencentral", "SwedenCentral", "Sweden Central", "SWEDEN CENTRAL", "  sweden central "])
def test_exact_match_any_case(cache, loader, text):
    """Test identifiers and display names resolve regardless of case."""
    assert make_resolver(cache, loader).resolve(text) == Region("swedencentral", "Sweden Central")


def test_fuzzy_match(cache, loader):
    """Test partial input resolves to the best scoring region."""
    assert make_resolver(cache, loader).resolve("sweden").name == "swedencentral"


def test_fuzzy_tie_keeps_first_candidate(cache, loader):
    """Test equal scores resolve to the earliest region in the list."""
    assert make_resolver(cache, loader).resolve("east").name == "eastus"


def test_no_match_raises(cache, loader):
    """Test input matching nothing raises RegionNotFound."""
    with pytest.raises(RegionNotFound) as excinfo:
        make_resolver(cache, loader).resolve("atlantis")
    assert excinfo.value.user_input == "atlantis"


def test_empty_input_raises(cache, loader):
    """Test empty input is rejected."""
    with pytest.raises(RegionNotFound):
        make_resolver(cache, loader).resolve("   ")


def test_region_list_cached(cache, loader):
    """Test the region list is fetched once and then served from the cache."""
    make_resolver(cache, loader).resolve("eastus")
    make_resolver(cache, loader).resolve("westeurope")

    loader.assert_called_once()


def test_region_list_unavailable_falls_back(cache):
    """Test input is used as given when no region list can be loaded."""
    failing = MagicMock(side_effect=RuntimeError("not logged in"))

    region = make_resolver(cache, failing).resolve("Sweden Central")

    assert region.name == "swedencentral"
    assert not cache.is_valid("azure_regions")


def test_display_name(cache, loader):
    """Test display names are looked up by identifier."""
    resolver = make_resolver(cache, loader)
    assert resolver.display_name("WestEurope") == "West Europe"
    assert resolver.display_name("mars") == "mars"


def test_non_tty_skips_confirmation(cache, loader):
    """Test fuzzy matches are accepted without prompting when not interactive."""
    resolver = make_resolver(cache, loader, stream=io.StringIO("n\n"))
    assert resolver.resolve("sweden").name == "swedencentral"
    resolver.console.print.assert_not_called()


@patch("planner.regions.resolver.select.select")
def test_confirmation_rejected(mock_select, cache, loader):
    """Test answering no to the prompt raises RegionNotFound."""
    stream = TtyStream("n\n")
    mock_select.return_value = ([stream], [], [])

    with pytest.raises(RegionNotFound):
        make_resolver(cache, loader, stream=stream).resolve("sweden")


@patch("planner.regions.resolver.select.select")
def test_confirmation_accepted(mock_select, cache, loader):
    """Test answering yes accepts the match."""
    stream = TtyStream("y\n")
    mock_select.return_value = ([stream], [], [])

    assert make_resolver(cache, loader, stream=stream).resolve("sweden").name == "swedencentral"


@patch("planner.regions.resolver.select.select")
def test_confirmation_timeout_accepts(mock_select, cache, loader):
    """Test no answer within the timeout accepts the match."""
    mock_select.return_value = ([], [], [])
    assert make_resolver(cache, loader, stream=TtyStream()).resolve("sweden").name == "swedencentral"


def test_scoring():
    """Test token and substring scoring."""
    sweden = Region("swedencentral", "Sweden Central")
    assert tokenize("Sweden  Central/Zone") == ["sweden", "central", "zone"]
    # one token match plus the substring bonus
    assert score_candidate("sweden", sweden) == 6
    assert score_candidate("central sweden", sweden) == 2
    assert score_candidate("brazil", sweden) == 0


def test_best_match_none_when_nothing_scores():
    """Test a zero score yields no match."""
    assert best_match("brazil", [Region("eastus", "East US")]) == (None, 0)
