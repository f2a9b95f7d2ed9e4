"""Unit tests for the bounded per-session parse cache."""

from dualpane.services.parse_cache import ParseCache, ParseCacheKey


def _fill(cache: ParseCache, count: int) -> None:
    for index in range(count):
        cache.get_or_parse(index, f"left {index}", f"right {index}")


class TestParseCache:
    """Keying, reuse and eviction."""

    def test_repeat_lookup_reuses_entry(self):
        """Same chunk and same lengths hit the cache."""
        cache = ParseCache(10)
        first = cache.get_or_parse(0, "# A\nx", "# B\ny")
        second = cache.get_or_parse(0, "# A\nx", "# B\ny")
        assert second is first
        assert cache.hits == 1
        assert cache.misses == 1

    def test_length_change_reparses(self):
        """Edited text with a new length gets a fresh entry."""
        cache = ParseCache(10)
        first = cache.get_or_parse(0, "short", "text")
        second = cache.get_or_parse(0, "longer text", "text")
        assert second is not first
        assert second.key == ParseCacheKey(0, len("longer text"), len("text"))
        assert cache.misses == 2

    def test_entry_holds_blocks_and_pairs(self):
        """Parsed blocks and aligned pairs are stored together."""
        entry = ParseCache(10).get_or_parse(3, "# A\np\n# B\nq", "# A\np")
        assert len(entry.left_blocks) == 2
        assert len(entry.right_blocks) == 1
        assert len(entry.aligned_pairs) == 2

    def test_evicts_oldest_first(self):
        """Past capacity, the earliest inserted entries go."""
        cache = ParseCache(3)
        _fill(cache, 4)
        assert len(cache) == 3
        assert ParseCacheKey(0, len("left 0"), len("right 0")) not in cache
        assert ParseCacheKey(3, len("left 3"), len("right 3")) in cache

    def test_large_document_capacity(self):
        """Switching to large-document mode shrinks the cache to five entries."""
        cache = ParseCache(50, max_items_large_doc=5)
        _fill(cache, 10)
        assert len(cache) == 10

        cache.set_large_doc(True)
        assert cache.capacity == 5
        assert len(cache) == 5
        assert ParseCacheKey(4, len("left 4"), len("right 4")) not in cache
        assert ParseCacheKey(9, len("left 9"), len("right 9")) in cache

        _fill(cache, 8)
        assert len(cache) <= 5

    def test_clear(self):
        """Clearing drops every entry."""
        cache = ParseCache(5)
        _fill(cache, 3)
        cache.clear()
        assert len(cache) == 0
