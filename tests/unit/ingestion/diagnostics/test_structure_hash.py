"""
Unit tests for the structural fingerprint of fetched markup.
"""

from hareline.ingestion.diagnostics.structure_hash import generate_structure_hash, structure_skeleton

PAGE = """
<html><body>
  <div class="content">
    <article class="post post-101"><h2 class="entry-title"><a href="/a">{first}</a></h2>
      <div class="entry-content"><p>Hares: Alice</p></div></article>
    {more}
  </div>
  <script>var x = 1;</script>
</body></html>
"""

EXTRA_ARTICLE = """
    <article class="post post-102"><h2 class="entry-title"><a href="/b">Another</a></h2>
      <div class="entry-content"><p>Hares: Bob</p><p>Where: Pub</p></div></article>
"""


# =============================================================================
# TEST CLASSES
# =============================================================================


class TestStructureHash:
    """Tests for generate_structure_hash."""

    def test_stable_across_text_and_post_count(self):
        """Should ignore text changes, post ids and the number of repeated posts."""
        a = generate_structure_hash(PAGE.format(first="EWH3 #1506", more=""))
        b = generate_structure_hash(PAGE.format(first="EWH3 #1507 new title", more=EXTRA_ARTICLE))
        assert a == b

    def test_changes_when_layout_changes(self):
        """Should change when the container structure changes."""
        before = generate_structure_hash(PAGE.format(first="x", more=""))
        after = generate_structure_hash(
            PAGE.format(first="x", more="").replace('class="content"', 'class="content-v2"')
        )
        assert before != after

    def test_scope_missing(self):
        """Should mark a scope selector that matches nothing."""
        assert structure_skeleton("<div></div>", scope="#eventListTable") == "MISSING:#eventListTable"

    def test_hex_digest(self):
        """Should return a SHA-256 hex digest."""
        digest = generate_structure_hash("<p>hi</p>")
        assert len(digest) == 64
        int(digest, 16)

    def test_scripts_ignored(self):
        """Should not include script blocks in the skeleton."""
        assert "script" not in structure_skeleton(PAGE.format(first="x", more=""))
