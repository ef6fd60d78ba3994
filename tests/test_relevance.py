"""
Relevance scorer tests
Tests: keyword extraction, scoring weights, ordering and top-k
"""

from thr8fix.relevance import extract_keywords, score_file, select_relevant_files
from thr8fix.state import Recommendation, ScannedFile, Vulnerability

VULN = Vulnerability(id="V-1", title="SQL Injection", description="Unsanitized input in users query",
                     severity="High")


class TestExtractKeywords:

    def test_lowercases_and_drops_short_tokens(self):
        vuln = Vulnerability(id="V-1", title="XSS in UI", description="an id is echoed")
        assert extract_keywords(vuln) == ["xss", "echoed"]

    def test_includes_recommendation_action(self):
        rec = Recommendation(priority="Immediate", action="Use parameterized queries")
        assert "parameterized" in extract_keywords(VULN, rec)

    def test_distinct_tokens(self):
        vuln = Vulnerability(id="V-1", title="token token", description="token")
        assert extract_keywords(vuln) == ["token"]


class TestScoreFile:

    def test_path_and_content_weights(self):
        f = ScannedFile(path="src/users.js", content="runs a sql query")
        # users: path(3) + content(0); sql: content(1); query: content(1)
        assert score_file(f, ["users", "sql", "query"]) == 5

    def test_sensitive_path_bonus(self):
        f = ScannedFile(path="src/middleware/Auth.js", content="")
        assert score_file(f, []) == 2

    def test_no_match_scores_zero(self):
        assert score_file(ScannedFile(path="README.md", content="hello"), ["sql"]) == 0


class TestSelectRelevantFiles:

    def test_empty_input(self):
        assert select_relevant_files([], VULN) == []

    def test_all_zero_scores(self):
        files = [ScannedFile(path="a.txt", content="nothing"), ScannedFile(path="b.txt")]
        assert select_relevant_files(files, VULN) == []

    def test_path_matches_outrank_no_path_matches(self):
        plain = ScannedFile(path="lib/db.js", content="sql")
        strong = ScannedFile(path="src/users/query.js", content="")
        result = select_relevant_files([plain, strong], VULN)
        assert result == [strong, plain]

    def test_ties_keep_input_order(self):
        first = ScannedFile(path="a.js", content="sql")
        second = ScannedFile(path="b.js", content="sql")
        third = ScannedFile(path="c.js", content="sql")
        assert select_relevant_files([first, second, third], VULN) == [first, second, third]

    def test_top_k_limit(self):
        files = [ScannedFile(path=f"f{i}.js", content="sql injection") for i in range(12)]
        result = select_relevant_files(files, VULN)
        assert len(result) == 8
        assert result == files[:8]
        assert len(select_relevant_files(files, VULN, top_k=3)) == 3
