"""
Tests for keyword extraction and additive relevance scoring.
"""

from ctxsnap.modules.relevance import (
    RelevanceScorer,
    ScoredFile,
    extract_content_keywords,
    extract_keywords,
    get_file_type,
)


class TestKeywords:
    def test_query_normalization(self):
        assert extract_keywords("Fix the Auth-Controller login!") == [
            "fix",
            "the",
            "auth",
            "controller",
            "login",
        ]

    def test_short_words_dropped_and_capped(self):
        words = " ".join(f"word{i}" for i in range(20))
        assert extract_keywords("a an " + words) == [f"word{i}" for i in range(10)]

    def test_max_length(self):
        assert extract_keywords("ok supercalifragilisticexpialidocious api", max_length=20) == ["api"]

    def test_content_keywords_skip_comments_and_strings(self):
        content = (
            'const user = "hidden";  // comment ignored\n'
            "/* block blocked */\n"
            "user.login(); user.logout();\n"
        )
        keywords = extract_content_keywords(content)
        assert keywords[0] == "user"
        assert "login" in keywords and "logout" in keywords
        for dropped in ("hidden", "comment", "blocked"):
            assert dropped not in keywords

    def test_only_head_is_sampled(self):
        content = "alpha " + " " * 6000 + "omega"
        assert extract_content_keywords(content) == ["alpha"]

    def test_file_type(self):
        assert get_file_type("src/App.tsx") == "typescript-react"
        assert get_file_type("notes.txt") == "unknown"


class TestRelevanceScorer:
    """Scoring of name, path, content and vocabulary matches."""

    def test_controller_beats_generic_files(self):
        scorer = RelevanceScorer()
        query = extract_keywords("auth")

        controller, matched = scorer.score("authController.ts", "src/authController.ts", ["login", "user"], query)
        index, _ = scorer.score("index.ts", "src/index.ts", ["render", "root"], query)
        readme, _ = scorer.score("README.md", "README.md", ["readme", "install"], query)

        # name 25 + technical vocabulary 20
        assert controller == 45
        assert matched == ["auth"]
        assert index == 0
        assert readme == 0

    def test_path_match_counts_once(self):
        scorer = RelevanceScorer()
        score, matched = scorer.score("handler.ts", "src/payments/handler.ts", [], ["payments"])
        assert score == 15
        assert matched == ["payments"]

    def test_multi_match_bonus(self):
        scorer = RelevanceScorer()
        score, matched = scorer.score("authController.ts", "src/authController.ts", ["login"], ["auth", "login"])
        # auth: name 25; login: content 10; technical 20 + 20; multi 2 * 5
        assert score == 85
        assert matched == ["auth", "login"]

    def test_content_substring_either_way(self):
        scorer = RelevanceScorer()
        score, matched = scorer.score("a.ts", "a.ts", ["checkout"], ["check"])
        assert score == 10
        assert matched == ["check"]

    def test_generic_names_suppressed_without_match(self):
        scorer = RelevanceScorer()
        score, matched = scorer.score("main.test.ts", "main.test.ts", [], ["widget"])
        assert score == 0
        assert matched == []

    def test_score_file_fills_candidate(self):
        scorer = RelevanceScorer()
        candidate = ScoredFile(path="src/cart.ts", name="cart.ts", file_type="typescript", size=10)
        scored = scorer.score_file(candidate, [], ["cart"])
        assert scored.score == 25
        assert scored.matched_keywords == ["cart"]
