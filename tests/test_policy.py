"""
Unit tests for the policy model.
"""

from cspgen.core.policy import Policy, parse_policy, same_origin, seed_policy


class TestSeedPolicy:

    def test_seed_serializes_only_populated_directives(self):
        assert seed_policy().serialize() == (
            "default-src 'none'; form-action 'none'; frame-ancestors 'none'; base-uri 'none'")

    def test_seed_declares_empty_fallback_directives(self):
        policy = seed_policy()
        for name in ("script-src", "style-src", "connect-src", "frame-src", "img-src"):
            assert name in policy
            assert policy.sources(name) == frozenset()


class TestWiden:

    def test_widen_removes_none(self):
        policy = seed_policy()
        policy.widen("default-src", "'self'")
        assert policy.sources("default-src") == {"'self'"}

    def test_widen_creates_missing_directive(self):
        policy = Policy()
        policy.widen("img-src", "data:")
        assert policy.sources("img-src") == {"data:"}

    def test_none_not_added_next_to_other_sources(self):
        policy = Policy({"img-src": ["data:"]})
        policy.widen("img-src", "'none'")
        assert policy.sources("img-src") == {"data:"}

    def test_widen_is_idempotent(self):
        policy = Policy()
        policy.widen("script-src", "cdn.example.com")
        policy.widen("script-src", "cdn.example.com")
        assert policy.serialize() == "script-src cdn.example.com"

    def test_directives_render_in_first_populated_order(self):
        policy = seed_policy()
        policy.widen("img-src", "data:")
        policy.widen("script-src", "'self'")
        assert policy.serialize().endswith("base-uri 'none'; img-src data:; script-src 'self'")

    def test_sources_keep_insertion_order(self):
        policy = Policy()
        for source in ("b.example", "a.example", "'self'"):
            policy.widen("script-src", source)
        assert policy.serialize() == "script-src b.example a.example 'self'"

    def test_sources_view_is_immutable(self):
        policy = Policy({"script-src": ["'self'"]})
        view = policy.sources("script-src")
        assert isinstance(view, frozenset)
        policy.widen("script-src", "x.example")
        assert view == {"'self'"}


class TestDefaultSrcPropagation:

    def test_adds_self_when_default_src_self(self):
        policy = Policy({"default-src": ["'self'"], "style-src": []})
        policy.ensure_default_src_propagation("style-src")
        assert policy.sources("style-src") == {"'self'"}

    def test_no_self_when_default_src_none(self):
        policy = seed_policy()
        policy.ensure_default_src_propagation("script-src")
        assert policy.sources("script-src") == frozenset()

    def test_non_fetch_directives_untouched(self):
        policy = Policy({"default-src": ["'self'"]})
        policy.ensure_default_src_propagation("form-action")
        assert "form-action" not in policy

    def test_has_self_fallback(self):
        assert Policy({"default-src": ["'self'"]}).has_self_fallback()
        assert not seed_policy().has_self_fallback()


class TestCopyAndRemove:

    def test_copy_is_independent(self):
        policy = Policy({"script-src": ["'unsafe-eval'"]})
        probe = policy.copy()
        assert probe.remove("script-src", "'unsafe-eval'")
        assert policy.has("script-src", "'unsafe-eval'")
        assert not probe.has("script-src", "'unsafe-eval'")

    def test_remove_missing_source(self):
        assert not Policy().remove("script-src", "'self'")

    def test_equality(self):
        assert Policy({"a-src": ["x", "y"]}) == Policy({"a-src": ["y", "x"]})

    def test_pretty_serialization_keeps_text(self):
        pretty = Policy({"script-src": ["'self'"]}).serialize(pretty=True)
        assert "script-src" in pretty and "'self'" in pretty
        assert pretty != "script-src 'self'"


class TestParsePolicy:

    def test_parse_roundtrip(self):
        text = "default-src 'self'; img-src data: https://img.example"
        assert parse_policy(text).serialize() == text

    def test_parse_lowercases_names_and_keywords(self):
        policy = parse_policy("Script-Src 'SELF' 'sha256-ABC='")
        assert policy.sources("script-src") == {"'self'", "'sha256-ABC='"}

    def test_parse_ignores_empty_segments(self):
        assert parse_policy(" ; ;img-src data:;").directives == ["img-src"]

    def test_merge_into_seed(self):
        policy = seed_policy()
        policy.merge(parse_policy("default-src 'self'; worker-src blob:"))
        assert policy.sources("default-src") == {"'self'"}
        assert policy.sources("worker-src") == {"blob:"}


class TestSameOrigin:

    def test_same(self):
        assert same_origin("https://a.example/x", "https://a.example:443/y?z")

    def test_different_scheme_host_port(self):
        assert not same_origin("https://a.example/", "http://a.example/")
        assert not same_origin("https://a.example/", "https://b.example/")
        assert not same_origin("https://a.example/", "https://a.example:8443/")

    def test_invalid(self):
        assert not same_origin("inline", "https://a.example/")
        assert not same_origin("https://a.example:notaport/", "https://a.example/")
