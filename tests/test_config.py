"""
Tests for environment-driven configuration.
"""


class TestPolicies:

    def test_defaults(self, monkeypatch):
        from config import get_batch_policies, get_escalation_policy

        for key in ("SLOT_MAX_STRICT_ATTEMPTS", "RELAXED_MIN_LENGTH_FACTOR",
                    "BATCH_HARD_FAIL_THRESHOLD", "MAX_CONCURRENT_BATCHES"):
            monkeypatch.delenv(key, raising=False)

        assert get_escalation_policy() == {"max_strict_attempts": 3, "relaxed_min_length_factor": 1.0}
        assert get_batch_policies() == {"hard_fail_threshold": 2, "max_concurrent_batches": 2}

    def test_environment_overrides(self, monkeypatch):
        from config import get_batch_policies, get_escalation_policy

        monkeypatch.setenv("SLOT_MAX_STRICT_ATTEMPTS", "5")
        monkeypatch.setenv("RELAXED_MIN_LENGTH_FACTOR", "0.8")
        monkeypatch.setenv("BATCH_HARD_FAIL_THRESHOLD", "4")

        assert get_escalation_policy()["max_strict_attempts"] == 5
        assert get_escalation_policy()["relaxed_min_length_factor"] == 0.8
        assert get_batch_policies()["hard_fail_threshold"] == 4

    def test_malformed_values_fall_back(self, monkeypatch):
        from config import _env_bool, _env_int, get_escalation_policy

        monkeypatch.setenv("SLOT_MAX_STRICT_ATTEMPTS", "three")
        monkeypatch.setenv("SOME_FLAG", "maybe")

        assert get_escalation_policy()["max_strict_attempts"] == 3
        assert _env_int("SLOT_MAX_STRICT_ATTEMPTS", 7) == 7
        assert _env_bool("SOME_FLAG", True) is True

    def test_assembly_separator_default(self):
        import config

        assert config.ASSEMBLY_SEPARATOR == "\n\n"

    def test_separator_unescapes_only_newlines_and_tabs(self, monkeypatch):
        from config import _env_separator

        monkeypatch.setenv("ASSEMBLY_SEPARATOR", "\\n——\\t——\\n")
        assert _env_separator("ASSEMBLY_SEPARATOR", "\n\n") == "\n——\t——\n"

        monkeypatch.delenv("ASSEMBLY_SEPARATOR")
        assert _env_separator("ASSEMBLY_SEPARATOR", "\n\n") == "\n\n"
