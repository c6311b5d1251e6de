"""Tests for sample grouping and name matching."""

from procwarden.aggregator import (
    Aggregator,
    filter_samples,
    group_samples,
    match_key,
    resolve_process_name,
)
from procwarden.models import ProcessSample


def make_sample(pid: int, name: str, cpu: float, mem: int, gpu: float = 0.0) -> ProcessSample:
    return ProcessSample(pid=pid, name=name, cpu_percent=cpu, memory_kb=mem, gpu_percent=gpu)


class TestMatchKey:
    """Tests for the name matching policy."""

    def test_case_insensitive(self):
        """Test names compare without regard to case."""
        assert match_key("Miner") == match_key("MINER")

    def test_exe_suffix_ignored(self):
        """Test a trailing .exe does not affect matching."""
        assert match_key("chrome.exe") == match_key("chrome")

    def test_whitespace_trimmed(self):
        """Test surrounding whitespace is ignored."""
        assert match_key("  miner ") == "miner"

    def test_aliases_resolve(self):
        """Test friendly names map to process names."""
        assert resolve_process_name("Google Chrome") == "chrome"
        assert resolve_process_name("vs code") == "code"
        assert resolve_process_name("miner") == "miner"


class TestGroupSamples:
    """Tests for group_samples."""

    def test_sums_group(self):
        """Test two processes with the same name are summed, not averaged."""
        samples = [make_sample(1, "x", 10, 100), make_sample(2, "x", 20, 200)]

        groups = group_samples(samples, ["x"])

        assert len(groups) == 1
        group = groups[0]
        assert group.name == "x"
        assert group.process_count == 2
        assert group.pids == {1, 2}
        assert group.total_cpu == 30
        assert group.total_memory_kb == 300

    def test_sums_gpu(self):
        """Test GPU usage is summed across the group."""
        samples = [make_sample(1, "x", 0, 0, 5.0), make_sample(2, "x", 0, 0, 7.5)]
        assert group_samples(samples, ["x"])[0].total_gpu == 12.5

    def test_filter_excludes_other_names(self):
        """Test only requested names are grouped."""
        samples = [make_sample(1, "x", 10, 100), make_sample(2, "y", 20, 200)]
        groups = group_samples(samples, ["y"])
        assert [g.name for g in groups] == ["y"]

    def test_no_substring_matching(self):
        """Test a rule for 'chrome' does not match 'chromedriver'."""
        samples = [make_sample(1, "chromedriver", 10, 100)]
        assert group_samples(samples, ["chrome"]) == []

    def test_case_insensitive_grouping_keeps_live_name(self):
        """Test matching ignores case while the group keeps the process name."""
        samples = [make_sample(1, "Miner.exe", 10, 100)]
        groups = group_samples(samples, ["miner"])
        assert groups[0].name == "Miner.exe"

    def test_all_names_when_unfiltered(self):
        """Test names=None groups every process, highest CPU first."""
        samples = [
            make_sample(1, "a", 1, 1),
            make_sample(2, "b", 50, 1),
            make_sample(3, "a", 2, 1),
        ]
        groups = group_samples(samples)
        assert [g.name for g in groups] == ["b", "a"]
        assert groups[1].process_count == 2

    def test_missing_name_is_absent(self):
        """Test a name with no live processes simply does not appear."""
        assert group_samples([make_sample(1, "x", 1, 1)], ["ghost"]) == []


def test_filter_samples_returns_flat_list():
    """Test filter_samples keeps every matching process."""
    samples = [make_sample(1, "x", 1, 1), make_sample(2, "X", 2, 2), make_sample(3, "y", 3, 3)]
    assert [s.pid for s in filter_samples(samples, ["x"])] == [1, 2]


class TestAggregator:
    """Tests for the provider-facing Aggregator."""

    def test_empty_filter_does_not_sample(self, provider):
        """Test an empty name list short-circuits without querying the provider."""
        aggregator = Aggregator(provider)

        assert aggregator.grouped([]) == []
        assert aggregator.watched([]) == []
        assert aggregator.grouped(["   "]) == []
        assert provider.calls == 0

    def test_grouped_queries_provider(self, provider):
        """Test a non-empty filter samples once and groups the result."""
        provider.samples = [make_sample(1, "x", 10, 100), make_sample(2, "x", 20, 200)]
        aggregator = Aggregator(provider)

        groups = aggregator.grouped(["x"])

        assert provider.calls == 1
        assert groups[0].total_cpu == 30

    def test_all_groups(self, provider):
        """Test all_groups covers every running name."""
        provider.samples = [make_sample(1, "x", 1, 1), make_sample(2, "y", 1, 1)]
        assert {g.name for g in Aggregator(provider).all_groups()} == {"x", "y"}
