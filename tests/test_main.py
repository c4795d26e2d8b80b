"""Tests for the command line entry point and the analysis pipeline."""

from __future__ import annotations

import json

import pytest

from taskgraph.core.config import AnalysisConfig, save_config
from taskgraph.core.graph_io import MANIFEST_FILE_NAME, save_graph
from taskgraph.core.metrics import MetricsCollector
from taskgraph.main import analyze_graph, build_parser, main
from tests.core.conftest import build_graph


@pytest.fixture
def worked_dag():
    return build_graph([2, 3, 1, 4, 2], [(0, 1), (0, 2), (1, 3), (2, 3), (3, 4)])


@pytest.fixture
def two_cycles_with_tail():
    return build_graph(
        [1, 2, 3, 4, 5, 6],
        [(0, 1, 1), (1, 2, 1), (2, 0, 1), (2, 3, 5), (3, 4, 1), (4, 3, 1), (4, 5, 2)],
    )


@pytest.fixture
def worked_file(tmp_path, worked_dag):
    path = tmp_path / "worked.json"
    save_graph(worked_dag, path)
    return path


@pytest.fixture
def cyclic_file(tmp_path, two_cycles_with_tail):
    path = tmp_path / "cyclic.json"
    save_graph(two_cycles_with_tail, path)
    return path


# ---------------------------------------------------------------------------
# Analysis pipeline
# ---------------------------------------------------------------------------

class TestAnalyzeGraph:
    """analyze_graph report contents."""

    def test_acyclic_report(self, worked_dag):
        report = analyze_graph(worked_dag, AnalysisConfig(name="test"))

        assert report["graph"]["vertexCount"] == 5
        assert len(report["scc"]["components"]) == 5
        assert report["topological"]["acyclic"] is True
        assert report["topological"]["order"] == [0, 1, 2, 3, 4]
        assert report["topological"]["component_order"] is None
        assert report["topological"]["sources"] == [0]
        assert report["topological"]["sinks"] == [4]
        assert report["paths"]["graph"] == "original"
        assert report["paths"]["critical"]["path"] == [0, 1, 3, 4]
        assert report["paths"]["critical"]["length"] == 11

    def test_cyclic_report_uses_condensation(self, two_cycles_with_tail):
        report = analyze_graph(two_cycles_with_tail, AnalysisConfig(name="test"))

        assert report["topological"]["acyclic"] is False
        assert len(report["topological"]["component_order"]) == 3
        assert set(report["topological"]["order"][:3]) == {0, 1, 2}
        assert report["paths"]["graph"] == "condensation"
        assert report["paths"]["critical"]["length"] == 21
        assert len(report["scc"]["details"]) == 3

    def test_source_distances(self, worked_dag):
        config = AnalysisConfig(name="test")
        config.options["source_vertex"] = 3
        report = analyze_graph(worked_dag, config)

        longest = report["paths"]["longest"]
        assert longest["source"] == 3
        assert longest["distances"]["4"] == 4
        assert longest["distances"]["0"] is None
        assert longest["paths"] == {"3": [3], "4": [3, 4]}
        assert report["paths"]["shortest"]["distances"]["1"] is None

    def test_source_in_cyclic_graph_maps_to_component(self, two_cycles_with_tail):
        config = AnalysisConfig(name="test")
        config.options["source_vertex"] = 4
        report = analyze_graph(two_cycles_with_tail, config)

        reachable = [k for k, v in report["paths"]["longest"]["distances"].items() if v is not None]
        assert len(reachable) == 2

    def test_unknown_source(self, worked_dag):
        config = AnalysisConfig(name="test")
        config.options["source_vertex"] = 99
        with pytest.raises(ValueError, match="Source vertex 99"):
            analyze_graph(worked_dag, config)

    def test_options_and_overrides(self, worked_dag):
        config = AnalysisConfig(
            name="test",
            use_node_durations=False,
            compute_critical_path=False,
            options={"report_components": False, "report_levels": True},
        )
        report = analyze_graph(worked_dag, config)

        assert report["graph"]["useNodeDurations"] is False
        assert worked_dag.use_node_durations is True
        assert "critical" not in report["paths"]
        assert "details" not in report["scc"]
        assert report["topological"]["levels"]["4"] == 3

    def test_collector_receives_metrics(self, worked_dag):
        collector = MetricsCollector()
        analyze_graph(worked_dag, AnalysisConfig(name="test"), collector)

        assert collector.counter(MetricsCollector.SCC_COMPONENTS) == 5
        assert collector.counter(MetricsCollector.KAHN_POPS) == 5
        assert collector.elapsed_ns("scc") > 0

    def test_report_is_json_serializable(self, two_cycles_with_tail):
        config = AnalysisConfig(name="test")
        config.options["source_vertex"] = 0
        json.dumps(analyze_graph(two_cycles_with_tail, config))


# ---------------------------------------------------------------------------
# Command line
# ---------------------------------------------------------------------------

class TestCommandLine:
    """main() with the analyze and generate subcommands."""

    def test_parser_requires_command(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_parser_rejects_unknown_algorithm(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["analyze", "graph.json", "--scc", "dijkstra"])

    def test_analyze_writes_report(self, worked_file, tmp_path, capsys):
        output = tmp_path / "reports" / "worked.json"
        code = main(["analyze", str(worked_file), "--topo", "dfs", "--output", str(output)])

        assert code == 0
        report = json.loads(output.read_text(encoding="utf-8"))
        assert report["config"]["topo_algorithm"] == "dfs"
        assert report["topological"]["order"] == [0, 2, 1, 3, 4]
        assert report["paths"]["critical"]["path"] == [0, 1, 3, 4]
        assert "Critical path (original): [0, 1, 3, 4] length=11" in capsys.readouterr().out

    def test_analyze_cyclic_graph(self, cyclic_file, capsys):
        assert main(["analyze", str(cyclic_file), "--scc", "kosaraju"]) == 0
        out = capsys.readouterr().out
        assert "Strongly connected components: 3" in out
        assert "Component order:" in out

    def test_analyze_with_config_file(self, worked_file, tmp_path):
        config_path = tmp_path / "config.json"
        save_config(AnalysisConfig(name="file", scc_algorithm="kosaraju"), config_path)
        output = tmp_path / "report.json"

        code = main([
            "analyze", str(worked_file), "--config", str(config_path),
            "--source", "0", "--output", str(output),
        ])

        assert code == 0
        report = json.loads(output.read_text(encoding="utf-8"))
        assert report["config"]["name"] == "file"
        assert report["scc"]["metrics"]["algorithm"] == "kosaraju"
        assert report["paths"]["longest"]["distances"]["4"] == 9

    @pytest.mark.parametrize("document", [[], {"version": "1.0", "name": "Bad", "options": []}])
    def test_analyze_malformed_config_file(self, worked_file, tmp_path, document):
        config_path = tmp_path / "config.json"
        config_path.write_text(json.dumps(document), encoding="utf-8")
        assert main(["analyze", str(worked_file), "--config", str(config_path)]) == 1

    def test_analyze_writes_log_file(self, worked_file, tmp_path):
        log_file = tmp_path / "logs" / "taskgraph.log"
        assert main(["analyze", str(worked_file), "--log-file", str(log_file)]) == 0
        assert log_file.exists()

    def test_analyze_missing_file(self, tmp_path):
        assert main(["analyze", str(tmp_path / "missing.json")]) == 1

    def test_analyze_invalid_graph(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"vertices": []}), encoding="utf-8")
        assert main(["analyze", str(path)]) == 1

    def test_analyze_unknown_source(self, worked_file):
        assert main(["analyze", str(worked_file), "--source", "42"]) == 1

    def test_generate(self, tmp_path, capsys):
        output_dir = tmp_path / "data"
        assert main(["generate", str(output_dir), "--seed", "5"]) == 0

        files = sorted(p.relative_to(output_dir).as_posix() for p in output_dir.rglob("*.json"))
        assert MANIFEST_FILE_NAME in files
        assert "small/small_graph_1.json" in files
        assert "large/large_graph_3.json" in files
        assert len(files) == 10
        assert "SMALL DATASETS:" in capsys.readouterr().out

    def test_generated_graph_analyzes(self, tmp_path):
        output_dir = tmp_path / "data"
        main(["generate", str(output_dir), "--seed", "1"])
        for path in sorted(output_dir.glob("*/*.json")):
            assert main(["analyze", str(path)]) == 0

    def test_hand_built_graph(self, tmp_path):
        path = tmp_path / "chain.json"
        save_graph(build_graph([1, 2, 3], [(0, 1), (1, 2)]), path)
        assert main(["analyze", str(path), "--log-level", "warning"]) == 0
