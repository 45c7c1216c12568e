"""Tests for the ontotag command line interface."""

import io
import json

import pandas as pd
from typer.testing import CliRunner

from ontotag import cli
from ontotag.cli import app
from ontotag.tagger import tag_strictly


runner = CliRunner()


class TestResolve:
    def test_writes_resolved_table(self, scheme_path, tmp_path):
        output = tmp_path / "resolved.csv"
        result = runner.invoke(app, ["resolve", str(scheme_path), "-o", str(output)])

        assert result.exit_code == 0
        frame = pd.read_csv(output, dtype=str)
        assert list(frame.columns) == ["level_1", "level_2", "level_3"]
        assert frame["level_1"].tolist()[:3] == ["Agricultural practices"] * 3
        assert frame["level_2"][2] == "crop rotation"

    def test_malformed_table(self, tmp_path):
        path = tmp_path / "bad.csv"
        path.write_text("l1,l2\n,orphan\n")

        result = runner.invoke(app, ["resolve", str(path)])

        assert result.exit_code == 1
        assert "Error resolving table" in result.output

    def test_missing_file(self, tmp_path):
        result = runner.invoke(app, ["resolve", str(tmp_path / "missing.csv")])
        assert result.exit_code == 1


class TestCompile:
    def test_nested_json(self, scheme_path):
        result = runner.invoke(app, ["compile", str(scheme_path)])

        assert result.exit_code == 0
        tree = json.loads(result.output)
        assert tree["Agricultural practices"]["crop rotation"] == {
            "legume rotation": {},
            "cereal rotation": {},
        }
        assert tree["Soil health"] == {}

    def test_flat_json(self, scheme_path, tmp_path):
        output = tmp_path / "entries.json"
        result = runner.invoke(app, ["compile", str(scheme_path), "--flat", "-o", str(output)])

        assert result.exit_code == 0
        entries = json.loads(output.read_text())
        assert entries[0] == {
            "depth": 1,
            "term": "Agricultural practices",
            "path": ["Agricultural practices"],
            "children": ["integrated pest management", "crop rotation"],
        }


class TestTag:
    def test_tags_corpus(self, scheme_path, corpus_path, tmp_path):
        output = tmp_path / "tagged.csv"
        result = runner.invoke(
            app, ["tag", str(corpus_path), "--scheme", str(scheme_path), "-o", str(output)]
        )

        assert result.exit_code == 0, result.output
        frame = pd.read_csv(output, dtype=str)
        assert frame["tags"][0] == "Agricultural practices > integrated pest management"
        assert frame["tags"][1] == "Water management > irrigation > drip irrigation"
        assert pd.isna(frame["tags"][2])
        assert frame["level_1"].tolist()[:2] == ["Agricultural practices", "Water management"]
        assert frame["level_3"][3] == "legume rotation"

    def test_allow_multiple_and_levels(self, scheme_path, corpus_path, tmp_path):
        output = tmp_path / "tagged.csv"
        result = runner.invoke(
            app,
            [
                "tag", str(corpus_path), "-s", str(scheme_path),
                "--allow-multiple", "-l", "1", "-o", str(output),
            ],
        )

        assert result.exit_code == 0, result.output
        frame = pd.read_csv(output, dtype=str)
        assert [c for c in frame.columns if c.startswith("level_")] == ["level_1"]
        assert frame["level_1"][3] == "Agricultural practices; Soil health"

    def test_config_file(self, scheme_path, corpus_path, tmp_path):
        config = tmp_path / "tagging.yaml"
        config.write_text(
            f"scheme: {scheme_path.name}\n"
            "match: word\n"
            "synonyms:\n"
            "  integrated pest management: [ipm]\n"
            "text_fields: [keywords]\n"
        )

        result = runner.invoke(app, ["tag", str(corpus_path), "--config", str(config)])

        assert result.exit_code == 0, result.output
        frame = pd.read_csv(io.StringIO(result.output), dtype=str)
        assert frame["tags"][0] == "Agricultural practices > integrated pest management"
        assert frame["tags"][3] == "Soil health"

    def test_requires_scheme(self, corpus_path, monkeypatch):
        monkeypatch.delenv("ONTOTAG_CONFIG", raising=False)
        result = runner.invoke(app, ["tag", str(corpus_path)])

        assert result.exit_code == 1
        assert "--scheme" in result.output

    def test_workers_from_environment_with_config(self, scheme_path, corpus_path, tmp_path, monkeypatch):
        seen = []

        def recording_tag_strictly(docs, tree, **kwargs):
            seen.append(kwargs["workers"])
            kwargs["workers"] = 1
            return tag_strictly(docs, tree, **kwargs)

        monkeypatch.setattr(cli, "tag_strictly", recording_tag_strictly)
        monkeypatch.setenv("ONTOTAG_WORKERS", "3")
        config = tmp_path / "tagging.yaml"
        config.write_text(f"scheme: {scheme_path.name}\n")

        result = runner.invoke(app, ["tag", str(corpus_path), "--config", str(config)])
        assert result.exit_code == 0, result.output

        config.write_text(f"scheme: {scheme_path.name}\nworkers: 2\n")
        result = runner.invoke(app, ["tag", str(corpus_path), "--config", str(config)])
        assert result.exit_code == 0, result.output

        result = runner.invoke(app, ["tag", str(corpus_path), "--config", str(config), "-w", "4"])
        assert result.exit_code == 0, result.output

        assert seen == [3, 2, 4]

    def test_verbose_keeps_stdout_csv(self, scheme_path, corpus_path, monkeypatch):
        monkeypatch.delenv("ONTOTAG_CONFIG", raising=False)
        result = runner.invoke(app, ["tag", str(corpus_path), "-s", str(scheme_path), "-v"])

        assert result.exit_code == 0, result.output
        assert "Matched:" not in result.stdout
        assert "Loaded scheme" not in result.stdout
        frame = pd.read_csv(io.StringIO(result.stdout), dtype=str)
        assert len(frame) == 4
        assert frame["tags"][0] == "Agricultural practices > integrated pest management"

    def test_invalid_match_mode(self, scheme_path, corpus_path):
        result = runner.invoke(
            app, ["tag", str(corpus_path), "-s", str(scheme_path), "--match", "fuzzy"]
        )
        assert result.exit_code == 1


class TestStats:
    def test_level_summary(self, scheme_path, corpus_path, tmp_path):
        tagged = tmp_path / "tagged.csv"
        runner.invoke(app, ["tag", str(corpus_path), "-s", str(scheme_path), "-o", str(tagged)])

        result = runner.invoke(app, ["stats", str(tagged)])

        assert result.exit_code == 0
        assert "Total records:     4" in result.output
        assert "Level 1 (3 tagged, 1 untagged)" in result.output
        assert "Agricultural practices" in result.output

    def test_no_level_columns(self, corpus_path):
        result = runner.invoke(app, ["stats", str(corpus_path)])
        assert result.exit_code == 1


class TestClassify:
    def test_predicts_unlabelled(self, tmp_path):
        corpus = tmp_path / "labelled.csv"
        pd.DataFrame(
            {
                "title": [
                    "drip irrigation water", "canal irrigation water", "irrigation water use",
                    "maize pest control", "pest management maize", "biological pest maize",
                    "water irrigation trial", "pest maize outbreak",
                ],
                "level_1": ["Water", "Water", "Water", "Pests", "Pests", "Pests", None, None],
            }
        ).to_csv(corpus, index=False)
        output = tmp_path / "predicted.csv"

        result = runner.invoke(app, ["classify", str(corpus), "-o", str(output)])

        assert result.exit_code == 0, result.output
        frame = pd.read_csv(output, dtype=str)
        assert frame["predicted_level_1"].tolist()[-2:] == ["Water", "Pests"]
        assert frame["predicted_level_1"][:6].isna().all()

    def test_missing_label_column(self, corpus_path):
        result = runner.invoke(app, ["classify", str(corpus_path), "--label", "level_9"])
        assert result.exit_code == 1


class TestTopics:
    def test_prints_topics(self, corpus_path, tmp_path):
        output = tmp_path / "topics.json"
        result = runner.invoke(app, ["topics", str(corpus_path), "-k", "2", "-o", str(output)])

        assert result.exit_code == 0, result.output
        assert "Topic 0" in result.output
        data = json.loads(output.read_text())
        assert len(data["assignments"]) == 4

    def test_default_topic_count_on_small_corpus(self, corpus_path):
        result = runner.invoke(app, ["topics", str(corpus_path)])

        assert result.exit_code == 0, result.output
        assert "Topic 0" in result.output
