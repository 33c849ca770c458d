# tests/integration/test_cli.py
"""
Integration tests for the command line consumer.

Exit codes: 0 success, 1 drift, 2 manifest or input error.
"""

import json

import pytest

from service.main import EXIT_DRIFT, EXIT_ERROR, EXIT_OK, load_facts, main, CliInputError


def run(capsys, manifest_path, *args):
    """Run the CLI against one manifest, return (exit code, stdout)."""
    code = main(["--manifest", str(manifest_path), *args])
    return code, capsys.readouterr().out


class TestValidateCommand:
    """guide-registry validate"""

    def test_clean_tree(self, capsys, guide_tree):
        _, manifest_path = guide_tree

        code, out = run(capsys, manifest_path, "validate")

        assert code == EXIT_OK
        assert "OK" in out

    def test_missing_resource_fails(self, capsys, guide_tree):
        root, manifest_path = guide_tree
        (root / "patterns" / "c.md").unlink()

        code, out = run(capsys, manifest_path, "validate", "--json")
        report = json.loads(out)

        assert code == EXIT_DRIFT
        assert report["counts"]["missing"] == 1
        assert report["discrepancies"][0]["identifier"] == "patterns/c.md"

    def test_readme_not_orphaned_by_default(self, capsys, guide_tree, make_files):
        root, manifest_path = guide_tree
        make_files(root, ["README.md"])

        code, _ = run(capsys, manifest_path, "validate")

        assert code == EXIT_OK

    def test_broken_manifest_exit_code(self, capsys, tmp_path):
        manifest_path = tmp_path / "manifest.json"
        manifest_path.write_text('{"wcag": ["a.md"], "wcag": ["b.md"]}')

        code = main(["--manifest", str(manifest_path), "validate"])

        assert code == EXIT_ERROR

    def test_absent_manifest_exit_code(self, tmp_path):
        code = main(["--manifest", str(tmp_path / "absent.json"), "validate"])

        assert code == EXIT_ERROR


class TestResolveCommand:
    """guide-registry resolve"""

    def test_plain_output(self, capsys, guide_tree):
        _, manifest_path = guide_tree

        code, out = run(capsys, manifest_path, "resolve")

        assert code == EXIT_OK
        assert out.split() == ["wcag/a.md", "patterns/c.md"]

    def test_fact_arguments(self, capsys, guide_tree):
        _, manifest_path = guide_tree

        code, out = run(
            capsys, manifest_path, "resolve", "--fact", "fireTvPatternsPresent=true", "--json"
        )
        data = json.loads(out)

        assert code == EXIT_OK
        assert data["identifiers"][-1] == "patterns/fire-tv.md"

    def test_facts_file(self, capsys, guide_tree, tmp_path):
        _, manifest_path = guide_tree
        facts_file = tmp_path / "facts.json"
        facts_file.write_text(json.dumps({"fireTvPatternsPresent": True}))

        _, out = run(capsys, manifest_path, "resolve", "--facts", str(facts_file))

        assert "patterns/fire-tv.md" in out.split()

    def test_invalid_fact(self, capsys, guide_tree):
        _, manifest_path = guide_tree

        code, _ = run(capsys, manifest_path, "resolve", "--fact", "fireTvPatternsPresent=maybe")

        assert code == EXIT_ERROR


class TestVerifyCommand:
    """guide-registry verify"""

    def test_round_trip_consistent(self, capsys, guide_tree, tmp_path):
        """Test that a resolved set written by one run verifies in another."""
        _, manifest_path = guide_tree
        _, out = run(capsys, manifest_path, "resolve", "--fact", "fireTvPatternsPresent=true", "--json")
        expected = tmp_path / "expected.json"
        expected.write_text(out)

        code, _ = run(
            capsys, manifest_path, "verify", "--expected", str(expected),
            "--fact", "fireTvPatternsPresent=true",
        )

        assert code == EXIT_OK

    def test_drift_detected(self, capsys, guide_tree, tmp_path):
        _, manifest_path = guide_tree
        _, out = run(capsys, manifest_path, "resolve", "--json")
        expected = tmp_path / "expected.json"
        expected.write_text(out)

        code, out = run(
            capsys, manifest_path, "verify", "--expected", str(expected),
            "--fact", "fireTvPatternsPresent=true", "--json",
        )

        assert code == EXIT_DRIFT
        assert json.loads(out)["unexpected"] == ["patterns/fire-tv.md"]

    def test_invalid_expected_file(self, capsys, guide_tree, tmp_path):
        _, manifest_path = guide_tree
        expected = tmp_path / "expected.json"
        expected.write_text("[]")

        code, _ = run(capsys, manifest_path, "verify", "--expected", str(expected))

        assert code == EXIT_ERROR


class TestShowCommand:
    """guide-registry show"""

    def test_json_summary(self, capsys, guide_tree):
        _, manifest_path = guide_tree

        code, out = run(capsys, manifest_path, "show", "--json")
        data = json.loads(out)

        assert code == EXIT_OK
        assert data["disabled_entries"] == 1
        assert data["detectors"] == ["fireTvPatternsPresent"]


    def test_rich_summary(self, capsys, guide_tree):
        """Test the human-readable panel and category table."""
        _, manifest_path = guide_tree

        code, out = run(capsys, manifest_path, "show")

        assert code == EXIT_OK
        assert "Categories" in out
        assert "wcag" in out
        assert "patterns" in out
        assert "3 entries, 1 disabled, 1 conditional" in out
        assert "Detectors: fireTvPatternsPresent" in out

    def test_uncatalogued_detector_marked(self, capsys, tmp_path, make_manifest):
        manifest_path = make_manifest(
            tmp_path, {"p": [{"path": "a.md", "condition": "brandNewDetector"}]}
        )

        code, out = run(capsys, manifest_path, "show")

        assert code == EXIT_OK
        assert "brandNewDetector (uncatalogued)" in out


class TestLoadFacts:
    """Fact parsing helpers."""

    def test_arguments_override_file(self, tmp_path):
        facts_file = tmp_path / "facts.json"
        facts_file.write_text(json.dumps({"flutterPresent": True}))

        facts = load_facts(str(facts_file), ["flutterPresent=false", "webViewPresent=yes"])

        assert facts == {"flutterPresent": False, "webViewPresent": True}

    def test_non_boolean_in_file(self, tmp_path):
        facts_file = tmp_path / "facts.json"
        facts_file.write_text(json.dumps({"flutterPresent": 1}))

        with pytest.raises(CliInputError):
            load_facts(str(facts_file), None)

    def test_missing_separator(self):
        with pytest.raises(CliInputError):
            load_facts(None, ["flutterPresent"])
