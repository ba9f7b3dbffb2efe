# CUI // SP-CTI
"""Tests for shipline.versioning.extractor: strategy chain and invalid-version policy."""

import sys
from pathlib import Path
from unittest.mock import patch

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import pytest

from shipline.resilience.errors import ConfigurationError, VersionFormatError
from shipline.versioning.extractor import extract_version


@pytest.fixture(autouse=True)
def no_maven():
    with patch("shipline.versioning.extractor.maven.is_available", return_value=False):
        yield


class TestStrategyChain:
    def test_xml_wins_for_well_formed_pom(self, pom_file):
        result = extract_version(pom_file)
        assert result.version == "1.0.3"
        assert result.strategy == "xml"
        assert result.valid

    def test_regex_recovers_from_malformed_xml(self, tmp_path):
        """Unclosed tag later in the file breaks XML parsing, not the text search."""
        path = tmp_path / "pom.xml"
        path.write_text(
            "<project><parent><version>9.9.9</version></parent>"
            "<version>2.3.4</version><build><plugins></build></project>"
        )
        result = extract_version(path)
        assert result.version == "2.3.4"
        assert result.strategy == "regex"
        assert result.attempts["xml"].startswith("error:")
        assert result.attempts["maven"] == "empty"

    def test_maven_used_when_xml_value_is_a_property(self, tmp_path):
        path = tmp_path / "pom.xml"
        path.write_text("<project><version>${revision}</version></project>")
        with patch("shipline.versioning.extractor.maven.is_available", return_value=True), \
             patch("shipline.versioning.extractor.maven.evaluate_version", return_value="4.0.1"):
            result = extract_version(path)
        assert result.version == "4.0.1"
        assert result.strategy == "maven"
        assert result.attempts["xml"] == "invalid: '${revision}'"

    def test_custom_strategy_order(self, pom_file):
        result = extract_version(pom_file, strategies=["regex", "xml"])
        assert result.strategy == "regex"
        assert result.version == "1.0.3"

    def test_unknown_strategy(self, pom_file):
        with pytest.raises(ConfigurationError):
            extract_version(pom_file, strategies=["grep"])


class TestInvalidPolicy:
    @pytest.fixture
    def snapshot_pom(self, tmp_path):
        path = tmp_path / "pom.xml"
        path.write_text("<project><version>1.0.0-SNAPSHOT</version></project>")
        return path

    def test_fail_raises(self, snapshot_pom):
        with pytest.raises(VersionFormatError, match="MAJOR.MINOR.PATCH"):
            extract_version(snapshot_pom, on_invalid="fail")

    def test_warn_substitutes_fallback(self, snapshot_pom, caplog):
        result = extract_version(snapshot_pom, on_invalid="warn", fallback="latest")
        assert result.version == "latest"
        assert result.strategy == "fallback"
        assert result.valid is False
        assert "using fallback 'latest'" in caplog.text

    def test_unknown_policy(self, pom_file):
        with pytest.raises(ConfigurationError):
            extract_version(pom_file, on_invalid="ignore")

    def test_missing_descriptor_fails(self, tmp_path):
        with pytest.raises(VersionFormatError):
            extract_version(tmp_path / "pom.xml")
