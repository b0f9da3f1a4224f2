"""Unit tests for manifest template filters."""

import yaml

from argogen.renderers.filters import csv, k8s_label, k8s_name, yaml_str


class TestK8sFilters:
    def test_k8s_name_lowercases(self) -> None:
        assert k8s_name("Shop-Dev") == "shop-dev"

    def test_k8s_label_replaces_invalid_characters(self) -> None:
        assert k8s_label("Commerce Team") == "commerce-team"
        assert k8s_label("a_b/c") == "a-b-c"

    def test_k8s_label_trims_to_63(self) -> None:
        label = k8s_label("x" * 70 + "-")

        assert len(label) == 63
        assert not label.endswith("-")


class TestCsv:
    def test_join(self) -> None:
        assert csv(["frontend", "backend"]) == "frontend,backend"

    def test_empty(self) -> None:
        assert csv([]) == ""


class TestYamlStr:
    """yaml_str output must load back as the original string."""

    def test_regexp_value(self) -> None:
        rendered = yaml_str("regexp:^api-main-latest$")

        assert yaml.safe_load(f"key: {rendered}")["key"] == "regexp:^api-main-latest$"

    def test_quotes_and_hash(self) -> None:
        value = 'say "hi" # not a comment'

        assert yaml.safe_load(f"key: {yaml_str(value)}")["key"] == value

    def test_bool_and_none(self) -> None:
        assert yaml_str(True) == '"true"'
        assert yaml_str(None) == '""'

    def test_number_stays_string(self) -> None:
        assert yaml.safe_load(f"key: {yaml_str(2)}")["key"] == "2"
