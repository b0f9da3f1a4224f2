"""Unit tests for configuration system."""

from pathlib import Path

import pytest
import yaml

from argogen.config import (
    ArgogenConfig,
    GitHubConfig,
    PlatformConfig,
    PublishConfig,
    create_default_config,
    find_config_file,
    load_config,
    load_config_from_dict,
    substitute_env_vars,
)


class TestSubstituteEnvVars:
    """Tests for environment variable substitution."""

    def test_substitute_string(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test substituting env var in string."""
        monkeypatch.setenv("TEST_VAR", "test_value")

        result = substitute_env_vars("prefix_${TEST_VAR}_suffix")

        assert result == "prefix_test_value_suffix"

    def test_substitute_in_nested_structures(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test substituting env vars in dictionaries and lists."""
        monkeypatch.setenv("TOKEN", "secret123")

        data = {"github": {"token": "${TOKEN}"}, "items": ["static", "${TOKEN}"]}
        result = substitute_env_vars(data)

        assert result["github"]["token"] == "secret123"
        assert result["items"] == ["static", "secret123"]

    def test_missing_env_var_raises(self) -> None:
        """Test that missing env var raises ValueError."""
        with pytest.raises(ValueError, match="Environment variable not set: ARGOGEN_MISSING"):
            substitute_env_vars("${ARGOGEN_MISSING}")

    def test_passthrough_non_string(self) -> None:
        """Test that non-string values pass through unchanged."""
        assert substitute_env_vars(123) == 123
        assert substitute_env_vars(True) is True
        assert substitute_env_vars(None) is None


class TestFindConfigFile:
    """Tests for config file discovery."""

    def test_find_argogen_dir_config(self, tmp_path: Path) -> None:
        """Test finding .argogen/config.yaml."""
        config_file = tmp_path / ".argogen" / "config.yaml"
        config_file.parent.mkdir()
        config_file.write_text("publish:\n  target_branch: testing\n")

        assert find_config_file(tmp_path) == config_file

    def test_dir_config_wins_over_root_file(self, tmp_path: Path) -> None:
        """Test that .argogen/config.yaml is preferred over argogen.yaml."""
        (tmp_path / "argogen.yaml").write_text("{}")
        config_file = tmp_path / ".argogen" / "config.yaml"
        config_file.parent.mkdir()
        config_file.write_text("{}")

        assert find_config_file(tmp_path) == config_file

    def test_no_config(self, tmp_path: Path) -> None:
        """Test that None is returned when no config exists."""
        assert find_config_file(tmp_path) is None


class TestSectionValidation:
    """Tests for __post_init__ validation of config sections."""

    def test_github_token_falls_back_to_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GITHUB_TOKEN", "ghp_env")

        assert GitHubConfig().token == "ghp_env"

    def test_github_urls_must_be_http(self) -> None:
        with pytest.raises(ValueError, match="github.api_url"):
            GitHubConfig(api_url="api.github.com")

    def test_github_urls_are_normalized(self) -> None:
        config = GitHubConfig(api_url="https://ghe.example.com/api/v3/")

        assert config.api_url == "https://ghe.example.com/api/v3"

    def test_github_timeout_must_be_positive(self) -> None:
        with pytest.raises(ValueError, match="github.timeout"):
            GitHubConfig(timeout=0)

    def test_platform_annotation_prefix_required(self) -> None:
        with pytest.raises(ValueError, match="annotation_prefix"):
            PlatformConfig(annotation_prefix="")

    def test_platform_write_back_secret_format(self) -> None:
        with pytest.raises(ValueError, match="<namespace>/<secret>"):
            PlatformConfig(write_back_secret="argocd-image-updater-git")

    def test_publish_target_branch_required(self) -> None:
        with pytest.raises(ValueError, match="target_branch"):
            PublishConfig(target_branch="")


class TestLoadConfig:
    """Tests for loading configuration."""

    def test_defaults(self) -> None:
        """Test that an empty dict gives the defaults."""
        config = load_config_from_dict({})

        assert config.paths.sources_file == "application-sources.txt"
        assert config.paths.applications_dir == "applications"
        assert config.publish.target_branch == "testing"
        assert config.platform.write_back_secret == "argocd/argocd-image-updater-git"

    def test_sections_loaded(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("REPO_URL", "https://github.com/acme/config-repo.git")

        config = load_config_from_dict(
            {
                "platform": {"project": "tenants", "config_repo_url": "${REPO_URL}"},
                "paths": {"charts_dir": "charts"},
            }
        )

        assert config.platform.project == "tenants"
        assert config.platform.config_repo_url == "https://github.com/acme/config-repo.git"
        assert config.paths.charts_dir == "charts"

    def test_unknown_key_rejected(self) -> None:
        with pytest.raises(ValueError, match="Invalid key in config section 'paths'"):
            load_config_from_dict({"paths": {"sources": "x.txt"}})

    def test_section_must_be_mapping(self) -> None:
        with pytest.raises(ValueError, match="must be a mapping"):
            load_config_from_dict({"platform": ["argocd"]})

    def test_explicit_missing_path(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config(config_path=tmp_path / "nope.yaml")

    def test_auto_discovery(self, tmp_path: Path) -> None:
        (tmp_path / "argogen.yaml").write_text("publish:\n  target_branch: release\n")

        config = load_config(start_path=tmp_path)

        assert config.publish.target_branch == "release"
        assert config.config_path == tmp_path / "argogen.yaml"

    def test_malformed_yaml(self, tmp_path: Path) -> None:
        (tmp_path / "argogen.yaml").write_text("github: [unclosed\n")

        with pytest.raises(ValueError, match="Invalid YAML in"):
            load_config(start_path=tmp_path)

    def test_top_level_must_be_mapping(self, tmp_path: Path) -> None:
        (tmp_path / "argogen.yaml").write_text("- github\n- paths\n")

        with pytest.raises(ValueError, match="must contain a YAML mapping"):
            load_config(start_path=tmp_path)

    def test_no_file_gives_defaults(self, tmp_path: Path) -> None:
        config = load_config(start_path=tmp_path)

        assert config == ArgogenConfig()
        assert config.config_path is None

    def test_default_config_template_loads(self) -> None:
        """The init template must round-trip through the loader."""
        data = yaml.safe_load(create_default_config())

        config = load_config_from_dict(data)

        assert config.platform.annotation_prefix == "argogen.io"
        assert config.paths.image_updater_config == "argocd-image-updater-config.yaml"
