"""Template renderer for generated manifests.

Renders ArgoCD resources, Terraform variables and Helm chart scaffolding
with Jinja2. Output depends only on the context passed in, so the same
input always produces the same file (the generated-at annotation is part
of the context).

Helm chart files contain Helm's own ``{{ }}`` actions, so they are rendered
by a second environment that uses ``[[ ]]`` / ``[% %]`` delimiters.
"""

import logging
from pathlib import Path
from typing import Any

import yaml
from jinja2 import Environment, PackageLoader, StrictUndefined, TemplateError

from argogen.errors import RenderError
from argogen.renderers.filters import csv, k8s_label, k8s_name, yaml_str

logger = logging.getLogger(__name__)

CHART_TEMPLATE_DIR = "templates/chart"


def _register_filters(env: Environment) -> None:
    env.filters["k8s_name"] = k8s_name
    env.filters["k8s_label"] = k8s_label
    env.filters["csv"] = csv
    env.filters["yaml_str"] = yaml_str


def check_yaml(text: str, name: str) -> None:
    """Ensure rendered text parses as YAML (all documents).

    Raises:
        RenderError: If the text is not valid YAML
    """
    try:
        for _ in yaml.safe_load_all(text):
            pass
    except yaml.YAMLError as e:
        raise RenderError(f"Rendered {name} is not valid YAML: {e}") from e


class ManifestRenderer:
    """Renders package templates to text or files.

    Usage:
        renderer = ManifestRenderer()
        text = renderer.render("application.yaml.j2", context)
        renderer.render_to_file("application.yaml.j2", context, path)
    """

    def __init__(self) -> None:
        """Initialize the Jinja2 environments with package templates."""
        self._env = Environment(
            loader=PackageLoader("argogen", "templates"),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
            undefined=StrictUndefined,
        )
        _register_filters(self._env)

        self._chart_env = Environment(
            loader=PackageLoader("argogen", CHART_TEMPLATE_DIR),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
            undefined=StrictUndefined,
            block_start_string="[%",
            block_end_string="%]",
            variable_start_string="[[",
            variable_end_string="]]",
            comment_start_string="[#",
            comment_end_string="#]",
        )
        _register_filters(self._chart_env)

    def _render(
        self,
        env: Environment,
        template_name: str,
        context: dict[str, Any],
        validate_yaml: bool,
    ) -> str:
        try:
            template = env.get_template(template_name)
        except TemplateError as e:
            logger.error("Failed to load template %s: %s", template_name, e)
            raise RenderError(f"Template not found: {template_name}") from e

        try:
            rendered = template.render(**context)
        except TemplateError as e:
            logger.error("Template rendering failed for %s: %s", template_name, e)
            raise RenderError(f"Template rendering failed ({template_name}): {e}") from e

        if validate_yaml:
            check_yaml(rendered, template_name)

        return rendered

    def render(
        self,
        template_name: str,
        context: dict[str, Any],
        validate_yaml: bool = True,
    ) -> str:
        """Render a manifest template.

        Args:
            template_name: Template file under the package templates directory
            context: Template variables
            validate_yaml: Check that the output parses as YAML

        Returns:
            Rendered text

        Raises:
            RenderError: If loading, rendering or YAML validation fails
        """
        return self._render(self._env, template_name, context, validate_yaml)

    def render_chart_file(
        self,
        template_name: str,
        context: dict[str, Any],
        validate_yaml: bool = False,
    ) -> str:
        """Render a Helm chart scaffolding file (``[[ ]]`` delimiters)."""
        return self._render(self._chart_env, template_name, context, validate_yaml)

    def render_to_file(
        self,
        template_name: str,
        context: dict[str, Any],
        output_path: Path,
        validate_yaml: bool = True,
    ) -> Path:
        """Render a manifest template and write it.

        Returns:
            Path to the written file
        """
        content = self.render(template_name, context, validate_yaml=validate_yaml)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(content, encoding="utf-8")
        logger.debug("Wrote %s", output_path)
        return output_path
