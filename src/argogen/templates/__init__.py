"""argogen template rendering.

Jinja2 templates for ArgoCD Applications, the Image Updater ConfigMap,
tenant Terraform variables and Helm chart scaffolding.
"""

from argogen.templates.renderer import ManifestRenderer, check_yaml

__all__ = ["ManifestRenderer", "check_yaml"]
