"""argogen - GitOps manifest generator for platform tenant applications.

argogen keeps a GitOps configuration repository in sync with the application
repositories it deploys. It reads each application's platform requirements,
probes the repository through the GitHub API and writes ArgoCD Application
manifests wired for the ArgoCD Image Updater.

Core principles:
- Files on disk are the source of truth: every command reads YAML and writes YAML
- Preflight Validation: external tools are checked before they are invoked
- CI/CD Compatibility: no prompts unless asked for, meaningful exit codes
- One repository failing never stops the others from being processed
"""

__version__ = "0.1.0"
__author__ = "argogen Contributors"
