"""Git write-back credentials for the ArgoCD Image Updater."""

from argogen.generator import IMAGE_UPDATER_DEPLOYMENT
from argogen.tools.kubectl import Kubectl
from argogen.utils.logging import get_logger

logger = get_logger(__name__)

REPOSITORY_SECRET_LABEL = {"argocd.argoproj.io/secret-type": "repository"}


def split_secret_reference(reference: str) -> tuple[str, str]:
    """Split ``<namespace>/<secret>`` into its parts.

    Examples:
        >>> split_secret_reference("argocd/argocd-image-updater-git")
        ('argocd', 'argocd-image-updater-git')
    """
    namespace, _, name = reference.partition("/")
    if not namespace or not name:
        raise ValueError(f"Secret reference must be <namespace>/<secret>: {reference!r}")
    return namespace, name


def setup_git_credentials(
    kubectl: Kubectl,
    username: str,
    token: str,
    repo_url: str,
    secret_reference: str = "argocd/argocd-image-updater-git",
    rollout_timeout: str = "60s",
) -> None:
    """Create the secret the Image Updater commits tag updates with.

    Replaces an existing secret, labels the new one as a repository
    credential and restarts the Image Updater so it picks it up.

    Args:
        kubectl: kubectl wrapper
        username: GitHub username
        token: GitHub personal access token with repo permissions
        repo_url: Repository the credentials are for
        secret_reference: ``<namespace>/<secret>`` of the write-back secret
        rollout_timeout: How long to wait for the restarted deployment

    Raises:
        ValueError: If username, token or repository URL is empty
        ToolExecutionError: If a kubectl step fails
    """
    if not username or not token or not repo_url:
        raise ValueError("username, token and repository URL are all required")

    namespace, name = split_secret_reference(secret_reference)

    if kubectl.delete_secret(name, namespace):
        logger.info("Deleted existing secret %s/%s", namespace, name)

    kubectl.create_generic_secret(
        name,
        namespace,
        {"username": username, "password": token, "url": repo_url},
    )
    kubectl.label("secret", name, namespace, REPOSITORY_SECRET_LABEL)
    logger.success("Created git secret %s/%s", namespace, name)

    logger.info("Restarting ArgoCD Image Updater")
    kubectl.rollout_restart(IMAGE_UPDATER_DEPLOYMENT, namespace)
    kubectl.rollout_status(IMAGE_UPDATER_DEPLOYMENT, namespace, timeout=rollout_timeout)
    logger.success("ArgoCD Image Updater restarted")
