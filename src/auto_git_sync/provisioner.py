import logging

import httpx

from .constants import APP_NAME, GITHUB_API_URL, USER_AGENT
from .errors import ProvisioningError

logger = logging.getLogger(APP_NAME)


class GitHubProvisioner:
    """Creates the remote repository through the GitHub REST API.

    Attributes:
        api_url (str): Base URL of the API.
        timeout (float): Request timeout in seconds.
    """

    def __init__(
        self,
        token: str,
        api_url: str = GITHUB_API_URL,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initializes the provisioner.

        Args:
            token (str): A personal access token allowed to create repositories.
            api_url (str, optional): Base URL of the API. Defaults to GitHub.
            timeout (float, optional): Request timeout in seconds. Defaults to 10.
            transport (httpx.BaseTransport | None, optional): Transport override,
                used to stub the API in tests.
        """
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._token = token
        self._transport = transport

    def create_repository(self, name: str, private: bool = True) -> bool:
        """Creates a repository owned by the authenticated user.

        An "already exists" rejection is treated as success.

        Args:
            name (str): The repository name.
            private (bool, optional): Whether the repository is private.

        Returns:
            bool: True if the repository was created, False if it already existed.

        Raises:
            ProvisioningError: If the API rejected the request for any other reason
                or could not be reached.
        """
        try:
            with httpx.Client(
                timeout=self.timeout,
                transport=self._transport,
                headers={
                    "Authorization": f"Bearer {self._token}",
                    "Accept": "application/vnd.github+json",
                    "User-Agent": USER_AGENT,
                },
            ) as client:
                response = client.post(
                    f"{self.api_url}/user/repos",
                    json={"name": name, "private": private, "auto_init": False},
                )
        except httpx.HTTPError as e:
            logger.error(f"GitHub API request failed: {e}")
            raise ProvisioningError(name, None, str(e)) from e

        if response.is_success:
            logger.info(f"Created GitHub repository '{name}'")
            return True

        body = response.text
        if "already exists" in body:
            logger.warning(f"Repository '{name}' already exists, using existing one")
            return False

        raise ProvisioningError(name, response.status_code, body)
