"""GitHub REST API client with rate limiting and retry logic."""

import time
import logging
import os
from typing import Optional, Dict, Any

import requests

logger = logging.getLogger(__name__)


class RateLimitExceeded(Exception):
    """Raised when GitHub API rate limit is exceeded."""
    pass


class GitHubAPIError(Exception):
    """Raised when GitHub answers with an unexpected status."""

    def __init__(self, status_code: int, message: str):
        super().__init__(f"GitHub API error {status_code}: {message}")
        self.status_code = status_code


class GitHubRESTClient:
    """Read-only client for the lookups used by pre-flight checks."""

    API_URL = "https://api.github.com"
    MAX_RETRIES = 5
    RETRY_DELAY_SECONDS = 1
    MAX_RATE_LIMIT_WAIT_SECONDS = 900

    def __init__(self, token: Optional[str] = None, api_url: Optional[str] = None):
        """
        Initialize GitHub REST client.

        Args:
            token: GitHub personal access token. If None, uses GITHUB_TOKEN env var.
            api_url: API base URL. If None, uses GITHUB_API_URL env var or api.github.com.
        """
        if token is None:
            token = os.getenv("GITHUB_TOKEN")
        if api_url is None:
            api_url = os.getenv("GITHUB_API_URL", self.API_URL)

        self.token = token
        self.api_url = api_url.rstrip("/")
        self.session = requests.Session()
        self.session.headers.update({
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        })

        if self.token:
            self.session.headers["Authorization"] = f"Bearer {self.token}"

    def _get(self, path: str) -> Optional[Dict[str, Any]]:
        """
        Execute a GET request with retry logic.

        Args:
            path: API path starting with a slash

        Returns:
            Decoded JSON body, or None when the resource does not exist

        Raises:
            RateLimitExceeded: If rate limit is exceeded
            GitHubAPIError: On authentication failures and other error statuses
            requests.RequestException: If request fails after retries
        """
        url = f"{self.api_url}{path}"

        for attempt in range(self.MAX_RETRIES):
            try:
                response = self.session.get(url, timeout=30)
            except requests.exceptions.RequestException as e:
                if attempt < self.MAX_RETRIES - 1:
                    delay = self.RETRY_DELAY_SECONDS * (2 ** attempt)
                    logger.warning(f"Request failed (attempt {attempt + 1}/{self.MAX_RETRIES}): {e}. Retrying in {delay}s...")
                    time.sleep(delay)
                    continue
                raise

            if response.status_code == 200:
                return response.json()
            if response.status_code == 404:
                return None
            if response.status_code == 401:
                raise GitHubAPIError(401, "Authentication failed. Check your GitHub token.")
            if response.status_code in (403, 429):
                remaining = int(response.headers.get("X-RateLimit-Remaining", 1))
                if remaining == 0 or response.status_code == 429 or "Retry-After" in response.headers:
                    wait_time = min(self._rate_limit_wait(response), self.MAX_RATE_LIMIT_WAIT_SECONDS)
                    if attempt < self.MAX_RETRIES - 1:
                        logger.warning(f"Rate limit exceeded. Waiting {wait_time} seconds...")
                        time.sleep(wait_time)
                        continue
                    raise RateLimitExceeded("Rate limit exceeded")
                raise GitHubAPIError(response.status_code, f"Forbidden: {response.text}")
            if response.status_code >= 500 and attempt < self.MAX_RETRIES - 1:
                delay = self.RETRY_DELAY_SECONDS * (2 ** attempt)
                logger.warning(f"Server error {response.status_code} for {path}. Retrying in {delay}s...")
                time.sleep(delay)
                continue

            raise GitHubAPIError(response.status_code, response.text)

        raise GitHubAPIError(0, "Max retries exceeded")

    def _rate_limit_wait(self, response) -> int:
        """Seconds to wait before retrying a rate limited request."""
        retry_after = response.headers.get("Retry-After")
        if retry_after is not None and retry_after.isdigit():
            return int(retry_after)
        reset_time = int(response.headers.get("X-RateLimit-Reset", 0))
        return max(reset_time - int(time.time()), 0) + 10

    def get_repository(self, owner: str, name: str) -> Optional[Dict[str, Any]]:
        """Fetch a repository, or None if it does not exist or is not visible."""
        return self._get(f"/repos/{owner}/{name}")

    def get_team(self, org: str, slug: str) -> Optional[Dict[str, Any]]:
        """Fetch an organization team by slug, or None if it does not exist."""
        return self._get(f"/orgs/{org}/teams/{slug}")
