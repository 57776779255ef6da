#!/usr/bin/env python3
"""GitHub API wrapper for discovering the repositories to back up."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

import github
import requests

from config import CloneMethod, GitHubConfig, Visibility
from errors import AuthError, ListingError, NetworkError, RateLimitError
from logging_utils import Logger
from models import RepositoryDescriptor
from utils import RateLimiter

PER_PAGE = 100
REQUEST_TIMEOUT_S = 30


class GitHubSource:
    """Wrapper around the GitHub API to enumerate repositories.

    PyGithub resolves who the account is (user, organization, or the
    authenticated identity). The repository listing itself is paged
    explicitly with requests so that every page is fetched with the same
    headers and a failure on any page aborts the whole listing.
    """

    def __init__(
        self, config: GitHubConfig, logger: Logger, per_page: int = PER_PAGE
    ) -> None:
        self.config = config
        self.logger = logger
        self.per_page = per_page
        self.api: Optional[github.Github] = None
        self.session = requests.Session()
        self.rate_limiter = RateLimiter(logger, max_requests_per_minute=50)

    def connect(self) -> None:
        self.logger.debug(f"init github API: {self.config.api_url}")
        if self.config.secret:
            auth = github.Auth.Token(self.config.secret)
            self.api = github.Github(
                base_url=self.config.api_url, auth=auth, per_page=self.per_page
            )
        else:
            self.api = github.Github(
                base_url=self.config.api_url, per_page=self.per_page
            )

    def _get_api_headers(self) -> dict:
        """Get standard API headers for GitHub requests."""
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if self.config.secret:
            headers["Authorization"] = f"Bearer {self.config.secret}"
        return headers

    def _resolve_endpoint(self) -> Tuple[str, Dict[str, str]]:
        """Return the listing path and query for the configured scope."""
        if self.api is None:
            raise ListingError("github API not initialized")

        account = self.config.account
        try:
            if not account:
                login = self.api.get_user().login
                self.logger.debug(f"listing repositories visible to: {login}")
                return "/user/repos", {
                    "affiliation": "owner,collaborator,organization_member"
                }

            owner = self.api.get_user(account)
            if owner.type == "Organization":
                self.logger.debug(f"listing repositories of organization: {account}")
                return f"/orgs/{account}/repos", {"type": "all"}

            if self.config.secret:
                login = self.api.get_user().login
                if login.lower() == account.lower():
                    # /users/{name}/repos omits private repos, even our own
                    self.logger.debug(f"listing repositories owned by: {login}")
                    return "/user/repos", {"affiliation": "owner"}

            self.logger.debug(f"listing repositories of user: {account}")
            return f"/users/{account}/repos", {"type": "owner"}
        except github.BadCredentialsException as e:
            raise AuthError(f"authentication failed (github): {e}") from e
        except github.RateLimitExceededException as e:
            raise RateLimitError(f"github rate limit exceeded: {e}") from e
        except github.UnknownObjectException as e:
            raise ListingError(f"account '{account}' not found on github") from e
        except github.GithubException as e:
            raise ListingError(f"github error: {e}") from e
        except requests.RequestException as e:
            raise NetworkError(f"failed to contact github api: {e}") from e

    def list_repositories(self) -> List[RepositoryDescriptor]:
        """Fetch every page of the listing and return descriptors in order."""
        path, query = self._resolve_endpoint()
        url = f"{self.config.api_url}{path}"

        repositories: List[RepositoryDescriptor] = []
        seen = set()
        page = 1
        while True:
            items, has_next = self._fetch_page(url, query, page)
            for item in items:
                repository = self._to_descriptor(item, page)
                # Pages can shift while we walk them
                if repository.full_name in seen:
                    continue
                seen.add(repository.full_name)
                repositories.append(repository)

            self.logger.debug(f"page {page}: {len(items)} repositories")
            if len(items) < self.per_page or not has_next:
                break
            page += 1

        self.logger.debug(f"found {len(repositories)} repositories")
        return repositories

    def _fetch_page(
        self, url: str, query: Dict[str, str], page: int
    ) -> Tuple[List[Dict[str, Any]], bool]:
        params = dict(query, per_page=str(self.per_page), page=str(page))
        try:
            self.rate_limiter.wait_if_needed("GitHub API")
            response = self.session.get(
                url,
                headers=self._get_api_headers(),
                params=params,
                timeout=REQUEST_TIMEOUT_S,
            )
        except requests.RequestException as e:
            raise NetworkError(f"failed to fetch repository page {page}: {e}") from e

        self._check_response(response, page)

        try:
            items = response.json()
        except ValueError as e:
            raise ListingError(f"malformed repository page {page}: {e}") from e
        if not isinstance(items, list):
            raise ListingError(f"malformed repository page {page}: expected a list")

        # Without a Link header the page size alone decides
        if "Link" in response.headers:
            has_next = "next" in response.links
        else:
            has_next = True
        return items, has_next

    @staticmethod
    def _check_response(response: requests.Response, page: int) -> None:
        status = response.status_code
        if status == 200:
            return

        remaining = response.headers.get("X-RateLimit-Remaining")
        if status == 429 or (status == 403 and remaining == "0"):
            reset = response.headers.get("X-RateLimit-Reset")
            raise RateLimitError(
                f"github rate limit exceeded on page {page}"
                + (f" (resets at {reset})" if reset else ""),
                reset_at=int(reset) if reset and reset.isdigit() else None,
            )
        if status == 401:
            raise AuthError(
                "unauthorized (401): token invalid or not authorized for GitHub API"
            )
        if status == 403:
            raise AuthError(
                "forbidden (403): token lacks permission to list repositories"
            )
        if status == 404:
            raise ListingError(f"not found (404) while listing page {page}")
        raise ListingError(f"unexpected response {status} while listing page {page}")

    def _to_descriptor(self, item: Dict[str, Any], page: int) -> RepositoryDescriptor:
        try:
            if self.config.clone_method == CloneMethod.SSH:
                clone_url = item["ssh_url"]
            else:
                clone_url = item["clone_url"]
            visibility = item.get("visibility") or (
                "private" if item.get("private") else "public"
            )
            return RepositoryDescriptor(
                name=item["name"],
                full_name=item.get("full_name") or item["name"],
                clone_url=clone_url,
                visibility=Visibility(visibility),
                default_branch=item.get("default_branch"),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ListingError(
                f"malformed repository entry on page {page}: {e!r}"
            ) from e
