"""
High level Reddit API client.

RedditClient ties the pieces together: every call goes through an HttpClient
(rate limited by default), the body is decoded with size and nesting limits,
and envelopes are turned into typed records by a TreeBuilder.

Example:
    >>> from grawpy import GRAW, RedditClient, CommentsRequest
    >>> GRAW.configure(auth={"client_id": "...", "client_secret": "..."})
    >>> client = RedditClient()
    >>> page = client.get_hot(PostsRequest(subreddit="python"))
    >>> response = client.get_comments(CommentsRequest(subreddit="python", post_id=page.posts[0].id))
    >>> len(response.comments), response.more_ids
"""

from __future__ import annotations

import logging
import threading
from collections import Counter
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import TYPE_CHECKING, Any

import requests

from grawpy import _validation
from grawpy._errors import APIError, DecodeError, RequestValidationError, TransportError
from grawpy._models import (
    CommentsRequest,
    CommentsResponse,
    MoreCommentsRequest,
    Pagination,
    PostsRequest,
    PostsResponse,
)
from grawpy._utils import (
    DEFAULT_MAX_NESTING,
    decode_json_body,
    is_timeout_exception,
    normalize_envelopes,
    preview,
    raise_for_error_object,
)
from grawpy.things._models import Account, Comment, Envelope, Listing, Post, Subreddit, ThingKind
from grawpy.things._tree import TreeBuilder

if TYPE_CHECKING:
    from grawpy._config import GrawConfig
    from grawpy._http import HttpClient

logger = logging.getLogger(__name__)

_BATCH_LOG_ID = "Comments-Batch"

# A reply level is five JSON levels (t1, data, Listing, data, children); keep headroom.
_JSON_LEVELS_PER_REPLY = 8


def create_http_client(config: GrawConfig | None = None) -> HttpClient:
    """
    Build the default HTTP client from configuration.

    Returns a StandaloneHttpClient authenticated with a RedditOAuthProvider,
    wrapped in a RateLimitedHttpClient when `rate_limit.enabled` is True.

    Raises:
        ValueError: If client credentials are not configured.
    """
    from grawpy._auth import create_standalone_auth
    from grawpy._http import StandaloneHttpClient
    from grawpy._rate_limit import RateGate, RateLimitedHttpClient

    if config is None:
        from grawpy._config import GRAW

        config = GRAW.config

    _validation.validate_user_agent(config.auth.user_agent)
    client: HttpClient = StandaloneHttpClient(
        auth_provider=create_standalone_auth(config.auth),
        user_agent=config.auth.user_agent,
    )
    if config.rate_limit.enabled:
        client = RateLimitedHttpClient(delegate=client, gate=RateGate.from_config(config.rate_limit))
    return client


class RedditClient:
    """
    Synchronous, thread-safe client for the Reddit OAuth API.

    Every method accepts an optional `cancel` event; setting it aborts a
    request that is still waiting on the rate limiter.

    Args:
        http_client: Transport; built with create_http_client() when omitted.
        config: Configuration; GRAW.config when omitted.
        parser: Envelope decoder; a TreeBuilder using `config.parser` when omitted.
    """

    def __init__(
        self,
        http_client: HttpClient | None = None,
        config: GrawConfig | None = None,
        parser: TreeBuilder | None = None,
    ):
        if config is None:
            from grawpy._config import GRAW

            config = GRAW.config

        self.config = config
        self.base_url = config.client.base_url
        self.request_timeout = config.client.request_timeout
        self.max_response_bytes = config.client.max_response_bytes
        self.http_client = http_client or create_http_client(config)
        self.parser = parser or TreeBuilder.from_config(config.parser)
        self.max_json_nesting = max(DEFAULT_MAX_NESTING, _JSON_LEVELS_PER_REPLY * (self.parser.max_depth + 2))

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------

    def _url(self, path: str) -> str:
        return self.base_url.rstrip("/") + "/" + path.lstrip("/")

    def _get(self, path: str, params: dict[str, Any] | None = None, cancel: threading.Event | None = None) -> Any:
        url = self._url(path)
        query = {"raw_json": 1, **(params or {})}
        try:
            response = self.http_client.get(url, params=query, timeout=self.request_timeout, cancel=cancel)
        except requests.RequestException as e:
            raise self._transport_error(url, e) from e
        return self._read_body(url, response)

    def _post(self, path: str, data: dict[str, Any], cancel: threading.Event | None = None) -> Any:
        url = self._url(path)
        try:
            response = self.http_client.post(url, data=data, timeout=self.request_timeout, cancel=cancel)
        except requests.RequestException as e:
            raise self._transport_error(url, e) from e
        return self._read_body(url, response)

    @staticmethod
    def _transport_error(url: str, e: requests.RequestException) -> TransportError:
        reason = "request timed out" if is_timeout_exception(e) else "request failed"
        logger.debug(f"Transport failure for {url}: {e}")
        return TransportError(f"{reason}: {e}", url=url, cause=e)

    def _read_body(self, url: str, response: requests.Response) -> Any:
        logger.debug(f"Response {response.status_code} from {url}")
        content = response.content or b""
        if not 200 <= response.status_code < 300:
            raise APIError(
                response.status_code,
                response.reason or "unexpected status",
                body=preview(content),
            )

        logger.debug(f"Response body preview: {preview(content)}")
        return decode_json_body(content, self.max_response_bytes, self.max_json_nesting)

    # -------------------------------------------------------------------------
    # Account and subreddits
    # -------------------------------------------------------------------------

    def me(self, cancel: threading.Event | None = None) -> Account:
        """
        Return the account the access token belongs to.

        Reddit answers `api/v1/me` with a bare account object; an enveloped
        t2 is accepted too.
        """
        payload = self._get("api/v1/me", cancel=cancel)
        raise_for_error_object(payload)
        if not isinstance(payload, Mapping):
            raise DecodeError(f"expected an account object, got {type(payload).__name__}")

        if payload.get("kind") == ThingKind.ACCOUNT:
            return self.parser.decode_account(payload)
        return self.parser.decode_account(Envelope(kind=ThingKind.ACCOUNT, data=payload))

    def get_subreddit(self, name: str, cancel: threading.Event | None = None) -> Subreddit:
        """
        Return information about a subreddit.

        Raises:
            RequestValidationError: If `name` is not a valid subreddit name.
        """
        _validation.validate_subreddit_name(name)
        payload = self._get(f"r/{name}/about", cancel=cancel)
        raise_for_error_object(payload)
        return self.parser.decode_subreddit(payload)

    # -------------------------------------------------------------------------
    # Listings
    # -------------------------------------------------------------------------

    def fetch_listing(
        self,
        path: str,
        pagination: Pagination | None = None,
        cancel: threading.Event | None = None,
    ) -> Listing:
        """
        GET any listing endpoint and decode the Listing envelope.

        Children are returned undecoded; pass them to `self.parser`.
        """
        _validation.validate_pagination(pagination)
        params = pagination.to_params() if pagination else None
        payload = self._get(path, params=params, cancel=cancel)
        raise_for_error_object(payload)
        return self.parser.decode_listing(payload)

    def get_hot(self, request: PostsRequest | None = None, cancel: threading.Event | None = None) -> PostsResponse:
        return self._get_posts("hot", request or PostsRequest(), cancel)

    def get_new(self, request: PostsRequest | None = None, cancel: threading.Event | None = None) -> PostsResponse:
        return self._get_posts("new", request or PostsRequest(), cancel)

    def _get_posts(self, sort: str, request: PostsRequest, cancel: threading.Event | None) -> PostsResponse:
        path = sort
        if request.subreddit is not None:
            _validation.validate_subreddit_name(request.subreddit)
            path = f"r/{request.subreddit}/{sort}"

        listing = self.fetch_listing(path, request.pagination, cancel=cancel)
        posts: list[Post] = []
        for child in listing.children:
            if child.kind != ThingKind.POST:
                continue
            try:
                posts.append(self.parser.decode_post(child))
            except DecodeError as e:
                logger.warning(f"{request.id[:26]:<26} | Reddit | Skipping invalid post: {e}")

        logger.debug(f"{request.id[:26]:<26} | Reddit | Fetched {len(posts)} posts from '{path}'")
        return PostsResponse(posts=posts, after=listing.after, before=listing.before)

    # -------------------------------------------------------------------------
    # Comments
    # -------------------------------------------------------------------------

    def get_comments(self, request: CommentsRequest, cancel: threading.Event | None = None) -> CommentsResponse:
        """
        Fetch a post and its comment tree.

        Returns:
            The response; when only one of post and comments could be
            decoded, `error` is a PartialResultError naming the missing half.

        Raises:
            RequestValidationError: If the request is invalid.
            DecodeError: If neither the post nor the comments could be decoded.
            APIError, TransportError, AuthError, RateLimitCancelledError.
        """
        _validation.validate_subreddit_name(request.subreddit)
        if not _validation.is_valid_base36(request.post_id):
            raise RequestValidationError("post_id", f"post ID has invalid format: {request.post_id}")
        _validation.validate_pagination(request.pagination)

        logger.debug(f"{request.id[:26]:<26} | Reddit | Fetching comments of post '{request.post_id}'")
        payload = self._get(
            f"r/{request.subreddit}/comments/{request.post_id}",
            params=request.pagination.to_params(),
            cancel=cancel,
        )
        page = self.parser.extract_post_and_comments(normalize_envelopes(payload))
        if page.error is not None:
            logger.warning(f"{request.id[:26]:<26} | Reddit | Partial comments result: {page.error}")

        return CommentsResponse(
            request=request,
            post=page.post,
            comments=page.comments,
            more_ids=page.more_ids,
            after=page.after,
            before=page.before,
            error=page.error,
        )

    def get_comments_many(
        self,
        request_list: list[CommentsRequest],
        cancel: threading.Event | None = None,
    ) -> list[CommentsResponse]:
        """
        Fetch many comment pages concurrently.

        One thread per request; concurrency is bounded only by the rate
        limiter. A request that fails yields a response with `error` set
        instead of failing the batch.

        Returns:
            One response per request, in the same order as `request_list`.
        """
        if not request_list:
            return []

        logger.info(f"{_BATCH_LOG_ID[:26]:<26} | Reddit | Starting batch of {len(request_list)} comment requests.")

        responses_map: dict[int, CommentsResponse] = {}
        with ThreadPoolExecutor(max_workers=len(request_list), thread_name_prefix="grawpy-comments") as executor:
            future_to_index = {
                executor.submit(self.get_comments, req, cancel): idx
                for idx, req in enumerate(request_list)
            }

            for future in as_completed(future_to_index):
                idx = future_to_index[future]
                correlated_request = request_list[idx]
                try:
                    responses_map[idx] = future.result()
                except Exception as e:
                    logger.warning(f"{correlated_request.id[:26]:<26} | Reddit | Request failed in batch(seq={idx}): {e}")
                    responses_map[idx] = CommentsResponse(request=correlated_request, error=e)

        # Rebuild responses list in the same order of requests list
        responses = [responses_map[i] for i in range(len(request_list))]

        assert len(responses) == len(request_list), (
            f"Sanity check | Unexpected mismatch: responses(size={len(responses)}) "
            f"is different from requests(size={len(request_list)})."
        )
        assert all(resp.request is req for req, resp in zip(request_list, responses, strict=True)), (
            "Sanity check | Unexpected mismatch: some responses do not reference their corresponding requests."
        )

        totals = Counter("complete" if r.is_complete() else "error" for r in responses)
        logger.info(
            f"{_BATCH_LOG_ID[:26]:<26} | Reddit | Batch finished: "
            f"complete={totals['complete']} with_error={totals['error']}"
        )
        return responses

    def get_more_comments(self, request: MoreCommentsRequest, cancel: threading.Event | None = None) -> list[Comment]:
        """
        Fetch comments elided behind "more" markers.

        Returns:
            The decoded comments, in response order. Items that fail to decode
            are skipped. Empty when `request.comment_ids` is empty.

        Raises:
            RequestValidationError: If the link id or comment ids are invalid.
            APIError: If Reddit reports errors in `json.errors`.
            DecodeError: If the response does not have the expected shape.
        """
        if not request.comment_ids:
            return []

        link_id = _validation.normalize_link_id(request.link_id)
        _validation.validate_comment_ids(request.comment_ids)

        form: dict[str, Any] = {
            "api_type": "json",
            "link_id": link_id,
            "children": ",".join(request.comment_ids),
        }
        if request.sort:
            form["sort"] = request.sort
        if request.depth is not None and request.depth > 0:
            form["depth"] = request.depth
        if request.limit_children:
            form["limit_children"] = "true"

        payload = self._post("api/morechildren", data=form, cancel=cancel)
        things = self._read_more_children(payload)

        comments: list[Comment] = []
        for thing in things:
            if not isinstance(thing, Mapping) or thing.get("kind") != ThingKind.COMMENT:
                logger.debug(f"{request.id[:26]:<26} | Reddit | Ignoring morechildren item: {preview(str(thing), 80)}")
                continue
            try:
                comments.append(self.parser.decode_comment(thing))
            except DecodeError as e:
                logger.warning(f"{request.id[:26]:<26} | Reddit | Skipping invalid comment in morechildren: {e}")
        return comments

    @staticmethod
    def _read_more_children(payload: Any) -> list[Any]:
        raise_for_error_object(payload)
        body = payload.get("json") if isinstance(payload, Mapping) else None
        if not isinstance(body, Mapping):
            raise DecodeError("morechildren response is missing the 'json' object")

        errors = body.get("errors") or []
        if errors:
            raise APIError(200, f"morechildren failed: {errors}", error=errors)

        data = body.get("data") or {}
        things = data.get("things") if isinstance(data, Mapping) else None
        if things is None:
            return []
        if not isinstance(things, list):
            raise DecodeError("morechildren 'things' must be a list")
        return things
