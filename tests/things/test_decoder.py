"""Tests for EnvelopeDecoder."""

import logging

import pytest

from grawpy import DecodeError, UnknownKindError, ValidationFailedError
from grawpy.things import (
    Account,
    Comment,
    EditedState,
    EnvelopeDecoder,
    Listing,
    Message,
    MoreMarker,
    Post,
    Subreddit,
)

NOW = 1700000000.0


# =============================================================================
# Builders
# =============================================================================


def post_env(post_id="abc123", **overrides):
    data = {
        "id": post_id,
        "name": f"t3_{post_id}",
        "author": "alice",
        "title": "Hello Python",
        "subreddit": "python",
        "subreddit_id": "t5_2qh0y",
        "url": "https://example.com/",
        "permalink": f"/r/python/comments/{post_id}/hello_python/",
        "score": 10,
        "ups": 10,
        "downs": 0,
        "upvote_ratio": 0.93,
        "num_comments": 2,
        "created": NOW,
        "created_utc": NOW,
        "edited": False,
    }
    data.update(overrides)
    return {"kind": "t3", "data": data}


def comment_env(comment_id="c1", **overrides):
    data = {
        "id": comment_id,
        "name": f"t1_{comment_id}",
        "author": "bob",
        "body": "Nice post",
        "parent_id": "t3_abc123",
        "link_id": "t3_abc123",
        "subreddit": "python",
        "score": 2,
        "ups": 2,
        "downs": 0,
        "created": NOW,
        "created_utc": NOW,
        "replies": "",
    }
    data.update(overrides)
    return {"kind": "t1", "data": data}


@pytest.fixture
def decoder():
    return EnvelopeDecoder()


# =============================================================================
# Dispatch
# =============================================================================


class TestDispatch:
    """Tests for EnvelopeDecoder.decode() dispatch on kind."""

    def test_listing(self, decoder):
        """Should decode a Listing with its children left undecoded."""
        listing = decoder.decode({
            "kind": "Listing",
            "data": {"after": "t3_next1", "before": None, "children": [post_env("a1"), post_env("a2")]},
        })

        assert isinstance(listing, Listing)
        assert len(listing.children) == 2
        assert listing.children[0].kind == "t3"
        assert listing.after == "t3_next1"
        assert listing.before is None

    def test_post(self, decoder):
        """Should decode a t3 into a Post."""
        post = decoder.decode(post_env())

        assert isinstance(post, Post)
        assert post.title == "Hello Python"
        assert post.upvote_ratio == 0.93
        assert post.edited.state == EditedState.NEVER

    def test_comment_is_flat(self, decoder):
        """Should decode a t1 without expanding its replies."""
        reply = comment_env("c2", parent_id="t1_c1")
        comment = decoder.decode(comment_env(replies={"kind": "Listing", "data": {"children": [reply]}}))

        assert isinstance(comment, Comment)
        assert comment.replies == []

    def test_account(self, decoder):
        """Should decode a t2 into an Account; its name is a username."""
        account = decoder.decode({
            "kind": "t2",
            "data": {"id": "u1", "name": "alice", "comment_karma": 5, "link_karma": 7,
                     "created": NOW, "created_utc": NOW},
        })

        assert isinstance(account, Account)
        assert account.name == "alice"

    def test_message(self, decoder):
        """Should decode a t4 into a Message."""
        message = decoder.decode({
            "kind": "t4",
            "data": {"id": "m1", "name": "t4_m1", "author": "alice", "subject": "hi", "body": "hello",
                     "created": NOW, "created_utc": NOW},
        })

        assert isinstance(message, Message)
        assert message.subject == "hi"

    def test_subreddit(self, decoder):
        """Should decode a t5 into a Subreddit."""
        subreddit = decoder.decode({
            "kind": "t5",
            "data": {"id": "2qh0y", "name": "t5_2qh0y", "display_name": "python", "subscribers": 1000},
        })

        assert isinstance(subreddit, Subreddit)
        assert subreddit.subscribers == 1000

    def test_more(self, decoder):
        """Should decode a more marker with its child ids."""
        more = decoder.decode({
            "kind": "more",
            "data": {"id": "m1", "name": "t1_m1", "children": ["x1", "x2"], "count": 2},
        })

        assert isinstance(more, MoreMarker)
        assert more.children == ["x1", "x2"]

    def test_unknown_kind(self, decoder, caplog):
        """Should raise UnknownKindError for kinds outside the closed set."""
        with caplog.at_level(logging.WARNING), pytest.raises(UnknownKindError) as exc_info:
            decoder.decode({"kind": "t6", "data": {}})

        assert exc_info.value.kind == "t6"
        assert isinstance(exc_info.value, DecodeError)
        assert "t6" in caplog.text

    def test_malformed_envelope(self, decoder):
        """Should raise DecodeError for values that are not envelopes."""
        with pytest.raises(DecodeError, match="malformed envelope"):
            decoder.decode(["not", "an", "envelope"])

    def test_wrong_kind_for_typed_decoder(self, decoder):
        """Should refuse to decode a post as a comment."""
        with pytest.raises(DecodeError, match="expected t1, got t3"):
            decoder.decode_comment(post_env())


# =============================================================================
# Listings
# =============================================================================


class TestListing:
    """Tests for decode_listing()."""

    def test_children_count_matches_input(self, decoder):
        """Should keep one child per input element, in order."""
        children = [post_env(f"p{i}") for i in range(7)]
        listing = decoder.decode_listing({"kind": "Listing", "data": {"children": children}})

        assert [c.data["id"] for c in listing.children] == [f"p{i}" for i in range(7)]

    def test_empty_cursors_become_none(self, decoder):
        """Should normalize empty cursors to None."""
        listing = decoder.decode_listing({"kind": "Listing", "data": {"after": "", "before": "", "children": []}})

        assert listing.after is None
        assert listing.before is None

    @pytest.mark.parametrize("field", ["after", "before"])
    def test_invalid_cursor_fails(self, decoder, field):
        """Should reject cursors that are not fullnames."""
        with pytest.raises(ValidationFailedError, match="cursor"):
            decoder.decode_listing({"kind": "Listing", "data": {field: "abc", "children": []}})

    def test_children_must_be_a_list(self, decoder):
        """Should reject a children field that is not a list."""
        with pytest.raises(ValidationFailedError, match="children"):
            decoder.decode_listing({"kind": "Listing", "data": {"children": {"kind": "t3"}}})

    def test_child_must_be_an_envelope(self, decoder):
        """Should reject children that are not envelopes."""
        with pytest.raises(ValidationFailedError):
            decoder.decode_listing({"kind": "Listing", "data": {"children": [42]}})


# =============================================================================
# Validation
# =============================================================================


class TestValidation:
    """Tests for domain validation run by the typed decoders."""

    def test_rejects_uppercase_id(self, decoder):
        """Should reject ids that are not lowercase base36."""
        with pytest.raises(ValidationFailedError, match="ID has invalid format"):
            decoder.decode(post_env(post_id="ABC"))

    def test_rejects_ratio_out_of_range(self, decoder):
        """Should reject an upvote ratio above 1."""
        with pytest.raises(ValidationFailedError, match="UpvoteRatio"):
            decoder.decode(post_env(upvote_ratio=1.5))

    def test_rejects_negative_comment_count(self, decoder):
        """Should reject a negative num_comments."""
        with pytest.raises(ValidationFailedError, match="NumComments"):
            decoder.decode(post_env(num_comments=-1))

    def test_rejects_future_creation_time(self, decoder):
        """Should reject records created more than an hour in the future."""
        future = 4102444800.0  # 2100-01-01
        with pytest.raises(ValidationFailedError, match="future"):
            decoder.decode(post_env(created=future, created_utc=future))

    def test_rejects_creation_before_reddit(self, decoder):
        """Should reject records created before June 2005."""
        with pytest.raises(ValidationFailedError, match="before Reddit existed"):
            decoder.decode(post_env(created=1000.0, created_utc=1000.0))

    def test_collects_every_problem(self, decoder):
        """Should report every violation, joined with '; '."""
        with pytest.raises(ValidationFailedError) as exc_info:
            decoder.decode(post_env(title="", url=""))

        assert "Title is required" in exc_info.value.problems
        assert "URL is required" in exc_info.value.problems
        assert "Title is required; " in str(exc_info.value)

    def test_rejects_wrong_field_type(self, decoder):
        """Should reject a payload field of the wrong JSON type."""
        with pytest.raises(ValidationFailedError, match="score"):
            decoder.decode(post_env(score="10"))

    def test_rejects_unknown_edited_shape(self, decoder):
        """Should reject an edited value that is neither bool nor number."""
        with pytest.raises(ValidationFailedError, match="edited"):
            decoder.decode(post_env(edited="yesterday"))

    def test_edited_timestamp(self, decoder):
        """Should decode a numeric edited value as AT."""
        post = decoder.decode(post_env(edited=NOW + 60))

        assert post.edited.state == EditedState.AT
        assert post.edited.timestamp == NOW + 60

    def test_edited_legacy_true(self, decoder):
        """Should decode edited=true as LEGACY_TRUE."""
        assert decoder.decode(post_env(edited=True)).edited.state == EditedState.LEGACY_TRUE

    def test_deleted_author_is_accepted(self, decoder):
        """Should accept the [deleted] author placeholder."""
        comment = decoder.decode(comment_env(author="[deleted]"))

        assert comment.author == "[deleted]"

    def test_more_children_must_be_strings(self, decoder):
        """Should reject more markers with non-string children."""
        with pytest.raises(ValidationFailedError, match="children"):
            decoder.decode({"kind": "more", "data": {"id": "m1", "children": [1, 2]}})


class TestParseReplies:
    """Tests for parse_replies()."""

    def test_sentinel(self):
        """Should treat "" as empty."""
        assert EnvelopeDecoder.parse_replies("").is_empty

    def test_invalid(self):
        """Should raise ValidationFailedError for unexpected values."""
        with pytest.raises(ValidationFailedError):
            EnvelopeDecoder.parse_replies(42)
