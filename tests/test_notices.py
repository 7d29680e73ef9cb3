"""Tests for Notice."""

import pytest

from update_pipeline import Notice, NoticeKind


def test_throttled_notice_rounds_up():
    notice = Notice.build(NoticeKind.THROTTLED, retry_after=12.2)
    assert notice.kind is NoticeKind.THROTTLED
    assert notice.retry_after == 12.2
    assert "13 seconds" in notice.text


@pytest.mark.parametrize("kind", list(NoticeKind))
def test_every_kind_has_text(kind):
    notice = Notice.build(kind, retry_after=1)
    assert notice.text
    assert "{" not in notice.text


def test_verdict_notices_have_no_retry_hint():
    assert Notice.build(NoticeKind.BLOCKED).retry_after is None
