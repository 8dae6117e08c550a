# tests/services/test_issue_service.py
from __future__ import annotations

import pytest

from stocktake.core.errors import InvalidInput, InvalidState, NotFound, Unauthorized
from stocktake.services.count_service import CountService
from stocktake.services.issue_service import IssueService
from tests.helpers.stocktake import ALICE, ORG, OTHER_ORG, UNNAMED, ZONE_RENTAL, ZONE_REPAIRS

pytestmark = pytest.mark.grp_issue


async def _count(session, seed, sku, qty):
    return await CountService().submit_count(
        session,
        organization_id=ORG,
        session_id=seed.session_id,
        item_id=seed.item(sku),
        counted_qty=qty,
        actor_id=ALICE,
    )


async def _open(session, title="Damaged box", **kw):
    return await IssueService().create(session, organization_id=ORG, title=title, reporter_id=ALICE, **kw)


# ==========================
# 新建
# ==========================


@pytest.mark.asyncio
async def test_create_on_item_takes_item_zone(session, seed):
    issue = await _open(session, item_id=seed.item("SKU-R1"), session_id=seed.session_id)

    assert issue.id is not None
    assert issue.status == "open"
    assert issue.priority == "medium"
    assert issue.zone == ZONE_RENTAL
    assert issue.reporter_name == "Alice Smith"
    assert issue.resolved_at is None
    assert issue.comments == []


@pytest.mark.asyncio
async def test_create_explicit_zone_wins(session, seed):
    issue = await _open(session, item_id=seed.item("SKU-R1"), zone=ZONE_REPAIRS, priority="critical")
    assert issue.zone == ZONE_REPAIRS
    assert issue.priority == "critical"


@pytest.mark.asyncio
async def test_create_validation(session, seed):
    with pytest.raises(InvalidInput):
        await _open(session, title="   ")
    with pytest.raises(InvalidInput):
        await _open(session, priority="urgent")
    with pytest.raises(NotFound):
        await _open(session, item_id=424242)
    with pytest.raises(NotFound):
        await _open(session, session_id=424242)
    with pytest.raises(Unauthorized):
        await IssueService().create(session, organization_id=None, title="x")


@pytest.mark.asyncio
async def test_create_rejects_item_of_other_org(session, seed):
    with pytest.raises(NotFound):
        await IssueService().create(session, organization_id=OTHER_ORG, title="x", item_id=seed.item("SKU-R1"))


@pytest.mark.asyncio
async def test_raise_for_variance(session, seed):
    await _count(session, seed, "SKU-R1", 12)
    await _count(session, seed, "SKU-R2", 3)

    svc = IssueService()
    over = await svc.raise_for_variance(session, organization_id=ORG, item_id=seed.item("SKU-R1"), reporter_id=ALICE)
    under = await svc.raise_for_variance(session, organization_id=ORG, item_id=seed.item("SKU-R2"))

    assert over.title == "Variance on Camera Body (+2)"
    assert over.classification == "variance"
    assert over.item_id == seed.item("SKU-R1")
    assert over.zone == ZONE_RENTAL
    assert under.title == "Variance on Tripod (-2)"
    assert under.reporter_name is None


@pytest.mark.asyncio
async def test_raise_for_variance_requires_variance_status(session, seed):
    svc = IssueService()
    with pytest.raises(InvalidState):
        await svc.raise_for_variance(session, organization_id=ORG, item_id=seed.item("SKU-R1"))

    await _count(session, seed, "SKU-R1", 10)
    with pytest.raises(InvalidState):
        await svc.raise_for_variance(session, organization_id=ORG, item_id=seed.item("SKU-R1"))


# ==========================
# 更新
# ==========================


@pytest.mark.asyncio
async def test_resolve_then_reopen(session, seed):
    issue = await _open(session)
    svc = IssueService()

    issue = await svc.update(session, organization_id=ORG, issue_id=issue.id, status="resolved")
    assert issue.status == "resolved"
    assert issue.resolved_at is not None

    issue = await svc.update(session, organization_id=ORG, issue_id=issue.id, status="in_progress")
    assert issue.status == "in_progress"
    assert issue.resolved_at is None

    issue = await svc.update(session, organization_id=ORG, issue_id=issue.id, status="closed")
    assert issue.resolved_at is not None


@pytest.mark.asyncio
async def test_assign_and_unassign(session, seed):
    issue = await _open(session)
    svc = IssueService()

    issue = await svc.update(session, organization_id=ORG, issue_id=issue.id, assignee_id=UNNAMED)
    assert issue.assignee_id == UNNAMED
    assert issue.assignee_name == "User 123456"

    issue = await svc.update(session, organization_id=ORG, issue_id=issue.id, assignee_id="")
    assert issue.assignee_id is None
    assert issue.assignee_name is None


@pytest.mark.asyncio
async def test_empty_update_is_a_noop(session, seed):
    issue = await _open(session)
    before = (issue.status, issue.priority, issue.updated_at)

    same = await IssueService().update(session, organization_id=ORG, issue_id=issue.id)
    assert same is issue
    assert (same.status, same.priority, same.updated_at) == before


@pytest.mark.asyncio
async def test_update_validation_and_scope(session, seed):
    issue = await _open(session)
    svc = IssueService()
    with pytest.raises(InvalidInput):
        await svc.update(session, organization_id=ORG, issue_id=issue.id, status="done")
    with pytest.raises(InvalidInput):
        await svc.update(session, organization_id=ORG, issue_id=issue.id, priority="urgent")
    with pytest.raises(NotFound):
        await svc.update(session, organization_id=OTHER_ORG, issue_id=issue.id, status="closed")
    with pytest.raises(NotFound):
        await svc.get(session, organization_id=OTHER_ORG, issue_id=issue.id)
    assert issue.status == "open"


@pytest.mark.asyncio
async def test_bulk_update_reports_missing(session, seed):
    a = await _open(session, title="a")
    b = await _open(session, title="b")
    foreign = await IssueService().create(session, organization_id=OTHER_ORG, title="c")

    r = await IssueService().bulk_update(
        session,
        organization_id=ORG,
        issue_ids=[a.id, b.id, foreign.id, 999_999],
        status="closed",
        priority="high",
        zone=ZONE_REPAIRS,
    )

    assert r.updated_count == 2
    assert r.missing_ids == [foreign.id, 999_999]
    for issue in (a, b):
        assert issue.status == "closed"
        assert issue.priority == "high"
        assert issue.zone == ZONE_REPAIRS
        assert issue.resolved_at is not None
    assert foreign.status == "open"


@pytest.mark.asyncio
async def test_bulk_update_validation(session, seed):
    svc = IssueService()
    a = await _open(session)
    with pytest.raises(InvalidInput):
        await svc.bulk_update(session, organization_id=ORG, issue_ids=[], status="closed")
    with pytest.raises(InvalidInput):
        await svc.bulk_update(session, organization_id=ORG, issue_ids=[a.id])
    with pytest.raises(InvalidInput):
        await svc.bulk_update(session, organization_id=ORG, issue_ids=[a.id], status="done")
    with pytest.raises(NotFound):
        await svc.bulk_update(session, organization_id=ORG, issue_ids=[424242], status="closed")


# ==========================
# 评论
# ==========================


@pytest.mark.asyncio
async def test_comments_in_order(session, seed):
    issue = await _open(session)
    svc = IssueService()

    first = await svc.add_comment(session, organization_id=ORG, issue_id=issue.id, user_id=ALICE, body="found it")
    await svc.add_comment(session, organization_id=ORG, issue_id=issue.id, user_id=None, body="  moved to vault ")

    rows = await svc.list_comments(session, organization_id=ORG, issue_id=issue.id)
    assert [c.body for c in rows] == ["found it", "moved to vault"]
    assert first.user_name == "Alice Smith"
    assert first.issue_id == issue.id
    assert rows[1].user_name is None
    assert len(issue.comments) == 2


@pytest.mark.asyncio
async def test_comment_validation(session, seed):
    issue = await _open(session)
    svc = IssueService()
    with pytest.raises(InvalidInput):
        await svc.add_comment(session, organization_id=ORG, issue_id=issue.id, user_id=ALICE, body="  ")
    with pytest.raises(NotFound):
        await svc.add_comment(session, organization_id=OTHER_ORG, issue_id=issue.id, user_id=ALICE, body="x")
    assert issue.comments == []


# ==========================
# 列表
# ==========================


@pytest.mark.asyncio
async def test_list_filters_and_paging(session, seed):
    await _open(session, title="Cracked lens", priority="high", session_id=seed.session_id)
    await _open(session, title="Missing fuse", description="100% gone from bin_3")
    await _open(session, title="Torn label", classification="labelling")
    await IssueService().create(session, organization_id=OTHER_ORG, title="Cracked screen")

    svc = IssueService()
    page = await svc.list_issues(session, organization_id=ORG)
    assert page.total == 3
    assert [i.title for i in page.items] == ["Torn label", "Missing fuse", "Cracked lens"]

    page = await svc.list_issues(session, organization_id=ORG, limit=1, offset=1)
    assert page.total == 3
    assert [i.title for i in page.items] == ["Missing fuse"]

    assert [i.title for i in (await svc.list_issues(session, organization_id=ORG, priority="high")).items] == [
        "Cracked lens"
    ]
    assert (await svc.list_issues(session, organization_id=ORG, session_id=seed.session_id)).total == 1
    assert (await svc.list_issues(session, organization_id=ORG, classification="labelling")).total == 1
    assert (await svc.list_issues(session, organization_id=ORG, status="open")).total == 3
    assert (await svc.list_issues(session, organization_id=ORG, status="closed")).total == 0

    with pytest.raises(InvalidInput):
        await svc.list_issues(session, organization_id=ORG, status="done")


@pytest.mark.asyncio
async def test_list_search_is_case_insensitive_and_literal(session, seed):
    await _open(session, title="Cracked lens")
    await _open(session, title="Missing fuse", description="100% gone from bin_3")

    svc = IssueService()
    assert [i.title for i in (await svc.list_issues(session, organization_id=ORG, search="CRACKED")).items] == [
        "Cracked lens"
    ]
    assert [i.title for i in (await svc.list_issues(session, organization_id=ORG, search="100%")).items] == [
        "Missing fuse"
    ]
    # % / _ 不当通配符
    assert (await svc.list_issues(session, organization_id=ORG, search="%")).total == 1
    assert (await svc.list_issues(session, organization_id=ORG, search="bin_")).total == 1
    assert (await svc.list_issues(session, organization_id=ORG, search="l_ns")).total == 0
