# tests/services/design/test_annotation_service.py

import pytest
from sqlalchemy import select

from design2code.models import ComponentAnnotation, AnnotationStatus
from design2code.schemas.design.annotation_schemas import AnnotationSave
from design2code.services.design.annotation_service import (
    AnnotationService, diff_annotation_trees, flatten_annotation
)
from design2code.services.exceptions import ConflictError, NotFoundError
from factories import annotation_tree


def node(node_id: str, name: str, *children) -> dict:
    result = {"id": node_id, "name": name}
    if children:
        result["children"] = list(children)
    return result


V1_TREE = annotation_tree(node("n1", "Header"), node("n2", "Footer"))
V2_TREE = annotation_tree(node("n1", "Header v2"), node("n2", "Footer"), node("n3", "Banner"))


@pytest.fixture
def service(app_context) -> AnnotationService:
    return AnnotationService(app_context)


async def active_versions(db_session, design_id: int) -> list:
    rows = await db_session.execute(
        select(ComponentAnnotation.version).where(
            ComponentAnnotation.design_id == design_id,
            ComponentAnnotation.status == AnnotationStatus.ACTIVE
        )
    )
    return list(rows.scalars())


# ==============================================================================
# Diff
# ==============================================================================

def test_flatten_is_preorder_and_later_duplicates_win():
    tree = annotation_tree(node("a", "first", node("b", "child")), node("a", "second"))
    flat = flatten_annotation(tree)
    assert list(flat) == ["root", "a", "b"]
    assert flat["a"]["name"] == "second"


def test_diff_reports_added_and_updated_only():
    changes = diff_annotation_trees(V1_TREE, V2_TREE)
    summary = {(c.nodeId, c.changeType) for c in changes}
    assert ("n3", "added") in summary
    assert ("n1", "updated") in summary
    assert not any(c.nodeId == "n2" for c in changes)

    updated = next(c for c in changes if c.nodeId == "n1")
    assert updated.detail["before"]["name"] == "Header"
    assert updated.detail["after"]["name"] == "Header v2"


def test_diff_is_symmetric_and_empty_against_itself():
    assert diff_annotation_trees(V2_TREE, V2_TREE) == []

    forward = diff_annotation_trees(V1_TREE, V2_TREE)
    backward = diff_annotation_trees(V2_TREE, V1_TREE)

    def ids(changes, change_type):
        return {c.nodeId for c in changes if c.changeType == change_type}

    assert ids(forward, "added") == ids(backward, "removed") == {"n3"}
    assert ids(forward, "removed") == ids(backward, "added")
    assert ids(forward, "updated") == ids(backward, "updated")


def test_moved_node_without_content_change_is_not_a_change():
    before = annotation_tree(node("grp", "Group", node("leaf", "Icon")), node("other", "Other"))
    after = annotation_tree(node("grp", "Group"), node("other", "Other", node("leaf", "Icon")))
    changes = diff_annotation_trees(before, after)
    assert not any(c.nodeId == "leaf" for c in changes)


# ==============================================================================
# Versioning
# ==============================================================================

async def test_next_version_archives_previous(service, design_factory, db_session, fake_redis_client):
    design = await design_factory()

    v1 = await service.save_annotation(design.uuid, AnnotationSave(version=1, root_annotation=V1_TREE))
    v2 = await service.save_annotation(design.uuid, AnnotationSave(root_annotation=V2_TREE, expanded_keys=["n1"]))

    assert (v1.version, v2.version) == (1, 2)
    assert v2.status == AnnotationStatus.ACTIVE
    assert v2.created_by == "alice"

    assert await active_versions(db_session, design.id) == [2]

    latest = await service.get_annotation(design.uuid)
    assert latest.version == 2
    assert latest.expanded_keys == ["n1"]
    assert f"design:annotations:{design.uuid}" in fake_redis_client.store
    assert f"design:annotations:{design.uuid}:2" in fake_redis_client.store


async def test_exactly_one_active_version_after_each_save(service, design_factory, db_session):
    design = await design_factory()
    for _ in range(4):
        await service.save_annotation(design.uuid, AnnotationSave(root_annotation=V1_TREE))
        assert len(await active_versions(db_session, design.id)) == 1
    assert await active_versions(db_session, design.id) == [4]


async def test_duplicate_or_lower_version_requires_force(service, design_factory):
    design = await design_factory()
    await service.save_annotation(design.uuid, AnnotationSave(root_annotation=V1_TREE))
    await service.save_annotation(design.uuid, AnnotationSave(root_annotation=V1_TREE))

    with pytest.raises(ConflictError, match="already exists"):
        await service.save_annotation(design.uuid, AnnotationSave(version=2, root_annotation=V2_TREE))


async def test_force_overwrites_in_place(service, design_factory, db_session):
    design = await design_factory()
    await service.save_annotation(design.uuid, AnnotationSave(root_annotation=V1_TREE))
    await service.save_annotation(design.uuid, AnnotationSave(root_annotation=V1_TREE))

    amended = await service.save_annotation(
        design.uuid, AnnotationSave(version=2, root_annotation=V2_TREE, schema_version="1.1", force=True)
    )
    assert amended.version == 2
    assert amended.status == AnnotationStatus.ACTIVE
    assert amended.schema_version == "1.1"

    # 覆盖旧版本不会改变当前激活版本
    archived = await service.save_annotation(
        design.uuid, AnnotationSave(version=1, root_annotation=V2_TREE, force=True)
    )
    assert archived.status == AnnotationStatus.ARCHIVED
    assert await active_versions(db_session, design.id) == [2]
    assert (await service.get_annotation(design.uuid)).version == 2


async def test_gap_versions_are_allowed(service, design_factory):
    design = await design_factory()
    await service.save_annotation(design.uuid, AnnotationSave(root_annotation=V1_TREE))

    jumped = await service.save_annotation(design.uuid, AnnotationSave(version=5, root_annotation=V1_TREE))
    assert jumped.version == 5

    with pytest.raises(ConflictError, match="greater than"):
        await service.save_annotation(design.uuid, AnnotationSave(version=3, root_annotation=V1_TREE))


async def test_unique_index_rejects_concurrent_writer(service, design_factory, db_session):
    design = await design_factory()
    await service.save_annotation(design.uuid, AnnotationSave(root_annotation=V1_TREE))

    # 模拟并发请求读到相同的最高版本后写入同一个版本号
    with pytest.raises(ConflictError, match="concurrently"):
        await service._create_version(design.id, 1, AnnotationSave(root_annotation=V2_TREE))


async def test_latest_falls_back_to_highest_when_none_active(service, design_factory, db_session):
    design = await design_factory()
    for version in (1, 2):
        db_session.add(ComponentAnnotation(
            design_id=design.id, version=version, root_annotation=V1_TREE,
            status=AnnotationStatus.ARCHIVED, created_by="bob"
        ))
    await db_session.flush()

    latest = await service.get_annotation(design.uuid)
    assert latest.version == 2
    assert latest.status == AnnotationStatus.ARCHIVED


async def test_missing_annotation(service, design_factory):
    design = await design_factory()
    with pytest.raises(NotFoundError):
        await service.get_annotation(design.uuid)
    with pytest.raises(NotFoundError):
        await service.get_annotation("unknown-design")


async def test_diff_between_stored_versions(service, design_factory):
    design = await design_factory()
    await service.save_annotation(design.uuid, AnnotationSave(root_annotation=V1_TREE))
    await service.save_annotation(design.uuid, AnnotationSave(root_annotation=V2_TREE))

    changes = await service.diff_annotations(design.uuid, 1, 2)
    assert {(c.nodeId, c.changeType) for c in changes} == {("root", "updated"), ("n1", "updated"), ("n3", "added")}

    with pytest.raises(NotFoundError):
        await service.diff_annotations(design.uuid, 1, 9)
