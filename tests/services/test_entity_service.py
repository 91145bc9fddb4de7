"""Tests for EntityService."""

import asyncio
import gc
from datetime import datetime, timezone
from pathlib import Path

import pytest
import yaml

from notegraph.markdown.entity_parser import split_frontmatter
from notegraph.services.exceptions import (
    AmbiguousIdentifierError,
    EntityCreationError,
    EntityNotFoundError,
)


@pytest.mark.asyncio
async def test_create_entity(entity_service, entity_repository, project_root: Path):
    """Test successful entity creation."""
    entity = await entity_service.create_entity(
        "Test Entity",
        "Some text\n\n- [decision] Use PostgreSQL #database #technical\n- implements [[Spec]]",
        folder="notes",
        tags=["alpha", "#beta"],
    )

    assert entity.id == 1
    assert entity.title == "Test Entity"
    assert entity.permalink == "notes/test-entity"
    assert entity.file_path == "notes/test-entity.md"
    assert entity.entity_type == "note"
    assert entity.tags == ["alpha", "beta"]
    assert entity.created_at == datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)
    assert entity.updated_at == entity.created_at
    assert entity.body == "Some text"

    assert len(entity.observations) == 1
    assert entity.observations[0].category == "decision"
    assert entity.observations[0].content == "Use PostgreSQL"
    assert entity.observations[0].tags == ["database", "technical"]

    assert [(r.relation_type, r.target) for r in entity.relations] == [("implements", "Spec")]
    assert entity.relations[0].to_id is None

    assert entity_repository.get_by_permalink("notes/test-entity") is entity

    file_path = project_root / "notes" / "test-entity.md"
    assert file_path.exists()
    metadata, content = split_frontmatter(file_path.read_text())
    assert metadata["title"] == "Test Entity"
    assert metadata["type"] == "note"
    assert metadata["permalink"] == "notes/test-entity"
    assert metadata["tags"] == ["alpha", "beta"]
    assert "- implements [[Spec]]" in content


@pytest.mark.asyncio
async def test_create_entity_unique_permalink(entity_service):
    """Reusing a title in a folder produces a numbered permalink."""
    first = await entity_service.create_entity("Meeting", "first", folder="notes")
    second = await entity_service.create_entity("Meeting", "second", folder="notes")
    third = await entity_service.create_entity("Meeting", "third", folder="notes")

    assert first.permalink == "notes/meeting"
    assert second.permalink == "notes/meeting-2"
    assert third.permalink == "notes/meeting-3"
    assert second.file_path == "notes/meeting-2.md"


@pytest.mark.asyncio
async def test_create_entity_existing_file(entity_service, project_root: Path):
    """A stray file at the target path is never overwritten."""
    (project_root / "stray.md").write_text("not indexed")

    with pytest.raises(EntityCreationError):
        await entity_service.create_entity("Stray", "content")

    assert (project_root / "stray.md").read_text() == "not indexed"
    # the permalink claim was released
    assert entity_service.identity_resolver.generate_permalink("", "Stray") == "stray"


@pytest.mark.asyncio
async def test_create_resolves_pending_relations(entity_service, link_resolver):
    source = await entity_service.create_entity("Source", "- depends_on [[Target]]")
    relation = source.relations[0]
    assert relation.to_id is None
    assert "target" in link_resolver.pending()

    target = await entity_service.create_entity("Target", "here")

    assert relation.to_id == target.id
    assert link_resolver.incoming(target.id) == [relation]
    assert link_resolver.pending() == {}
    assert link_resolver.is_consistent()


@pytest.mark.asyncio
async def test_update_entity(entity_service, entity_repository, project_root: Path):
    created = await entity_service.create_entity("Doc", "- [idea] First", folder="notes")

    updated = await entity_service.update_entity(
        "notes/doc", "- [idea] Second\n- [idea] Third", tags=["x"]
    )

    assert updated.id == created.id
    assert updated.permalink == created.permalink
    assert updated.created_at == created.created_at
    assert updated.updated_at > created.updated_at
    assert [o.content for o in updated.observations] == ["Second", "Third"]
    assert updated.tags == ["x"]
    assert entity_repository.get(created.id) is updated
    assert len(entity_repository) == 1

    text = (project_root / "notes" / "doc.md").read_text()
    assert "Second" in text
    assert "First" not in text


@pytest.mark.asyncio
async def test_update_entity_retitle_keeps_permalink(entity_service, link_resolver):
    source = await entity_service.create_entity("Source", "- refs [[New Name]]")
    renamed = await entity_service.create_entity("Old Name", "body")

    updated = await entity_service.update_entity("Old Name", "body", title="New Name")

    assert updated.title == "New Name"
    assert updated.permalink == "old-name"
    assert updated.file_path == "old-name.md"
    assert source.relations[0].to_id == renamed.id
    assert link_resolver.pending() == {}


@pytest.mark.asyncio
async def test_update_entity_preserves_extra_frontmatter(entity_service, project_root: Path):
    await entity_service.create_entity("Doc", "v1")
    path = project_root / "doc.md"
    metadata, content = split_frontmatter(path.read_text())
    metadata["status"] = "draft"
    path.write_text(f"---\n{yaml.safe_dump(metadata, sort_keys=False)}---\n\n{content}\n")

    await entity_service.update_entity("doc", "v2")

    metadata, content = split_frontmatter(path.read_text())
    assert metadata["status"] == "draft"
    assert content == "v2"


@pytest.mark.asyncio
async def test_update_relations_replace_previous(entity_service, link_resolver):
    a = await entity_service.create_entity("A", "- refs [[B]]")
    b = await entity_service.create_entity("B", "")
    assert len(link_resolver.incoming(b.id)) == 1

    await entity_service.update_entity("A", "- refs [[C]]")

    assert link_resolver.incoming(b.id) == []
    assert list(link_resolver.pending()) == ["c"]
    assert link_resolver.outgoing(a.id) == []
    assert link_resolver.is_consistent()


@pytest.mark.asyncio
async def test_update_missing_entity(entity_service):
    with pytest.raises(EntityNotFoundError):
        await entity_service.update_entity("nope", "text")


@pytest.mark.asyncio
async def test_update_ambiguous_title(entity_service):
    await entity_service.create_entity("Meeting", "one", folder="a")
    await entity_service.create_entity("Meeting", "two", folder="b")

    with pytest.raises(AmbiguousIdentifierError) as exc_info:
        await entity_service.update_entity("Meeting", "text")

    assert sorted(exc_info.value.candidates) == ["a/meeting", "b/meeting"]


@pytest.mark.asyncio
async def test_delete_entity_demotes_incoming(
    entity_service, entity_repository, link_resolver, search_service, project_root: Path
):
    source = await entity_service.create_entity("Source", "- refs [[Target]]")
    target = await entity_service.create_entity("Target", "unique words")

    assert await entity_service.delete_entity("Target")

    assert not (project_root / "target.md").exists()
    assert target.id not in entity_repository
    assert source.relations[0].to_id is None
    assert link_resolver.pending() == {"target": [source.relations[0]]}
    assert await search_service.search("unique") == []
    assert link_resolver.is_consistent()


@pytest.mark.asyncio
async def test_delete_missing_entity(entity_service):
    with pytest.raises(EntityNotFoundError):
        await entity_service.delete_entity("nope")


@pytest.mark.asyncio
async def test_read_entity_text(entity_service):
    await entity_service.create_entity("Readable", "hello there")

    text = await entity_service.read_entity_text("memory://readable")

    assert text.startswith("---\n")
    assert "title: Readable" in text
    assert text.rstrip().endswith("hello there")


@pytest.mark.asyncio
async def test_sync_new_file_writes_missing_frontmatter(
    entity_service, entity_repository, project_root: Path
):
    (project_root / "projects").mkdir()
    path = project_root / "projects" / "Plan B.md"
    path.write_text("Plan text\n- [todo] call back")

    entity = await entity_service.sync_file("projects/Plan B.md")

    assert entity.title == "Plan B"
    assert entity.permalink == "projects/plan-b"
    assert entity.file_path == "projects/Plan B.md"
    assert entity.created_at is not None
    assert entity.updated_at is not None
    assert entity_repository.get_by_file_path("projects/Plan B.md") is entity

    metadata, content = split_frontmatter(path.read_text())
    assert metadata["permalink"] == "projects/plan-b"
    assert "created" in metadata
    assert "modified" in metadata
    assert content == "Plan text\n- [todo] call back"


@pytest.mark.asyncio
async def test_sync_unchanged_file_is_skipped(entity_service, project_root: Path):
    entity = await entity_service.create_entity("Same", "text")

    synced = await entity_service.sync_file(str(project_root / "same.md"))

    assert synced is entity


@pytest.mark.asyncio
async def test_sync_changed_file_keeps_identity(entity_service, project_root: Path):
    entity = await entity_service.create_entity("Changing", "- [fact] old")
    path = project_root / "changing.md"
    path.write_text(path.read_text().replace("old", "new"))

    synced = await entity_service.sync_file("changing.md")

    assert synced.id == entity.id
    assert synced.permalink == entity.permalink
    assert synced.created_at == entity.created_at
    assert [o.content for o in synced.observations] == ["new"]


@pytest.mark.asyncio
async def test_sync_file_with_taken_permalink(entity_service, project_root: Path):
    await entity_service.create_entity("Original", "text")
    (project_root / "copy.md").write_text("---\ntitle: Copy\npermalink: original\n---\n\ncopied")

    entity = await entity_service.sync_file("copy.md")

    assert entity.permalink == "original-2"
    metadata, _ = split_frontmatter((project_root / "copy.md").read_text())
    assert metadata["permalink"] == "original-2"


@pytest.mark.asyncio
async def test_remove_file(entity_service, entity_repository, link_resolver, project_root: Path):
    source = await entity_service.create_entity("Source", "- refs [[Gone]]")
    gone = await entity_service.create_entity("Gone", "bye")
    (project_root / "gone.md").unlink()

    assert await entity_service.remove_file("gone.md")

    assert gone.id not in entity_repository
    assert source.relations[0].to_id is None
    assert not await entity_service.remove_file("gone.md")


@pytest.mark.asyncio
async def test_list_entities(entity_service):
    await entity_service.create_entity("Top", "")
    await entity_service.create_entity("One", "", folder="notes")
    await entity_service.create_entity("Two", "", folder="notes/deep")
    await entity_service.create_entity("Three", "", folder="notes/deep/deeper")

    async def titles(prefix="", depth=1):
        return [e.title for e in await entity_service.list_entities(prefix, depth)]

    assert await titles() == ["Top"]
    assert await titles("notes") == ["One"]
    assert await titles("notes", 2) == ["Two", "One"]
    assert await titles("notes/", 3) == ["Three", "Two", "One"]
    assert await titles("", 4) == ["Three", "Two", "One", "Top"]

    with pytest.raises(ValueError):
        await entity_service.list_entities("", 0)


@pytest.mark.asyncio
async def test_concurrent_sync_of_one_file(entity_service, entity_repository, project_root: Path):
    (project_root / "n.md").write_text("- [fact] one file")

    first, second = await asyncio.gather(
        entity_service.sync_file("n.md"), entity_service.sync_file("n.md")
    )

    assert first.id == second.id
    assert first.permalink == second.permalink == "n"
    assert len(entity_repository) == 1
    metadata, _ = split_frontmatter((project_root / "n.md").read_text())
    assert metadata["permalink"] == "n"


@pytest.mark.asyncio
async def test_concurrent_update_and_sync(
    entity_service, entity_repository, file_service, project_root: Path
):
    entity = await entity_service.create_entity("N", "v1")
    path = project_root / "n.md"
    path.write_text(path.read_text().replace("v1", "v2"))

    updated, synced = await asyncio.gather(
        entity_service.update_entity("n", "v3"), entity_service.sync_file("n.md")
    )

    assert updated.id == synced.id == entity.id
    assert len(entity_repository) == 1
    current = entity_repository.get(entity.id)
    text, checksum = await file_service.read_file("n.md")
    assert current.checksum == checksum
    assert current.content == split_frontmatter(text)[1]


@pytest.mark.asyncio
async def test_locks_released_after_writes(entity_service):
    await entity_service.create_entity("A", "")
    await entity_service.update_entity("a", "changed")
    await entity_service.delete_entity("a")
    gc.collect()

    assert len(entity_service._locks) == 0
