"""
Unit tests for the storage layer.
Tests LocalStorage and SessionStore on a temporary directory.
"""

import asyncio
import json
from unittest.mock import patch

import pytest

from lsp_insight.core.exceptions import (
    ImageNotFoundError,
    InvalidImageError,
    MessageNotFoundError,
    SessionNotFoundError,
    StorageError,
)
from lsp_insight.models import ImageUpload, LspPhase
from lsp_insight.storage import LocalStorage, SessionStore


PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


class FlakyStorage(LocalStorage):
    """LocalStorage whose writes can be made to fail."""

    def __init__(self, base_dir):
        super().__init__(base_dir)
        self.fail_saves = False

    async def save(self, path, content):
        if self.fail_saves:
            raise StorageError(f"Failed to save {path}: disk full")
        await super().save(path, content)


def _image(**overrides):
    fields = {"title": "Mi torre", "data": PNG_BYTES, "mime_type": "image/png"}
    fields.update(overrides)
    return ImageUpload(**fields)


class TestLocalStorage:
    """Tests for the filesystem backend."""

    @pytest.mark.asyncio
    async def test_save_and_load(self, tmp_path):
        storage = LocalStorage(str(tmp_path))
        await storage.save("a/b.json", '{"x": 1}')
        assert await storage.load("a/b.json") == b'{"x": 1}'
        assert await storage.exists("a/b.json")

    @pytest.mark.asyncio
    async def test_load_missing(self, tmp_path):
        storage = LocalStorage(str(tmp_path))
        assert await storage.load("missing.json") is None

    @pytest.mark.asyncio
    async def test_save_leaves_no_temp_files(self, tmp_path):
        storage = LocalStorage(str(tmp_path))
        await storage.save("doc.json", "uno")
        await storage.save("doc.json", "dos")
        assert [p.name for p in tmp_path.iterdir()] == ["doc.json"]
        assert await storage.load("doc.json") == b"dos"

    @pytest.mark.asyncio
    async def test_cancelled_save_removes_temp_file(self, tmp_path):
        storage = LocalStorage(str(tmp_path))
        with patch("lsp_insight.storage.local_storage.os.replace", side_effect=asyncio.CancelledError):
            with pytest.raises(asyncio.CancelledError):
                await storage.save("doc.json", "uno")
        assert list(tmp_path.iterdir()) == []

    @pytest.mark.asyncio
    async def test_path_traversal_rejected(self, tmp_path):
        storage = LocalStorage(str(tmp_path / "data"))
        with pytest.raises(StorageError, match="path traversal"):
            await storage.save("../escape.txt", "x")

    @pytest.mark.asyncio
    async def test_delete_and_delete_tree(self, tmp_path):
        storage = LocalStorage(str(tmp_path))
        await storage.save("dir/one.bin", b"1")
        await storage.save("dir/sub/two.bin", b"2")
        assert await storage.delete("dir/one.bin")
        assert not await storage.delete("dir/one.bin")
        assert await storage.delete_tree("dir")
        assert not (tmp_path / "dir").exists()
        with pytest.raises(StorageError):
            await storage.delete_tree(".")

    @pytest.mark.asyncio
    async def test_list_with_pattern(self, tmp_path):
        storage = LocalStorage(str(tmp_path))
        await storage.save("s/b.json", "{}")
        await storage.save("s/a.json", "{}")
        await storage.save("s/c.txt", "")
        assert await storage.list("s", pattern="*.json") == ["s/a.json", "s/b.json"]
        assert await storage.list("nothing") == []


class TestSessionStore:
    """Tests for session persistence."""

    @pytest.fixture
    def storage(self, tmp_path):
        return FlakyStorage(str(tmp_path))

    @pytest.fixture
    def store(self, storage):
        return SessionStore(storage, max_image_bytes=1024)

    @pytest.mark.asyncio
    async def test_create_session(self, store):
        session = await store.create_session("  Taller de equipo  ")
        assert session.name == "Taller de equipo"
        assert session.current_phase == LspPhase.IDENTIFICATION
        assert session.messages == []

        loaded = await store.get_session(session.session_id)
        assert loaded.session_id == session.session_id

    @pytest.mark.asyncio
    async def test_create_session_blank_name(self, store):
        with pytest.raises(ValueError):
            await store.create_session("   ")

    @pytest.mark.asyncio
    async def test_unknown_session(self, store):
        with pytest.raises(SessionNotFoundError):
            await store.get_session("0" * 32)

    @pytest.mark.asyncio
    async def test_malformed_session_id(self, store):
        with pytest.raises(SessionNotFoundError):
            await store.get_session("../../etc/passwd")

    @pytest.mark.asyncio
    async def test_corrupt_document(self, store, tmp_path):
        session = await store.create_session("Sesión")
        (tmp_path / "sessions" / f"{session.session_id}.json").write_text("{not json")
        with pytest.raises(StorageError):
            await store.get_session(session.session_id)

    @pytest.mark.asyncio
    async def test_list_sessions_newest_first(self, store):
        first = await store.create_session("Primera")
        second = await store.create_session("Segunda")
        await store.append_message(second.session_id, "user", "hola")

        summaries = await store.list_sessions()
        assert {s.session_id for s in summaries} == {first.session_id, second.session_id}
        assert summaries[0].created_at >= summaries[1].created_at
        by_id = {s.session_id: s for s in summaries}
        assert by_id[second.session_id].message_count == 1

    @pytest.mark.asyncio
    async def test_rename_session(self, store):
        session = await store.create_session("Antes")
        renamed = await store.rename_session(session.session_id, " Después ")
        assert renamed.name == "Después"
        with pytest.raises(ValueError):
            await store.rename_session(session.session_id, "  ")

    @pytest.mark.asyncio
    async def test_set_phase(self, store):
        session = await store.create_session("Fases")
        updated = await store.set_phase(session.session_id, 3)
        assert updated.current_phase == LspPhase.IMPLEMENTATION
        with pytest.raises(ValueError):
            await store.set_phase(session.session_id, 9)

    @pytest.mark.asyncio
    async def test_append_and_order(self, store):
        session = await store.create_session("Orden")
        for i in range(4):
            await store.append_message(session.session_id, "user" if i % 2 == 0 else "model", f"m{i}")

        messages = await store.get_messages(session.session_id)
        assert [m.content for m in messages] == ["m0", "m1", "m2", "m3"]
        assert [m.order_index for m in messages] == [0, 1, 2, 3]

    @pytest.mark.asyncio
    async def test_concurrent_appends_keep_every_message(self, store):
        session = await store.create_session("Concurrente")
        await asyncio.gather(*[
            store.append_message(session.session_id, "user", f"m{i}") for i in range(10)
        ])
        messages = await store.get_messages(session.session_id)
        assert len(messages) == 10
        assert [m.order_index for m in messages] == list(range(10))

    @pytest.mark.asyncio
    async def test_commit_turn(self, store):
        session = await store.create_session("Turno")
        user_msg, model_msg = await store.commit_turn(
            session.session_id, "Hola", "Diseñemos tu protocolo", LspPhase.PROTOCOL_DEVELOPMENT
        )
        assert (user_msg.role, model_msg.role) == ("user", "model")
        assert model_msg.order_index == user_msg.order_index + 1

        loaded = await store.get_session(session.session_id)
        assert loaded.current_phase == LspPhase.PROTOCOL_DEVELOPMENT
        assert [m.content for m in loaded.messages] == ["Hola", "Diseñemos tu protocolo"]

    @pytest.mark.asyncio
    async def test_commit_turn_failure_persists_nothing(self, store, storage):
        session = await store.create_session("Fallo")
        storage.fail_saves = True
        with pytest.raises(StorageError):
            await store.commit_turn(session.session_id, "Hola", "Respuesta", LspPhase.PROTOCOL_DEVELOPMENT)
        storage.fail_saves = False

        loaded = await store.get_session(session.session_id)
        assert loaded.messages == []
        assert loaded.current_phase == LspPhase.IDENTIFICATION

    @pytest.mark.asyncio
    async def test_commit_turn_with_image(self, store):
        session = await store.create_session("Con imagen")
        user_msg, _ = await store.commit_turn(
            session.session_id, "Mira mi modelo", "Cuéntame más", LspPhase.IDENTIFICATION, image=_image()
        )
        images = await store.list_images(session.session_id)
        assert len(images) == 1
        assert images[0].message_id == user_msg.message_id

    @pytest.mark.asyncio
    async def test_toggle_insight(self, store):
        session = await store.create_session("Insights")
        _, model_msg = await store.commit_turn(session.session_id, "a", "b", LspPhase.IDENTIFICATION)

        flagged = await store.toggle_insight(session.session_id, model_msg.message_id)
        assert flagged.is_insight
        assert [m.message_id for m in await store.list_insights(session.session_id)] == [model_msg.message_id]

        unflagged = await store.toggle_insight(session.session_id, model_msg.message_id)
        assert not unflagged.is_insight
        assert await store.list_insights(session.session_id) == []

    @pytest.mark.asyncio
    async def test_toggle_insight_unknown_message(self, store):
        session = await store.create_session("Insights")
        with pytest.raises(MessageNotFoundError):
            await store.toggle_insight(session.session_id, "f" * 32)

    @pytest.mark.asyncio
    async def test_add_get_delete_image(self, store):
        session = await store.create_session("Imágenes")
        record = await store.add_image(session.session_id, _image(description="Una torre alta"))
        assert record.size == len(PNG_BYTES)

        meta, data = await store.get_image(session.session_id, record.image_id)
        assert meta.title == "Mi torre"
        assert data == PNG_BYTES

        await store.delete_image(session.session_id, record.image_id)
        assert await store.list_images(session.session_id) == []
        with pytest.raises(ImageNotFoundError):
            await store.get_image(session.session_id, record.image_id)

    @pytest.mark.asyncio
    async def test_list_images_newest_first(self, store):
        session = await store.create_session("Imágenes")
        first = await store.add_image(session.session_id, _image(title="uno"))
        second = await store.add_image(session.session_id, _image(title="dos"))
        images = await store.list_images(session.session_id)
        assert {i.image_id for i in images} == {first.image_id, second.image_id}
        assert images[0].created_at >= images[1].created_at

    @pytest.mark.asyncio
    @pytest.mark.parametrize("overrides", [
        {"mime_type": "application/pdf"},
        {"data": b""},
        {"data": b"x" * 2048},
        {"title": "   "},
    ])
    async def test_invalid_images_rejected(self, store, overrides):
        session = await store.create_session("Imágenes")
        with pytest.raises(InvalidImageError):
            await store.add_image(session.session_id, _image(**overrides))
        assert await store.list_images(session.session_id) == []

    @pytest.mark.asyncio
    async def test_add_image_unknown_message(self, store):
        session = await store.create_session("Imágenes")
        with pytest.raises(MessageNotFoundError):
            await store.add_image(session.session_id, _image(), message_id="a" * 32)

    @pytest.mark.asyncio
    async def test_delete_session_cascades(self, store, tmp_path):
        session = await store.create_session("Borrar")
        await store.commit_turn(session.session_id, "a", "b", LspPhase.IDENTIFICATION)
        await store.add_image(session.session_id, _image())

        assert await store.delete_session(session.session_id)
        assert not (tmp_path / "sessions" / session.session_id).exists()
        assert await store.list_sessions() == []
        with pytest.raises(SessionNotFoundError):
            await store.get_messages(session.session_id)
        assert not await store.delete_session(session.session_id)

    @pytest.mark.asyncio
    async def test_export_transcript(self, store):
        session = await store.create_session("Transcripción")
        await store.commit_turn(session.session_id, "Hola", "¡Bienvenido!", LspPhase.IDENTIFICATION)

        transcript = await store.export_transcript(session.session_id)
        assert transcript == "[Usuario]:\nHola\n\n---\n\n[Facilitador]:\n¡Bienvenido!"

    @pytest.mark.asyncio
    async def test_document_layout(self, store, tmp_path):
        session = await store.create_session("Formato")
        document = json.loads((tmp_path / "sessions" / f"{session.session_id}.json").read_text())
        assert document["name"] == "Formato"
        assert document["current_phase"] == 1
