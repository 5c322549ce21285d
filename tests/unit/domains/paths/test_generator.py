# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for template path generation and its job entry point."""

import pytest
import pytest_asyncio
import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from learnpath.core.config.settings import PathSettings, Settings, clear_settings_cache
from learnpath.domains.curriculum.models import Node
from learnpath.domains.paths.generator import TemplatePathGenerator, group_nodes
from learnpath.infrastructure.database.models import PathRecord
from learnpath.infrastructure.events import EventBus, EventData, EventTypes
from learnpath.jobs import generate_template_paths


def _coords(subject: str | None = "Matematika", major: str | None = None, **overrides):
    fields = {
        "grade_level": "SMA",
        "class_number": 10,
        "semester": 1,
        "subject": subject,
        "major": major,
    }
    fields.update(overrides)
    return fields


@pytest_asyncio.fixture
async def curriculum(seed, make_node) -> None:
    await seed(
        make_node("m1", order_index=0, learning_outcomes=["Linear equations"], **_coords()),
        make_node("m2", order_index=1, learning_outcomes=["Linear equations", "Graphs"],
                  is_checkpoint=True, **_coords()),
        make_node("f1", order_index=0, **_coords("Fisika", "IPA")),
        make_node("b1", order_index=2, **_coords("Bahasa Indonesia")),
        make_node("loose", **_coords(subject=None)),
        make_node("retired", is_active=False, **_coords()),
    )


@pytest.fixture
def generator(db_session: AsyncSession, settings: Settings, event_bus: EventBus):
    return TemplatePathGenerator(db_session, settings, event_bus)


class TestGroupNodes:
    """Tests for group_nodes."""

    def test_groups_by_coordinates(self):
        nodes = [
            Node(node_id="a", title="a", **_coords()),
            Node(node_id="b", title="b", **_coords("Fisika", "IPA")),
            Node(node_id="c", title="c", **_coords()),
            Node(node_id="d", title="d", **_coords(semester=None)),
        ]

        groups, ungrouped = group_nodes(nodes)

        assert [[n.node_id for n in g.nodes] for g in groups] == [["a", "c"], ["b"]]
        assert groups[0].curriculum == "Kurikulum Merdeka"
        assert groups[1].label == "SMA-10-1-Fisika-IPA"
        assert ungrouped == ["d"]


class TestTemplatePathGenerator:
    """Tests for TemplatePathGenerator.generate."""

    @pytest.mark.asyncio
    async def test_creates_one_template_per_group(
        self, generator: TemplatePathGenerator, db_session: AsyncSession, curriculum
    ):
        summary = await generator.generate()

        assert sorted(summary.created) == [
            "PATH-SMA-10-1-BAHASA-INDONESIA",
            "PATH-SMA-10-1-FISIKA-IPA",
            "PATH-SMA-10-1-MATEMATIKA",
        ]
        assert summary.skipped == []
        assert summary.total_nodes == 5
        assert summary.ungrouped_nodes == ["loose"]

        math = await db_session.get(PathRecord, "PATH-SMA-10-1-MATEMATIKA")
        assert math.node_ids == ["m1", "m2"]
        assert math.name == "Matematika - Class 10 Semester 1"
        assert math.total_nodes == 2
        assert math.total_xp == 100
        assert math.estimated_hours == 2.0
        assert math.checkpoint_count == 1
        assert math.difficulty == "Medium"
        assert math.learning_outcomes == ["Linear equations", "Graphs"]
        assert math.tags == ["SMA", "Class-10", "Semester-1", "Matematika", "Kurikulum Merdeka"]
        assert math.is_template is True
        assert math.is_public is True

        physics = await db_session.get(PathRecord, "PATH-SMA-10-1-FISIKA-IPA")
        assert physics.name == "Fisika - Class 10 Semester 1 (IPA)"
        assert "IPA" in physics.tags

    @pytest.mark.asyncio
    async def test_rerun_creates_nothing(self, generator: TemplatePathGenerator, curriculum):
        await generator.generate()

        summary = await generator.generate()

        assert summary.created_count == 0
        assert summary.skipped_count == 3

    @pytest.mark.asyncio
    async def test_id_collision_gets_suffix(
        self, generator: TemplatePathGenerator, db_session: AsyncSession, seed, make_node
    ):
        await seed(
            make_node("m1", **_coords()),
            PathRecord(path_id="PATH-SMA-10-1-MATEMATIKA", name="Hand made", node_ids=["m1"]),
        )

        summary = await generator.generate()

        assert summary.created == ["PATH-SMA-10-1-MATEMATIKA-2"]
        existing = await db_session.get(PathRecord, "PATH-SMA-10-1-MATEMATIKA")
        assert existing.name == "Hand made"

    @pytest.mark.asyncio
    async def test_group_truncated_to_max_nodes(
        self, db_session: AsyncSession, event_bus: EventBus, curriculum
    ):
        settings = Settings(
            environment="test",
            database={"url": "sqlite+aiosqlite:///:memory:"},
            paths=PathSettings(max_nodes=1),
        )

        summary = await TemplatePathGenerator(db_session, settings, event_bus).generate()

        assert summary.created_count == 3
        math = await db_session.get(PathRecord, "PATH-SMA-10-1-MATEMATIKA")
        assert math.node_ids == ["m1"]

    @pytest.mark.asyncio
    async def test_publishes_summary(
        self, generator: TemplatePathGenerator, event_bus: EventBus, curriculum
    ):
        received: list[EventData] = []

        async def handler(event: EventData) -> None:
            received.append(event)

        event_bus.subscribe(EventTypes.Paths.GENERATED, handler)

        await generator.generate()

        assert len(received) == 1
        assert len(received[0].payload["created"]) == 3

    @pytest.mark.asyncio
    async def test_empty_database(self, generator: TemplatePathGenerator):
        summary = await generator.generate()

        assert summary.created == []
        assert summary.total_nodes == 0


class TestGenerateJob:
    """Tests for the generate_template_paths job."""

    @pytest.mark.asyncio
    async def test_run_against_empty_database(self, settings: Settings):
        summary = await generate_template_paths.run(settings)

        assert summary.created_count == 0

    def test_main_success(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("LEARNPATH_DB_URL", "sqlite+aiosqlite:///:memory:")
        clear_settings_cache()
        monkeypatch.setattr(generate_template_paths, "setup_logging", lambda settings: None)

        assert generate_template_paths.main() == 0

    def test_main_failure(self, monkeypatch: pytest.MonkeyPatch):
        async def broken(settings: Settings):
            raise RuntimeError("database unreachable")

        monkeypatch.setattr(generate_template_paths, "setup_logging", lambda settings: None)
        monkeypatch.setattr(generate_template_paths, "run", broken)

        assert generate_template_paths.main() == 1

    def test_main_clears_log_context(self, monkeypatch: pytest.MonkeyPatch):
        seen: dict = {}

        async def capture(settings: Settings):
            seen.update(structlog.contextvars.get_contextvars())
            raise RuntimeError("stop")

        monkeypatch.setattr(generate_template_paths, "setup_logging", lambda settings: None)
        monkeypatch.setattr(generate_template_paths, "run", capture)

        generate_template_paths.main()

        assert seen["job"] == "generate_template_paths"
        assert "run_id" in seen
        assert structlog.contextvars.get_contextvars() == {}
