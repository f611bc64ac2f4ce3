"""Tests for VirtualTourService scene and hotspot management."""

import asyncio
from collections.abc import Awaitable, Callable

import pytest

from visita_workflow.adapters.memory_store import InMemoryDocumentStore
from visita_workflow.core.records import TourHotspot, TourScene
from visita_workflow.core.virtual_tour_service import VirtualTourService
from visita_workflow.errors import NotFoundError, ValidationError

Seed = Callable[..., Awaitable[str]]


def make_scene(scene_id: str, is_start_scene: bool = False) -> TourScene:
    return TourScene(
        id=scene_id,
        title=scene_id.title(),
        image_url=f"https://img.example/{scene_id}.jpg",
        is_start_scene=is_start_scene,
    )


@pytest.fixture()
def tour_service(document_store: InMemoryDocumentStore) -> VirtualTourService:
    """Create a VirtualTourService over the in-memory store."""
    return VirtualTourService(document_store)


class TestScenes:
    """Tests for adding, deleting and choosing the start scene."""

    @pytest.mark.asyncio()
    async def test_church_without_tour(self, tour_service: VirtualTourService, seed_church: Seed) -> None:
        church_id = await seed_church()
        assert await tour_service.get_tour(church_id) is None

    @pytest.mark.asyncio()
    async def test_first_scene_becomes_start_scene(self, tour_service: VirtualTourService, seed_church: Seed) -> None:
        church_id = await seed_church()

        tour = await tour_service.add_scene(church_id, make_scene("nave"))
        tour = await tour_service.add_scene(church_id, make_scene("altar"))

        assert [(scene.id, scene.is_start_scene) for scene in tour.scenes] == [("nave", True), ("altar", False)]
        stored = await tour_service.get_tour(church_id)
        assert stored == tour

    @pytest.mark.asyncio()
    async def test_new_start_scene_clears_previous(self, tour_service: VirtualTourService, seed_church: Seed) -> None:
        church_id = await seed_church()
        await tour_service.add_scene(church_id, make_scene("nave"))

        tour = await tour_service.add_scene(church_id, make_scene("facade", is_start_scene=True))

        assert [scene.id for scene in tour.scenes if scene.is_start_scene] == ["facade"]

    @pytest.mark.asyncio()
    async def test_duplicate_scene_id(self, tour_service: VirtualTourService, seed_church: Seed) -> None:
        church_id = await seed_church()
        await tour_service.add_scene(church_id, make_scene("nave"))

        with pytest.raises(ValidationError, match="already exists"):
            await tour_service.add_scene(church_id, make_scene("nave"))

    @pytest.mark.asyncio()
    async def test_concurrent_adds_keep_every_scene(self, tour_service: VirtualTourService, seed_church: Seed) -> None:
        church_id = await seed_church()

        await asyncio.gather(*(tour_service.add_scene(church_id, make_scene(f"scene-{i}")) for i in range(5)))

        tour = await tour_service.get_tour(church_id)
        assert tour is not None
        assert len(tour.scenes) == 5
        assert sum(scene.is_start_scene for scene in tour.scenes) == 1

    @pytest.mark.asyncio()
    async def test_deleting_start_scene_promotes_first_remaining(
        self,
        tour_service: VirtualTourService,
        seed_church: Seed,
    ) -> None:
        church_id = await seed_church()
        for scene_id in ("nave", "altar", "belfry"):
            await tour_service.add_scene(church_id, make_scene(scene_id))

        tour = await tour_service.delete_scene(church_id, "nave")

        assert [(scene.id, scene.is_start_scene) for scene in tour.scenes] == [("altar", True), ("belfry", False)]

    @pytest.mark.asyncio()
    async def test_set_start_scene(self, tour_service: VirtualTourService, seed_church: Seed) -> None:
        church_id = await seed_church()
        await tour_service.add_scene(church_id, make_scene("nave"))
        await tour_service.add_scene(church_id, make_scene("altar"))

        tour = await tour_service.set_start_scene(church_id, "altar")

        assert [scene.id for scene in tour.scenes if scene.is_start_scene] == ["altar"]

    @pytest.mark.asyncio()
    async def test_missing_tour_and_scene(self, tour_service: VirtualTourService, seed_church: Seed) -> None:
        church_id = await seed_church()

        with pytest.raises(ValidationError, match="No virtual tour found"):
            await tour_service.delete_scene(church_id, "nave")

        await tour_service.add_scene(church_id, make_scene("nave"))
        with pytest.raises(ValidationError, match="Scene 'altar' not found"):
            await tour_service.set_start_scene(church_id, "altar")

    @pytest.mark.asyncio()
    async def test_missing_church(self, tour_service: VirtualTourService) -> None:
        with pytest.raises(NotFoundError, match="Church 'missing' not found"):
            await tour_service.add_scene("missing", make_scene("nave"))


class TestHotspots:
    """Tests for update_scene_hotspots()."""

    @pytest.mark.asyncio()
    async def test_replace_hotspots(self, tour_service: VirtualTourService, seed_church: Seed) -> None:
        church_id = await seed_church()
        await tour_service.add_scene(church_id, make_scene("nave"))
        await tour_service.add_scene(church_id, make_scene("altar"))
        hotspots = [
            TourHotspot(id="to-altar", type="navigation", yaw=10, pitch=0, label="Altar", target_scene_id="altar"),
            TourHotspot(id="pulpit", type="info", yaw=-45, pitch=5, label="Pulpit", description="Carved 1850"),
        ]

        tour = await tour_service.update_scene_hotspots(church_id, "nave", hotspots)

        nave, altar = tour.scenes
        assert [hotspot.id for hotspot in nave.hotspots] == ["to-altar", "pulpit"]
        assert altar.hotspots == []

    @pytest.mark.asyncio()
    async def test_navigation_to_unknown_scene(self, tour_service: VirtualTourService, seed_church: Seed) -> None:
        church_id = await seed_church()
        await tour_service.add_scene(church_id, make_scene("nave"))
        hotspot = TourHotspot(id="to-loft", type="navigation", yaw=0, pitch=0, label="Loft", target_scene_id="loft")

        with pytest.raises(ValidationError, match="unknown scene 'loft'"):
            await tour_service.update_scene_hotspots(church_id, "nave", [hotspot])

        tour = await tour_service.get_tour(church_id)
        assert tour is not None
        assert tour.scenes[0].hotspots == []
