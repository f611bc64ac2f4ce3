"""360° virtual tour management for church records.

Scene list mutations run inside the document store's atomic read-modify-write
transaction, so two editors adding scenes at the same time never lose each
other's scene.
"""

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from visita_workflow.core.interfaces import IDocumentStore
from visita_workflow.core.records import TourHotspot, TourScene, VirtualTour
from visita_workflow.core.services import workflow_operation
from visita_workflow.errors import NotFoundError, ValidationError
from visita_workflow.observability import get_logger

logger = get_logger(__name__)


def _tour_of(document: dict[str, Any]) -> VirtualTour | None:
    tour = document.get("virtual_tour")
    if not tour:
        return None
    return VirtualTour.model_validate(tour)


def _require_tour(document: dict[str, Any]) -> VirtualTour:
    tour = _tour_of(document)
    if tour is None:
        raise ValidationError("No virtual tour found for this church", field="virtual_tour")
    return tour


def _require_scene(tour: VirtualTour, scene_id: str) -> TourScene:
    for scene in tour.scenes:
        if scene.id == scene_id:
            return scene
    raise ValidationError(f"Scene '{scene_id}' not found in the virtual tour", field="scene_id")


class VirtualTourService:
    """Scene and hotspot management for a church's virtual tour.

    Args:
        store: Document store implementing IDocumentStore.
        collection: Name of the churches collection.
    """

    def __init__(self, store: IDocumentStore, collection: str = "churches") -> None:
        self._store = store
        self._collection = collection

    async def _mutate_tour(self, church_id: str, mutate: Callable[[dict[str, Any]], VirtualTour]) -> VirtualTour:
        """Run mutate(document) -> VirtualTour in a transaction and store the result."""

        def apply(document: dict[str, Any]) -> dict[str, Any]:
            tour: VirtualTour = mutate(document)
            document["virtual_tour"] = tour.model_dump(mode="json")
            document["updated_at"] = datetime.now(UTC).isoformat()
            return document

        try:
            written = await self._store.transaction(self._collection, church_id, apply)
        except NotFoundError:
            raise NotFoundError(resource="Church", resource_id=church_id) from None
        return VirtualTour.model_validate(written["virtual_tour"])

    @workflow_operation("Failed to load virtual tour")
    async def get_tour(self, church_id: str) -> VirtualTour | None:
        """Return the church's tour, or None when it has none.

        Raises:
            NotFoundError: If the church does not exist.
        """
        document = await self._store.get(self._collection, church_id)
        if document is None:
            raise NotFoundError(resource="Church", resource_id=church_id)
        return _tour_of(document)

    @workflow_operation("Failed to add scene")
    async def add_scene(self, church_id: str, scene: TourScene) -> VirtualTour:
        """Append a scene to the tour, creating the tour if needed.

        The first scene of a tour always becomes the start scene. Adding a
        scene flagged as start scene clears the flag on every other scene.

        Raises:
            NotFoundError: If the church does not exist.
            ValidationError: If a scene with the same ID already exists.
        """

        def add(document: dict[str, Any]) -> VirtualTour:
            tour = _tour_of(document) or VirtualTour()
            if any(existing.id == scene.id for existing in tour.scenes):
                raise ValidationError(f"Scene '{scene.id}' already exists in the virtual tour", field="id")
            is_start = scene.is_start_scene or not tour.scenes
            scenes = [
                existing.model_copy(update={"is_start_scene": False}) if is_start else existing
                for existing in tour.scenes
            ]
            scenes.append(scene.model_copy(update={"is_start_scene": is_start}))
            return VirtualTour(scenes=scenes)

        tour = await self._mutate_tour(church_id, add)
        logger.info("Virtual tour scene added", church_id=church_id, scene_id=scene.id, scene_count=len(tour.scenes))
        return tour

    @workflow_operation("Failed to delete scene")
    async def delete_scene(self, church_id: str, scene_id: str) -> VirtualTour:
        """Remove a scene. If it was the start scene, the first remaining scene takes over.

        Raises:
            NotFoundError: If the church does not exist.
            ValidationError: If the church has no tour or the scene is missing.
        """

        def delete(document: dict[str, Any]) -> VirtualTour:
            tour = _require_tour(document)
            _require_scene(tour, scene_id)
            scenes = [scene for scene in tour.scenes if scene.id != scene_id]
            if scenes and not any(scene.is_start_scene for scene in scenes):
                scenes[0] = scenes[0].model_copy(update={"is_start_scene": True})
            return VirtualTour(scenes=scenes)

        tour = await self._mutate_tour(church_id, delete)
        logger.info("Virtual tour scene deleted", church_id=church_id, scene_id=scene_id, scene_count=len(tour.scenes))
        return tour

    @workflow_operation("Failed to set start scene")
    async def set_start_scene(self, church_id: str, scene_id: str) -> VirtualTour:
        def set_start(document: dict[str, Any]) -> VirtualTour:
            tour = _require_tour(document)
            _require_scene(tour, scene_id)
            return VirtualTour(
                scenes=[
                    scene.model_copy(update={"is_start_scene": scene.id == scene_id}) for scene in tour.scenes
                ]
            )

        tour = await self._mutate_tour(church_id, set_start)
        logger.info("Virtual tour start scene set", church_id=church_id, scene_id=scene_id)
        return tour

    @workflow_operation("Failed to update hotspots")
    async def update_scene_hotspots(
        self,
        church_id: str,
        scene_id: str,
        hotspots: list[TourHotspot],
    ) -> VirtualTour:
        """Replace the hotspots of one scene.

        Navigation hotspots must point at a scene of the same tour.

        Raises:
            ValidationError: If the tour or scene is missing, or a navigation
                hotspot targets an unknown scene.
        """

        def update(document: dict[str, Any]) -> VirtualTour:
            tour = _require_tour(document)
            _require_scene(tour, scene_id)
            scene_ids = {scene.id for scene in tour.scenes}
            for hotspot in hotspots:
                if hotspot.type == "navigation" and hotspot.target_scene_id not in scene_ids:
                    raise ValidationError(
                        f"Hotspot '{hotspot.id}' targets unknown scene '{hotspot.target_scene_id}'",
                        field="hotspots",
                    )
            return VirtualTour(
                scenes=[
                    scene.model_copy(update={"hotspots": list(hotspots)}) if scene.id == scene_id else scene
                    for scene in tour.scenes
                ]
            )

        tour = await self._mutate_tour(church_id, update)
        logger.info("Virtual tour hotspots updated", church_id=church_id, scene_id=scene_id, hotspot_count=len(hotspots))
        return tour
