import httpx
from typing import Optional, List, Dict, Any
from src.config import settings
from src.core.drivers.models import Driver
from src.core.fleet.service import FleetSummary
from src.core.operational_settings.models import OperationalSettings
from src.core.pickups.models import PickupRequest
from src.shared.events.activity import ActivityEvent


class BaseClient:
    def __init__(self, base_url: str, timeout: float = 10.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url
        self.timeout = timeout
        self.client = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    async def close(self):
        await self.client.aclose()

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        response = await self.client.get(path, params=params)
        response.raise_for_status()
        return response.json()

    async def _post(self, path: str, json: Optional[Dict[str, Any]] = None) -> Any:
        response = await self.client.post(path, json=json)
        response.raise_for_status()
        return response.json()

    async def _put(self, path: str, json: Optional[Dict[str, Any]] = None) -> Any:
        response = await self.client.put(path, json=json)
        response.raise_for_status()
        return response.json()


class OperationsClient(BaseClient):
    def __init__(self, base_url: Optional[str] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        if base_url is None:
            origin = settings.live_channel.LIVE_CHANNEL_ORIGIN.rstrip("/")
            base_url = f"{origin}{settings.api.API_PREFIX}"
        super().__init__(base_url, transport=transport)

    # Заявки

    async def create_pickup(
        self,
        requester_id: str,
        waste_types: List[str],
        notes: Optional[str] = None,
        address: Optional[str] = None,
    ) -> PickupRequest:
        data = await self._post("/pickups", json={
            "requester_id": requester_id,
            "waste_types": waste_types,
            "notes": notes,
            "address": address,
        })
        return PickupRequest(**data)

    async def list_pickups(
        self,
        status: Optional[str] = None,
        requester_id: Optional[str] = None,
        driver_id: Optional[str] = None,
    ) -> List[PickupRequest]:
        params = {k: v for k, v in {
            "status": status,
            "requester_id": requester_id,
            "driver_id": driver_id,
        }.items() if v is not None}
        data = await self._get("/pickups", params=params)
        return [PickupRequest(**item) for item in data]

    async def get_pickup(self, pickup_id: str) -> PickupRequest:
        data = await self._get(f"/pickups/{pickup_id}")
        return PickupRequest(**data)

    async def assign_driver(self, pickup_id: str, driver_id: str) -> PickupRequest:
        data = await self._post(f"/pickups/{pickup_id}/assign", json={"driver_id": driver_id})
        return PickupRequest(**data)

    async def start_route(self, pickup_id: str) -> PickupRequest:
        data = await self._post(f"/pickups/{pickup_id}/start")
        return PickupRequest(**data)

    async def complete_pickup(self, pickup_id: str, collected_weight_by_type: Dict[str, float]) -> PickupRequest:
        data = await self._post(
            f"/pickups/{pickup_id}/complete",
            json={"collected_weight_by_type": collected_weight_by_type},
        )
        return PickupRequest(**data)

    async def cancel_pickup(self, pickup_id: str, reason: Optional[str] = None) -> PickupRequest:
        data = await self._post(f"/pickups/{pickup_id}/cancel", json={"reason": reason})
        return PickupRequest(**data)

    # Водители

    async def register_driver(self, name: str) -> Driver:
        data = await self._post("/drivers", json={"name": name})
        return Driver(**data)

    async def list_drivers(self) -> List[Driver]:
        data = await self._get("/drivers")
        return [Driver(**item) for item in data]

    async def set_driver_availability(self, driver_id: str, availability: str) -> Driver:
        data = await self._put(f"/drivers/{driver_id}/availability", json={"availability": availability})
        return Driver(**data)

    # Настройки, журнал, сводка

    async def get_settings(self) -> OperationalSettings:
        data = await self._get("/settings")
        return OperationalSettings(**data)

    async def update_settings(
        self,
        pricing: Optional[Dict[str, float]] = None,
        zones: Optional[List[str]] = None,
    ) -> OperationalSettings:
        payload: Dict[str, Any] = {}
        if pricing is not None:
            payload["pricing"] = pricing
        if zones is not None:
            payload["zones"] = zones
        data = await self._put("/settings", json=payload)
        return OperationalSettings(**data)

    async def recent_activity(
        self,
        limit: Optional[int] = None,
        before: Optional[str] = None,
        level: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Страница журнала, от новых к старым.
        Ответ: { "items": [ActivityEvent...], "next_before": "<id>" | None }
        """
        params = {k: v for k, v in {"limit": limit, "before": before, "level": level}.items() if v is not None}
        data = await self._get("/activity", params=params)
        return {
            "items": [ActivityEvent(**item) for item in data["items"]],
            "next_before": data.get("next_before"),
        }

    async def fleet_summary(self) -> FleetSummary:
        data = await self._get("/fleet/summary")
        return FleetSummary(**data)
