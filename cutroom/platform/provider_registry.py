from cutroom.core.config import settings
from cutroom.platform.ports.object_storage import ObjectStoragePort
from cutroom.platform.adapters.storage_local import LocalFilesystemStorage
from cutroom.platform.adapters.storage_s3 import S3Storage
from cutroom.platform.ports.event_bus import EventBusPort
from cutroom.platform.adapters.bus_noop import NoopEventBus
from cutroom.platform.adapters.bus_redis import RedisEventBus

class ProviderRegistry:
    _object_storage: ObjectStoragePort | None = None
    _event_bus: EventBusPort | None = None

    @classmethod
    def object_storage(cls) -> ObjectStoragePort:
        if cls._object_storage is None:
            if settings.OBJECT_STORAGE_PROVIDER == "s3":
                cls._object_storage = S3Storage()
            else:
                cls._object_storage = LocalFilesystemStorage(settings.LOCAL_STORAGE_ROOT)
        return cls._object_storage

    @classmethod
    def event_bus(cls) -> EventBusPort:
        if cls._event_bus is None:
            prov = (settings.EVENT_BUS_PROVIDER or "noop").lower()
            if prov == "redis":
                cls._event_bus = RedisEventBus()
            else:
                cls._event_bus = NoopEventBus()
        return cls._event_bus

    @classmethod
    def use_object_storage(cls, storage: ObjectStoragePort | None) -> None:
        # swap the storage adapter (tests, alternate deployments)
        cls._object_storage = storage

    @classmethod
    async def close(cls) -> None:
        bus = cls._event_bus
        if bus is not None and hasattr(bus, "close"):
            await bus.close()
        cls._event_bus = None

registry = ProviderRegistry()
