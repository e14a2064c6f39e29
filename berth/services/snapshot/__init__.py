from berth.services.snapshot.store import RegistrySnapshot, SnapshotStore

__all__ = ["RegistrySnapshot", "SnapshotStore"]
