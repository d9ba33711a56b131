"""Manager classes for the X1 Punks inscription server"""

from managers.batch_uploader import BatchUploader
from managers.config_manager import Settings, load_settings
from managers.id_allocator import IdentifierPool, allocate
from managers.inscription_pipeline import InscriptionPipeline
from managers.metadata_builder import MetadataBuilder
from managers.mint_manager import MintManager
from managers.state_store import InscriptionIndexStore, MintStateStore, UploadManifestStore

__all__ = [
    "BatchUploader",
    "IdentifierPool",
    "InscriptionIndexStore",
    "InscriptionPipeline",
    "MetadataBuilder",
    "MintManager",
    "MintStateStore",
    "Settings",
    "UploadManifestStore",
    "allocate",
    "load_settings",
]
