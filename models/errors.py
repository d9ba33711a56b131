"""Error taxonomy for provisioning and archival"""

from pathlib import Path
from typing import Optional, Union


class InscriptionError(Exception):
    """Base class for all inscription/archival errors"""


class InvalidRequest(InscriptionError):
    """Request failed validation before any work started"""


class StepFailure(InscriptionError):
    """A pipeline step failed; the remaining steps for this identifier were aborted"""

    def __init__(self, step: str, asset_id: int, cause: BaseException):
        self.step = step
        self.asset_id = asset_id
        self.cause = cause
        super().__init__(f"Step '{step}' failed for punk #{asset_id}: {cause}")


class PayloadMissing(InscriptionError):
    """Binary payload for an identifier is not present in local storage"""

    def __init__(self, asset_id: int, path: Union[str, Path]):
        self.asset_id = asset_id
        self.path = Path(path)
        super().__init__(f"Image not found: {self.path.name}")


class UploadFailure(InscriptionError):
    """Single archival upload failed (non-fatal to the batch run)"""

    def __init__(self, asset_id: int, cause: BaseException):
        self.asset_id = asset_id
        self.cause = cause
        super().__init__(f"Upload failed for punk #{asset_id}: {cause}")


class PersistenceFailure(InscriptionError):
    """A state document could not be read or written"""

    def __init__(self, path: Union[str, Path], cause: Optional[BaseException] = None, message: Optional[str] = None):
        self.path = Path(path)
        self.cause = cause
        super().__init__(message or f"Failed to write {self.path.name}: {cause}")


class AlreadyProvisioned(InscriptionError):
    """Identifier has already been minted and inscribed"""

    def __init__(self, asset_id: int):
        self.asset_id = asset_id
        super().__init__(f"Punk #{asset_id} is already inscribed")
