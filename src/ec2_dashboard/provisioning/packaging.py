from __future__ import annotations

import base64
import hashlib
import io
import zipfile
from pathlib import Path
from typing import Iterable

PACKAGE_NAME = "ec2_dashboard"
PACKAGE_ROOT = Path(__file__).resolve().parents[1]

# Only stdlib/boto3 modules: the managed runtime has no other dependencies installed.
FUNCTION_MODULES = (
    "app/api/handler.py",
    "inventory/models.py",
    "inventory/normalize.py",
    "inventory/filtering.py",
    "inventory/provider.py",
    "adapters/compute/ec2.py",
    "util/errors.py",
    "util/logging.py",
    "util/metrics.py",
)
_ZIP_TIMESTAMP = (1980, 1, 1, 0, 0, 0)


def build_function_zip(modules: Iterable[str] = FUNCTION_MODULES, root: Path = PACKAGE_ROOT) -> bytes:
    """Zip the handler and its imports with fixed timestamps so identical code hashes identically."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for relative in sorted(modules):
            info = zipfile.ZipInfo(f"{PACKAGE_NAME}/{relative}", date_time=_ZIP_TIMESTAMP)
            info.external_attr = 0o644 << 16
            info.compress_type = zipfile.ZIP_DEFLATED
            archive.writestr(info, (root / relative).read_bytes())
    return buffer.getvalue()


def code_sha256(zip_bytes: bytes) -> str:
    """Digest in the form Lambda reports as ``CodeSha256``."""
    return base64.b64encode(hashlib.sha256(zip_bytes).digest()).decode("ascii")
